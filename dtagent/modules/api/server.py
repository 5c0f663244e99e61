"""
Control endpoint routes.

Each route maps 1:1 onto an Agent operation. Endpoints are plain ``def``
functions so FastAPI runs them in its worker threads; the lifecycle
controller serializes them.
"""

import logging
import subprocess
from contextlib import asynccontextmanager, contextmanager
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request

from dtagent import __version__
from dtagent.errors import (
    CommandError,
    FaultProviderUnavailable,
    InstanceClosedError,
    InstanceExitedError,
    InvalidTransitionError,
)
from dtagent.modules.agent import Agent

from .models import (
    AgentStatusResponse,
    BackupRequest,
    BackupResponse,
    FaultResponse,
    InstanceArgsRequest,
    OperationResponse,
    PortRequest,
)

logger = logging.getLogger("dtagent.api")


def get_agent(request: Request) -> Agent:
    """Resolve the agent from application state."""
    agent: Optional[Agent] = getattr(request.app.state, "agent", None)
    if agent is None:
        raise HTTPException(503, "Service not initialized")
    if agent.closed:
        raise HTTPException(503, "Agent is shut down")
    return agent


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Map agent errors onto HTTP errors."""
    try:
        yield
    except InvalidTransitionError as e:
        raise HTTPException(409, str(e))
    except InstanceExitedError as e:
        raise HTTPException(410, str(e))
    except InstanceClosedError as e:
        raise HTTPException(503, str(e))
    except FaultProviderUnavailable as e:
        raise HTTPException(501, str(e))
    except (CommandError, OSError, subprocess.TimeoutExpired) as e:
        logger.error(f"{operation} failed: {e}")
        raise HTTPException(500, f"{operation} failed: {e}")


def _operation_response(agent: Agent, operation: str) -> OperationResponse:
    return OperationResponse(
        operation=operation, state=agent.instance.state, pid=agent.instance.pid
    )


def create_control_router() -> APIRouter:
    """Build the control API router."""
    router = APIRouter()

    @router.get("/health")
    def health():
        return {"status": "healthy", "version": __version__}

    @router.get("/api/instance/status", response_model=AgentStatusResponse)
    def instance_status(agent: Agent = Depends(get_agent)):
        return agent.status()

    @router.post("/api/instance/start", response_model=OperationResponse)
    def start_instance(
        request: Optional[InstanceArgsRequest] = None, agent: Agent = Depends(get_agent)
    ):
        args = request.args if request else None
        with translate_errors("start"):
            agent.start_instance(args)
        return _operation_response(agent, "start")

    @router.post("/api/instance/stop", response_model=OperationResponse)
    def stop_instance(agent: Agent = Depends(get_agent)):
        with translate_errors("stop"):
            agent.stop_instance()
        return _operation_response(agent, "stop")

    @router.post("/api/instance/restart", response_model=OperationResponse)
    def restart_instance(
        request: Optional[InstanceArgsRequest] = None, agent: Agent = Depends(get_agent)
    ):
        args = request.args if request else None
        with translate_errors("restart"):
            agent.restart_instance(args)
        return _operation_response(agent, "restart")

    @router.post("/api/instance/pause", response_model=OperationResponse)
    def pause_instance(agent: Agent = Depends(get_agent)):
        with translate_errors("pause"):
            agent.pause_instance()
        return _operation_response(agent, "pause")

    @router.post("/api/instance/continue", response_model=OperationResponse)
    def continue_instance(agent: Agent = Depends(get_agent)):
        with translate_errors("continue"):
            agent.continue_instance()
        return _operation_response(agent, "continue")

    @router.post("/api/instance/backup", response_model=BackupResponse)
    def backup_instance(
        request: Optional[BackupRequest] = None, agent: Agent = Depends(get_agent)
    ):
        destination = request.destination if request else None
        with translate_errors("backup"):
            path = agent.backup_instance_data(destination)
        return BackupResponse(
            operation="backup",
            state=agent.instance.state,
            pid=agent.instance.pid,
            path=str(path),
        )

    @router.post("/api/instance/cleanup", response_model=OperationResponse)
    def cleanup_instance(agent: Agent = Depends(get_agent)):
        with translate_errors("cleanup"):
            agent.cleanup_instance_data()
        return _operation_response(agent, "cleanup")

    @router.post("/api/network/drop_port", response_model=FaultResponse)
    def drop_port(request: PortRequest, agent: Agent = Depends(get_agent)):
        with translate_errors("drop_port"):
            result = agent.drop_port_instance(request.port)
        return FaultResponse(operation="drop_port", port=request.port, result=result)

    @router.post("/api/network/recover_port", response_model=FaultResponse)
    def recover_port(request: PortRequest, agent: Agent = Depends(get_agent)):
        with translate_errors("recover_port"):
            result = agent.recover_port_instance(request.port)
        return FaultResponse(operation="recover_port", port=request.port, result=result)

    @router.post("/api/agent/shutdown")
    def shutdown_agent(agent: Agent = Depends(get_agent)):
        with translate_errors("shutdown"):
            agent.shutdown()
        return {"status": "shutdown"}

    return router


def create_app(agent: Agent) -> FastAPI:
    """
    Create the control application for an agent.

    The agent is shut down when the application stops.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Control endpoint for agent {agent.addr} starting")
        yield
        logger.info("Control endpoint stopping")
        agent.shutdown()

    app = FastAPI(
        title="dtagent",
        description="Distributed testing node agent control API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.agent = agent
    app.include_router(create_control_router())
    return app
