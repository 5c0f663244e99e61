"""
API Module - Black Box Interface

Purpose: HTTP control endpoint for the controller
Interface: REST API endpoints (create_app, create_control_router)
Hidden: Request validation, error translation

The API module only orchestrates - it contains no business logic.
All logic is delegated to the agent.
"""

from .models import (
    AgentStatusResponse,
    BackupRequest,
    BackupResponse,
    FaultResponse,
    InstanceArgsRequest,
    InstanceStatusResponse,
    OperationResponse,
    PortRequest,
)
from .server import create_app, create_control_router

__all__ = [
    "AgentStatusResponse",
    "BackupRequest",
    "BackupResponse",
    "FaultResponse",
    "InstanceArgsRequest",
    "InstanceStatusResponse",
    "OperationResponse",
    "PortRequest",
    "create_app",
    "create_control_router",
]
