"""
Node agent - composition root for the executor, lifecycle, registrar and
fault modules.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from dtagent.config import AgentConfig
from dtagent.modules.executor import CommandExecutor
from dtagent.modules.faults import FaultInjector, FaultProvider, load_provider
from dtagent.modules.lifecycle import InstanceController
from dtagent.modules.registrar import Registrar

logger = logging.getLogger("dtagent.agent")


class Agent:
    """
    Supervises one managed instance on behalf of the controller.

    Args:
        config: Agent configuration
        fault_provider: Network fault provider, loaded from config when omitted
        session: requests session used for registration

    Raises:
        FileNotFoundError: If the launch target or working directory is missing
        NotADirectoryError: If the working directory is not a directory
        PermissionError: If the launch target is not executable
        OSError: If the log sink cannot be opened
        ImportError: If the configured fault provider cannot be imported
        ValueError: If the fault provider path is malformed
    """

    def __init__(
        self,
        config: AgentConfig,
        fault_provider: Optional[FaultProvider] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.ip = config.ip
        self.addr = config.addr
        self.ctrl_addr = config.ctrl_addr

        self._validate_paths()
        self.faults = FaultInjector(fault_provider or load_provider(config.fault_provider))
        self.registrar = Registrar(
            config.ctrl_addr,
            self.addr,
            attempts=config.register_attempts,
            interval=config.register_interval,
            timeout=config.register_timeout,
            session=session,
        )

        self.log_path: Path = config.instance_log
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_sink = open(self.log_path, "ab")

        self.executor = CommandExecutor(self.log_sink, command_timeout=config.command_timeout)
        self.instance = InstanceController(
            self.executor,
            instance_bin=config.instance_bin,
            instance_dir=config.instance_dir,
            default_args=config.instance_args,
            backup_dir=config.backup_dir,
            stop_timeout=config.stop_timeout,
            prepare_command=config.instance_prepare,
        )
        self._shutdown_lock = threading.RLock()
        self._closed = False
        self._shutdown_callbacks: List[Callable[[], None]] = []

        logger.info(f"Agent {self.addr} initialized (instance: {config.instance_bin})")

    def _validate_paths(self) -> None:
        instance_bin = self.config.instance_bin
        instance_dir = self.config.instance_dir

        if not instance_dir.exists():
            raise FileNotFoundError(f"Instance directory not found: {instance_dir}")
        if not instance_dir.is_dir():
            raise NotADirectoryError(f"Instance directory is not a directory: {instance_dir}")
        if not instance_bin.is_file():
            raise FileNotFoundError(f"Instance launch target not found: {instance_bin}")
        if not os.access(instance_bin, os.X_OK):
            raise PermissionError(f"Instance launch target is not executable: {instance_bin}")

    def __enter__(self) -> "Agent":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    @property
    def closed(self) -> bool:
        return self._closed

    def register(self) -> bool:
        """Announce this agent to the controller (best-effort)."""
        logger.debug("start: register")
        return self.registrar.register()

    # Lifecycle operations

    def start_instance(self, args: Optional[Sequence[str]] = None) -> int:
        logger.debug("start: start_instance")
        return self.instance.start(args)

    def stop_instance(self) -> None:
        self.instance.stop()

    def restart_instance(self, args: Optional[Sequence[str]] = None) -> int:
        return self.instance.restart(args)

    def pause_instance(self) -> None:
        self.instance.pause()

    def continue_instance(self) -> None:
        self.instance.resume()

    def backup_instance_data(self, destination: Optional[Path] = None) -> Path:
        return self.instance.backup(destination)

    def cleanup_instance_data(self) -> None:
        self.instance.cleanup()

    # Fault injection (single port only)

    def drop_port_instance(self, port: str) -> Any:
        return self.faults.drop_port(port)

    def recover_port_instance(self, port: str) -> Any:
        return self.faults.recover_port(port)

    def status(self) -> Dict[str, Any]:
        """Return agent identity and instance snapshot."""
        return {
            "addr": self.addr,
            "ctrl_addr": self.ctrl_addr,
            "log_file": str(self.log_path),
            "instance": self.instance.status(),
        }

    def add_shutdown_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback run at the end of shutdown (e.g. stopping the server)."""
        self._shutdown_callbacks.append(callback)

    def shutdown(self) -> None:
        """
        Orderly teardown: stop the instance, close the log sink, then run
        shutdown callbacks. Later calls do nothing.

        If the instance cannot be stopped the error propagates and the agent
        stays open, so shutdown can be retried.
        """
        with self._shutdown_lock:
            if self._closed:
                return

            logger.info("Shutting down agent...")
            # Controller is closed before the sink; later lifecycle calls raise InstanceClosedError
            self.instance.shutdown()
            self._closed = True
            self.log_sink.close()
            for callback in self._shutdown_callbacks:
                callback()
            logger.info("Agent shutdown complete")
