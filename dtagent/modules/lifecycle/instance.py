"""
Instance lifecycle controller.

The controller supervises exactly one managed process. Legal moves are
listed in TRANSITIONS; stop, pause and resume quietly do nothing when the
instance is not in their source state so the controller can send them
without tracking remote state.
"""

import logging
import signal
import subprocess
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from dtagent.errors import InstanceClosedError, InstanceExitedError, InvalidTransitionError
from dtagent.modules.executor import CommandExecutor

logger = logging.getLogger("dtagent.lifecycle")


class InstanceState(str, Enum):
    """State of the managed instance."""

    UNINITIALIZED = "uninitialized"
    STARTED = "started"
    STOPPED = "stopped"
    PAUSED = "paused"


class Operation(str, Enum):
    """Lifecycle operations that move the state machine."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"
    PAUSE = "pause"
    RESUME = "continue"
    BACKUP = "backup"
    CLEANUP = "cleanup"


TRANSITIONS: Dict[tuple, InstanceState] = {
    (InstanceState.UNINITIALIZED, Operation.START): InstanceState.STARTED,
    (InstanceState.STOPPED, Operation.START): InstanceState.STARTED,
    (InstanceState.STARTED, Operation.STOP): InstanceState.STOPPED,
    (InstanceState.STARTED, Operation.PAUSE): InstanceState.PAUSED,
    (InstanceState.PAUSED, Operation.RESUME): InstanceState.STARTED,
    (InstanceState.UNINITIALIZED, Operation.RESTART): InstanceState.STARTED,
    (InstanceState.STOPPED, Operation.RESTART): InstanceState.STARTED,
    (InstanceState.STARTED, Operation.RESTART): InstanceState.STARTED,
    (InstanceState.PAUSED, Operation.RESTART): InstanceState.STARTED,
    (InstanceState.UNINITIALIZED, Operation.CLEANUP): InstanceState.UNINITIALIZED,
    (InstanceState.STOPPED, Operation.CLEANUP): InstanceState.UNINITIALIZED,
}

# Outside their source state these succeed without acting.
PERMISSIVE_OPERATIONS = frozenset({Operation.STOP, Operation.PAUSE, Operation.RESUME})

TRACKED_STATES = frozenset({InstanceState.STARTED, InstanceState.PAUSED})


class InstanceController:
    """State machine for the single managed instance."""

    def __init__(
        self,
        executor: CommandExecutor,
        instance_bin: Path,
        instance_dir: Path,
        default_args: Sequence[str] = (),
        backup_dir: Optional[Path] = None,
        stop_timeout: float = 10.0,
        prepare_command: Sequence[str] = (),
    ):
        """
        Initialize controller.

        Args:
            executor: Command executor used for every process action
            instance_bin: Launch target of the instance
            instance_dir: Working directory of the instance
            default_args: Arguments used when start/restart get none
            backup_dir: Directory receiving backups, defaults to the parent of instance_dir
            stop_timeout: Seconds to wait after SIGTERM before sending SIGKILL
            prepare_command: Command run to completion in instance_dir before each launch
        """
        self.executor = executor
        self.instance_bin = Path(instance_bin)
        self.instance_dir = Path(instance_dir)
        self.default_args = list(default_args)
        self.backup_dir = Path(backup_dir) if backup_dir else self.instance_dir.parent
        self.stop_timeout = stop_timeout
        self.prepare_command = list(prepare_command)

        self._lock = threading.RLock()
        self._state = InstanceState.UNINITIALIZED
        self._pid: Optional[int] = None
        self._process: Optional[subprocess.Popen] = None
        self._closed = False

    @property
    def state(self) -> InstanceState:
        with self._lock:
            return self._state

    @property
    def pid(self) -> Optional[int]:
        with self._lock:
            return self._pid

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def _check_open(self, operation: Operation) -> None:
        if self._closed:
            raise InstanceClosedError(operation.value)

    def _next_state(self, operation: Operation) -> Optional[InstanceState]:
        """
        Look up the target state of an operation.

        Returns None for a permissive operation outside its source state.

        Raises:
            InstanceClosedError: If the controller has been shut down
            InvalidTransitionError: If a strict operation is illegal here
        """
        self._check_open(operation)
        target = TRANSITIONS.get((self._state, operation))
        if target is None:
            if operation in PERMISSIVE_OPERATIONS:
                logger.debug(f"{operation.value} ignored in state {self._state.value}")
                return None
            raise InvalidTransitionError(operation.value, self._state.value)
        return target

    def _launch(self, args: Optional[Sequence[str]]) -> None:
        args = list(args) if args else self.default_args
        self.instance_dir.mkdir(parents=True, exist_ok=True)
        if self.prepare_command:
            self.executor.run(
                self.prepare_command[0], self.prepare_command[1:], cwd=self.instance_dir
            )
        process = self.executor.spawn(self.instance_bin, args, cwd=self.instance_dir)
        self._process = process
        self._pid = process.pid
        self._state = InstanceState.STARTED
        logger.info(f"Instance started with pid {process.pid}")

    def _ensure_alive(self) -> None:
        """
        Reap the tracked process if it has exited on its own.

        Raises:
            InstanceExitedError: If it had exited; tracking is cleared and
                the state moves to STOPPED
        """
        pid = self._pid
        returncode = self._process.poll()
        if returncode is None:
            return
        self._process = None
        self._pid = None
        self._state = InstanceState.STOPPED
        logger.warning(f"Instance process {pid} had already exited with status {returncode}")
        raise InstanceExitedError(pid, returncode)

    def _terminate(self) -> None:
        """Terminate the tracked process and clear tracking."""
        self._ensure_alive()
        process = self._process
        pid = self._pid

        if self._state == InstanceState.PAUSED:
            # A stopped process does not act on SIGTERM until continued
            self.executor.send_signal(pid, signal.SIGCONT)

        self.executor.send_signal(pid, signal.SIGTERM)
        try:
            process.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Instance {pid} ignored SIGTERM for {self.stop_timeout}s, killing")
            self.executor.send_signal(pid, signal.SIGKILL)
            process.wait()

        logger.info(f"Instance {pid} exited with status {process.returncode}")
        self._process = None
        self._pid = None

    def start(self, args: Optional[Sequence[str]] = None) -> int:
        """
        Launch the instance.

        Args:
            args: Launch arguments, the configured defaults when empty

        Returns:
            pid of the spawned process

        Raises:
            InvalidTransitionError: If an instance is already tracked
            InstanceClosedError: If the controller has been shut down
            OSError: If the launch fails (state is left unchanged)
            CommandError: If the prepare command fails (state is left unchanged)
        """
        with self._lock:
            self._next_state(Operation.START)
            self._launch(args)
            return self._pid

    def stop(self) -> None:
        """
        Stop a running instance and wait for it to exit.

        No-op unless the instance is started.

        Raises:
            InstanceExitedError: If the process had already exited
            OSError: If signalling fails
        """
        with self._lock:
            target = self._next_state(Operation.STOP)
            if target is None:
                return
            self._terminate()
            self._state = target

    def restart(self, args: Optional[Sequence[str]] = None) -> int:
        """
        Stop the tracked instance, if any, then start it again.

        A failure while stopping is raised and nothing is started.
        """
        with self._lock:
            self._next_state(Operation.RESTART)
            if self._state in TRACKED_STATES:
                self._terminate()
                self._state = InstanceState.STOPPED
            self._launch(args)
            return self._pid

    def pause(self) -> None:
        """Suspend a running instance with SIGSTOP. No-op unless started."""
        with self._lock:
            target = self._next_state(Operation.PAUSE)
            if target is None:
                return
            self._ensure_alive()
            self.executor.send_signal(self._pid, signal.SIGSTOP)
            self._state = target
            logger.info(f"Instance {self._pid} paused")

    def resume(self) -> None:
        """Continue a paused instance with SIGCONT. No-op unless paused."""
        with self._lock:
            target = self._next_state(Operation.RESUME)
            if target is None:
                return
            self._ensure_alive()
            self.executor.send_signal(self._pid, signal.SIGCONT)
            self._state = target
            logger.info(f"Instance {self._pid} continued")

    def backup(self, destination: Optional[Path] = None) -> Path:
        """
        Copy the instance working directory.

        Args:
            destination: Target path, a timestamped directory under backup_dir when omitted

        Returns:
            Path of the backup
        """
        with self._lock:
            self._check_open(Operation.BACKUP)
            if destination is None:
                stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
                destination = self.backup_dir / f"{self.instance_dir.name}-{stamp}"
            return self.executor.copy_tree(self.instance_dir, destination)

    def cleanup(self) -> None:
        """
        Remove the instance working directory.

        Refused while a process is tracked. On success the controller
        returns to the uninitialized state.
        """
        with self._lock:
            target = self._next_state(Operation.CLEANUP)
            self.executor.remove_tree(self.instance_dir)
            self._state = target

    def shutdown(self) -> None:
        """
        Terminate the tracked process, if any, and close the controller.

        Every later operation raises InstanceClosedError. Safe to call
        repeatedly; if termination fails the controller stays open so the
        call can be retried.
        """
        with self._lock:
            if self._closed:
                return
            if self._state in TRACKED_STATES:
                try:
                    self._terminate()
                except InstanceExitedError:
                    # Already reaped and logged
                    pass
                self._state = InstanceState.STOPPED
            self._closed = True
            logger.info("Instance controller closed")

    def status(self) -> Dict[str, Any]:
        """Return a serializable snapshot of the instance."""
        with self._lock:
            return {
                "state": self._state.value,
                "pid": self._pid,
                "running": self._process is not None and self._process.poll() is None,
                "instance_dir": str(self.instance_dir),
                "instance_bin": str(self.instance_bin),
            }
