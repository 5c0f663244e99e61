#!/usr/bin/env python3
"""
Command Executor - runs external commands on behalf of the agent.

All combined stdout/stderr of launched commands is streamed to a single
append-only log sink. Actions performed with native primitives (signal
delivery, recursive copy and removal) write an audit line to the same sink,
so the sink is a complete record of what the agent did to the instance.
"""

import logging
import os
import shutil
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Union

from dtagent.errors import CommandError

logger = logging.getLogger("dtagent.executor")

PathLike = Union[str, Path]


class CommandExecutor:
    """Executes commands with output redirected to a shared log sink."""

    def __init__(self, log_sink: BinaryIO, command_timeout: Optional[float] = None):
        """
        Initialize executor.

        Args:
            log_sink: Binary file object opened for appending
            command_timeout: Default timeout in seconds for run(), None for no limit
        """
        self.log_sink = log_sink
        self.command_timeout = command_timeout
        self._sink_lock = threading.Lock()

    def _audit(self, message: str) -> None:
        """Append an audit line to the log sink."""
        stamp = time.strftime("%Y-%m-%dT%H:%M:%S%z")
        with self._sink_lock:
            self.log_sink.write(f"[dtagent {stamp}] {message}\n".encode("utf-8"))
            self.log_sink.flush()

    def _command(self, target: PathLike, args: Optional[Sequence[str]]) -> List[str]:
        return [str(target)] + [str(arg) for arg in (args or [])]

    def run(
        self,
        target: PathLike,
        args: Optional[Sequence[str]] = None,
        cwd: Optional[PathLike] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """
        Run a command to completion.

        Args:
            target: Executable to run
            args: Command arguments
            cwd: Working directory for the child
            timeout: Seconds to wait before killing the child, defaults to command_timeout

        Returns:
            The child's exit status (always 0)

        Raises:
            OSError: If the command cannot be launched
            CommandError: If the command exits with a non-zero status
            subprocess.TimeoutExpired: If the command runs past the timeout
        """
        cmd = self._command(target, args)
        timeout = timeout if timeout is not None else self.command_timeout
        self._audit(f"run: {' '.join(cmd)}")
        logger.debug(f"Running: {' '.join(cmd)}")

        with self._sink_lock:
            self.log_sink.flush()
        process = subprocess.run(
            cmd,
            stdout=self.log_sink,
            stderr=subprocess.STDOUT,
            cwd=cwd,
            timeout=timeout,
        )

        if process.returncode != 0:
            logger.warning(f"Command {cmd[0]} exited with status {process.returncode}")
            raise CommandError(cmd, process.returncode)
        return process.returncode

    def spawn(
        self,
        target: PathLike,
        args: Optional[Sequence[str]] = None,
        cwd: Optional[PathLike] = None,
    ) -> subprocess.Popen:
        """
        Launch a command without waiting for it.

        Returns:
            The Popen handle of the child

        Raises:
            OSError: If the command cannot be launched
        """
        cmd = self._command(target, args)
        self._audit(f"spawn: {' '.join(cmd)}")

        with self._sink_lock:
            self.log_sink.flush()
        process = subprocess.Popen(
            cmd,
            stdout=self.log_sink,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            cwd=cwd,
        )
        logger.info(f"Spawned {cmd[0]} with pid {process.pid}")
        return process

    def send_signal(self, pid: int, sig: int) -> None:
        """
        Deliver a signal to a process.

        Raises:
            ProcessLookupError: If the process does not exist
            PermissionError: If the agent may not signal the process
        """
        name = signal.Signals(sig).name
        self._audit(f"signal: {name} -> pid {pid}")
        os.kill(pid, sig)
        logger.debug(f"Sent {name} to pid {pid}")

    def copy_tree(self, source: PathLike, destination: PathLike) -> Path:
        """
        Recursively copy a directory.

        Raises:
            OSError: If the source is missing or the destination already exists
        """
        self._audit(f"copy: {source} -> {destination}")
        result = Path(shutil.copytree(str(source), str(destination), symlinks=True))
        logger.info(f"Copied {source} to {destination}")
        return result

    def remove_tree(self, path: PathLike) -> None:
        """
        Recursively remove a directory.

        Raises:
            OSError: If the directory is missing or cannot be removed
        """
        self._audit(f"remove: {path}")
        shutil.rmtree(str(path))
        logger.info(f"Removed {path}")
