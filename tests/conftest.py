"""
Shared pytest fixtures for dtagent tests.

This module provides common fixtures including:
- A throwaway instance directory with an executable launch script
- FaultRecorder: fault provider that records port requests
- Agent and controller factories wired to real child processes
- Helpers for observing process state
"""

import os
import stat
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dtagent.config import AgentConfig
from dtagent.modules.agent import Agent
from dtagent.modules.executor import CommandExecutor
from dtagent.modules.lifecycle import InstanceController


# =============================================================================
# Instance Launch Script
# =============================================================================

# First argument selects the behaviour:
#   exit      - exit immediately with status 3
#   stubborn  - ignore SIGTERM
#   anything else (or none) - sleep until signalled
INSTANCE_SCRIPT = """#!/bin/sh
if [ "$1" = "stubborn" ]; then
    trap '' TERM
fi
echo "instance started: $*"
if [ "$1" = "exit" ]; then
    exit 3
fi
if [ "$1" = "stubborn" ]; then
    while :; do sleep 0.1; done
fi
exec sleep 60
"""


def write_executable(path: Path, content: str) -> Path:
    """Write a script and mark it executable."""
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll predicate until it is true or the timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def process_state(pid: int) -> Optional[str]:
    """
    Return the single-letter kernel state of a process from /proc.

    Returns None if the process is gone.
    """
    try:
        with open(f"/proc/{pid}/stat") as f:
            data = f.read()
    except FileNotFoundError:
        return None
    # The command name is parenthesised and may contain spaces
    return data.rsplit(")", 1)[1].split()[0]


def pid_alive(pid: int) -> bool:
    """True if the pid exists and is not a zombie."""
    state = process_state(pid)
    return state is not None and state != "Z"


requires_proc = pytest.mark.skipif(
    not os.path.isdir("/proc/self"), reason="requires /proc to observe process state"
)


# =============================================================================
# Fault Provider Recording
# =============================================================================

@dataclass
class FaultCall:
    """Record of a fault request received by the provider."""
    operation: str
    port: str


@dataclass
class FaultRecorder:
    """
    Fault provider that records requests and returns a canned result.

    Usage:
        def test_drop(agent, fault_recorder):
            agent.drop_port_instance("9090")
            assert fault_recorder.calls == [FaultCall("drop", "9090")]
    """
    result: Any = None
    error: Optional[Exception] = None
    calls: List[FaultCall] = field(default_factory=list)

    def _record(self, operation: str, port: str) -> Any:
        self.calls.append(FaultCall(operation, port))
        if self.error is not None:
            raise self.error
        return self.result

    def drop_port(self, port: str) -> Any:
        return self._record("drop", port)

    def recover_port(self, port: str) -> Any:
        return self._record("recover", port)


@pytest.fixture
def fault_recorder():
    """Fault provider recording every port request."""
    return FaultRecorder(result="ok")


# =============================================================================
# Instance and Agent Fixtures
# =============================================================================

@pytest.fixture
def instance_dir(tmp_path):
    """Instance working directory with some data in it."""
    path = tmp_path / "instance"
    path.mkdir()
    (path / "data.db").write_text("payload")
    (path / "sub").mkdir()
    (path / "sub" / "wal.log").write_text("entries")
    return path


@pytest.fixture
def instance_bin(tmp_path):
    """Executable launch target for the instance."""
    return write_executable(tmp_path / "instance.sh", INSTANCE_SCRIPT)


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "logs" / "instance.log"


@pytest.fixture
def config(instance_bin, instance_dir, log_path, tmp_path):
    """Agent configuration pointing at the test instance."""
    return AgentConfig(
        ctrl_addr="127.0.0.1:18080",
        instance_bin=instance_bin,
        instance_dir=instance_dir,
        ip="127.0.0.1",
        port=19527,
        log_file=log_path,
        backup_dir=tmp_path / "backups",
        stop_timeout=2.0,
    )


@pytest.fixture
def log_sink(log_path):
    """Append-mode binary log sink."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    sink = open(log_path, "ab")
    yield sink
    sink.close()


@pytest.fixture
def executor(log_sink):
    return CommandExecutor(log_sink)


@pytest.fixture
def controller(executor, instance_bin, instance_dir, tmp_path):
    """Instance controller backed by a real executor."""
    ctl = InstanceController(
        executor,
        instance_bin=instance_bin,
        instance_dir=instance_dir,
        backup_dir=tmp_path / "backups",
        stop_timeout=2.0,
    )
    yield ctl
    ctl.shutdown()


@pytest.fixture
def agent(config, fault_recorder):
    """Agent with a recording fault provider; shut down after the test."""
    a = Agent(config, fault_provider=fault_recorder)
    yield a
    a.shutdown()


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "process: Tests that spawn real child processes"
    )
