"""
dtagent control API data models.

These models define the request and response bodies of the control
endpoint.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from dtagent.modules.lifecycle import InstanceState


# Request Models (API Input)


class InstanceArgsRequest(BaseModel):
    """Arguments for starting or restarting the instance."""

    args: List[str] = Field(
        default_factory=list,
        description="Launch arguments; the configured defaults are used when empty",
        max_length=100,
    )


class BackupRequest(BaseModel):
    """Request to back up the instance working directory."""

    destination: Optional[str] = Field(
        None, description="Backup path; a timestamped directory is used when omitted"
    )


class PortRequest(BaseModel):
    """Request naming a single port for fault injection."""

    port: str = Field(..., description="Port number", examples=["9090"])

    @field_validator("port", mode="before")
    @classmethod
    def validate_port(cls, v):
        """Accept decimal port numbers in 1-65535."""
        v = str(v).strip()
        if not v.isdigit() or not 1 <= int(v) <= 65535:
            raise ValueError(f"Invalid port: {v}")
        return str(int(v))


# Response Models (API Output)


class InstanceStatusResponse(BaseModel):
    """Snapshot of the managed instance."""

    state: InstanceState
    pid: Optional[int] = None
    running: bool = False
    instance_dir: str
    instance_bin: str


class AgentStatusResponse(BaseModel):
    """Agent identity and instance snapshot."""

    addr: str
    ctrl_addr: str
    log_file: str
    instance: InstanceStatusResponse


class OperationResponse(BaseModel):
    """Result of a lifecycle operation."""

    status: str = "ok"
    operation: str
    state: InstanceState
    pid: Optional[int] = None


class BackupResponse(OperationResponse):
    """Result of a backup."""

    path: str


class FaultResponse(BaseModel):
    """Result of a fault injection request."""

    status: str = "ok"
    operation: str
    port: str
    result: Optional[Any] = None
