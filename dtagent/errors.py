"""Exception hierarchy shared by the dtagent modules."""


class DtAgentError(Exception):
    """Base class for all agent errors."""


class CommandError(DtAgentError):
    """An external command exited with a non-zero status."""

    def __init__(self, command, returncode: int):
        self.command = list(command)
        self.returncode = returncode
        super().__init__(f"Command {' '.join(self.command)!r} exited with status {returncode}")


class InstanceError(DtAgentError):
    """Base class for instance lifecycle failures."""


class InvalidTransitionError(InstanceError):
    """The requested operation is not legal in the current instance state."""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} instance in state '{state}'")


class InstanceExitedError(InstanceError):
    """The tracked instance process had already exited."""

    def __init__(self, pid: int, returncode: int):
        self.pid = pid
        self.returncode = returncode
        super().__init__(f"Instance process {pid} already exited with status {returncode}")


class FaultProviderUnavailable(DtAgentError):
    """No network fault provider is configured."""


class InstanceClosedError(InstanceError):
    """The controller was shut down and accepts no further operations."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation} instance: agent is shut down")
