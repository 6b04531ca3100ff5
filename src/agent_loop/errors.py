# errors.py
# Exception taxonomy for the agent loop.
#
# The loop itself never catches these. Backend and tool failures propagate
# straight out of Agent.input(); only the CLI turns them into output.


class AgentLoopError(Exception):
    """Base class for every error raised by this package."""


class BackendError(AgentLoopError):
    """Raised when the model backend fails: network, auth or malformed response."""


class ToolError(AgentLoopError):
    """Raised by a tool that cannot complete its call."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name


class HistoryError(AgentLoopError):
    """Raised when an existing history file cannot be decoded."""
