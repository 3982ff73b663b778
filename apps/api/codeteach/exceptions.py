"""Error taxonomy shared by the gateway, agents, tools and routes."""

from typing import Optional


class CodeTeachError(Exception):
    """Base class for application errors."""


class UpstreamError(CodeTeachError):
    """The model API was unreachable or answered with an unexpected shape."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PlanParseError(CodeTeachError):
    """The planner response held no parseable workflow plan."""


class UnknownTool(CodeTeachError):
    """No executor is registered under the requested tool name."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ToolExecutionError(CodeTeachError):
    """A registered tool executor failed. The cause is chained."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class SandboxExecutionError(CodeTeachError):
    """User code could not be run to completion."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class NotesError(CodeTeachError):
    """The workspace notes integration rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
