"""Error taxonomy for streamchat.

Every error carries the *phase* of the turn in which it happened so that
callers can tell a failed request from a broken stream, a failing tool or
an exhausted round-trip cap.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from streamchat.types import ToolCall


class Phase(enum.Enum):
    """Turn phase in which an error occurred."""

    REQUEST = "request"
    STREAMING = "streaming"
    TOOL_EXECUTION = "tool_execution"
    ITERATION_CAP = "iteration_cap"


class StreamChatError(Exception):
    """Base class for all streamchat errors."""

    default_phase = Phase.REQUEST

    def __init__(self, message: str, phase: Phase | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.phase = phase or self.default_phase

    def __str__(self) -> str:
        return f"[{self.phase.value}] {self.message}"


class ValidationError(StreamChatError):
    """Request or message is invalid; nothing was sent."""


class TransportError(StreamChatError):
    """Connection, timeout or HTTP status failure."""

    def __init__(
        self,
        message: str,
        phase: Phase | None = None,
        status_code: int | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message, phase)
        self.status_code = status_code
        self.response = response


class MalformedResponseError(StreamChatError):
    """A non-streaming response body could not be used."""


class MalformedChunkError(StreamChatError):
    """A single SSE data line could not be decoded."""

    default_phase = Phase.STREAMING

    def __init__(self, message: str, line: str = "", phase: Phase | None = None) -> None:
        super().__init__(message, phase)
        self.line = line


class TurnCancelledError(StreamChatError):
    """The turn was cancelled before it completed."""

    default_phase = Phase.STREAMING


class TurnTimeoutError(StreamChatError):
    """The turn ran past its wall-clock limit while waiting on the server."""

    default_phase = Phase.STREAMING

    def __init__(self, timeout: float, phase: Phase | None = None) -> None:
        super().__init__(f"No complete response within {timeout:g}s", phase)
        self.timeout = timeout


class ToolError(StreamChatError):
    """Base class for tool lookup and execution failures."""

    default_phase = Phase.TOOL_EXECUTION

    def __init__(self, message: str, tool_call: ToolCall) -> None:
        super().__init__(message)
        self.tool_call = tool_call


class ToolNotFoundError(ToolError):
    """No tool is registered under the requested name."""

    def __init__(self, tool_call: ToolCall) -> None:
        super().__init__(f"Unknown tool '{tool_call.name}'", tool_call)


class ToolExecutionError(ToolError):
    """A tool callback raised."""

    def __init__(self, tool_call: ToolCall, cause: BaseException) -> None:
        super().__init__(
            f"Tool '{tool_call.name}' execution failed: "
            f"{type(cause).__name__}: {cause}",
            tool_call,
        )
        self.cause = cause


class MaxIterationsExceeded(StreamChatError):
    """The model kept requesting tools past the configured round-trip cap."""

    default_phase = Phase.ITERATION_CAP

    def __init__(self, max_iterations: int) -> None:
        super().__init__(
            f"Tool round-trip limit reached ({max_iterations}). Stopping."
        )
        self.max_iterations = max_iterations
