"""Shared data types for streamchat."""

from __future__ import annotations

import enum
import json
import time
from dataclasses import dataclass, field
from typing import Any

from streamchat.errors import ValidationError


# ---------------------------------------------------------------------------
# Messages and tool calls
# ---------------------------------------------------------------------------

class Role(enum.Enum):
    """Author of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class FunctionCall:
    """Function name plus its raw JSON argument string."""

    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> Any:
        """Decode ``arguments``.  Raises ``json.JSONDecodeError`` if invalid."""
        return json.loads(self.arguments) if self.arguments.strip() else {}


@dataclass
class ToolCall:
    """A model-issued request to invoke a client-side function."""

    id: str
    function: FunctionCall
    type: str = "function"

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        if not isinstance(data, dict):
            raise ValidationError(f"Tool call must be an object, got {type(data).__name__}")
        func = data.get("function") or {}
        if not isinstance(func, dict):
            raise ValidationError(
                f"Tool call function must be an object, got {type(func).__name__}"
            )
        args = func.get("arguments", "{}")
        # Some servers send arguments as an already-decoded object
        if not isinstance(args, str):
            args = json.dumps(args)
        return cls(
            id=data.get("id") or "",
            type=data.get("type") or "function",
            function=FunctionCall(name=func.get("name") or "", arguments=args),
        )


@dataclass
class Message:
    """One entry of the chat history.

    Construction validates the role-specific invariants and raises
    ``ValidationError`` when they do not hold.
    """

    role: Role
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    name: str | None = None
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            try:
                self.role = Role(self.role)
            except ValueError:
                raise ValidationError(f"Unknown message role: {self.role!r}") from None

        if self.role == Role.TOOL:
            if self.content is None or not self.tool_call_id:
                raise ValidationError(
                    "Tool messages require content and a tool_call_id"
                )
        elif self.role in (Role.SYSTEM, Role.USER):
            if self.content is None:
                raise ValidationError(f"{self.role.value} messages require content")
        elif self.content is None and not self.tool_calls:
            raise ValidationError(
                "Assistant messages require content or at least one tool call"
            )

    # Factories -----------------------------------------------------------

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str, name: str | None = None) -> Message:
        return cls(role=Role.USER, content=content, name=name)

    @classmethod
    def assistant(
        cls, content: str | None, tool_calls: list[ToolCall] | None = None,
    ) -> Message:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, content: str, tool_call_id: str) -> Message:
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id)

    # Wire format ---------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        if self.name:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            role=data.get("role") or Role.ASSISTANT.value,
            content=data.get("content"),
            tool_calls=[ToolCall.from_dict(tc) for tc in _as_list(data.get("tool_calls"))],
            name=data.get("name"),
            tool_call_id=data.get("tool_call_id"),
        )


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"tool_calls must be a list, got {type(value).__name__}")
    return value


# ---------------------------------------------------------------------------
# Streaming types
# ---------------------------------------------------------------------------

@dataclass
class ToolCallDelta:
    """One indexed tool-call fragment from a streamed chunk."""

    index: int
    id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments: str | None = None


@dataclass
class StreamChunk:
    """Decoded payload of a single SSE ``data:`` event."""

    content: str | None = None
    tool_calls: list[ToolCallDelta] = field(default_factory=list)
    finish_reason: str | None = None
    role: str | None = None
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatCompletion:
    """Result of a non-streaming chat completion."""

    message: Message
    finish_reason: str = ""
    usage: dict[str, int] = field(default_factory=dict)
    model: str = ""
    raw: dict[str, Any] = field(default_factory=dict)
    latency_ms: float = 0


# ---------------------------------------------------------------------------
# Tool types
# ---------------------------------------------------------------------------

@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # string, integer, number, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None

    def to_property(self) -> dict[str, Any]:
        """JSON-schema property for this parameter."""
        prop: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            prop["enum"] = list(self.enum)
        if self.default is not None:
            prop["default"] = self.default
        return prop


@dataclass
class ToolResult:
    """Result of a tool execution."""

    success: bool
    output: str
    error: str = ""

    def to_message(self) -> str:
        if self.success:
            return self.output
        if self.output:
            return f"[Tool Error] {self.error}\n{self.output}"
        return f"[Tool Error] {self.error}"


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Events emitted while a turn runs."""

    # Stream events
    STREAM_START = "stream_start"
    STREAM_CONTENT = "stream_content"
    STREAM_TOOL_CALL = "stream_tool_call"
    STREAM_END = "stream_end"
    STREAM_ERROR = "stream_error"

    # Tool events
    TOOL_RECEIVED = "tool_received"
    TOOL_EXECUTING = "tool_executing"
    TOOL_EXECUTED = "tool_executed"
    TOOL_ERROR = "tool_error"

    # Turn lifecycle
    TURN_END = "turn_end"
    TURN_ERROR = "turn_error"


@dataclass
class ChatEvent:
    """Event delivered to EventBus observers."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
