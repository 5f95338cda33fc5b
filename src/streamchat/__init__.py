"""streamchat: streaming chat completions with client-side tool calls."""

from streamchat.config import ChatConfig, ServerSpec, load_config
from streamchat.core import ChatSession, ConversationState, TurnController, TurnState
from streamchat.errors import (
    MalformedChunkError,
    MalformedResponseError,
    MaxIterationsExceeded,
    Phase,
    StreamChatError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    TransportError,
    TurnCancelledError,
    TurnTimeoutError,
    ValidationError,
)
from streamchat.events import EventBus
from streamchat.llm import AsyncLLMClient, ChatOptions
from streamchat.tools import Tool, ToolRegistry
from streamchat.types import ChatEvent, EventType, Message, Role, ToolCall

__version__ = "0.1.0"

__all__ = [
    "AsyncLLMClient",
    "ChatConfig",
    "ChatEvent",
    "ChatOptions",
    "ChatSession",
    "ConversationState",
    "EventBus",
    "EventType",
    "MalformedChunkError",
    "MalformedResponseError",
    "MaxIterationsExceeded",
    "Message",
    "Phase",
    "Role",
    "ServerSpec",
    "StreamChatError",
    "Tool",
    "ToolCall",
    "ToolError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolRegistry",
    "TransportError",
    "TurnCancelledError",
    "TurnTimeoutError",
    "TurnController",
    "TurnState",
    "ValidationError",
    "load_config",
]
