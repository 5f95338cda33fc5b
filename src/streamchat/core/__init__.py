"""Turn loop, tool execution and conversation state for streamchat."""

from streamchat.core.controller import TurnController, TurnState
from streamchat.core.conversation import ChatHistory, ConversationState
from streamchat.core.executor import ExecutionResult, ToolExecutor
from streamchat.core.session import ChatSession

__all__ = [
    "ChatHistory",
    "ChatSession",
    "ConversationState",
    "ExecutionResult",
    "ToolExecutor",
    "TurnController",
    "TurnState",
]
