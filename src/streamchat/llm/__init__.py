"""LLM client and request building for streamchat."""

from streamchat.llm.client import AsyncLLMClient
from streamchat.llm.request import (
    CHAT_COMPLETIONS_PATHS,
    ChatOptions,
    LLMRequest,
    build_chat_request,
    validate_request,
)

__all__ = [
    "AsyncLLMClient",
    "CHAT_COMPLETIONS_PATHS",
    "ChatOptions",
    "LLMRequest",
    "build_chat_request",
    "validate_request",
]
