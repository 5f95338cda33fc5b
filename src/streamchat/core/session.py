"""ChatSession — one conversation wired to a client, tools and observers."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from streamchat.config import ChatConfig, load_config
from streamchat.events.bus import EventBus, Handler
from streamchat.llm.client import AsyncLLMClient
from streamchat.llm.request import ChatOptions
from streamchat.tools.base import Tool
from streamchat.tools.registry import ToolCallback, ToolRegistry
from streamchat.types import EventType, Message

from .controller import TurnController, TurnState
from .conversation import ConversationState

_logger = logging.getLogger(__name__)


class ChatSession:
    """High-level entry point owning history, tools, events and the turn loop.

    Usage::

        async with ChatSession.from_config(load_config()) as chat:
            chat.system("You are a calculator.")
            chat.register_tool("add", add, {...}, "Add two numbers")
            chat.on("stream_content", lambda e: print(e.data["delta"], end=""))
            answer = await chat.send("What is 2+2?")
    """

    def __init__(
        self,
        client: AsyncLLMClient,
        options: ChatOptions | None = None,
        *,
        registry: ToolRegistry | None = None,
        event_bus: EventBus | None = None,
        max_iterations: int = 5,
        max_malformed_chunks: int = 20,
        max_tool_output: int = 0,
        streaming: bool = True,
        stream_timeout: float | None = 60,
    ) -> None:
        self.client = client
        self.registry = registry if registry is not None else ToolRegistry()
        self.events = event_bus if event_bus is not None else EventBus()
        self.conversation = ConversationState(options)
        self.controller = TurnController(
            client,
            self.registry,
            self.events,
            max_iterations=max_iterations,
            max_malformed_chunks=max_malformed_chunks,
            max_tool_output=max_tool_output,
            streaming=streaming,
            stream_timeout=stream_timeout,
        )

    @classmethod
    def from_config(
        cls,
        config: ChatConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ChatSession:
        """Build a session from ``ChatConfig`` (loaded from disk when omitted)."""
        config = config if config is not None else load_config()
        options = ChatOptions(
            model=config.default_model or None,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
        return cls(
            AsyncLLMClient(config.server, transport=transport),
            options,
            max_iterations=config.max_iterations,
            max_malformed_chunks=config.max_malformed_chunks,
            max_tool_output=config.max_tool_output,
            streaming=config.streaming,
            stream_timeout=config.stream_timeout,
        )

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def system(self, text: str) -> ChatSession:
        self.conversation.add_system_message(text)
        return self

    def register_tool(
        self,
        name_or_tool: str | Tool,
        callback: ToolCallback | None = None,
        parameters: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> ChatSession:
        """Register a callback by name, or a class-style ``Tool``."""
        if isinstance(name_or_tool, Tool):
            self.registry.register_tool(name_or_tool)
        else:
            if callback is None:
                raise TypeError(f"Tool '{name_or_tool}' needs a callback")
            self.registry.register(name_or_tool, callback, parameters, description)
        return self

    def on(self, event_type: EventType | str, handler: Handler) -> ChatSession:
        self.events.subscribe(event_type, handler)
        return self

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def send(self, text: str, options: ChatOptions | None = None) -> str:
        """Append a user message and run the turn to its final answer."""
        self.conversation.add_user_message(text)
        return await self.controller.run(self.conversation, options)

    def cancel(self) -> None:
        self.controller.cancel()

    @property
    def state(self) -> TurnState:
        return self.controller.state

    @property
    def messages(self) -> list[Message]:
        return self.conversation.messages

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> ChatSession:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
