"""Conversation history and turn-scoped bookkeeping."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, overload

from streamchat.llm.request import ChatOptions
from streamchat.types import Message, ToolCall

_logger = logging.getLogger(__name__)


class ChatHistory:
    """Append-only ordered sequence of messages."""

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = []
        for message in messages:
            self.append(message)

    def append(self, message: Message) -> None:
        if not isinstance(message, Message):
            raise TypeError(f"Expected Message, got {type(message).__name__}")
        self._messages.append(message)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def to_payload(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    @overload
    def __getitem__(self, index: int) -> Message: ...

    @overload
    def __getitem__(self, index: slice) -> list[Message]: ...

    def __getitem__(self, index: int | slice) -> Message | list[Message]:
        return self._messages[index]

    def __repr__(self) -> str:
        return f"ChatHistory({len(self._messages)} messages)"


class ConversationState:
    """Message history of one conversation plus per-turn bookkeeping.

    Usage::

        state = ConversationState(ChatOptions(model="qwen3-8b"))
        state.add_system_message("You are helpful")
        state.add_user_message("2+2?")
        answer = await controller.run(state)
    """

    def __init__(
        self,
        options: ChatOptions | None = None,
        messages: Iterable[Message] = (),
    ) -> None:
        self.options = options or ChatOptions()
        self.history = ChatHistory(messages)
        self.iteration = 0
        self.pending_tool_calls: list[ToolCall] = []

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_message(self, message: Message) -> None:
        self.history.append(message)

    def add_system_message(self, content: str) -> None:
        self.add_message(Message.system(content))

    def add_user_message(self, content: str, name: str | None = None) -> None:
        self.add_message(Message.user(content, name=name))

    def add_assistant_message(
        self, content: str | None, tool_calls: list[ToolCall] | None = None,
    ) -> None:
        self.add_message(Message.assistant(content, tool_calls))

    def add_tool_message(self, tool_call_id: str, content: str) -> None:
        self.add_message(Message.tool(content, tool_call_id))

    @property
    def messages(self) -> list[Message]:
        return list(self.history)

    @property
    def last_message(self) -> Message | None:
        return self.history.last

    @property
    def model(self) -> str | None:
        return self.options.model

    # ------------------------------------------------------------------
    # Turn bookkeeping
    # ------------------------------------------------------------------

    def begin_turn(self) -> None:
        """Reset per-turn counters; history is kept."""
        self.iteration = 0
        self.pending_tool_calls = []

    def __repr__(self) -> str:
        return (
            f"ConversationState(model={self.options.model!r}, "
            f"messages={len(self.history)}, iteration={self.iteration})"
        )
