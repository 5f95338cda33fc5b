"""Reassembles streamed tool-call fragments into complete ``ToolCall`` objects.

OpenAI-compatible servers send tool calls as incremental chunks: each chunk
has an ``index``, the ``id`` and ``function.name`` usually arrive first, and
``function.arguments`` trickles in token by token.  The fragments of one
index are concatenated in arrival order; a call is complete as soon as its
arguments parse as JSON and its name is known.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Callable

from streamchat.types import FunctionCall, ToolCall, ToolCallDelta

_logger = logging.getLogger(__name__)


def _default_call_id(index: int) -> str:
    return f"call_{index}_{uuid.uuid4().hex[:12]}"


@dataclass
class PendingToolCall:
    """Accumulation state for one in-flight tool call."""

    index: int
    id: str
    type: str = "function"
    name: str = ""
    arguments: str = ""
    generated_id: bool = False

    def to_tool_call(self, arguments: str | None = None) -> ToolCall:
        return ToolCall(
            id=self.id,
            type=self.type,
            function=FunctionCall(
                name=self.name,
                arguments=self.arguments if arguments is None else arguments,
            ),
        )


class ToolCallAssembler:
    """Tracks tool calls per stream index and emits them once complete.

    Usage::

        assembler = ToolCallAssembler()
        for delta in chunk.tool_calls:
            call = assembler.feed_delta(delta)
            if call is not None:
                ...  # complete, valid JSON arguments
        leftovers = assembler.flush()  # at end of stream
    """

    def __init__(self, id_factory: Callable[[int], str] | None = None) -> None:
        self._id_factory = id_factory or _default_call_id
        self._pending: dict[int, PendingToolCall] = {}
        self._completed: set[int] = set()
        self.discarded: list[PendingToolCall] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(
        self,
        index: int,
        call_id: str | None = None,
        name: str | None = None,
        arguments: str | None = None,
        call_type: str | None = None,
    ) -> ToolCall | None:
        """Feed one fragment.  Returns the ToolCall when it just completed."""
        if index in self._completed:
            _logger.warning(
                "Ignoring fragment for already completed tool call index %d", index,
            )
            return None

        pending = self._pending.get(index)
        if pending is None:
            pending = PendingToolCall(
                index=index,
                id=call_id or self._id_factory(index),
                type=call_type or "function",
                generated_id=not call_id,
            )
            self._pending[index] = pending
        elif call_id and pending.generated_id:
            pending.id = call_id
            pending.generated_id = False

        if name:
            pending.name = name
        if arguments:
            pending.arguments += arguments

        if not pending.name or not _is_valid_json(pending.arguments):
            return None

        del self._pending[index]
        self._completed.add(index)
        return pending.to_tool_call()

    def feed_delta(self, delta: ToolCallDelta) -> ToolCall | None:
        return self.feed(
            delta.index,
            call_id=delta.id,
            name=delta.name,
            arguments=delta.arguments,
            call_type=delta.type,
        )

    def flush(self) -> list[ToolCall]:
        """Resolve whatever is still pending at end of stream.

        A named call that never received any argument text completes with
        ``{}``; anything else is incomplete and moved to ``discarded``.
        """
        completed: list[ToolCall] = []
        for index in sorted(self._pending):
            pending = self._pending[index]
            if pending.name and not pending.arguments.strip():
                completed.append(pending.to_tool_call(arguments="{}"))
                self._completed.add(index)
                continue
            _logger.warning(
                "Discarding incomplete tool call %s (index %d, name=%r, %d chars of arguments)",
                pending.id, index, pending.name, len(pending.arguments),
            )
            self.discarded.append(pending)
        self._pending.clear()
        return completed

    def reset(self) -> None:
        """Drop all state; partially assembled calls are never emitted."""
        self._pending.clear()
        self._completed.clear()
        self.discarded.clear()

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)


def _is_valid_json(text: str) -> bool:
    if not text.strip():
        return False
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True
