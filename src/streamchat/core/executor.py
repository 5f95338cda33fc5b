"""Executor — runs completed tool calls and turns outcomes into tool results.

Failures never abort the turn: an unknown tool or a raising callback becomes
a failed ``ToolResult`` whose text is sent back to the model.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from streamchat.errors import ToolError
from streamchat.events.bus import EventBus
from streamchat.tools.registry import ToolRegistry, describe_arguments
from streamchat.types import ChatEvent, EventType, ToolCall, ToolResult

_logger = logging.getLogger(__name__)


def _smart_truncate(text: str, max_length: int) -> str:
    """Intelligent truncation: keep head and tail with middle summary.

    Keeps the first 25% and last 75% so trailing errors stay visible.
    """
    if max_length <= 0 or len(text) <= max_length:
        return text
    head_size = max_length // 4
    tail_size = max_length - head_size
    omitted = len(text) - max_length
    return (
        text[:head_size]
        + f"\n\n... [{omitted} chars truncated] ...\n\n"
        + text[-tail_size:]
    )


def format_tool_output(result: Any) -> str:
    """Render a callback's return value as tool-message text."""
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(result)


@dataclass
class ExecutionResult:
    """Result of executing one or more tool calls."""

    results: list[tuple[ToolCall, ToolResult]] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for _, r in self.results)


class ToolExecutor:
    """Runs tool calls through the registry, in order, emitting tool events.

    Usage::

        executor = ToolExecutor(registry, event_bus)
        result = await executor.execute(tool_calls)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        event_bus: EventBus | None = None,
        max_output: int = 0,
    ) -> None:
        self._registry = registry
        self._event_bus = event_bus
        self._max_output = max_output

    async def execute(self, tool_calls: list[ToolCall]) -> ExecutionResult:
        exec_result = ExecutionResult()
        for tc in tool_calls:
            exec_result.results.append((tc, await self.execute_one(tc)))
        return exec_result

    async def execute_one(self, tc: ToolCall) -> ToolResult:
        arguments = describe_arguments(tc)
        await self._emit(EventType.TOOL_RECEIVED, {
            "tool_call": tc,
            "id": tc.id,
            "name": tc.name,
            "arguments": arguments,
        })
        await self._emit(EventType.TOOL_EXECUTING, {
            "tool_call": tc,
            "id": tc.id,
            "name": tc.name,
            "arguments": arguments,
        })

        try:
            value = await self._registry.execute(tc)
        except ToolError as e:
            _logger.warning("Tool %s (%s) failed: %s", tc.name, tc.id, e.message)
            await self._emit(EventType.TOOL_ERROR, {
                "tool_call": tc,
                "id": tc.id,
                "name": tc.name,
                "error": e,
            })
            return ToolResult(success=False, output="", error=e.message)

        output = _smart_truncate(format_tool_output(value), self._max_output)
        await self._emit(EventType.TOOL_EXECUTED, {
            "tool_call": tc,
            "id": tc.id,
            "name": tc.name,
            "result": value,
            "output_length": len(output),
        })
        return ToolResult(success=True, output=output)

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(ChatEvent(type=event_type, data=data))
