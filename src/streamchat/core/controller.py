"""TurnController — drives one user turn through the model/tool loop.

One ``run()`` sends the conversation to the model, consumes the reply
(streamed or not), executes any tool calls the model asked for, appends
their results and asks again, until the model answers without tools::

    IDLE → REQUEST_SENT → STREAMING ─┬→ COMPLETED
                  ↑                  └→ TOOL_CALLS_PENDING → EXECUTING_TOOLS ─┐
                  └───────────────────────────────────────────────────────────┘

Any failure moves the controller to FAILED, emits ``turn_error`` and
propagates.  Messages appended before the failure stay in the history.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from streamchat.errors import (
    MalformedChunkError,
    MaxIterationsExceeded,
    Phase,
    TurnCancelledError,
    TurnTimeoutError,
)
from streamchat.events.bus import EventBus
from streamchat.llm.client import AsyncLLMClient
from streamchat.llm.request import ChatOptions, LLMRequest, validate_request
from streamchat.stream import STREAM_DONE, EventDecoder, LineBuffer, ToolCallAssembler
from streamchat.tools.registry import ToolRegistry
from streamchat.types import ChatEvent, EventType, StreamChunk, ToolCall

from .conversation import ConversationState
from .executor import ToolExecutor

_logger = logging.getLogger(__name__)


class TurnState(enum.Enum):
    """Lifecycle of a turn."""

    IDLE = "idle"
    REQUEST_SENT = "request_sent"
    STREAMING = "streaming"
    TOOL_CALLS_PENDING = "tool_calls_pending"
    EXECUTING_TOOLS = "executing_tools"
    COMPLETED = "completed"
    FAILED = "failed"


_ACTIVE_STATES = frozenset({
    TurnState.REQUEST_SENT,
    TurnState.STREAMING,
    TurnState.TOOL_CALLS_PENDING,
    TurnState.EXECUTING_TOOLS,
})


@dataclass
class _ModelReply:
    """What one request produced: text, completed tool calls and metadata."""

    content_parts: list[str] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)
    malformed: int = 0
    consecutive_malformed: int = 0

    @property
    def content(self) -> str:
        return "".join(self.content_parts)


class TurnController:
    """Runs turns against an LLM, executing requested tools in between.

    Usage::

        controller = TurnController(client, registry, bus)
        state = ConversationState(ChatOptions(model="qwen3-8b"))
        state.add_user_message("What is 2+2?")
        answer = await controller.run(state)
    """

    def __init__(
        self,
        client: AsyncLLMClient,
        registry: ToolRegistry | None = None,
        event_bus: EventBus | None = None,
        *,
        max_iterations: int = 5,
        max_malformed_chunks: int = 20,
        max_tool_output: int = 0,
        streaming: bool = True,
        stream_timeout: float | None = 60,
    ) -> None:
        self._client = client
        self._registry = registry if registry is not None else ToolRegistry()
        self._event_bus = event_bus
        self._executor = ToolExecutor(self._registry, event_bus, max_output=max_tool_output)
        self.max_iterations = max_iterations
        self.max_malformed_chunks = max_malformed_chunks
        self.streaming = streaming
        self.stream_timeout = stream_timeout
        self._state = TurnState.IDLE
        self._cancel_requested = False

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def cancel(self) -> None:
        """Stop the running turn at the next received chunk or request."""
        if self._state in _ACTIVE_STATES:
            _logger.info("Cancellation requested (state=%s)", self._state.value)
            self._cancel_requested = True

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    async def run(
        self,
        conversation: ConversationState,
        options: ChatOptions | None = None,
    ) -> str:
        """Run one turn and return the final assistant text."""
        if self._state in _ACTIVE_STATES:
            raise RuntimeError("A turn is already running on this controller")

        self._cancel_requested = False
        self._set_state(TurnState.IDLE)
        conversation.begin_turn()
        opts = conversation.options.merged(options)

        try:
            validate_request(LLMRequest(messages=conversation.messages, options=opts))

            while True:
                if self._cancel_requested:
                    raise TurnCancelledError("Turn cancelled", phase=Phase.REQUEST)

                request = LLMRequest(
                    messages=conversation.messages,
                    options=opts,
                    tools=self._registry.get_openai_schemas() or None,
                    stream=self.streaming,
                )
                self._set_state(TurnState.REQUEST_SENT)
                if self.streaming:
                    reply = await self._stream_reply(request, conversation.iteration)
                else:
                    reply = await self._complete_reply(request, conversation.iteration)

                if not reply.tool_calls:
                    content = reply.content
                    conversation.add_assistant_message(content)
                    self._set_state(TurnState.COMPLETED)
                    await self._emit(EventType.TURN_END, {
                        "content": content,
                        "finish_reason": reply.finish_reason,
                        "iterations": conversation.iteration,
                        "usage": reply.usage,
                    })
                    return content

                self._set_state(TurnState.TOOL_CALLS_PENDING)
                if conversation.iteration >= self.max_iterations:
                    raise MaxIterationsExceeded(self.max_iterations)

                conversation.pending_tool_calls = list(reply.tool_calls)
                conversation.add_assistant_message(reply.content, reply.tool_calls)

                self._set_state(TurnState.EXECUTING_TOOLS)
                _logger.info(
                    "Executing %d tool call(s) (round trip %d/%d): %s",
                    len(reply.tool_calls), conversation.iteration + 1,
                    self.max_iterations, [tc.name for tc in reply.tool_calls],
                )
                executed = await self._executor.execute(reply.tool_calls)
                for tc, result in executed.results:
                    conversation.add_tool_message(tc.id, result.to_message())
                conversation.pending_tool_calls = []
                conversation.iteration += 1

        except asyncio.CancelledError:
            await self._fail(TurnCancelledError("Turn task was cancelled"))
            raise
        except Exception as e:
            await self._fail(e)
            raise

    # ------------------------------------------------------------------
    # Streaming reply
    # ------------------------------------------------------------------

    async def _stream_reply(self, request: LLMRequest, iteration: int) -> _ModelReply:
        assembler = ToolCallAssembler()
        reply = _ModelReply()

        try:
            await self._bounded(self._consume_stream(request, iteration, assembler, reply))
        except BaseException as e:
            assembler.reset()
            if self._state == TurnState.STREAMING:
                await self._emit(EventType.STREAM_ERROR, {
                    "error": e,
                    "fatal": True,
                    "iteration": iteration,
                })
            raise

        for tc in assembler.flush():
            await self._add_tool_call(reply, tc)

        await self._emit(EventType.STREAM_END, {
            "content": reply.content,
            "finish_reason": reply.finish_reason,
            "tool_calls": list(reply.tool_calls),
            "discarded": len(assembler.discarded),
            "malformed": reply.malformed,
            "usage": reply.usage,
            "iteration": iteration,
        })
        return reply

    async def _consume_stream(
        self,
        request: LLMRequest,
        iteration: int,
        assembler: ToolCallAssembler,
        reply: _ModelReply,
    ) -> None:
        buffer = LineBuffer()
        decoder = EventDecoder()

        async with self._client.stream(request) as chunks:
            self._set_state(TurnState.STREAMING)
            await self._emit(EventType.STREAM_START, {
                "model": request.options.model,
                "iteration": iteration,
            })
            async for data in chunks:
                if self._cancel_requested:
                    raise TurnCancelledError("Turn cancelled")
                buffer.append(data)
                for line in buffer.lines():
                    if await self._handle_line(line, decoder, assembler, reply):
                        return

            # Connection closed without [DONE]: decode the unterminated tail
            tail = buffer.flush()
            if tail:
                await self._handle_line(tail, decoder, assembler, reply)

    async def _bounded(self, awaitable: Any) -> Any:
        """Await *awaitable* under ``stream_timeout`` (disabled when falsy)."""
        if not self.stream_timeout:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, self.stream_timeout)
        except asyncio.TimeoutError:
            phase = Phase.STREAMING if self._state == TurnState.STREAMING else Phase.REQUEST
            _logger.warning(
                "No complete response within %gs (state=%s)",
                self.stream_timeout, self._state.value,
            )
            raise TurnTimeoutError(self.stream_timeout, phase=phase) from None

    async def _handle_line(
        self,
        line: str,
        decoder: EventDecoder,
        assembler: ToolCallAssembler,
        reply: _ModelReply,
    ) -> bool:
        """Process one SSE line.  Returns True on the ``[DONE]`` terminator."""
        try:
            decoded = decoder.decode(line)
        except MalformedChunkError as e:
            reply.malformed += 1
            reply.consecutive_malformed += 1
            _logger.warning("Skipping malformed stream chunk: %s", e.message)
            limit = self.max_malformed_chunks
            if limit and reply.consecutive_malformed > limit:
                raise MalformedChunkError(
                    f"Too many consecutive malformed chunks ({reply.consecutive_malformed})",
                    line=line,
                ) from e
            await self._emit(EventType.STREAM_ERROR, {
                "error": e,
                "line": line,
                "fatal": False,
            })
            return False

        if decoded is None:
            return False
        if decoded is STREAM_DONE:
            return True

        reply.consecutive_malformed = 0
        await self._apply_chunk(decoded, assembler, reply)
        return False

    async def _apply_chunk(
        self, chunk: StreamChunk, assembler: ToolCallAssembler, reply: _ModelReply,
    ) -> None:
        if chunk.model:
            reply.model = chunk.model
        if chunk.usage:
            reply.usage = chunk.usage
        if chunk.content:
            reply.content_parts.append(chunk.content)
            await self._emit(EventType.STREAM_CONTENT, {"delta": chunk.content})
        for delta in chunk.tool_calls:
            tc = assembler.feed_delta(delta)
            if tc is not None:
                await self._add_tool_call(reply, tc)
        if chunk.finish_reason:
            reply.finish_reason = chunk.finish_reason

    # ------------------------------------------------------------------
    # Non-streaming reply
    # ------------------------------------------------------------------

    async def _complete_reply(self, request: LLMRequest, iteration: int) -> _ModelReply:
        completion = await self._bounded(self._client.chat(request))
        self._set_state(TurnState.STREAMING)
        reply = _ModelReply(
            finish_reason=completion.finish_reason or None,
            model=completion.model,
            usage=completion.usage,
        )

        await self._emit(EventType.STREAM_START, {
            "model": request.options.model,
            "iteration": iteration,
        })
        content = completion.message.content or ""
        if content:
            reply.content_parts.append(content)
            await self._emit(EventType.STREAM_CONTENT, {"delta": content})
        for tc in completion.message.tool_calls:
            if not tc.name:
                _logger.warning("Discarding tool call %s without a name", tc.id)
                continue
            await self._add_tool_call(reply, tc)
        await self._emit(EventType.STREAM_END, {
            "content": reply.content,
            "finish_reason": reply.finish_reason,
            "tool_calls": list(reply.tool_calls),
            "discarded": 0,
            "malformed": 0,
            "usage": reply.usage,
            "iteration": iteration,
        })
        return reply

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _add_tool_call(self, reply: _ModelReply, tc: ToolCall) -> None:
        reply.tool_calls.append(tc)
        _logger.debug("Tool call complete: %s %s(%s)", tc.id, tc.name, tc.arguments)
        await self._emit(EventType.STREAM_TOOL_CALL, {
            "tool_call": tc,
            "id": tc.id,
            "name": tc.name,
            "arguments": tc.arguments,
        })

    async def _fail(self, error: BaseException) -> None:
        _logger.debug("Turn failed in state %s: %s", self._state.value, error)
        self._set_state(TurnState.FAILED)
        await self._emit(EventType.TURN_ERROR, {
            "error": error,
            "phase": getattr(getattr(error, "phase", None), "value", None),
        })

    def _set_state(self, state: TurnState) -> None:
        if state != self._state:
            _logger.debug("Turn state %s -> %s", self._state.value, state.value)
        self._state = state

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(ChatEvent(type=event_type, data=data))
