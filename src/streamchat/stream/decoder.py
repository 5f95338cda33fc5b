"""Decoder for ``data:``-framed Server-Sent Events from chat completions."""

from __future__ import annotations

import json
import logging
from typing import Any, Final

from streamchat.errors import MalformedChunkError
from streamchat.types import StreamChunk, ToolCallDelta

_logger = logging.getLogger(__name__)

_DATA_FIELD = "data:"
_DONE_MARKER = "[DONE]"


class _StreamDone:
    """Terminal signal: the server sent ``data: [DONE]``."""

    def __repr__(self) -> str:
        return "STREAM_DONE"


STREAM_DONE: Final = _StreamDone()


class EventDecoder:
    """Classifies SSE lines and decodes chat-completion chunks.

    ``decode()`` returns:

    * ``None`` for lines that carry no data (keep-alives, comments, other
      SSE fields),
    * ``STREAM_DONE`` for the ``[DONE]`` terminator,
    * a ``StreamChunk`` for a JSON payload.

    Undecodable payloads raise ``MalformedChunkError``; callers decide
    whether to skip the line or abort.
    """

    def decode(self, line: str) -> StreamChunk | _StreamDone | None:
        if not line.startswith(_DATA_FIELD):
            return None
        data_str = line[len(_DATA_FIELD):]
        if data_str.startswith(" "):
            data_str = data_str[1:]
        data_str = data_str.strip()

        if data_str == _DONE_MARKER:
            return STREAM_DONE
        if not data_str:
            return None

        try:
            data = json.loads(data_str)
        except json.JSONDecodeError as e:
            raise MalformedChunkError(f"Invalid JSON in data line: {e}", line=line) from e
        if not isinstance(data, dict):
            raise MalformedChunkError(
                f"Expected a JSON object, got {type(data).__name__}", line=line,
            )
        return self.parse_chunk(data)

    @staticmethod
    def parse_chunk(data: dict[str, Any]) -> StreamChunk:
        """Extract the first choice's delta from a decoded chunk object."""
        chunk = StreamChunk(
            model=data.get("model") or "",
            usage=data.get("usage") or {},
            raw=data,
        )
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return chunk
        choice = choices[0]
        if not isinstance(choice, dict):
            return chunk

        delta = choice.get("delta")
        if isinstance(delta, dict):
            content = delta.get("content")
            if isinstance(content, str):
                chunk.content = content
            role = delta.get("role")
            if isinstance(role, str):
                chunk.role = role
            chunk.tool_calls = _parse_tool_call_deltas(delta.get("tool_calls"))

        finish = choice.get("finish_reason")
        if isinstance(finish, str) and finish:
            chunk.finish_reason = finish
        return chunk


def _parse_tool_call_deltas(raw: Any) -> list[ToolCallDelta]:
    if not isinstance(raw, list):
        return []
    deltas: list[ToolCallDelta] = []
    for position, tc in enumerate(raw):
        if not isinstance(tc, dict):
            _logger.debug("Ignoring non-object tool call delta: %r", tc)
            continue
        index = tc.get("index")
        if not isinstance(index, int):
            index = position
        func = tc.get("function") or {}
        if not isinstance(func, dict):
            func = {}
        arguments = func.get("arguments")
        if arguments is not None and not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        deltas.append(
            ToolCallDelta(
                index=index,
                id=tc.get("id") or None,
                type=tc.get("type") or None,
                name=func.get("name") or None,
                arguments=arguments,
            )
        )
    return deltas
