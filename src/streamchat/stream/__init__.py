"""SSE stream decoding for streamchat."""

from streamchat.stream.assembler import PendingToolCall, ToolCallAssembler
from streamchat.stream.buffer import LineBuffer
from streamchat.stream.decoder import STREAM_DONE, EventDecoder

__all__ = [
    "EventDecoder",
    "LineBuffer",
    "PendingToolCall",
    "STREAM_DONE",
    "ToolCallAssembler",
]
