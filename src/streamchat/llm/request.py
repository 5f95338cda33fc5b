"""Chat completion requests and the per-protocol payload factory."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Sequence

from streamchat.errors import ValidationError
from streamchat.types import Message

_logger = logging.getLogger(__name__)

# Endpoint per protocol version.  Both speak the same JSON shape.
CHAT_COMPLETIONS_PATHS: dict[str, str] = {
    "v1": "/v1/chat/completions",
    "v0": "/api/v0/chat/completions",
}


@dataclass
class ChatOptions:
    """Model and sampling options for a completion request.

    ``None`` means "not set": unset options are left out of the payload
    and do not override other options when merging.
    """

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    stop: list[str] | str | None = None
    tool_choice: str | dict[str, Any] | None = None
    response_format: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def merged(self, other: ChatOptions | None) -> ChatOptions:
        """Return a copy with every option set in *other* taking precedence."""
        if other is None:
            return replace(self, extra=dict(self.extra))
        updates = {
            f.name: getattr(other, f.name)
            for f in fields(self)
            if f.name != "extra" and getattr(other, f.name) is not None
        }
        return replace(self, **updates, extra={**self.extra, **other.extra})


@dataclass
class LLMRequest:
    """Encapsulates everything needed for a single LLM call."""

    messages: Sequence[Message]
    options: ChatOptions
    tools: list[dict[str, Any]] | None = None
    stream: bool = True


def validate_request(request: LLMRequest) -> None:
    """Fail fast before anything is sent."""
    if not request.options.model:
        raise ValidationError("A model is required")
    if not request.messages:
        raise ValidationError("At least one message is required")


def build_chat_request(
    request: LLMRequest, api_version: str = "v1",
) -> tuple[str, dict[str, Any]]:
    """Build ``(path, payload)`` for *request* under *api_version*."""
    try:
        path = CHAT_COMPLETIONS_PATHS[api_version]
    except KeyError:
        raise ValidationError(f"Unsupported API version: {api_version!r}") from None
    validate_request(request)

    opts = request.options
    payload: dict[str, Any] = {
        "model": opts.model,
        "messages": [m.to_dict() for m in request.messages],
    }
    if opts.temperature is not None:
        payload["temperature"] = opts.temperature
    if opts.max_tokens is not None:
        payload["max_tokens"] = opts.max_tokens
    if opts.top_p is not None:
        payload["top_p"] = opts.top_p
    if opts.stop is not None:
        payload["stop"] = opts.stop
    if opts.response_format is not None:
        payload["response_format"] = opts.response_format
    if request.tools:
        payload["tools"] = request.tools
        if opts.tool_choice is not None:
            payload["tool_choice"] = opts.tool_choice
    if opts.extra:
        payload.update(opts.extra)
    payload["stream"] = request.stream
    return path, payload
