"""Async OpenAI-compatible LLM client for local and remote servers.

Thin layer over ``httpx.AsyncClient``: ``chat()`` for a complete response,
``stream()`` for the raw Server-Sent-Events byte stream.  Decoding the
stream is left to the caller (see ``streamchat.stream``) so that every turn
owns its own buffers.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from streamchat.config import ServerSpec
from streamchat.errors import MalformedResponseError, Phase, TransportError, ValidationError
from streamchat.types import ChatCompletion, Message

from .request import LLMRequest, build_chat_request

_logger = logging.getLogger(__name__)

_SSE_HEADERS = {
    "Accept": "text/event-stream",
    "Cache-Control": "no-cache",
}


def _extract_error_message(body: Any, fallback: str) -> str:
    """Pull a human-readable message out of an error response body."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(body.get("message"), str):
            return body["message"]
        if isinstance(error, str):
            return error
        return json.dumps(body)
    if isinstance(body, str) and body.strip():
        return body.strip()[:500]
    return fallback


def _decode_body(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return raw.decode(errors="replace")


class AsyncLLMClient:
    """Async client for OpenAI-compatible chat APIs (LM Studio, Ollama, etc.)."""

    def __init__(
        self,
        server: ServerSpec,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.server = server

        headers = {
            "Authorization": f"Bearer {server.api_key}",
            "Content-Type": "application/json",
            **server.headers,
        }

        # Paths carry the version prefix; tolerate a base URL that already has it
        base_url = server.base_url.rstrip("/")
        if server.api_version == "v1":
            base_url = base_url.removesuffix("/v1")

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(
                server.timeout,
                connect=server.connect_timeout,
                read=server.read_timeout,
            ),
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Non-streaming chat
    # ------------------------------------------------------------------

    async def chat(self, request: LLMRequest) -> ChatCompletion:
        """Send a non-streaming chat completion request."""
        path, payload = build_chat_request(request, self.server.api_version)
        payload["stream"] = False
        _logger.debug("POST %s model=%s messages=%d", path, payload["model"], len(payload["messages"]))

        start = time.monotonic()
        try:
            resp = await self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {type(e).__name__}: {e}") from e

        if resp.status_code >= 400:
            body = _decode_body(resp.content)
            raise TransportError(
                f"API error {resp.status_code}: "
                f"{_extract_error_message(body, resp.reason_phrase)}",
                status_code=resp.status_code,
                response=body,
            )

        latency = (time.monotonic() - start) * 1000
        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponseError("Invalid JSON response") from e
        return _parse_completion(data, request, latency)

    # ------------------------------------------------------------------
    # Streaming chat
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def stream(self, request: LLMRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open a streaming completion and yield its raw byte-chunk iterator.

        Usage::

            async with client.stream(request) as chunks:
                async for data in chunks:
                    buffer.append(data)

        Connection failures raise ``TransportError`` in the ``request`` phase
        when nothing was received yet and in the ``streaming`` phase after.
        """
        path, payload = build_chat_request(request, self.server.api_version)
        payload["stream"] = True
        _logger.debug(
            "POST %s (stream) model=%s messages=%d tools=%d",
            path, payload["model"], len(payload["messages"]), len(payload.get("tools", [])),
        )

        started = False
        try:
            async with self._client.stream(
                "POST", path, json=payload, headers=_SSE_HEADERS,
            ) as resp:
                if resp.status_code >= 400:
                    body = _decode_body(await resp.aread())
                    raise TransportError(
                        f"API error {resp.status_code}: "
                        f"{_extract_error_message(body, resp.reason_phrase)}",
                        status_code=resp.status_code,
                        response=body,
                    )
                started = True
                yield resp.aiter_bytes()
        except httpx.HTTPError as e:
            phase = Phase.STREAMING if started else Phase.REQUEST
            raise TransportError(
                f"Stream failed: {type(e).__name__}: {e}", phase=phase,
            ) from e

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncLLMClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def _parse_completion(
    data: Any, request: LLMRequest, latency_ms: float,
) -> ChatCompletion:
    if not isinstance(data, dict):
        raise MalformedResponseError("Response body is not a JSON object")
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedResponseError("Response has no choices")
    choice = choices[0]
    raw_message = choice.get("message") if isinstance(choice, dict) else None
    if not isinstance(raw_message, dict):
        raise MalformedResponseError("Response choice has no message")

    raw_message = {**raw_message, "role": "assistant"}
    if raw_message.get("content") is None and not raw_message.get("tool_calls"):
        raw_message["content"] = ""
    try:
        message = Message.from_dict(raw_message)
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid message in response: {e.message}") from e
    for i, tc in enumerate(message.tool_calls):
        if not tc.id:
            tc.id = f"call_{i}_{uuid.uuid4().hex[:12]}"

    return ChatCompletion(
        message=message,
        finish_reason=choice.get("finish_reason") or "",
        usage=data.get("usage") or {},
        model=data.get("model") or request.options.model or "",
        raw=data,
        latency_ms=latency_ms,
    )
