"""Tests for EventDecoder."""

import json

import pytest

from streamchat.errors import MalformedChunkError, Phase
from streamchat.stream.decoder import STREAM_DONE, EventDecoder


@pytest.fixture
def decoder():
    return EventDecoder()


class TestLineClassification:
    @pytest.mark.parametrize("line", ["", ": keep-alive", "event: message", "id: 7", "retry: 100"])
    def test_non_data_lines_are_ignored(self, decoder, line):
        assert decoder.decode(line) is None

    def test_empty_data_is_ignored(self, decoder):
        assert decoder.decode("data: ") is None

    def test_done_marker(self, decoder):
        assert decoder.decode("data: [DONE]") is STREAM_DONE
        assert decoder.decode("data:[DONE]") is STREAM_DONE

    def test_space_after_colon_is_optional(self, decoder):
        payload = {"choices": [{"delta": {"content": "hi"}}]}
        assert decoder.decode("data:" + json.dumps(payload)).content == "hi"


class TestChunkParsing:
    def test_content_delta(self, decoder):
        chunk = decoder.decode(
            'data: {"model": "m", "choices": [{"delta": {"role": "assistant", "content": "Hel"}}]}'
        )
        assert chunk.content == "Hel"
        assert chunk.role == "assistant"
        assert chunk.model == "m"
        assert chunk.tool_calls == []
        assert chunk.finish_reason is None

    def test_tool_call_delta(self, decoder):
        payload = {
            "choices": [{
                "delta": {"tool_calls": [{
                    "index": 1,
                    "id": "call_abc",
                    "type": "function",
                    "function": {"name": "calculate", "arguments": "{\"ex"},
                }]},
            }],
        }
        chunk = decoder.decode("data: " + json.dumps(payload))
        assert len(chunk.tool_calls) == 1
        delta = chunk.tool_calls[0]
        assert delta.index == 1
        assert delta.id == "call_abc"
        assert delta.name == "calculate"
        assert delta.arguments == '{"ex'

    def test_tool_call_index_defaults_to_position(self, decoder):
        payload = {"choices": [{"delta": {"tool_calls": [
            {"function": {"arguments": "a"}},
            {"function": {"arguments": "b"}},
        ]}}]}
        chunk = decoder.decode("data: " + json.dumps(payload))
        assert [d.index for d in chunk.tool_calls] == [0, 1]

    def test_finish_reason_and_usage(self, decoder):
        payload = {
            "choices": [{"delta": {}, "finish_reason": "tool_calls"}],
            "usage": {"prompt_tokens": 3},
        }
        chunk = decoder.decode("data: " + json.dumps(payload))
        assert chunk.finish_reason == "tool_calls"
        assert chunk.usage == {"prompt_tokens": 3}

    def test_usage_only_trailer(self, decoder):
        chunk = decoder.decode('data: {"choices": [], "usage": {"total_tokens": 9}}')
        assert chunk.content is None
        assert chunk.tool_calls == []
        assert chunk.usage == {"total_tokens": 9}


class TestMalformed:
    def test_invalid_json_raises(self, decoder):
        with pytest.raises(MalformedChunkError) as exc_info:
            decoder.decode("data: {not json")
        assert exc_info.value.line == "data: {not json"
        assert exc_info.value.phase == Phase.STREAMING

    def test_non_object_payload_raises(self, decoder):
        with pytest.raises(MalformedChunkError):
            decoder.decode("data: [1, 2]")

    def test_decoder_is_usable_after_error(self, decoder):
        with pytest.raises(MalformedChunkError):
            decoder.decode("data: {")
        assert decoder.decode('data: {"choices": [{"delta": {"content": "ok"}}]}').content == "ok"
