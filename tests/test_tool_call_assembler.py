"""Tests for ToolCallAssembler."""

import json

import pytest

from streamchat.stream.assembler import ToolCallAssembler
from streamchat.types import ToolCallDelta


ARGS = '{"expression": "2+2", "precision": 2, "tags": ["a", "b"]}'


def _chunkings(text: str):
    yield [text]
    for size in (1, 2, 3, 7, 13):
        yield [text[i:i + size] for i in range(0, len(text), size)]


class TestSingleCall:
    @pytest.mark.parametrize("fragments", list(_chunkings(ARGS)))
    def test_any_chunking_yields_one_call(self, fragments):
        asm = ToolCallAssembler()
        emitted = []
        first = asm.feed(0, call_id="call_1", name="calculate")
        assert first is None
        for fragment in fragments:
            call = asm.feed(0, arguments=fragment)
            if call is not None:
                emitted.append(call)
        assert len(emitted) == 1
        assert emitted[0].arguments == "".join(fragments)
        assert emitted[0].id == "call_1"
        assert emitted[0].name == "calculate"
        assert not asm.has_pending

    def test_empty_object_completes(self):
        asm = ToolCallAssembler()
        call = asm.feed(0, call_id="c", name="get_time", arguments="{}")
        assert call is not None
        assert call.function.parsed_arguments() == {}

    def test_not_emitted_without_name(self):
        asm = ToolCallAssembler()
        assert asm.feed(0, call_id="c", arguments="{}") is None
        call = asm.feed(0, name="late_name")
        assert call is not None
        assert call.name == "late_name"

    def test_generated_id_when_server_sends_none(self):
        asm = ToolCallAssembler(id_factory=lambda index: f"gen-{index}")
        call = asm.feed(3, name="x", arguments="{}")
        assert call.id == "gen-3"

    def test_server_id_replaces_generated_id(self):
        asm = ToolCallAssembler(id_factory=lambda index: f"gen-{index}")
        asm.feed(0, name="x", arguments='{"a"')
        call = asm.feed(0, call_id="call_real", arguments=": 1}")
        assert call.id == "call_real"

    def test_fragments_after_completion_are_ignored(self):
        asm = ToolCallAssembler()
        assert asm.feed(0, call_id="c", name="x", arguments="{}") is not None
        assert asm.feed(0, arguments="{}") is None
        assert asm.flush() == []

    def test_feed_delta(self):
        asm = ToolCallAssembler()
        call = asm.feed_delta(ToolCallDelta(index=0, id="c", type="function", name="n", arguments="[]"))
        assert call.arguments == "[]"
        assert call.type == "function"


class TestConcurrentIndices:
    def test_interleaved_calls_complete_in_their_own_order(self):
        asm = ToolCallAssembler()
        completed = []
        feeds = [
            (0, "call_a", "first", '{"x": '),
            (1, "call_b", "second", '{"y": 2}'),  # index 1 finishes first
            (0, None, None, "1}"),
        ]
        for index, call_id, name, args in feeds:
            call = asm.feed(index, call_id=call_id, name=name, arguments=args)
            if call is not None:
                completed.append(call)
        assert [c.id for c in completed] == ["call_b", "call_a"]
        assert json.loads(completed[1].arguments) == {"x": 1}


class TestFlush:
    def test_named_call_without_arguments_completes_with_empty_object(self):
        asm = ToolCallAssembler()
        asm.feed(0, call_id="c", name="no_args")
        flushed = asm.flush()
        assert len(flushed) == 1
        assert flushed[0].arguments == "{}"

    def test_incomplete_json_is_discarded(self):
        asm = ToolCallAssembler()
        asm.feed(0, call_id="c", name="x", arguments='{"a": ')
        assert asm.flush() == []
        assert len(asm.discarded) == 1
        assert asm.discarded[0].arguments == '{"a": '
        assert not asm.has_pending

    def test_reset_drops_partial_calls(self):
        asm = ToolCallAssembler()
        asm.feed(0, call_id="c", name="x", arguments='{"a"')
        asm.reset()
        assert not asm.has_pending
        assert asm.flush() == []
