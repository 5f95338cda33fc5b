"""Tests for message types and the error taxonomy."""

import pytest

from streamchat.errors import (
    MaxIterationsExceeded,
    Phase,
    ToolExecutionError,
    TransportError,
    ValidationError,
)
from streamchat.types import FunctionCall, Message, Role, ToolCall, ToolResult


def _tc(call_id: str = "call_1") -> ToolCall:
    return ToolCall(id=call_id, function=FunctionCall(name="calculate", arguments='{"expression": "2+2"}'))


class TestMessageInvariants:
    def test_role_from_string(self):
        assert Message(role="user", content="hi").role == Role.USER

    def test_unknown_role(self):
        with pytest.raises(ValidationError):
            Message(role="robot", content="hi")

    @pytest.mark.parametrize("factory", [Message.system, Message.user])
    def test_system_and_user_require_content(self, factory):
        with pytest.raises(ValidationError):
            factory(None)

    def test_tool_requires_call_id(self):
        with pytest.raises(ValidationError):
            Message(role=Role.TOOL, content="4")

    def test_assistant_requires_content_or_tool_calls(self):
        with pytest.raises(ValidationError):
            Message.assistant(None)
        assert Message.assistant(None, [_tc()]).tool_calls[0].id == "call_1"
        assert Message.assistant("").content == ""


class TestWireFormat:
    def test_assistant_with_tool_calls(self):
        msg = Message.assistant("", [_tc()])
        assert msg.to_dict() == {
            "role": "assistant",
            "content": "",
            "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "calculate", "arguments": '{"expression": "2+2"}'},
            }],
        }

    def test_tool_message(self):
        assert Message.tool("4", "call_1").to_dict() == {
            "role": "tool", "content": "4", "tool_call_id": "call_1",
        }

    def test_from_dict_encodes_object_arguments(self):
        msg = Message.from_dict({
            "role": "assistant",
            "content": None,
            "tool_calls": [{"id": "c", "function": {"name": "f", "arguments": {"a": 1}}}],
        })
        assert msg.tool_calls[0].arguments == '{"a": 1}'
        assert msg.tool_calls[0].function.parsed_arguments() == {"a": 1}

    @pytest.mark.parametrize("tool_calls", [["x"], [{"function": "f"}], "x"])
    def test_from_dict_rejects_malformed_tool_calls(self, tool_calls):
        with pytest.raises(ValidationError):
            Message.from_dict({"role": "assistant", "content": None, "tool_calls": tool_calls})

    def test_tool_call_from_non_object(self):
        with pytest.raises(ValidationError, match="must be an object"):
            ToolCall.from_dict("x")


class TestToolResult:
    def test_success_message(self):
        assert ToolResult(success=True, output="4").to_message() == "4"

    def test_error_message(self):
        assert ToolResult(success=False, output="", error="boom").to_message() == "[Tool Error] boom"


class TestErrors:
    def test_str_includes_phase(self):
        err = TransportError("API error 500: down", status_code=500)
        assert err.phase == Phase.REQUEST
        assert str(err) == "[request] API error 500: down"

    def test_tool_execution_error(self):
        cause = ValueError("bad")
        err = ToolExecutionError(_tc(), cause)
        assert err.phase == Phase.TOOL_EXECUTION
        assert err.cause is cause
        assert "calculate" in err.message

    def test_max_iterations(self):
        err = MaxIterationsExceeded(5)
        assert err.max_iterations == 5
        assert err.phase == Phase.ITERATION_CAP
