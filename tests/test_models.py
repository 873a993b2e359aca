"""Tests for promptpit/models.py dataclasses."""

from promptpit.models import (
    ConversationMessage,
    DebateSessionState,
    JudgeState,
    ToolCall,
)


def test_tool_call_wire_shape():
    call = ToolCall(id="call_1", name="score_depth", arguments='{"model": "claude"}')
    assert call.to_dict() == {
        "id": "call_1",
        "type": "function",
        "function": {"name": "score_depth", "arguments": '{"model": "claude"}'},
    }


def test_plain_message_wire_shape():
    assert ConversationMessage(role="user", content="Hi").to_dict() == {"role": "user", "content": "Hi"}


def test_assistant_tool_call_message():
    call = ToolCall(id="c1", name="generate_verdict", arguments="{}")
    message = ConversationMessage(role="assistant", content=None, tool_calls=(call,)).to_dict()
    assert message["content"] is None
    assert message["tool_calls"][0]["id"] == "c1"
    assert "tool_call_id" not in message


def test_tool_result_message():
    message = ConversationMessage(role="tool", content='{"success": true}', tool_call_id="c1").to_dict()
    assert message == {"role": "tool", "content": '{"success": true}', "tool_call_id": "c1"}


def test_session_state_defaults():
    state = DebateSessionState(model_keys=["claude", "gpt"])
    assert state.total_models == 2
    assert state.responses == {}
    assert state.completed == set()
    assert state.completed_count == 0


def test_judge_state_defaults_are_independent():
    first, second = JudgeState(), JudgeState()
    first.scores["claude"] = {}
    first.structured.opening_remarks = "Hello"
    assert second.scores == {}
    assert second.structured.opening_remarks == ""
    assert first.verdict is None
    assert first.turns == 0
