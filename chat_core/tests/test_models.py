from datetime import datetime, timezone

import pytest

from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import CompletionResult, Message, RemoteInstruction, TokenUsage


def test_message_factories_generate_unique_ids():
    a = Message.user("hi")
    b = Message.user("hi")
    assert a.id != b.id
    assert a.sender == "user"
    assert a.timestamp.tzinfo is not None


def test_user_message_cannot_be_error_or_empty():
    with pytest.raises(ValidationError):
        Message(id="m1", content="hi", sender="user", is_error=True)
    with pytest.raises(ValidationError):
        Message.user("")


def test_usage_only_on_successful_bot_messages():
    usage = TokenUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3)
    with pytest.raises(ValidationError):
        Message(id="m1", content="hi", sender="user", usage=usage)
    with pytest.raises(ValidationError):
        Message(id="m2", content="", sender="bot", is_error=True, model="gpt-4o")
    msg = Message.bot("ok", usage=usage, model="gpt-4o", system_fingerprint="fp_1")
    assert msg.usage.total_tokens == 3


def test_error_message_may_be_empty():
    msg = Message.error("")
    assert msg.is_error
    assert msg.sender == "bot"


def test_message_dict_uses_camel_case_keys():
    ts = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    usage = TokenUsage.from_api(
        {
            "prompt_tokens": 10,
            "completion_tokens": 5,
            "total_tokens": 15,
            "completion_tokens_details": {
                "reasoning_tokens": 2,
                "accepted_prediction_tokens": 1,
                "rejected_prediction_tokens": 0,
            },
        }
    )
    msg = Message(id="b1", content="hello", sender="bot", timestamp=ts, usage=usage, model="gpt-4o", system_fingerprint="fp")
    data = msg.to_dict()
    assert data["timestamp"] == "2024-05-01T12:30:00Z"
    assert data["usage"]["completionTokensDetails"]["reasoningTokens"] == 2
    assert data["systemFingerprint"] == "fp"
    assert "isError" not in data
    assert Message.from_dict(data) == msg


def test_usage_without_details():
    usage = TokenUsage.from_api({"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2})
    assert usage.completion_tokens_details is None
    assert "completionTokensDetails" not in usage.to_dict()


def test_from_instruction_maps_roles():
    bot = Message.from_instruction(RemoteInstruction(role="assistant", content="hey"))
    user = Message.from_instruction(RemoteInstruction(role="user", content="yo"))
    assert bot.sender == "bot"
    assert user.sender == "user"


def test_completion_result_failure_has_empty_message():
    res = CompletionResult.failure("invalid key")
    assert res.message == ""
    assert res.error == "invalid key"
    assert not res.ok
    with pytest.raises(ValidationError):
        CompletionResult(message="text", error="boom")
