import httpx
import pytest

from chat_core.domain.models import RemoteInstruction
from chat_core.providers import create_provider
from chat_core.providers.openai_client import MALFORMED_RESPONSE_TEXT, NETWORK_ERROR_TEXT, OpenAIChatClient


class SettingsStub:
    openai_api_key = "sk-test-key-123"
    openai_base_url = "https://api.openai.com/v1"
    model_name = None
    http_timeout = 1.0


INSTRUCTIONS = [
    RemoteInstruction(role="developer", content="be nice"),
    RemoteInstruction(role="user", content="hi"),
]


def _fake_client(monkeypatch, status_code=200, body=None, reason="OK", raises=None, captured=None):
    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.reason_phrase = reason

        def json(self):
            if isinstance(body, Exception):
                raise body
            return body

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **_):
            if captured is not None:
                captured.update({"url": url, "payload": json, "headers": headers})
            if raises is not None:
                raise raises
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)


def test_success_extracts_message_usage_and_metadata(monkeypatch):
    captured = {}
    _fake_client(
        monkeypatch,
        body={
            "choices": [{"message": {"role": "assistant", "content": "hello!"}}, {"message": {"content": "other"}}],
            "usage": {
                "prompt_tokens": 9,
                "completion_tokens": 3,
                "total_tokens": 12,
                "completion_tokens_details": {
                    "reasoning_tokens": 1,
                    "accepted_prediction_tokens": 0,
                    "rejected_prediction_tokens": 2,
                },
            },
            "model": "gpt-4-turbo-2024-04-09",
            "system_fingerprint": "fp_abc",
        },
        captured=captured,
    )
    res = OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS)
    assert res.ok
    assert res.message == "hello!"
    assert res.usage.total_tokens == 12
    assert res.usage.completion_tokens_details.rejected_prediction_tokens == 2
    assert res.model == "gpt-4-turbo-2024-04-09"
    assert res.system_fingerprint == "fp_abc"
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer sk-test-key-123"
    assert captured["headers"]["Content-Type"] == "application/json"
    assert captured["payload"] == {
        "model": "gpt-4-turbo",
        "messages": [{"role": "developer", "content": "be nice"}, {"role": "user", "content": "hi"}],
    }


def test_success_without_usage(monkeypatch):
    _fake_client(monkeypatch, body={"choices": [{"message": {"content": "ok"}}]})
    res = OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS, "gpt-4o")
    assert res.message == "ok"
    assert res.usage is None
    assert res.model is None


def test_explicit_model_name(monkeypatch):
    captured = {}
    _fake_client(monkeypatch, body={"choices": [{"message": {"content": "ok"}}]}, captured=captured)
    OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS, "gpt-4o-mini")
    assert captured["payload"]["model"] == "gpt-4o-mini"


def test_missing_key_skips_network(monkeypatch):
    captured = {}
    _fake_client(monkeypatch, body={}, captured=captured)

    class NoKey(SettingsStub):
        openai_api_key = None

    res = OpenAIChatClient(NoKey()).complete(INSTRUCTIONS)
    assert res.message == ""
    assert res.error == "OPENAI_API_KEY not set"
    assert captured == {}


def test_endpoint_error_uses_endpoint_description(monkeypatch):
    _fake_client(monkeypatch, status_code=401, reason="Unauthorized", body={"error": {"message": "invalid key"}})
    res = OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS)
    assert res.message == ""
    assert res.error == "invalid key"


def test_endpoint_error_without_body(monkeypatch):
    _fake_client(monkeypatch, status_code=503, reason="Service Unavailable", body=ValueError("no json"))
    res = OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS)
    assert res.error == "API Error: 503 - Service Unavailable"


def test_rate_limit_is_not_retried(monkeypatch):
    calls = []

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            calls.append(1)

            class Resp:
                status_code = 429
                reason_phrase = "Too Many Requests"

                def json(self):
                    return {"error": {"message": "quota exceeded"}}

            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    res = OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS)
    assert res.error == "quota exceeded"
    assert len(calls) == 1


def test_transport_failure(monkeypatch):
    _fake_client(monkeypatch, raises=httpx.ConnectError("connection refused"))
    res = OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS)
    assert res.message == ""
    assert res.error == NETWORK_ERROR_TEXT


def test_malformed_success_payloads(monkeypatch):
    for body in [ValueError("bad json"), {"choices": []}, {"choices": [{"text": "legacy"}]}, ["not", "a", "dict"]]:
        _fake_client(monkeypatch, body=body)
        res = OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS)
        assert res.error == MALFORMED_RESPONSE_TEXT
        assert res.message == ""


def test_unexpected_exception_is_normalized(monkeypatch):
    _fake_client(monkeypatch, raises=RuntimeError("kaboom"))
    res = OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS)
    assert res.error == "kaboom"


def test_create_provider_default():
    assert isinstance(create_provider(), OpenAIChatClient)


def test_redirect_status_is_an_error(monkeypatch):
    _fake_client(monkeypatch, status_code=302, reason="Found", body={"choices": [{"message": {"content": "unused"}}]})
    res = OpenAIChatClient(SettingsStub()).complete(INSTRUCTIONS)
    assert res.message == ""
    assert res.error == "API Error: 302 - Found"


def test_short_key_skips_network(monkeypatch):
    captured = {}
    _fake_client(monkeypatch, body={"choices": [{"message": {"content": "unused"}}]}, captured=captured)

    class ShortKey(SettingsStub):
        openai_api_key = "short"

    res = OpenAIChatClient(ShortKey()).complete(INSTRUCTIONS)
    assert res.message == ""
    assert res.error == "OPENAI_API_KEY seems too short"
    assert captured == {}


def test_create_provider_resolves_through_registry():
    provider = create_provider("OpenAI")
    assert isinstance(provider, OpenAIChatClient)
    assert provider.name == "openai"
    with pytest.raises(KeyError):
        create_provider("kimi")
