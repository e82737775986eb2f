from __future__ import annotations

import json

import httpx
import pytest

from resnik_core import inference
from resnik_core.errors import InferenceError

_MESSAGES = [{"role": "system", "content": "sys"}, {"role": "user", "content": "status"}]


@pytest.fixture(autouse=True)
def _clean_provider_env(monkeypatch):
    for name in (
        "RESNIK_CHAT_PROVIDER",
        "CLOUDFLARE_ACCOUNT_ID",
        "CLOUDFLARE_API_TOKEN",
        "CLOUDFLARE_AI_MODEL",
        "OPENAI_API_KEY",
        "RESNIK_CHAT_MODEL",
        "RESNIK_CHAT_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def transport(monkeypatch):
    requests: list[httpx.Request] = []
    responses: list[httpx.Response] = []
    real_client = httpx.Client

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.pop(0)

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(_handler), **kwargs)

    monkeypatch.setattr(inference.httpx, "Client", _client)
    return requests, responses


def _use_cloudflare(monkeypatch):
    monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", "acct-1")
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "cf-token")


def test_no_provider_configured_raises():
    with pytest.raises(InferenceError) as excinfo:
        inference.run_chat(_MESSAGES)
    assert excinfo.value.fallback is True
    assert excinfo.value.status_code == 500


def test_workers_ai_request_shape(monkeypatch, transport):
    _use_cloudflare(monkeypatch)
    requests, responses = transport
    responses.append(httpx.Response(200, json={"success": True, "result": {"response": " Nominal. "}}))

    assert inference.run_chat(_MESSAGES) == "Nominal."

    request = requests[0]
    assert request.url.path == "/client/v4/accounts/acct-1/ai/run/@cf/meta/llama-3.3-70b-instruct-fp8-fast"
    assert request.headers["authorization"] == "Bearer cf-token"
    body = json.loads(request.content)
    assert body == {"messages": _MESSAGES, "temperature": 0.7, "max_tokens": 512, "top_p": 0.9}


def test_provider_error_is_not_retried(monkeypatch, transport):
    _use_cloudflare(monkeypatch)
    requests, responses = transport
    responses.append(httpx.Response(502, json={"success": False, "errors": [{"message": "model overloaded"}]}))

    with pytest.raises(InferenceError) as excinfo:
        inference.run_chat(_MESSAGES)
    assert "model overloaded" in excinfo.value.detail
    assert len(requests) == 1


def test_unsuccessful_envelope_is_an_error(monkeypatch, transport):
    _use_cloudflare(monkeypatch)
    _, responses = transport
    responses.append(httpx.Response(200, json={"success": False, "errors": [{"message": "bad input"}]}))
    with pytest.raises(InferenceError):
        inference.run_chat(_MESSAGES)


def test_openai_compatible_provider(monkeypatch, transport):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("RESNIK_CHAT_MODEL", "gpt-test")
    requests, responses = transport
    responses.append(httpx.Response(200, json={"choices": [{"message": {"content": "Copy that."}}]}))

    assert inference.run_chat(_MESSAGES) == "Copy that."
    assert requests[0].url.path == "/v1/chat/completions"
    body = json.loads(requests[0].content)
    assert body["model"] == "gpt-test"
    assert body["top_p"] == 0.9


def test_provider_preference_orders_candidates(monkeypatch):
    _use_cloudflare(monkeypatch)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    assert [c["provider"] for c in inference.chat_provider_candidates()] == ["cloudflare", "openai"]

    monkeypatch.setenv("RESNIK_CHAT_PROVIDER", "openai")
    assert [c["provider"] for c in inference.chat_provider_candidates()] == ["openai", "cloudflare"]


def test_timeout_is_unbounded_unless_configured(monkeypatch):
    assert inference._timeout().read is None
    monkeypatch.setenv("RESNIK_CHAT_TIMEOUT_SECONDS", "12")
    assert inference._timeout().read == 12.0


@pytest.mark.parametrize("body", [["oops"], None, "text", 7])
def test_workers_ai_non_object_json_is_an_inference_error(monkeypatch, transport, body):
    _use_cloudflare(monkeypatch)
    _, responses = transport
    responses.append(httpx.Response(200, json=body))
    with pytest.raises(InferenceError) as excinfo:
        inference.run_chat(_MESSAGES)
    assert excinfo.value.fallback is True


def test_openai_malformed_choices_do_not_escape(monkeypatch, transport):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    _, responses = transport
    responses.append(httpx.Response(200, json=["oops"]))
    responses.append(httpx.Response(200, json={"choices": ["not-a-dict"]}))
    responses.append(httpx.Response(200, json={"choices": [{"message": "plain"}]}))

    with pytest.raises(InferenceError):
        inference.run_chat(_MESSAGES)
    assert inference.run_chat(_MESSAGES) == ""
    assert inference.run_chat(_MESSAGES) == ""


def test_chat_route_reports_non_object_reply_as_fallback(client, monkeypatch, transport, nominal_telemetry):
    _use_cloudflare(monkeypatch)
    _, responses = transport
    responses.append(httpx.Response(200, json=["oops"]))

    response = client.post("/api/chat", json={"message": "status", "telemetry": nominal_telemetry})
    assert response.status_code == 500
    assert response.json() == {
        "error": "AI processing failed",
        "message": "Unable to process request. System error occurred.",
        "fallback": True,
    }
