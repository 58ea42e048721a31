from __future__ import annotations

import json

import httpx
import pytest

from healthguard_agent_core import GeminiModelClient, HealthGuardSettings, RemoteTransportError

SETTINGS = HealthGuardSettings(api_key="test-key", model="gemini-test", base_url="https://gemini.example/v1beta")
TOOLS = [{"functionDeclarations": [{"name": "createReminder"}]}, {"googleSearch": {}}]


def _client(handler) -> GeminiModelClient:
    return GeminiModelClient(SETTINGS, transport=httpx.MockTransport(handler))


def _generate(client: GeminiModelClient):
    return client.generate(
        system_briefing="You are HealthGuard.",
        tool_declarations=TOOLS,
        contents=[{"role": "user", "parts": [{"text": "hi"}]}],
    )


def test_generate_posts_briefing_tools_and_contents():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["key"] = request.headers.get("x-goog-api-key")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"candidates": [{"content": {"role": "model", "parts": [{"text": "Hello"}]}}]})

    reply = _generate(_client(handler))

    assert captured["url"] == "https://gemini.example/v1beta/models/gemini-test:generateContent"
    assert captured["key"] == "test-key"
    assert captured["body"]["systemInstruction"] == {"parts": [{"text": "You are HealthGuard."}]}
    assert captured["body"]["tools"] == TOOLS
    assert captured["body"]["contents"][0]["parts"][0]["text"] == "hi"
    assert reply.text == "Hello"
    assert reply.tool_calls == []


def test_generate_parses_function_calls_and_grounding():
    body = {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [
                        {"text": "thinking", "thought": True},
                        {"text": "Setting that up. "},
                        {"functionCall": {"name": "createReminder", "args": {"title": "Walk", "time": "18:00", "type": "general"}}},
                        {"functionCall": {"id": "fc-9", "name": "createReminder", "args": {"title": "Eat"}}},
                    ],
                },
                "groundingMetadata": {
                    "groundingChunks": [{"web": {"uri": "https://nih.gov", "title": "NIH"}}, "junk"],
                },
            }
        ]
    }
    reply = _generate(_client(lambda request: httpx.Response(200, json=body)))

    assert reply.text == "Setting that up. "
    assert [(call.id, call.name) for call in reply.tool_calls] == [("call_0", "createReminder"), ("fc-9", "createReminder")]
    assert reply.tool_calls[0].arguments == {"title": "Walk", "time": "18:00", "type": "general"}
    assert reply.grounding_chunks == [{"web": {"uri": "https://nih.gov", "title": "NIH"}}]
    assert reply.content["parts"][2]["functionCall"]["id"] == "call_0"


def test_http_error_becomes_transport_error_with_provider_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "Resource exhausted"}})

    with pytest.raises(RemoteTransportError, match="Resource exhausted"):
        _generate(_client(handler))


def test_timeout_becomes_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(RemoteTransportError, match="timed out"):
        _generate(_client(handler))


def test_reply_without_candidates_is_a_transport_error():
    with pytest.raises(RemoteTransportError):
        _generate(_client(lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})))


def test_configured_tracks_api_key():
    assert GeminiModelClient(SETTINGS).configured
    assert not GeminiModelClient(HealthGuardSettings(api_key="")).configured


def test_settings_from_env(monkeypatch):
    for name in ("HEALTHGUARD_API_KEY", "GEMINI_API_KEY", "API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "from-gemini")
    monkeypatch.setenv("HEALTHGUARD_TIMEOUT_SECONDS", "7.5")
    monkeypatch.setenv("HEALTHGUARD_ENABLE_SEARCH", "false")

    settings = HealthGuardSettings.from_env()

    assert settings.api_key == "from-gemini"
    assert settings.timeout_seconds == 7.5
    assert settings.enable_search is False
