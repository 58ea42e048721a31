from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from .config import HealthGuardSettings
from .errors import RemoteTransportError
from .models import ModelReply, ToolCallRequest


logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    @property
    def configured(self) -> bool: ...

    def generate(
        self,
        *,
        system_briefing: str,
        tool_declarations: list[dict[str, Any]],
        contents: list[dict[str, Any]],
    ) -> ModelReply: ...


def _provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
    return message or f"HTTP {response.status_code}"


def parse_reply(payload: dict[str, Any]) -> ModelReply:
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        raise RemoteTransportError("Model reply carried no candidates.")
    candidate = candidates[0]
    content = candidate.get("content") if isinstance(candidate.get("content"), dict) else {}
    parts = content.get("parts") if isinstance(content.get("parts"), list) else []

    texts: list[str] = []
    calls: list[ToolCallRequest] = []
    for part in parts:
        if not isinstance(part, dict) or part.get("thought"):
            continue
        text_value = part.get("text")
        if isinstance(text_value, str):
            texts.append(text_value)
        call = part.get("functionCall")
        if isinstance(call, dict) and call.get("name"):
            # Gemini does not always assign ids; results must still correlate.
            call_id = str(call.get("id") or f"call_{len(calls)}")
            call["id"] = call_id
            args = call.get("args") if isinstance(call.get("args"), dict) else {}
            calls.append(ToolCallRequest(id=call_id, name=str(call["name"]), arguments=dict(args)))

    grounding = candidate.get("groundingMetadata") or {}
    chunks = grounding.get("groundingChunks") if isinstance(grounding, dict) else None
    return ModelReply(
        text="".join(texts),
        tool_calls=calls,
        grounding_chunks=[chunk for chunk in chunks or [] if isinstance(chunk, dict)],
        content={"role": "model", "parts": parts},
    )


class GeminiModelClient:
    """Generative Language REST client; one blocking round trip per call."""

    def __init__(self, settings: HealthGuardSettings, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.settings.api_key)

    def generate(
        self,
        *,
        system_briefing: str,
        tool_declarations: list[dict[str, Any]],
        contents: list[dict[str, Any]],
    ) -> ModelReply:
        payload: dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": system_briefing}]},
            "contents": contents,
        }
        if tool_declarations:
            payload["tools"] = tool_declarations
        headers = {
            "x-goog-api-key": self.settings.api_key,
            "Content-Type": "application/json",
        }
        url = f"{self.settings.base_url}/models/{self.settings.model}:generateContent"
        timeout = httpx.Timeout(self.settings.timeout_seconds, connect=8.0)
        try:
            with httpx.Client(timeout=timeout, transport=self._transport) as client:
                response = client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("model request timed out (%s)", self.settings.model)
            raise RemoteTransportError("Model request timed out.") from exc
        except httpx.HTTPError as exc:
            logger.warning("model request failed (%s): %s", self.settings.model, exc)
            raise RemoteTransportError(str(exc)) from exc
        if response.status_code >= 400:
            message = _provider_error_message(response)
            logger.warning("model provider error %s: %s", response.status_code, message)
            raise RemoteTransportError(message)
        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteTransportError("Model reply was not valid JSON.") from exc
        if not isinstance(body, dict):
            raise RemoteTransportError("Model reply was not a JSON object.")
        return parse_reply(body)
