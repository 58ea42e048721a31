from __future__ import annotations

import copy
import logging
from typing import Any, Iterable

from .errors import NotConfiguredError, NotStartedError
from .model_client import ModelClient
from .models import Attachment, ConversationTurn, ModelReply, ToolCallResult


logger = logging.getLogger(__name__)

UNINITIALIZED = "uninitialized"
ACTIVE = "active"
CLOSED = "closed"

ATTACHMENT_ONLY_PROMPT = "Please analyze this attached report."


def turn_content(role: str, text: str, attachment: Attachment | None = None) -> dict[str, Any]:
    parts: list[dict[str, Any]] = []
    if attachment is not None:
        parts.append({"inlineData": {"mimeType": attachment.mime_type, "data": attachment.data}})
    parts.append({"text": text})
    return {"role": role, "parts": parts}


def replayable_history(turns: Iterable[ConversationTurn]) -> list[dict[str, Any]]:
    return [
        turn_content(turn.role, turn.text, turn.attachment)
        for turn in turns
        if not turn.is_error and turn.role in {"user", "model"}
    ]


class ChatSessionManager:
    """One conversation with the remote model.

    Session state is a function of briefing, tool declarations and the
    content history, so re-opening with the stored turns reconstructs it.
    """

    def __init__(self, client: ModelClient) -> None:
        self.client = client
        self.state = UNINITIALIZED
        self.briefing = ""
        self.tools: list[dict[str, Any]] = []
        self._history: list[dict[str, Any]] = []

    @property
    def history(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._history)

    def open(
        self,
        briefing: str,
        tools: list[dict[str, Any]],
        prior_turns: Iterable[ConversationTurn] = (),
    ) -> None:
        if not self.client.configured:
            raise NotConfiguredError("Assistant API key is not configured.")
        # Re-opening an active or closed session replays from scratch.
        history = replayable_history(prior_turns)
        self.state = ACTIVE
        self.briefing = briefing
        self.tools = copy.deepcopy(tools)
        self._history = history
        logger.debug("session opened with %d replayed turns", len(history))

    def close(self) -> None:
        if self.state == ACTIVE:
            self.state = CLOSED

    def checkpoint(self) -> int:
        return len(self._history)

    def rewind(self, mark: int) -> None:
        del self._history[mark:]

    def submit(self, message: str, attachment: Attachment | None = None) -> ModelReply:
        if attachment is not None and not message.strip():
            message = ATTACHMENT_ONLY_PROMPT
        return self._exchange(turn_content("user", message, attachment))

    def submit_tool_results(self, results: list[ToolCallResult]) -> ModelReply:
        parts = [
            {"functionResponse": {"id": result.id, "name": result.name, "response": result.payload}}
            for result in results
        ]
        return self._exchange({"role": "user", "parts": parts})

    def _exchange(self, content: dict[str, Any]) -> ModelReply:
        if self.state != ACTIVE:
            raise NotStartedError("Chat session not started.")
        contents = [*self._history, content]
        # Raises RemoteTransportError before any history is committed.
        reply = self.client.generate(
            system_briefing=self.briefing,
            tool_declarations=self.tools,
            contents=copy.deepcopy(contents),
        )
        self._history = [*contents, reply.content]
        return reply
