from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Iterable

from memory.time_utils import utc_now

from . import grounding
from .audit import AuditTrail
from .context import ContextAssembler
from .dispatcher import ToolCallDispatcher
from .errors import RemoteTransportError
from .model_client import ModelClient
from .models import (
    Attachment,
    ConsentPolicy,
    ConversationTurn,
    ExecutionContext,
    HealthRecord,
    Profile,
    ToolCallRequest,
    TurnResult,
)
from .registry import ToolRegistry
from .session import ChatSessionManager


logger = logging.getLogger(__name__)

FALLBACK_TEXT = "I'm unable to reach the assistant right now. Please try again."


class HealthGuardOrchestrator:
    """Runs one conversational turn end to end.

    Each turn re-derives the briefing and opens a fresh session from the
    stored turns, submits the new turn, reconciles tool calls and returns
    the final text with merged grounding sources. A VIEW audit is emitted
    as soon as the briefing has read at least one consented category.
    """

    def __init__(
        self,
        *,
        client: ModelClient,
        registry: ToolRegistry,
        audit: AuditTrail,
        assembler: ContextAssembler | None = None,
        clock: Callable[[], datetime] = utc_now,
        session_factory: Callable[[ModelClient], ChatSessionManager] = ChatSessionManager,
    ) -> None:
        self.client = client
        self.registry = registry
        self.audit = audit
        self.clock = clock
        self.assembler = assembler or ContextAssembler(clock=clock)
        self.dispatcher = ToolCallDispatcher(registry)
        self.session_factory = session_factory

    def _deny_unmatched(self, requests: Iterable[ToolCallRequest]) -> None:
        for request in requests:
            self.audit.emit("ACCESS_DENIED", "AI_Assistant", f"Blocked unregistered tool call: {request.name}")

    def run_turn(
        self,
        *,
        profile: Profile,
        consent: ConsentPolicy,
        records: Iterable[HealthRecord],
        prior_turns: Iterable[ConversationTurn],
        message: str,
        attachment: Attachment | None = None,
        turn_id: str | None = None,
    ) -> TurnResult:
        turn_id = turn_id or uuid.uuid4().hex
        briefing = self.assembler.assemble(profile, consent, records)
        if consent.allowed:
            self.audit.emit("VIEW", "AI_Assistant", "AI accessed allowed context for response generation")

        # One session per turn.
        session = self.session_factory(self.client)
        session.open(briefing, self.registry.declarations(), prior_turns)

        ctx = ExecutionContext(turn_id=turn_id, now=self.clock())
        mark = session.checkpoint()
        tool_results = []
        try:
            reply = session.submit(message, attachment)
            sources = grounding.extract(reply)
            text = reply.text
            if reply.tool_calls:
                outcome = self.dispatcher.dispatch(ctx, reply.tool_calls)
                tool_results = outcome.results
                self._deny_unmatched(outcome.unmatched)
                follow_up = self.dispatcher.follow_up(session, outcome)
                if follow_up is not None:
                    text = outcome.summary_text + follow_up.text
                    sources = grounding.merge(sources, grounding.extract(follow_up))
                    self._deny_unmatched(self.dispatcher.unmatched(follow_up.tool_calls))
        except RemoteTransportError as exc:
            logger.warning("turn %s degraded to fallback: %s", turn_id, exc)
            session.rewind(mark)
            return TurnResult(
                turn_id=turn_id,
                text=FALLBACK_TEXT,
                reminders=list(ctx.reminders),
                tool_results=tool_results,
                is_error=True,
            )
        finally:
            session.close()

        return TurnResult(
            turn_id=turn_id,
            text=text,
            sources=grounding.merge(sources),
            reminders=list(ctx.reminders),
            tool_results=tool_results,
        )
