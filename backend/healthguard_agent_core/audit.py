from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Protocol

from memory.time_utils import to_iso, utc_now

from .models import AUDIT_ACTIONS, AUDIT_ACTORS, AuditEvent


logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class InMemoryAuditSink:
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)


class AuditTrail:
    """Stamps audit events and hands them to the sink.

    Sink failures are logged and dropped; a broken sink never aborts a turn.
    """

    def __init__(self, sink: AuditSink, clock: Callable[[], datetime] = utc_now) -> None:
        self.sink = sink
        self.clock = clock

    def emit(self, action: str, actor: str, details: str) -> AuditEvent:
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"Unknown audit action: {action}")
        if actor not in AUDIT_ACTORS:
            raise ValueError(f"Unknown audit actor: {actor}")
        event = AuditEvent(
            id=uuid.uuid4().hex,
            timestamp=to_iso(self.clock()),
            action=action,
            actor=actor,
            details=details,
        )
        try:
            self.sink.record(event)
        except Exception:
            logger.exception("audit sink rejected %s event", action)
        return event
