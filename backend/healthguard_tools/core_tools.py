from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Any

from healthguard_agent_core.audit import AuditTrail
from healthguard_agent_core.errors import MalformedToolArgumentsError
from healthguard_agent_core.models import REMINDER_TYPES, ExecutionContext, Reminder
from healthguard_agent_core.registry import (
    CREATE_REMINDER,
    CREATE_REMINDER_DESCRIPTION,
    CREATE_REMINDER_PARAMETERS,
    ToolDefinition,
    ToolRegistry,
)
from memory.time_utils import parse_iso


PAST_TOLERANCE = timedelta(minutes=5)
# Naive timestamps are in the user's unknown local zone.
NAIVE_OFFSET_ALLOWANCE = timedelta(hours=14)


def _required_text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MalformedToolArgumentsError(f"Missing {key}")
    return value.strip()


def check_reminder_time(value: str, ctx: ExecutionContext) -> None:
    """Reject absolute timestamps that already lie in the past.

    Clock times ("8:00 PM") and anything else that is not ISO are passed
    through untouched.
    """
    when = parse_iso(value)
    if when is None:
        return
    now = ctx.now
    if when.tzinfo is None:
        cutoff = now.replace(tzinfo=None) - PAST_TOLERANCE - NAIVE_OFFSET_ALLOWANCE
    else:
        cutoff = now - PAST_TOLERANCE
    if when < cutoff:
        raise MalformedToolArgumentsError(f"Reminder time {value} is in the past")


class HealthGuardToolset:
    def __init__(self, audit: AuditTrail) -> None:
        self.audit = audit

    def create_reminder(self, ctx: ExecutionContext, payload: dict[str, Any]) -> dict[str, Any]:
        title = _required_text(payload, "title")
        time = _required_text(payload, "time")
        reminder_type = _required_text(payload, "type").lower()
        if reminder_type not in REMINDER_TYPES:
            raise MalformedToolArgumentsError(f"Unsupported reminder type: {reminder_type}")
        check_reminder_time(time, ctx)

        reminder = Reminder(id=f"rem_{uuid.uuid4().hex[:12]}", title=title, time=time, type=reminder_type)
        ctx.reminders.append(reminder)
        self.audit.emit("MODIFY", "AI_Assistant", f"Created reminder: {title}")
        return {
            "status": "succeeded",
            "data": {
                "reminder": reminder.as_dict(),
                "confirmation": f"Reminder set for {title} at {time}",
                "acknowledgement": f"(I've set a reminder for: {title})",
            },
            "errors": [],
        }


def register_tools(registry: ToolRegistry, toolset: HealthGuardToolset) -> None:
    registry.register(
        ToolDefinition(
            CREATE_REMINDER,
            toolset.create_reminder,
            description=CREATE_REMINDER_DESCRIPTION,
            parameters=CREATE_REMINDER_PARAMETERS,
        )
    )
