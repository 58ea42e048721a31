from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


DEMOGRAPHICS = "demographics"
MEDICATIONS = "medications"
CONDITIONS = "conditions"
LABS = "labs"
RESEARCH_SHARING = "research_sharing"
CATEGORIES = (DEMOGRAPHICS, MEDICATIONS, CONDITIONS, LABS, RESEARCH_SHARING)

RETENTION_PERIODS = {"7_days", "30_days", "permanent"}
RECORD_CATEGORIES = {"condition", "medication", "lab", "immunization"}
REMINDER_TYPES = ("medication", "diet", "appointment", "general")
TURN_ROLES = {"user", "model", "system"}

AUDIT_ACTIONS = {"VIEW", "MODIFY", "IMPORT", "EXPORT", "ACCESS_DENIED"}
AUDIT_ACTORS = {"User", "AI_Assistant", "External_Provider", "System"}

_FLAG_NAMES = {
    DEMOGRAPHICS: "share_demographics",
    MEDICATIONS: "share_medications",
    CONDITIONS: "share_conditions",
    LABS: "share_labs",
    RESEARCH_SHARING: "share_with_research",
}


@dataclass(frozen=True)
class Location:
    lat: float | None = None
    lng: float | None = None
    city: str | None = None


@dataclass(frozen=True)
class Profile:
    name: str = ""
    age: str = ""
    language: str = "English"
    conditions: str = ""
    dietary_restrictions: str = ""
    medication_name: str | None = None
    dosage: str | None = None
    frequency: str | None = None
    medication_instructions: str | None = None
    location: Location = field(default_factory=Location)


@dataclass(frozen=True)
class ConsentPolicy:
    """Set of categories the user allows the assistant to see."""

    allowed: frozenset[str] = frozenset({DEMOGRAPHICS, MEDICATIONS, CONDITIONS})
    retention: str = "30_days"

    def __post_init__(self) -> None:
        unknown = set(self.allowed) - set(CATEGORIES)
        if unknown:
            raise ValueError(f"Unknown consent categories: {', '.join(sorted(unknown))}")
        if self.retention not in RETENTION_PERIODS:
            raise ValueError(f"Unknown retention period: {self.retention}")

    def allows(self, category: str) -> bool:
        return category in self.allowed

    @classmethod
    def from_flags(
        cls,
        *,
        share_demographics: bool = False,
        share_medications: bool = False,
        share_conditions: bool = False,
        share_labs: bool = False,
        share_with_research: bool = False,
        retention: str = "30_days",
    ) -> "ConsentPolicy":
        flags = {
            DEMOGRAPHICS: share_demographics,
            MEDICATIONS: share_medications,
            CONDITIONS: share_conditions,
            LABS: share_labs,
            RESEARCH_SHARING: share_with_research,
        }
        return cls(allowed=frozenset(name for name, on in flags.items() if on), retention=retention)

    def flags(self) -> dict[str, Any]:
        out: dict[str, Any] = {flag: category in self.allowed for category, flag in _FLAG_NAMES.items()}
        out["retention"] = self.retention
        return out


@dataclass(frozen=True)
class HealthRecord:
    id: str
    category: str
    title: str
    date: str
    source: str
    value: str | None = None
    is_verified: bool = False


@dataclass(frozen=True)
class Attachment:
    mime_type: str
    data: str
    display_name: str | None = None


@dataclass(frozen=True)
class GroundingSource:
    title: str
    uri: str


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    text: str
    attachment: Attachment | None = None
    is_error: bool = False
    sources: tuple[GroundingSource, ...] = ()


@dataclass(frozen=True)
class ToolCallRequest:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallResult:
    id: str
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    status: str = "succeeded"


@dataclass(frozen=True)
class AuditEvent:
    id: str
    timestamp: str
    action: str
    actor: str
    details: str

    def as_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "action": self.action,
            "actor": self.actor,
            "details": self.details,
        }


@dataclass
class Reminder:
    id: str
    title: str
    time: str
    type: str
    completed: bool = False
    snoozed: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "time": self.time,
            "type": self.type,
            "completed": self.completed,
            "snoozed": self.snoozed,
        }


@dataclass
class ModelReply:
    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    grounding_chunks: list[dict[str, Any]] = field(default_factory=list)
    content: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExecutionContext:
    turn_id: str
    now: datetime
    reminders: list[Reminder] = field(default_factory=list)


@dataclass
class TurnResult:
    turn_id: str
    text: str
    sources: list[GroundingSource] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)
    tool_results: list[ToolCallResult] = field(default_factory=list)
    is_error: bool = False

    def as_turn(self) -> ConversationTurn:
        return ConversationTurn(
            role="model",
            text=self.text,
            is_error=self.is_error,
            sources=tuple(self.sources),
        )
