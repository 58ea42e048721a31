from __future__ import annotations

import logging
import os
import re
from dataclasses import asdict
from pathlib import Path
from typing import Any, Literal

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from healthguard_agent_core import (
    Attachment,
    AuditTrail,
    ConsentPolicy,
    ConversationTurn,
    GeminiModelClient,
    GroundingSource,
    HealthGuardOrchestrator,
    HealthGuardSettings,
    HealthRecord,
    Location,
    NotConfiguredError,
    Profile,
    Reminder,
    ToolRegistry,
)
from healthguard_agent_core.model_client import ModelClient
from healthguard_agent_core.vault import export_bundle, import_records
from healthguard_tools import HealthGuardToolset, register_tools
from memory import ReminderNotFoundError, ReminderStore, SQLiteAuditSink, SQLiteMemoryDB

logger = logging.getLogger(__name__)

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()


class LocationPayload(BaseModel):
    lat: float | None = None
    lng: float | None = None
    city: str | None = None


class ProfilePayload(BaseModel):
    name: str = ""
    age: str = ""
    language: str = "English"
    conditions: str = ""
    dietary_restrictions: str = ""
    medication_name: str | None = None
    dosage: str | None = None
    frequency: str | None = None
    medication_instructions: str | None = None
    location: LocationPayload = Field(default_factory=LocationPayload)

    def to_profile(self) -> Profile:
        data = self.model_dump(exclude={"location"})
        return Profile(**data, location=Location(**self.location.model_dump()))


class ConsentPayload(BaseModel):
    share_demographics: bool = True
    share_medications: bool = True
    share_conditions: bool = True
    share_labs: bool = False
    share_with_research: bool = False
    retention_period: Literal["7_days", "30_days", "permanent"] = "30_days"

    def to_policy(self) -> ConsentPolicy:
        return ConsentPolicy.from_flags(
            share_demographics=self.share_demographics,
            share_medications=self.share_medications,
            share_conditions=self.share_conditions,
            share_labs=self.share_labs,
            share_with_research=self.share_with_research,
            retention=self.retention_period,
        )


class RecordPayload(BaseModel):
    id: str
    category: Literal["condition", "medication", "lab", "immunization"]
    title: str
    date: str
    source: str
    value: str | None = None
    is_verified: bool = False

    def to_record(self) -> HealthRecord:
        return HealthRecord(**self.model_dump())


class AttachmentPayload(BaseModel):
    mime_type: str
    data: str
    name: str | None = None

    def to_attachment(self) -> Attachment:
        return Attachment(mime_type=self.mime_type, data=self.data, display_name=self.name)


class TurnPayload(BaseModel):
    role: Literal["user", "model", "system"]
    text: str
    is_error: bool = False
    attachment: AttachmentPayload | None = None

    def to_turn(self) -> ConversationTurn:
        return ConversationTurn(
            role=self.role,
            text=self.text,
            is_error=self.is_error,
            attachment=self.attachment.to_attachment() if self.attachment else None,
        )


class ReminderPayload(BaseModel):
    id: str
    title: str
    time: str
    type: Literal["medication", "diet", "appointment", "general"]
    completed: bool = False
    snoozed: bool = False


class ChatRequest(BaseModel):
    message: str = ""
    turn_id: str | None = None
    attachment: AttachmentPayload | None = None
    profile: ProfilePayload = Field(default_factory=ProfilePayload)
    consent: ConsentPayload = Field(default_factory=ConsentPayload)
    records: list[RecordPayload] = Field(default_factory=list)
    history: list[TurnPayload] = Field(default_factory=list)


class VaultImportRequest(BaseModel):
    existing: list[RecordPayload] = Field(default_factory=list)
    incoming: list[RecordPayload] = Field(default_factory=list)
    source_label: str = "connected sources"


class VaultExportRequest(BaseModel):
    profile: ProfilePayload = Field(default_factory=ProfilePayload)
    records: list[RecordPayload] = Field(default_factory=list)
    reminders: list[ReminderPayload] = Field(default_factory=list)


def _source_dict(source: GroundingSource) -> dict[str, str]:
    return {"title": source.title, "uri": source.uri}


class HealthGuardApp:
    def __init__(self, model_client: ModelClient | None = None) -> None:
        self.settings = HealthGuardSettings.from_env()
        db_path = os.getenv(
            "HEALTHGUARD_DB_PATH",
            str((Path(__file__).resolve().parent / "healthguard.sqlite")),
        )
        self.db = SQLiteMemoryDB(db_path)
        self.audit_sink = SQLiteAuditSink(self.db)
        self.audit = AuditTrail(self.audit_sink)
        self.reminders = ReminderStore(self.db)

        self.registry = ToolRegistry(enable_search=self.settings.enable_search)
        self.toolset = HealthGuardToolset(self.audit)
        register_tools(self.registry, self.toolset)

        if not self.settings.api_key:
            logger.error("assistant API key not found in runtime env")
        self.orchestrator = HealthGuardOrchestrator(
            client=model_client or GeminiModelClient(self.settings),
            registry=self.registry,
            audit=self.audit,
        )


container = HealthGuardApp()
app = FastAPI(title="HealthGuard Backend")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _reminder_or_404(action, reminder_id: str):
    try:
        return action(reminder_id)
    except ReminderNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Reminder not found") from exc


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "model": container.settings.model,
        "configured": bool(container.settings.api_key),
        "tools": container.registry.list_names(),
    }


@app.post("/chat")
def chat(request: ChatRequest) -> dict[str, Any]:
    if not request.message.strip() and request.attachment is None:
        raise HTTPException(status_code=400, detail="Message or attachment required")
    try:
        result = container.orchestrator.run_turn(
            profile=request.profile.to_profile(),
            consent=request.consent.to_policy(),
            records=[record.to_record() for record in request.records],
            prior_turns=[turn.to_turn() for turn in request.history],
            message=request.message,
            attachment=request.attachment.to_attachment() if request.attachment else None,
            turn_id=request.turn_id,
        )
    except NotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    if result.reminders:
        container.reminders.add_many(result.reminders)
    return {
        "turn_id": result.turn_id,
        "role": "model",
        "text": result.text,
        "sources": [_source_dict(source) for source in result.sources],
        "reminders": [reminder.as_dict() for reminder in result.reminders],
        "is_error": result.is_error,
    }


@app.get("/reminders")
def list_reminders() -> dict[str, Any]:
    return {"reminders": [reminder.as_dict() for reminder in container.reminders.list_all()]}


@app.post("/reminders/{reminder_id}/toggle")
def toggle_reminder(reminder_id: str) -> dict[str, Any]:
    reminder = _reminder_or_404(container.reminders.toggle, reminder_id)
    container.audit.emit("MODIFY", "User", "Toggled reminder status")
    return reminder.as_dict()


@app.post("/reminders/{reminder_id}/snooze")
def snooze_reminder(reminder_id: str) -> dict[str, Any]:
    reminder = _reminder_or_404(container.reminders.snooze, reminder_id)
    container.audit.emit("MODIFY", "User", "Snoozed reminder")
    return reminder.as_dict()


@app.delete("/reminders/{reminder_id}")
def delete_reminder(reminder_id: str) -> dict[str, Any]:
    _reminder_or_404(container.reminders.delete, reminder_id)
    container.audit.emit("MODIFY", "User", "Deleted reminder")
    return {"deleted": reminder_id}


@app.get("/audit")
def audit_log(limit: int = 200) -> dict[str, Any]:
    return {"events": [event.as_dict() for event in container.audit_sink.list_events(limit)]}


@app.post("/vault/import")
def vault_import(request: VaultImportRequest) -> dict[str, Any]:
    records = import_records(
        [record.to_record() for record in request.existing],
        [record.to_record() for record in request.incoming],
        container.audit,
        source_label=request.source_label,
    )
    return {"records": [asdict(record) for record in records]}


@app.post("/vault/export")
def vault_export(request: VaultExportRequest) -> dict[str, Any]:
    return export_bundle(
        request.profile.to_profile(),
        [record.to_record() for record in request.records],
        [Reminder(**reminder.model_dump()) for reminder in request.reminders],
        container.audit,
    )
