from __future__ import annotations

from dataclasses import asdict
from typing import Any, Iterable

from .audit import AuditTrail
from .models import RECORD_CATEGORIES, HealthRecord, Profile, Reminder


def import_records(
    existing: Iterable[HealthRecord],
    incoming: Iterable[HealthRecord],
    audit: AuditTrail,
    *,
    source_label: str = "connected sources",
) -> list[HealthRecord]:
    """Append records; ids already in the vault are left untouched."""
    records = list(existing)
    known = {record.id for record in records}
    added = 0
    for record in incoming:
        if record.category not in RECORD_CATEGORIES:
            raise ValueError(f"Unknown record category: {record.category}")
        if record.id in known:
            continue
        known.add(record.id)
        records.append(record)
        added += 1
    audit.emit("IMPORT", "External_Provider", f"Imported {added} records from {source_label}")
    return records


def export_bundle(
    profile: Profile,
    records: Iterable[HealthRecord],
    reminders: Iterable[Reminder],
    audit: AuditTrail,
) -> dict[str, Any]:
    bundle = {
        "profile": asdict(profile),
        "records": [asdict(record) for record in records],
        "reminders": [reminder.as_dict() for reminder in reminders],
    }
    audit.emit("EXPORT", "User", "Exported health data bundle")
    return bundle
