from __future__ import annotations

from healthguard_agent_core.models import AuditEvent

from .database import SQLiteMemoryDB


class SQLiteAuditSink:
    """Append-only audit log; `seq` preserves emission order."""

    def __init__(self, db: SQLiteMemoryDB) -> None:
        self._db = db

    def record(self, event: AuditEvent) -> None:
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO audit_events (id, timestamp, action, actor, details)
                VALUES (?, ?, ?, ?, ?)
                """,
                (event.id, event.timestamp, event.action, event.actor, event.details),
            )

    def list_events(self, limit: int = 200) -> list[AuditEvent]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT id, timestamp, action, actor, details
                FROM audit_events
                ORDER BY seq DESC
                LIMIT ?
                """,
                (max(1, limit),),
            ).fetchall()
        return [
            AuditEvent(
                id=row["id"],
                timestamp=row["timestamp"],
                action=row["action"],
                actor=row["actor"],
                details=row["details"],
            )
            for row in reversed(rows)
        ]
