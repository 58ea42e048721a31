from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable

from healthguard_agent_core.models import Reminder

from .database import SQLiteMemoryDB
from .time_utils import parse_iso, to_iso, utc_now


SNOOZE_MINUTES = 15
_CLOCK_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M%p", "%I %p", "%I%p")


class ReminderNotFoundError(KeyError):
    pass


def resolve_reminder_time(value: str, now: datetime) -> datetime:
    """Best-effort absolute time: ISO, then a clock time today, else now."""
    parsed = parse_iso(value)
    if parsed is not None:
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    text = (value or "").strip().upper()
    for fmt in _CLOCK_FORMATS:
        try:
            clock = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return now.replace(hour=clock.hour, minute=clock.minute, second=clock.second, microsecond=0)
    return now


def _row_to_reminder(row) -> Reminder:
    return Reminder(
        id=row["id"],
        title=row["title"],
        time=row["time"],
        type=row["type"],
        completed=bool(row["completed"]),
        snoozed=bool(row["snoozed"]),
    )


class ReminderStore:
    def __init__(self, db: SQLiteMemoryDB) -> None:
        self._db = db

    def add_many(self, reminders: Iterable[Reminder]) -> None:
        now = to_iso(utc_now())
        with self._db.connection() as conn:
            conn.executemany(
                """
                INSERT OR IGNORE INTO reminders (
                  id, title, time, type, completed, snoozed, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (r.id, r.title, r.time, r.type, int(r.completed), int(r.snoozed), now, now)
                    for r in reminders
                ],
            )

    def list_all(self) -> list[Reminder]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT id, title, time, type, completed, snoozed
                FROM reminders
                ORDER BY created_at ASC, rowid ASC
                """
            ).fetchall()
        return [_row_to_reminder(row) for row in rows]

    def get(self, reminder_id: str) -> Reminder:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT id, title, time, type, completed, snoozed FROM reminders WHERE id = ?",
                (reminder_id,),
            ).fetchone()
        if not row:
            raise ReminderNotFoundError(reminder_id)
        return _row_to_reminder(row)

    def _save(self, reminder: Reminder) -> Reminder:
        with self._db.connection() as conn:
            conn.execute(
                """
                UPDATE reminders
                SET time = ?, completed = ?, snoozed = ?, updated_at = ?
                WHERE id = ?
                """,
                (reminder.time, int(reminder.completed), int(reminder.snoozed), to_iso(utc_now()), reminder.id),
            )
        return reminder

    def toggle(self, reminder_id: str) -> Reminder:
        reminder = self.get(reminder_id)
        reminder.completed = not reminder.completed
        reminder.snoozed = False
        return self._save(reminder)

    def snooze(self, reminder_id: str, now: datetime | None = None) -> Reminder:
        reminder = self.get(reminder_id)
        base = resolve_reminder_time(reminder.time, now or utc_now())
        reminder.time = to_iso(base + timedelta(minutes=SNOOZE_MINUTES))
        reminder.snoozed = True
        reminder.completed = False
        return self._save(reminder)

    def delete(self, reminder_id: str) -> None:
        with self._db.connection() as conn:
            deleted = conn.execute("DELETE FROM reminders WHERE id = ?", (reminder_id,)).rowcount
        if not deleted:
            raise ReminderNotFoundError(reminder_id)
