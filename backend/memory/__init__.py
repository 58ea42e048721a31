from .audit_store import SQLiteAuditSink
from .database import SQLiteMemoryDB
from .reminder_store import ReminderNotFoundError, ReminderStore

__all__ = [
    "SQLiteAuditSink",
    "SQLiteMemoryDB",
    "ReminderNotFoundError",
    "ReminderStore",
]
