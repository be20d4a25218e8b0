"""Database package."""

from .db import configure_engine, get_session, init_db
from .models import SessionRecord, DeskRecord, TimerEventRecord
from .store import (
    SessionSummary,
    save_session,
    load_session,
    list_sessions,
    delete_session,
)

__all__ = [
    "configure_engine",
    "get_session",
    "init_db",
    "SessionRecord",
    "DeskRecord",
    "TimerEventRecord",
    "SessionSummary",
    "save_session",
    "load_session",
    "list_sessions",
    "delete_session",
]
