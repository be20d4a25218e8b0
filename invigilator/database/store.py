"""Record store: save, load, list and delete whole sessions.

A session, its desks and every desk's event log are written in one
transaction (see :func:`~.db.get_session`), so a failure part-way leaves
the previous save intact.  Desks and events are replaced wholesale on
each save; the in-memory :class:`~invigilator.timer.models.Session` is
always the source of truth.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from sqlalchemy import delete, select

from ..timer.models import Desk, Session, TimerEvent, TimerEventType
from .db import get_session
from .models import DeskRecord, SessionRecord, TimerEventRecord

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSummary:
    id: str
    name: str
    exam_duration_minutes: int
    start_time_epoch_ms: int
    created_at: int


def _now_ms() -> int:
    return int(time.time() * 1000)


def save_session(session: Session, now_epoch_ms: int | None = None) -> None:
    """Insert or update *session* with all desks and events."""
    now = now_epoch_ms if now_epoch_ms is not None else _now_ms()

    with get_session() as db:
        record = db.get(SessionRecord, session.id)
        if record is None:
            record = SessionRecord(id=session.id, created_at=now)
            db.add(record)
        record.name = session.name
        record.exam_duration_minutes = session.exam_duration_minutes
        record.reading_time_minutes = session.reading_time_minutes
        record.start_time_epoch_ms = session.start_time_epoch_ms
        record.updated_at = now

        old_desk_ids = select(DeskRecord.id).where(DeskRecord.session_id == session.id)
        db.execute(
            delete(TimerEventRecord)
            .where(TimerEventRecord.desk_id.in_(old_desk_ids))
            .execution_options(synchronize_session=False)
        )
        db.execute(
            delete(DeskRecord)
            .where(DeskRecord.session_id == session.id)
            .execution_options(synchronize_session=False)
        )
        db.flush()

        db.expire(record, ["desks"])

        for desk in session.desks:
            desk_row = DeskRecord(
                id=desk.id,
                session=record,
                desk_number=desk.desk_number,
                student_name=desk.student_name,
                dp_time_taken_minutes=desk.dp_time_taken_minutes,
                adjusted_finish_epoch_ms=desk.adjusted_finish_epoch_ms,
            )
            desk_row.events = [
                TimerEventRecord(
                    type=ev.type.value,
                    timestamp=ev.timestamp,
                    value_minutes=ev.value_minutes,
                )
                for ev in desk.events
            ]
            db.add(desk_row)

    log.info("Saved session %s (%d desks)", session.id, len(session.desks))


def load_session(session_id: str) -> Session | None:
    with get_session() as db:
        record = db.get(SessionRecord, session_id)
        if record is None:
            return None

        desk_rows = db.scalars(
            select(DeskRecord)
            .where(DeskRecord.session_id == session_id)
            .order_by(DeskRecord.desk_number)
        ).all()

        desks = []
        for row in desk_rows:
            event_rows = db.scalars(
                select(TimerEventRecord)
                .where(TimerEventRecord.desk_id == row.id)
                .order_by(TimerEventRecord.timestamp, TimerEventRecord.id)
            ).all()
            desks.append(Desk(
                id=row.id,
                desk_number=row.desk_number,
                student_name=row.student_name,
                dp_time_taken_minutes=row.dp_time_taken_minutes,
                adjusted_finish_epoch_ms=row.adjusted_finish_epoch_ms,
                events=tuple(
                    TimerEvent(
                        type=TimerEventType(ev.type),
                        timestamp=ev.timestamp,
                        value_minutes=ev.value_minutes,
                    )
                    for ev in event_rows
                ),
            ))

        return Session(
            id=record.id,
            name=record.name,
            exam_duration_minutes=record.exam_duration_minutes,
            reading_time_minutes=record.reading_time_minutes,
            start_time_epoch_ms=record.start_time_epoch_ms,
            desks=tuple(desks),
        )


def list_sessions() -> list[SessionSummary]:
    """All stored sessions, newest first."""
    with get_session() as db:
        rows = db.scalars(
            select(SessionRecord).order_by(
                SessionRecord.created_at.desc(), SessionRecord.name
            )
        ).all()
        return [
            SessionSummary(
                id=r.id,
                name=r.name,
                exam_duration_minutes=r.exam_duration_minutes,
                start_time_epoch_ms=r.start_time_epoch_ms,
                created_at=r.created_at,
            )
            for r in rows
        ]


def delete_session(session_id: str) -> bool:
    """Remove a session with its desks and events.  Returns ``False`` if
    there was nothing to delete."""
    with get_session() as db:
        record = db.get(SessionRecord, session_id)
        if record is None:
            return False
        db.delete(record)
    log.info("Deleted session %s", session_id)
    return True
