"""Formatting, urgency cues, input validation and session setup.

Display helpers
---------------
- ``format_clock_time``   epoch ms  → ``"9:05 AM"``
- ``format_countdown``    duration  → ``"MM:SS"`` or ``"H:MM:SS"``
- ``classify_urgency``    remaining → green / amber / red
- ``is_finished``         remaining → bool

Colour thresholds (minutes remaining)
-------------------------------------
    > 30        green
    10 .. 30    amber   (both ends inclusive)
    < 10        red     (including zero)

Setup helpers build new :class:`Session` / :class:`Desk` records and
validate the raw values an invigilator types in before they reach the
engine.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import replace
from datetime import datetime, tzinfo

from ..errors import ValidationError
from .models import ColourCue, Desk, Session

MS_PER_MINUTE = 60 * 1000

AMBER_THRESHOLD_MINUTES = 30
RED_THRESHOLD_MINUTES = 10

UNKNOWN_CLOCK_TIME = "--:--"


# ── display ──────────────────────────────────────────────────────────────


def format_clock_time(epoch_ms: float, tz: tzinfo | None = None) -> str:
    """Render a wall-clock instant as 12-hour ``H:MM AM/PM``.

    Uses local time unless *tz* is given.  Instants the platform cannot
    represent render as ``--:--``.
    """
    try:
        moment = datetime.fromtimestamp(epoch_ms / 1000, tz)
    except (OverflowError, OSError, ValueError):
        return UNKNOWN_CLOCK_TIME
    suffix = "PM" if moment.hour >= 12 else "AM"
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment.minute:02d} {suffix}"


def format_countdown(ms: float) -> str:
    """``MM:SS`` under an hour, ``H:MM:SS`` from an hour up.

    Negative and non-finite input renders as ``00:00``.
    """
    if not math.isfinite(ms) or ms <= 0:
        ms = 0
    total_seconds = int(ms // 1000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def classify_urgency(remaining_ms: float) -> ColourCue:
    remaining_minutes = remaining_ms / MS_PER_MINUTE
    if remaining_minutes > AMBER_THRESHOLD_MINUTES:
        return ColourCue.GREEN
    if remaining_minutes >= RED_THRESHOLD_MINUTES:
        return ColourCue.AMBER
    return ColourCue.RED


def is_finished(remaining_ms: float) -> bool:
    return remaining_ms <= 0


# ── input validation ─────────────────────────────────────────────────────


def parse_minutes(raw) -> int:
    """Turn a typed D.P. entry into a positive whole number of minutes.

    Accepts ints and digit strings (surrounding whitespace is fine).
    Raises :class:`ValidationError` for anything else.
    """
    if isinstance(raw, bool):
        raise ValidationError("Please enter a valid number of minutes")
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError("Please enter D.P. time in minutes")

    if isinstance(raw, str):
        text = raw.strip()
        if not (text.isascii() and text.isdigit()):
            raise ValidationError("Please enter a valid number of minutes")
        minutes = int(text)
    elif isinstance(raw, int):
        minutes = raw
    elif isinstance(raw, float) and math.isfinite(raw) and raw.is_integer():
        minutes = int(raw)
    else:
        raise ValidationError("Please enter a valid number of minutes")

    if minutes <= 0:
        raise ValidationError("Please enter a valid number of minutes")
    return minutes


def _is_whole(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_session_config(
    name: str,
    exam_duration_minutes: int,
    reading_time_minutes: int,
    desk_count: int,
) -> None:
    """Raise :class:`ValidationError` describing the first bad field."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Please enter an exam name")
    if not _is_whole(exam_duration_minutes) or exam_duration_minutes <= 0:
        raise ValidationError("Please enter a valid exam duration")
    if not _is_whole(reading_time_minutes) or reading_time_minutes < 0:
        raise ValidationError("Please enter a valid reading time")
    if not _is_whole(desk_count):
        raise ValidationError("Please enter a valid number of desks")
    if desk_count < 1:
        raise ValidationError("You must have at least one desk")


def start_time_for_clock(hour: int, minute: int, now: datetime | None = None) -> int:
    """Epoch ms for *hour*:*minute* on today's local date."""
    if not _is_whole(hour) or not 0 <= hour <= 23:
        raise ValidationError("Please enter a valid hour (0-23)")
    if not _is_whole(minute) or not 0 <= minute <= 59:
        raise ValidationError("Please enter a valid minute (0-59)")
    now = now or datetime.now()
    start = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    return int(start.timestamp() * 1000)


# ── session setup ────────────────────────────────────────────────────────


def generate_id() -> str:
    return uuid.uuid4().hex


def _baseline_finish(
    start_time_epoch_ms: int, reading_time_minutes: int, exam_duration_minutes: int
) -> int:
    return (
        start_time_epoch_ms
        + (reading_time_minutes + exam_duration_minutes) * MS_PER_MINUTE
    )


def _clean_name(name: str | None) -> str | None:
    if name is None:
        return None
    return name.strip() or None


def create_desk(desk_number: int, student_name: str | None = None) -> Desk:
    return Desk(
        id=generate_id(),
        desk_number=desk_number,
        student_name=_clean_name(student_name),
    )


def create_session(
    name: str,
    exam_duration_minutes: int,
    reading_time_minutes: int,
    start_time_epoch_ms: int,
    desk_count: int,
    student_names: list[str | None] | None = None,
) -> Session:
    """Build a new session with desks numbered 1..*desk_count*.

    *student_names* is matched to desks by position; missing or blank
    entries leave the desk unnamed.
    """
    names = list(student_names or [])
    finish = _baseline_finish(
        start_time_epoch_ms, reading_time_minutes, exam_duration_minutes
    )
    desks = []
    for i in range(desk_count):
        desk = create_desk(i + 1, names[i] if i < len(names) else None)
        desks.append(replace(desk, adjusted_finish_epoch_ms=finish))
    return Session(
        id=generate_id(),
        name=name.strip(),
        exam_duration_minutes=exam_duration_minutes,
        reading_time_minutes=reading_time_minutes,
        start_time_epoch_ms=start_time_epoch_ms,
        desks=tuple(desks),
    )


def add_desk(session: Session, student_name: str | None = None) -> Session:
    next_number = max((d.desk_number for d in session.desks), default=0) + 1
    desk = replace(
        create_desk(next_number, student_name),
        adjusted_finish_epoch_ms=_baseline_finish(
            session.start_time_epoch_ms,
            session.reading_time_minutes,
            session.exam_duration_minutes,
        ),
    )
    return replace(session, desks=session.desks + (desk,))


def remove_desk(session: Session, desk_id: str) -> Session:
    if session.desk_by_id(desk_id) is None:
        return session
    if len(session.desks) <= 1:
        raise ValidationError("You must have at least one desk")
    return replace(
        session, desks=tuple(d for d in session.desks if d.id != desk_id)
    )


def set_student_name(session: Session, desk_id: str, name: str | None) -> Session:
    return replace(
        session,
        desks=tuple(
            replace(d, student_name=_clean_name(name)) if d.id == desk_id else d
            for d in session.desks
        ),
    )
