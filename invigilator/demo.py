"""Seed sessions: the demo exams, and a new exam from the user's defaults."""

from __future__ import annotations

import time
from datetime import datetime

from .settings import Settings
from .timer.models import Session
from .timer.utils import (
    MS_PER_MINUTE,
    create_session,
    start_time_for_clock,
    validate_session_config,
)

DEMO_STUDENTS = [
    "Alice Wong",
    "Ben Smith",
    "Charlie Brown",
    "Diana Prince",
    "Ethan Hunt",
    "Fiona Green",
    "George Wilson",
    "Hannah Lee",
]

DEFAULT_SESSION_NAME = "Exam"


def create_demo_session(now_epoch_ms: int | None = None, realistic: bool = False) -> Session:
    """A named session starting shortly after *now_epoch_ms*.

    The quick demo is a 5-minute exam with 1 minute of reading time over
    5 desks, starting in 2 minutes.  The realistic one is 90 + 10 minutes
    over 8 desks, starting in 5 minutes.
    """
    now = now_epoch_ms if now_epoch_ms is not None else int(time.time() * 1000)
    if realistic:
        return create_session(
            "Year 12 Mathematics", 90, 10, now + 5 * MS_PER_MINUTE, 8, DEMO_STUDENTS
        )
    return create_session(
        "Demo: Year 12 Maths", 5, 1, now + 2 * MS_PER_MINUTE, 5, DEMO_STUDENTS[:5]
    )


def create_default_session(
    settings: Settings,
    name: str = DEFAULT_SESSION_NAME,
    now: datetime | None = None,
) -> Session:
    """A new session built from the ``default_*`` preferences.

    Starts today at ``default_start_hour:default_start_minute``.  Raises
    :class:`~invigilator.errors.ValidationError` if the stored defaults
    are unusable.
    """
    validate_session_config(
        name,
        settings.default_exam_duration_minutes,
        settings.default_reading_time_minutes,
        settings.default_desk_count,
    )
    start = start_time_for_clock(
        settings.default_start_hour, settings.default_start_minute, now
    )
    return create_session(
        name,
        settings.default_exam_duration_minutes,
        settings.default_reading_time_minutes,
        start,
        settings.default_desk_count,
    )
