"""Timer package: data model, pure engine and display helpers.

The Qt driver lives in :mod:`.controller` and is imported explicitly so
the pure core has no Qt dependency.
"""

from .models import (
    ColourCue,
    Desk,
    DeskRow,
    ExamSnapshot,
    Session,
    TimerEvent,
    TimerEventType,
    TimerPhase,
    TimerState,
)
from .engine import (
    activate_exam_start,
    apply_dp_time,
    build_snapshot,
    calculate_desk_adjusted_finish_epoch_ms,
    calculate_desk_remaining_ms,
    calculate_general_finish_epoch_ms,
    calculate_general_remaining_ms,
    calculate_reading_remaining_ms,
    is_exam_running,
    pause_timers,
    record_finish,
    replace_desk,
    resume_timers,
    sort_desks,
    transition_to_exam_active,
    with_adjusted_finish,
)
from .utils import (
    classify_urgency,
    create_desk,
    create_session,
    format_clock_time,
    format_countdown,
    is_finished,
)

__all__ = [
    "ColourCue",
    "Desk",
    "DeskRow",
    "ExamSnapshot",
    "Session",
    "TimerEvent",
    "TimerEventType",
    "TimerPhase",
    "TimerState",
    "activate_exam_start",
    "apply_dp_time",
    "build_snapshot",
    "calculate_desk_adjusted_finish_epoch_ms",
    "calculate_desk_remaining_ms",
    "calculate_general_finish_epoch_ms",
    "calculate_general_remaining_ms",
    "calculate_reading_remaining_ms",
    "is_exam_running",
    "pause_timers",
    "record_finish",
    "replace_desk",
    "resume_timers",
    "sort_desks",
    "transition_to_exam_active",
    "with_adjusted_finish",
    "classify_urgency",
    "create_desk",
    "create_session",
    "format_clock_time",
    "format_countdown",
    "is_finished",
]
