"""Data model for exam sessions, desks and the live timer state.

Everything here is plain data.  Behaviour lives in :mod:`.engine`
(time arithmetic and state transitions) and :mod:`.utils` (formatting
and session setup).

Shapes
------
Session      Exam configuration plus the ordered desk collection.
Desk         One physical seat, its cumulative D.P. time and audit trail.
TimerEvent   Immutable audit record appended to a desk.
TimerState   Small live state: phase, pause bookkeeping, monotonic zero-point.

All epoch values are wall-clock milliseconds; all ``monotonic_*`` values
are milliseconds read from a monotonic clock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


# ── enums ─────────────────────────────────────────────────────────────────


class TimerPhase(str, Enum):
    PRE_EXAM = "pre_exam"
    READING_TIME = "reading_time"
    EXAM_ACTIVE = "exam_active"
    DP_ADJUSTMENTS = "dp_adjustments"  # overlay on EXAM_ACTIVE, same timing


class TimerEventType(str, Enum):
    EXAM_START = "exam_start"
    READING_START = "reading_start"
    EXAM_ACTIVE = "exam_active"
    DP_APPLIED = "dp_applied"
    PAUSE = "pause"
    RESUME = "resume"
    FINISH = "finish"


class ColourCue(str, Enum):
    GREEN = "green"
    AMBER = "amber"
    RED = "red"


# ── records ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TimerEvent:
    """One audit entry.  ``timestamp`` is wall-clock and never used for
    countdown arithmetic."""

    type: TimerEventType
    timestamp: int
    value_minutes: int | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "timestamp": self.timestamp,
            "value_minutes": self.value_minutes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TimerEvent:
        return cls(
            type=TimerEventType(data["type"]),
            timestamp=int(data["timestamp"]),
            value_minutes=data.get("value_minutes"),
        )


@dataclass(frozen=True)
class Desk:
    id: str
    desk_number: int
    student_name: str | None = None
    dp_time_taken_minutes: int = 0          # cumulative, never decreases
    adjusted_finish_epoch_ms: int = 0       # cached projection, see engine
    events: tuple[TimerEvent, ...] = ()     # append-only

    def has_event(self, event_type: TimerEventType) -> bool:
        return any(e.type == event_type for e in self.events)


@dataclass(frozen=True)
class Session:
    id: str
    name: str
    exam_duration_minutes: int
    reading_time_minutes: int
    start_time_epoch_ms: int
    desks: tuple[Desk, ...] = ()

    def desk_by_id(self, desk_id: str) -> Desk | None:
        for desk in self.desks:
            if desk.id == desk_id:
                return desk
        return None

    def desk_by_number(self, desk_number: int) -> Desk | None:
        for desk in self.desks:
            if desk.desk_number == desk_number:
                return desk
        return None


@dataclass(frozen=True)
class TimerState:
    """Live timer bookkeeping.  Not a primary record; only cached for
    restart recovery, so every field is a JSON-safe scalar."""

    phase: TimerPhase = TimerPhase.PRE_EXAM
    is_paused: bool = False
    monotonic_start_ms: float = 0
    paused_at_monotonic_ms: float | None = None
    paused_duration_ms: float = 0

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "is_paused": self.is_paused,
            "monotonic_start_ms": self.monotonic_start_ms,
            "paused_at_monotonic_ms": self.paused_at_monotonic_ms,
            "paused_duration_ms": self.paused_duration_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TimerState:
        """Inverse of :meth:`to_dict`.  Raises ``ValueError`` for an
        unknown phase and ``KeyError`` for a missing field."""
        return cls(
            phase=TimerPhase(data["phase"]),
            is_paused=bool(data["is_paused"]),
            monotonic_start_ms=data["monotonic_start_ms"],
            paused_at_monotonic_ms=data.get("paused_at_monotonic_ms"),
            paused_duration_ms=data["paused_duration_ms"],
        )


@dataclass(frozen=True)
class DeskRow:
    """Derived per-desk display values for one tick."""

    desk: Desk
    remaining_ms: float
    finish_epoch_ms: int
    colour: ColourCue
    finished: bool


@dataclass(frozen=True)
class ExamSnapshot:
    """Everything a board needs to render one tick.  Read-only."""

    session_id: str
    phase: TimerPhase
    is_paused: bool
    general_remaining_ms: float
    reading_remaining_ms: float
    general_finish_epoch_ms: int
    desks: list[DeskRow] = field(default_factory=list)

    @property
    def all_finished(self) -> bool:
        return bool(self.desks) and all(row.finished for row in self.desks)
