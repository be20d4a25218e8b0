"""Exam timer engine: countdown arithmetic and state transitions.

Every function here is pure.  The caller owns the current
``(Session, TimerState)`` pair, passes in the current wall-clock and
monotonic readings, and stores whatever comes back.  Nothing is mutated
in place and nothing is scheduled.

Phases
------
PRE_EXAM        Configured, nothing counting down.
READING_TIME    Reading countdown running; desk countdowns frozen.
EXAM_ACTIVE     General and per-desk countdowns running.
DP_ADJUSTMENTS  Overlay on EXAM_ACTIVE; identical timing.

Transitions
-----------
PRE_EXAM     → READING_TIME | EXAM_ACTIVE   (activate_exam_start)
READING_TIME → EXAM_ACTIVE                  (transition_to_exam_active,
                                             driven by the caller once
                                             reading remaining hits 0)
any          → paused / unpaused            (pause_timers / resume_timers)

Clocks
------
Countdowns use monotonic deltas only::

    elapsed   = (paused_at or now) - monotonic_start - paused_duration
    remaining = max(0, budget - elapsed)

Wall-clock readings only stamp audit events and project finish times.

Invalid calls (resume while running, a second activation, a bad D.P.
delta) return their inputs unchanged rather than raising.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace

from .models import (
    Desk,
    DeskRow,
    ExamSnapshot,
    Session,
    TimerEvent,
    TimerEventType,
    TimerPhase,
    TimerState,
)
from .utils import MS_PER_MINUTE, classify_urgency, is_finished

log = logging.getLogger(__name__)

_RUNNING_PHASES = (TimerPhase.EXAM_ACTIVE, TimerPhase.DP_ADJUSTMENTS)


def is_exam_running(phase: TimerPhase) -> bool:
    return phase in _RUNNING_PHASES


# ── calculations ─────────────────────────────────────────────────────────


def _elapsed_ms(timer_state: TimerState, current_monotonic_ms: float) -> float:
    """Monotonic time spent counting in the current phase."""
    if timer_state.is_paused and timer_state.paused_at_monotonic_ms is not None:
        now = timer_state.paused_at_monotonic_ms
    else:
        now = current_monotonic_ms
    return now - timer_state.monotonic_start_ms - timer_state.paused_duration_ms


def calculate_general_remaining_ms(
    session: Session,
    timer_state: TimerState,
    current_monotonic_ms: float,
) -> float:
    """Baseline exam time left, without any D.P. time.

    Note: during READING_TIME this counts down against the reading
    phase's zero-point, the same way it does once the exam is active.
    It is not held at the full baseline.
    """
    baseline_ms = session.exam_duration_minutes * MS_PER_MINUTE
    if timer_state.phase == TimerPhase.PRE_EXAM:
        return baseline_ms
    return max(0, baseline_ms - _elapsed_ms(timer_state, current_monotonic_ms))


def calculate_reading_remaining_ms(
    session: Session,
    timer_state: TimerState,
    current_monotonic_ms: float,
) -> float:
    if timer_state.phase != TimerPhase.READING_TIME:
        return 0
    reading_ms = session.reading_time_minutes * MS_PER_MINUTE
    return max(0, reading_ms - _elapsed_ms(timer_state, current_monotonic_ms))


def calculate_desk_remaining_ms(
    session: Session,
    desk: Desk,
    timer_state: TimerState,
    current_monotonic_ms: float,
) -> float:
    """Exam time left for one desk, including its cumulative D.P. time.

    Held at the full allowance until the exam proper starts.
    """
    allowance_ms = (
        session.exam_duration_minutes + desk.dp_time_taken_minutes
    ) * MS_PER_MINUTE
    if timer_state.phase in (TimerPhase.PRE_EXAM, TimerPhase.READING_TIME):
        return allowance_ms
    return max(0, allowance_ms - _elapsed_ms(timer_state, current_monotonic_ms))


def calculate_desk_adjusted_finish_epoch_ms(session: Session, desk: Desk) -> int:
    """Wall-clock finish for *desk*: scheduled start + reading + exam + D.P.

    Depends on configuration only, never on pauses or monotonic time.
    """
    return (
        session.start_time_epoch_ms
        + session.reading_time_minutes * MS_PER_MINUTE
        + (session.exam_duration_minutes + desk.dp_time_taken_minutes) * MS_PER_MINUTE
    )


def calculate_general_finish_epoch_ms(session: Session) -> int:
    return (
        session.start_time_epoch_ms
        + session.reading_time_minutes * MS_PER_MINUTE
        + session.exam_duration_minutes * MS_PER_MINUTE
    )


def sort_desks(session: Session, timer_state: TimerState | None = None) -> list[Desk]:
    """Desks ordered by adjusted finish (earliest first), then desk number.

    Finish times are recomputed here rather than read from the cached
    field.  *timer_state* does not affect the order.
    """
    return sorted(
        session.desks,
        key=lambda d: (
            calculate_desk_adjusted_finish_epoch_ms(session, d),
            d.desk_number,
        ),
    )


# ── desk-level updates ───────────────────────────────────────────────────


def _valid_dp_delta(minutes) -> bool:
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
        return False
    if isinstance(minutes, float) and not (math.isfinite(minutes) and minutes.is_integer()):
        return False
    return minutes > 0


def apply_dp_time(desk: Desk, dp_minutes_to_add: int, current_epoch_ms: int) -> Desk:
    """Grant *dp_minutes_to_add* more D.P. minutes to one desk.

    Appends a ``dp_applied`` event carrying the delta (not the running
    total).  The cached ``adjusted_finish_epoch_ms`` is left alone; call
    :func:`with_adjusted_finish` afterwards.  A non-positive, fractional
    or non-numeric delta returns *desk* unchanged.
    """
    if not _valid_dp_delta(dp_minutes_to_add):
        log.warning(
            "Rejected D.P. grant of %r minutes for desk %s",
            dp_minutes_to_add, desk.desk_number,
        )
        return desk

    minutes = int(dp_minutes_to_add)
    event = TimerEvent(
        type=TimerEventType.DP_APPLIED,
        timestamp=current_epoch_ms,
        value_minutes=minutes,
    )
    return replace(
        desk,
        dp_time_taken_minutes=desk.dp_time_taken_minutes + minutes,
        events=desk.events + (event,),
    )


def with_adjusted_finish(session: Session, desk: Desk) -> Desk:
    return replace(
        desk,
        adjusted_finish_epoch_ms=calculate_desk_adjusted_finish_epoch_ms(session, desk),
    )


def replace_desk(session: Session, desk: Desk) -> Session:
    """Swap in *desk* by id, keeping order.  Unknown ids are ignored."""
    if session.desk_by_id(desk.id) is None:
        return session
    return replace(
        session,
        desks=tuple(desk if d.id == desk.id else d for d in session.desks),
    )


# ── session-level transitions ────────────────────────────────────────────


def _append_to_all(session: Session, event: TimerEvent) -> Session:
    """Record one session-level event on every desk's audit trail."""
    return replace(
        session,
        desks=tuple(replace(d, events=d.events + (event,)) for d in session.desks),
    )


def activate_exam_start(
    session: Session,
    current_epoch_ms: int,
    current_monotonic_ms: float,
    timer_state: TimerState | None = None,
) -> tuple[Session, TimerState]:
    """Start the clock: READING_TIME if the session has reading time,
    otherwise straight to EXAM_ACTIVE.

    Only valid from PRE_EXAM.  When *timer_state* is given and already
    past PRE_EXAM, the inputs come back unchanged.
    """
    if timer_state is not None and timer_state.phase != TimerPhase.PRE_EXAM:
        log.debug("Ignoring activation in phase %s", timer_state.phase.value)
        return session, timer_state

    if session.reading_time_minutes > 0:
        phase, event_type = TimerPhase.READING_TIME, TimerEventType.READING_START
    else:
        phase, event_type = TimerPhase.EXAM_ACTIVE, TimerEventType.EXAM_ACTIVE

    updated = _append_to_all(
        session, TimerEvent(type=event_type, timestamp=current_epoch_ms)
    )
    new_state = TimerState(
        phase=phase,
        is_paused=False,
        monotonic_start_ms=current_monotonic_ms,
        paused_at_monotonic_ms=None,
        paused_duration_ms=0,
    )
    return updated, new_state


def transition_to_exam_active(
    session: Session,
    timer_state: TimerState,
    current_epoch_ms: int,
    current_monotonic_ms: float,
) -> tuple[Session, TimerState]:
    """Leave reading time and start the exam proper.

    Resets the monotonic zero-point and paused total so exam arithmetic
    starts fresh, however long reading time actually took.  The caller
    decides when (normally once reading remaining reaches 0).
    """
    if timer_state.phase != TimerPhase.READING_TIME:
        log.debug("Ignoring exam transition in phase %s", timer_state.phase.value)
        return session, timer_state

    updated = _append_to_all(
        session,
        TimerEvent(type=TimerEventType.EXAM_ACTIVE, timestamp=current_epoch_ms),
    )
    # a paused transition stays paused at the new zero-point
    paused_at = current_monotonic_ms if timer_state.is_paused else None
    new_state = replace(
        timer_state,
        phase=TimerPhase.EXAM_ACTIVE,
        monotonic_start_ms=current_monotonic_ms,
        paused_at_monotonic_ms=paused_at,
        paused_duration_ms=0,
    )
    return updated, new_state


def pause_timers(
    session: Session,
    timer_state: TimerState,
    current_epoch_ms: int,
    current_monotonic_ms: float,
) -> tuple[Session, TimerState]:
    if timer_state.is_paused:
        return session, timer_state

    updated = _append_to_all(
        session, TimerEvent(type=TimerEventType.PAUSE, timestamp=current_epoch_ms)
    )
    new_state = replace(
        timer_state,
        is_paused=True,
        paused_at_monotonic_ms=current_monotonic_ms,
    )
    return updated, new_state


def resume_timers(
    session: Session,
    timer_state: TimerState,
    current_epoch_ms: int,
    current_monotonic_ms: float,
) -> tuple[Session, TimerState]:
    if not timer_state.is_paused or timer_state.paused_at_monotonic_ms is None:
        return session, timer_state

    updated = _append_to_all(
        session, TimerEvent(type=TimerEventType.RESUME, timestamp=current_epoch_ms)
    )
    pause_length = current_monotonic_ms - timer_state.paused_at_monotonic_ms
    new_state = replace(
        timer_state,
        is_paused=False,
        paused_at_monotonic_ms=None,
        paused_duration_ms=timer_state.paused_duration_ms + pause_length,
    )
    return updated, new_state


def record_finish(session: Session, current_epoch_ms: int) -> Session:
    """Stamp a ``finish`` event on every desk that does not have one yet."""
    event = TimerEvent(type=TimerEventType.FINISH, timestamp=current_epoch_ms)
    return replace(
        session,
        desks=tuple(
            d if d.has_event(TimerEventType.FINISH)
            else replace(d, events=d.events + (event,))
            for d in session.desks
        ),
    )


# ── display snapshot ─────────────────────────────────────────────────────


def build_snapshot(
    session: Session,
    timer_state: TimerState,
    current_monotonic_ms: float,
) -> ExamSnapshot:
    """Everything a board shows for one tick, desks in display order."""
    rows = []
    for desk in sort_desks(session, timer_state):
        remaining = calculate_desk_remaining_ms(
            session, desk, timer_state, current_monotonic_ms
        )
        rows.append(DeskRow(
            desk=desk,
            remaining_ms=remaining,
            finish_epoch_ms=calculate_desk_adjusted_finish_epoch_ms(session, desk),
            colour=classify_urgency(remaining),
            finished=is_finished(remaining),
        ))
    return ExamSnapshot(
        session_id=session.id,
        phase=timer_state.phase,
        is_paused=timer_state.is_paused,
        general_remaining_ms=calculate_general_remaining_ms(
            session, timer_state, current_monotonic_ms
        ),
        reading_remaining_ms=calculate_reading_remaining_ms(
            session, timer_state, current_monotonic_ms
        ),
        general_finish_epoch_ms=calculate_general_finish_epoch_ms(session),
        desks=rows,
    )
