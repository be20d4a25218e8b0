"""Tests for the pure exam timer engine.

Covers: remaining-time arithmetic per phase, pause accounting, finish
projections, desk ordering, D.P. grants, phase transitions, the audit
fan-out, no-op transitions, and a full reading → exam → D.P. scenario.
"""

import math
from dataclasses import replace

import pytest

from invigilator.timer.engine import (
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
from invigilator.timer.models import (
    ColourCue,
    Desk,
    TimerEventType,
    TimerPhase,
    TimerState,
)

from helpers import MINUTE, START_EPOCH_MS, make_session


M0 = 100_000.0
E0 = START_EPOCH_MS


def _active_state(start=M0, **kwargs):
    return TimerState(phase=TimerPhase.EXAM_ACTIVE, monotonic_start_ms=start, **kwargs)


def _reading_state(start=M0, **kwargs):
    return TimerState(phase=TimerPhase.READING_TIME, monotonic_start_ms=start, **kwargs)


# ═══════════════════════════════════════════════════════════════════════════
#  GENERAL REMAINING
# ═══════════════════════════════════════════════════════════════════════════


class TestGeneralRemaining:

    def test_pre_exam_is_full_baseline(self):
        session = make_session(exam_minutes=90)
        assert calculate_general_remaining_ms(session, TimerState(), 9_999_999) == 90 * MINUTE

    def test_counts_down_when_active(self):
        session = make_session(exam_minutes=90)
        remaining = calculate_general_remaining_ms(session, _active_state(), M0 + 15 * MINUTE)
        assert remaining == 75 * MINUTE

    def test_excludes_paused_duration(self):
        session = make_session(exam_minutes=90)
        state = _active_state(paused_duration_ms=5 * MINUTE)
        remaining = calculate_general_remaining_ms(session, state, M0 + 15 * MINUTE)
        assert remaining == 80 * MINUTE

    def test_frozen_at_pause_point_while_paused(self):
        session = make_session(exam_minutes=90)
        state = _active_state(is_paused=True, paused_at_monotonic_ms=M0 + 10 * MINUTE)
        early = calculate_general_remaining_ms(session, state, M0 + 11 * MINUTE)
        late = calculate_general_remaining_ms(session, state, M0 + 60 * MINUTE)
        assert early == late == 80 * MINUTE

    def test_floors_at_zero(self):
        session = make_session(exam_minutes=90)
        remaining = calculate_general_remaining_ms(session, _active_state(), M0 + 500 * MINUTE)
        assert remaining == 0

    def test_dp_overlay_phase_counts_like_exam_active(self):
        session = make_session(exam_minutes=90)
        state = TimerState(phase=TimerPhase.DP_ADJUSTMENTS, monotonic_start_ms=M0)
        assert calculate_general_remaining_ms(session, state, M0 + MINUTE) == 89 * MINUTE

    def test_keeps_counting_during_reading_time(self):
        """General remaining is not held during reading time: it runs
        against the reading phase's zero-point."""
        session = make_session(exam_minutes=90, reading_minutes=10)
        remaining = calculate_general_remaining_ms(session, _reading_state(), M0 + 4 * MINUTE)
        assert remaining == 86 * MINUTE


# ═══════════════════════════════════════════════════════════════════════════
#  READING REMAINING
# ═══════════════════════════════════════════════════════════════════════════


class TestReadingRemaining:

    def test_counts_down_during_reading(self):
        session = make_session(reading_minutes=10)
        remaining = calculate_reading_remaining_ms(session, _reading_state(), M0 + 3 * MINUTE)
        assert remaining == 7 * MINUTE

    @pytest.mark.parametrize("phase", [
        TimerPhase.PRE_EXAM, TimerPhase.EXAM_ACTIVE, TimerPhase.DP_ADJUSTMENTS,
    ])
    def test_zero_outside_reading_phase(self, phase):
        session = make_session(reading_minutes=10)
        state = TimerState(phase=phase, monotonic_start_ms=M0)
        assert calculate_reading_remaining_ms(session, state, M0) == 0

    def test_reaches_zero_exactly_at_end(self):
        session = make_session(reading_minutes=10)
        assert calculate_reading_remaining_ms(session, _reading_state(), M0 + 10 * MINUTE) == 0

    def test_floors_at_zero(self):
        session = make_session(reading_minutes=10)
        assert calculate_reading_remaining_ms(session, _reading_state(), M0 + 99 * MINUTE) == 0


# ═══════════════════════════════════════════════════════════════════════════
#  DESK REMAINING
# ═══════════════════════════════════════════════════════════════════════════


class TestDeskRemaining:

    def test_pre_exam_includes_dp(self):
        session = make_session(exam_minutes=90)
        desk = Desk(id="x", desk_number=1, dp_time_taken_minutes=15)
        assert calculate_desk_remaining_ms(session, desk, TimerState(), M0) == 105 * MINUTE

    def test_frozen_during_reading_time(self):
        session = make_session(exam_minutes=90)
        desk = Desk(id="x", desk_number=1, dp_time_taken_minutes=5)
        remaining = calculate_desk_remaining_ms(session, desk, _reading_state(), M0 + 8 * MINUTE)
        assert remaining == 95 * MINUTE

    def test_counts_down_with_dp_when_active(self):
        session = make_session(exam_minutes=90)
        desk = Desk(id="x", desk_number=1, dp_time_taken_minutes=20)
        remaining = calculate_desk_remaining_ms(session, desk, _active_state(), M0 + 100 * MINUTE)
        assert remaining == 10 * MINUTE

    def test_floors_at_zero(self):
        session = make_session(exam_minutes=90)
        desk = Desk(id="x", desk_number=1, dp_time_taken_minutes=20)
        remaining = calculate_desk_remaining_ms(session, desk, _active_state(), M0 + 1000 * MINUTE)
        assert remaining == 0


# ═══════════════════════════════════════════════════════════════════════════
#  FINISH PROJECTIONS
# ═══════════════════════════════════════════════════════════════════════════


class TestFinishTimes:

    def test_general_finish(self):
        session = make_session(exam_minutes=90, reading_minutes=10)
        assert calculate_general_finish_epoch_ms(session) == START_EPOCH_MS + 100 * MINUTE

    def test_desk_finish_adds_dp(self):
        session = make_session(exam_minutes=90, reading_minutes=10)
        desk = Desk(id="x", desk_number=1, dp_time_taken_minutes=25)
        finish = calculate_desk_adjusted_finish_epoch_ms(session, desk)
        assert finish == START_EPOCH_MS + 125 * MINUTE

    def test_desk_finish_ignores_pause_history(self):
        session = make_session()
        desk = session.desks[0]
        session, state = activate_exam_start(session, E0, M0)
        before = calculate_desk_adjusted_finish_epoch_ms(session, session.desks[0])

        session, state = pause_timers(session, state, E0 + MINUTE, M0 + MINUTE)
        session, state = resume_timers(session, state, E0 + 30 * MINUTE, M0 + 30 * MINUTE)

        after = calculate_desk_adjusted_finish_epoch_ms(session, session.desks[0])
        assert before == after == calculate_desk_adjusted_finish_epoch_ms(session, desk)

    def test_with_adjusted_finish_refreshes_cached_value(self):
        session = make_session(exam_minutes=60, reading_minutes=0)
        desk = Desk(id="x", desk_number=1, dp_time_taken_minutes=10)
        refreshed = with_adjusted_finish(session, desk)
        assert refreshed.adjusted_finish_epoch_ms == START_EPOCH_MS + 70 * MINUTE
        assert desk.adjusted_finish_epoch_ms == 0


# ═══════════════════════════════════════════════════════════════════════════
#  SORTING
# ═══════════════════════════════════════════════════════════════════════════


class TestSortDesks:

    def test_orders_by_finish_time(self):
        session = make_session(desk_count=3)
        session = replace_desk(session, apply_dp_time(session.desks[0], 30, E0))
        session = replace_desk(session, apply_dp_time(session.desks[1], 10, E0))
        ordered = [d.desk_number for d in sort_desks(session, TimerState())]
        assert ordered == [3, 2, 1]

    def test_ties_broken_by_desk_number(self):
        session = make_session(desk_count=4)
        reversed_desks = tuple(reversed(session.desks))
        session = replace(session, desks=reversed_desks)
        ordered = [d.desk_number for d in sort_desks(session, TimerState())]
        assert ordered == [1, 2, 3, 4]

    def test_uses_fresh_finish_not_cached_field(self):
        """A stale adjusted_finish_epoch_ms must not affect ordering."""
        session = make_session(desk_count=2)
        granted = apply_dp_time(session.desks[0], 15, E0)  # cached field not refreshed
        session = replace_desk(session, granted)
        ordered = [d.desk_number for d in sort_desks(session)]
        assert ordered == [2, 1]

    def test_does_not_reorder_session(self):
        session = make_session(desk_count=2)
        session = replace_desk(session, apply_dp_time(session.desks[0], 5, E0))
        sort_desks(session)
        assert [d.desk_number for d in session.desks] == [1, 2]


# ═══════════════════════════════════════════════════════════════════════════
#  D.P. GRANTS
# ═══════════════════════════════════════════════════════════════════════════


class TestApplyDPTime:

    def test_increments_and_records_delta(self):
        desk = Desk(id="x", desk_number=1)
        updated = apply_dp_time(desk, 20, E0)
        assert updated.dp_time_taken_minutes == 20
        assert len(updated.events) == 1
        event = updated.events[0]
        assert event.type == TimerEventType.DP_APPLIED
        assert event.timestamp == E0
        assert event.value_minutes == 20

    def test_accumulates_over_repeated_grants(self):
        desk = Desk(id="x", desk_number=1)
        deltas = [5, 10, 3, 12]
        for i, d in enumerate(deltas):
            desk = apply_dp_time(desk, d, E0 + i)
        assert desk.dp_time_taken_minutes == sum(deltas)
        assert [e.value_minutes for e in desk.events] == deltas
        assert [e.timestamp for e in desk.events] == [E0, E0 + 1, E0 + 2, E0 + 3]

    def test_does_not_refresh_cached_finish(self):
        desk = Desk(id="x", desk_number=1, adjusted_finish_epoch_ms=123)
        assert apply_dp_time(desk, 10, E0).adjusted_finish_epoch_ms == 123

    def test_leaves_original_untouched(self):
        desk = Desk(id="x", desk_number=1)
        apply_dp_time(desk, 10, E0)
        assert desk.dp_time_taken_minutes == 0
        assert desk.events == ()

    @pytest.mark.parametrize("bad", [0, -5, math.nan, math.inf, -math.inf, 2.5, True, "10", None])
    def test_rejects_bad_delta(self, bad):
        desk = Desk(id="x", desk_number=1, dp_time_taken_minutes=7)
        assert apply_dp_time(desk, bad, E0) is desk

    def test_accepts_integral_float(self):
        updated = apply_dp_time(Desk(id="x", desk_number=1), 15.0, E0)
        assert updated.dp_time_taken_minutes == 15
        assert isinstance(updated.dp_time_taken_minutes, int)

    def test_only_touches_one_desk(self):
        session = make_session(desk_count=3)
        session = replace_desk(session, apply_dp_time(session.desks[1], 10, E0))
        assert [d.dp_time_taken_minutes for d in session.desks] == [0, 10, 0]
        assert [len(d.events) for d in session.desks] == [0, 1, 0]


class TestReplaceDesk:

    def test_keeps_order(self):
        session = make_session(desk_count=3)
        updated = replace_desk(session, apply_dp_time(session.desks[1], 5, E0))
        assert [d.id for d in updated.desks] == ["d1", "d2", "d3"]

    def test_unknown_desk_is_noop(self):
        session = make_session()
        assert replace_desk(session, Desk(id="ghost", desk_number=9)) is session


# ═══════════════════════════════════════════════════════════════════════════
#  ACTIVATION
# ═══════════════════════════════════════════════════════════════════════════


class TestActivateExamStart:

    def test_with_reading_time_enters_reading(self):
        session, state = activate_exam_start(make_session(reading_minutes=10), E0, M0)
        assert state.phase == TimerPhase.READING_TIME
        assert state.monotonic_start_ms == M0
        assert state.paused_duration_ms == 0
        assert state.is_paused is False
        for desk in session.desks:
            assert [e.type for e in desk.events] == [TimerEventType.READING_START]
            assert desk.events[0].timestamp == E0

    def test_without_reading_time_enters_exam(self):
        session, state = activate_exam_start(make_session(reading_minutes=0), E0, M0)
        assert state.phase == TimerPhase.EXAM_ACTIVE
        for desk in session.desks:
            assert [e.type for e in desk.events] == [TimerEventType.EXAM_ACTIVE]

    def test_one_event_per_desk(self):
        session, _ = activate_exam_start(make_session(desk_count=5), E0, M0)
        assert all(len(d.events) == 1 for d in session.desks)

    def test_noop_when_already_active(self):
        session = make_session()
        state = _active_state()
        out_session, out_state = activate_exam_start(session, E0, M0 + 5, state)
        assert out_session is session
        assert out_state is state

    def test_allowed_from_explicit_pre_exam_state(self):
        _, state = activate_exam_start(make_session(), E0, M0, TimerState())
        assert state.phase == TimerPhase.READING_TIME

    def test_input_session_unchanged(self):
        session = make_session()
        activate_exam_start(session, E0, M0)
        assert all(d.events == () for d in session.desks)


class TestTransitionToExamActive:

    def test_resets_zero_point_and_pause_total(self):
        session = make_session()
        state = _reading_state(paused_duration_ms=4 * MINUTE)
        m1 = M0 + 14 * MINUTE
        _, new_state = transition_to_exam_active(session, state, E0 + 14 * MINUTE, m1)
        assert new_state.phase == TimerPhase.EXAM_ACTIVE
        assert new_state.monotonic_start_ms == m1
        assert new_state.paused_duration_ms == 0

    def test_appends_exam_active_to_every_desk(self):
        session, state = activate_exam_start(make_session(desk_count=2), E0, M0)
        session, _ = transition_to_exam_active(session, state, E0 + 10 * MINUTE, M0 + 10 * MINUTE)
        for desk in session.desks:
            assert [e.type for e in desk.events] == [
                TimerEventType.READING_START, TimerEventType.EXAM_ACTIVE,
            ]

    def test_paused_transition_never_exceeds_allowance(self):
        """Switching while paused keeps the state paused at the new
        zero-point, so resuming later starts the exam at full time."""
        session = make_session(exam_minutes=90, reading_minutes=10)
        state = _reading_state(is_paused=True, paused_at_monotonic_ms=M0 + 5 * MINUTE)
        m1 = M0 + 25 * MINUTE
        _, state = transition_to_exam_active(session, state, E0 + 25 * MINUTE, m1)

        assert state.is_paused
        assert state.paused_at_monotonic_ms == m1
        desk = session.desks[0]
        assert calculate_desk_remaining_ms(session, desk, state, m1 + MINUTE) == 90 * MINUTE

        _, state = resume_timers(session, state, E0 + 26 * MINUTE, m1 + MINUTE)
        assert calculate_desk_remaining_ms(session, desk, state, m1 + 2 * MINUTE) == 89 * MINUTE

    @pytest.mark.parametrize("phase", [TimerPhase.PRE_EXAM, TimerPhase.EXAM_ACTIVE])
    def test_noop_outside_reading(self, phase):
        session = make_session()
        state = TimerState(phase=phase, monotonic_start_ms=M0)
        out_session, out_state = transition_to_exam_active(session, state, E0, M0)
        assert out_session is session
        assert out_state is state


# ═══════════════════════════════════════════════════════════════════════════
#  PAUSE / RESUME
# ═══════════════════════════════════════════════════════════════════════════


class TestPauseResume:

    def test_pause_records_point_and_event(self):
        session, state = pause_timers(make_session(), _active_state(), E0, M0 + MINUTE)
        assert state.is_paused is True
        assert state.paused_at_monotonic_ms == M0 + MINUTE
        assert state.monotonic_start_ms == M0
        assert all(d.events[-1].type == TimerEventType.PAUSE for d in session.desks)

    def test_pause_when_paused_is_noop(self):
        session = make_session()
        state = _active_state(is_paused=True, paused_at_monotonic_ms=M0)
        out_session, out_state = pause_timers(session, state, E0, M0 + 5)
        assert out_session is session
        assert out_state is state

    def test_resume_accumulates_pause_length(self):
        session = make_session()
        session, state = pause_timers(session, _active_state(paused_duration_ms=1000), E0, M0 + MINUTE)
        session, state = resume_timers(session, state, E0 + 3 * MINUTE, M0 + 3 * MINUTE)
        assert state.is_paused is False
        assert state.paused_at_monotonic_ms is None
        assert state.paused_duration_ms == 1000 + 2 * MINUTE
        assert state.monotonic_start_ms == M0
        assert [e.type for e in session.desks[0].events] == [
            TimerEventType.PAUSE, TimerEventType.RESUME,
        ]

    def test_resume_when_running_is_noop(self):
        session = make_session()
        state = _active_state()
        out_session, out_state = resume_timers(session, state, E0, M0)
        assert out_session is session
        assert out_state is state

    def test_resume_without_pause_point_is_noop(self):
        session = make_session()
        state = _active_state(is_paused=True, paused_at_monotonic_ms=None)
        out_session, out_state = resume_timers(session, state, E0, M0)
        assert out_session is session
        assert out_state is state

    def test_pause_at_monotonic_zero_can_resume(self):
        session = make_session()
        state = TimerState(phase=TimerPhase.EXAM_ACTIVE, monotonic_start_ms=0)
        session, state = pause_timers(session, state, E0, 0)
        session, state = resume_timers(session, state, E0 + 1000, 1000)
        assert state.paused_duration_ms == 1000
        assert state.is_paused is False

    def test_pause_does_not_leak_elapsed_time(self):
        session = make_session(exam_minutes=90)
        desk = session.desks[0]
        state = _active_state()
        t1, t2 = M0 + 20 * MINUTE, M0 + 27 * MINUTE

        before = calculate_desk_remaining_ms(session, desk, state, t1)
        general_before = calculate_general_remaining_ms(session, state, t1)
        session, state = pause_timers(session, state, E0, t1)
        session, state = resume_timers(session, state, E0, t2)

        assert state.paused_duration_ms == t2 - t1
        assert calculate_desk_remaining_ms(session, desk, state, t2) == before
        assert calculate_general_remaining_ms(session, state, t2) == general_before


class TestRecordFinish:

    def test_appends_finish_once(self):
        session = record_finish(make_session(desk_count=2), E0)
        session = record_finish(session, E0 + 1000)
        for desk in session.desks:
            finishes = [e for e in desk.events if e.type == TimerEventType.FINISH]
            assert len(finishes) == 1
            assert finishes[0].timestamp == E0


class TestIsExamRunning:

    def test_running_phases(self):
        assert is_exam_running(TimerPhase.EXAM_ACTIVE)
        assert is_exam_running(TimerPhase.DP_ADJUSTMENTS)
        assert not is_exam_running(TimerPhase.READING_TIME)
        assert not is_exam_running(TimerPhase.PRE_EXAM)


# ═══════════════════════════════════════════════════════════════════════════
#  SNAPSHOT
# ═══════════════════════════════════════════════════════════════════════════


class TestBuildSnapshot:

    def test_rows_sorted_and_classified(self):
        session = make_session(exam_minutes=40, reading_minutes=0, desk_count=2)
        session = replace_desk(session, apply_dp_time(session.desks[0], 30, E0))
        snap = build_snapshot(session, _active_state(), M0 + 35 * MINUTE)

        assert [r.desk.desk_number for r in snap.desks] == [2, 1]
        desk2, desk1 = snap.desks
        assert desk2.remaining_ms == 5 * MINUTE
        assert desk2.colour == ColourCue.RED
        assert desk1.remaining_ms == 35 * MINUTE
        assert desk1.colour == ColourCue.GREEN
        assert snap.general_remaining_ms == 5 * MINUTE
        assert snap.reading_remaining_ms == 0
        assert snap.general_finish_epoch_ms == START_EPOCH_MS + 40 * MINUTE

    def test_all_finished(self):
        session = make_session(exam_minutes=10, reading_minutes=0, desk_count=2)
        snap = build_snapshot(session, _active_state(), M0 + 10 * MINUTE)
        assert all(r.finished for r in snap.desks)
        assert snap.all_finished

    def test_not_finished_before_start(self):
        snap = build_snapshot(make_session(), TimerState(), M0)
        assert not snap.all_finished
        assert snap.phase == TimerPhase.PRE_EXAM


# ═══════════════════════════════════════════════════════════════════════════
#  FULL SCENARIO
# ═══════════════════════════════════════════════════════════════════════════


class TestReadingThenExamScenario:

    def test_reading_exam_and_dp_grant(self):
        T = START_EPOCH_MS
        session = make_session(exam_minutes=90, reading_minutes=10, start_epoch_ms=T)

        session, state = activate_exam_start(session, T, M0)
        assert state.phase == TimerPhase.READING_TIME
        assert state.monotonic_start_ms == M0

        assert calculate_reading_remaining_ms(session, state, M0 + 10 * MINUTE) == 0

        m1 = M0 + 10 * MINUTE + 250
        session, state = transition_to_exam_active(session, state, T + 10 * MINUTE, m1)
        assert state.phase == TimerPhase.EXAM_ACTIVE
        assert state.monotonic_start_ms == m1

        e1 = T + 12 * MINUTE
        desk1 = session.desk_by_number(1)
        granted = with_adjusted_finish(session, apply_dp_time(desk1, 30, e1))
        session = replace_desk(session, granted)
        desk1 = session.desk_by_number(1)

        assert desk1.dp_time_taken_minutes == 30
        dp_events = [e for e in desk1.events if e.type == TimerEventType.DP_APPLIED]
        assert len(dp_events) == 1
        assert dp_events[0].value_minutes == 30
        assert desk1.adjusted_finish_epoch_ms == T + 10 * MINUTE + 120 * MINUTE
        assert calculate_desk_remaining_ms(session, desk1, state, m1) == 120 * MINUTE

        other = session.desk_by_number(2)
        assert calculate_desk_remaining_ms(session, other, state, m1) == 90 * MINUTE
