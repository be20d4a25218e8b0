"""Qt driver that owns the live exam and wires the engine to storage.

The engine in :mod:`.engine` is a pure function library.  This module
holds the one authoritative ``(Session, TimerState)`` pair, reads the
clocks, serialises every mutating action, and after each action saves
the session to the record store and the timer state to the cache.

A ``QTimer`` re-evaluates the countdowns every ``tick_interval_ms``.  The
tick itself only reads, except for one automatic action: once reading
time runs out it performs the reading → exam transition.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from ..cache import TimerStateCache
from ..database import store
from ..errors import DeskNotFoundError, SessionNotFoundError, ValidationError
from . import engine
from .models import ExamSnapshot, Session, TimerPhase, TimerState
from .utils import create_session, parse_minutes, validate_session_config

log = logging.getLogger(__name__)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class ExamController(QObject):
    """Single-session exam driver.

    Signals
    -------
    tick(snapshot: ExamSnapshot)
        Emitted on every timer tick while a session is open.
    phase_changed(phase: TimerPhase)
        Emitted after activation and after the reading → exam switch.
    pause_changed(is_paused: bool)
    desk_updated(desk: Desk)
        Emitted after a D.P. grant, with the refreshed desk.
    desk_finished(desk_id: str)
        Emitted once per desk the first time its countdown reaches 0.
    session_saved(session_id: str)
        Emitted after every successful write to the record store.
    validation_failed(message: str)
        Emitted when typed input is rejected; the message is meant for
        the invigilator.
    """

    tick = pyqtSignal(object)
    phase_changed = pyqtSignal(object)
    pause_changed = pyqtSignal(bool)
    desk_updated = pyqtSignal(object)
    desk_finished = pyqtSignal(str)
    session_saved = pyqtSignal(str)
    validation_failed = pyqtSignal(str)

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        db_enabled: bool = True,
        cache: TimerStateCache | None = None,
        tick_interval_ms: int = 1000,
        wall_clock: Callable[[], int] = _wall_clock_ms,
        monotonic_clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        super().__init__(parent)

        self._db_enabled = db_enabled
        self._cache = cache
        self._wall_clock = wall_clock
        self._monotonic_clock = monotonic_clock

        self._session: Session | None = None
        self._timer_state: TimerState | None = None
        self._finished_desk_ids: set[str] = set()

        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(tick_interval_ms)
        self._qt_timer.timeout.connect(self._on_tick)

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def timer_state(self) -> TimerState | None:
        return self._timer_state

    @property
    def phase(self) -> TimerPhase | None:
        return self._timer_state.phase if self._timer_state else None

    @property
    def is_ticking(self) -> bool:
        return self._qt_timer.isActive()

    def snapshot(self) -> ExamSnapshot | None:
        """Current display values, or ``None`` with no open session."""
        if self._session is None or self._timer_state is None:
            return None
        return engine.build_snapshot(
            self._session, self._timer_state, self._monotonic_clock()
        )

    # ══════════════════════════════════════════════════════════════════
    #  SESSION LIFECYCLE
    # ══════════════════════════════════════════════════════════════════

    def create_session(
        self,
        name: str,
        exam_duration_minutes: int,
        reading_time_minutes: int,
        start_time_epoch_ms: int,
        desk_count: int,
        student_names: list[str | None] | None = None,
    ) -> Session | None:
        """Validate, build and open a new session.

        Returns ``None`` (after emitting ``validation_failed``) when the
        configuration is rejected.
        """
        try:
            validate_session_config(
                name, exam_duration_minutes, reading_time_minutes, desk_count
            )
        except ValidationError as exc:
            self.validation_failed.emit(str(exc))
            return None

        session = create_session(
            name,
            exam_duration_minutes,
            reading_time_minutes,
            start_time_epoch_ms,
            desk_count,
            student_names,
        )
        log.info("Created session %s %r with %d desks", session.id, session.name, desk_count)
        self.open_session(session)
        return session

    def open_session(self, session: Session, timer_state: TimerState | None = None) -> None:
        """Make *session* the active one and persist it."""
        self._qt_timer.stop()
        self._session = session
        self._timer_state = timer_state or TimerState()
        self._finished_desk_ids = set()
        self._persist()
        if self._cache is not None:
            self._cache.set_last_active_session_id(session.id)
        if self._timer_state.phase != TimerPhase.PRE_EXAM:
            self._qt_timer.start()

    def load_session(self, session_id: str) -> Session:
        """Load a stored session and restore its cached timer state.

        Raises :class:`SessionNotFoundError` if the store has no such
        session.
        """
        session = store.load_session(session_id) if self._db_enabled else None
        if session is None:
            raise SessionNotFoundError(session_id)

        timer_state = TimerState()
        if self._cache is not None:
            cached = self._cache.get_timer_state(session_id)
            if cached is not None:
                timer_state = cached.restore(self._wall_clock(), self._monotonic_clock())
                log.info(
                    "Restored cached timer state for %s (phase %s)",
                    session_id, timer_state.phase.value,
                )

        self.open_session(session, timer_state)
        return session

    def close_session(self) -> None:
        self._qt_timer.stop()
        self._session = None
        self._timer_state = None
        self._finished_desk_ids = set()
        if self._cache is not None:
            self._cache.clear_last_active_session_id()

    def delete_session(self, session_id: str) -> bool:
        deleted = store.delete_session(session_id) if self._db_enabled else False
        if self._cache is not None:
            self._cache.clear_timer_state(session_id)
        if self._session is not None and self._session.id == session_id:
            self.close_session()
        return deleted

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    def activate(self) -> None:
        """Start reading time (or the exam).  Only valid from PRE_EXAM."""
        if not self._has_session() or self._timer_state.phase != TimerPhase.PRE_EXAM:
            return
        session, state = engine.activate_exam_start(
            self._session,
            self._wall_clock(),
            self._monotonic_clock(),
            self._timer_state,
        )
        self._commit(session, state)
        log.info("Activated session %s into %s", session.id, state.phase.value)
        self._qt_timer.start()

    def transition_to_exam(self) -> None:
        """Leave reading time.  Ignored while paused, like the tick."""
        if not self._has_session() or self._timer_state.phase != TimerPhase.READING_TIME:
            return
        if self._timer_state.is_paused:
            return
        session, state = engine.transition_to_exam_active(
            self._session,
            self._timer_state,
            self._wall_clock(),
            self._monotonic_clock(),
        )
        self._commit(session, state)
        log.info("Session %s reading time over, exam active", session.id)

    def apply_dp(self, desk_id: str, raw_minutes) -> bool:
        """Grant D.P. time typed in by the invigilator.

        Returns ``True`` when the grant was applied.  Bad input emits
        ``validation_failed`` and returns ``False``.  Raises
        :class:`DeskNotFoundError` for an unknown desk.
        """
        if not self._has_session():
            return False
        if self._timer_state.phase == TimerPhase.PRE_EXAM:
            self.validation_failed.emit(
                "D.P. time can only be granted once the exam has started"
            )
            return False

        desk = self._session.desk_by_id(desk_id)
        if desk is None:
            raise DeskNotFoundError(desk_id)

        try:
            minutes = parse_minutes(raw_minutes)
        except ValidationError as exc:
            self.validation_failed.emit(str(exc))
            return False

        updated = engine.apply_dp_time(desk, minutes, self._wall_clock())
        updated = engine.with_adjusted_finish(self._session, updated)
        self._commit(engine.replace_desk(self._session, updated), self._timer_state)
        # more time may un-finish a desk
        self._finished_desk_ids.discard(desk_id)

        log.info(
            "Granted %d D.P. minutes to desk %d (total %d)",
            minutes, updated.desk_number, updated.dp_time_taken_minutes,
        )
        self.desk_updated.emit(updated)
        return True

    def pause(self) -> None:
        if not self._has_session() or self._timer_state.is_paused:
            return
        if self._timer_state.phase == TimerPhase.PRE_EXAM:
            return
        session, state = engine.pause_timers(
            self._session,
            self._timer_state,
            self._wall_clock(),
            self._monotonic_clock(),
        )
        self._commit(session, state)
        log.info("Paused session %s", session.id)

    def resume(self) -> None:
        if not self._has_session() or not self._timer_state.is_paused:
            return
        session, state = engine.resume_timers(
            self._session,
            self._timer_state,
            self._wall_clock(),
            self._monotonic_clock(),
        )
        self._commit(session, state)
        log.info("Resumed session %s", session.id)

    def toggle_pause(self) -> None:
        if self._timer_state is not None and self._timer_state.is_paused:
            self.resume()
        else:
            self.pause()

    def end_exam(self) -> None:
        """Stamp ``finish`` on every desk, save, and stop ticking."""
        if not self._has_session():
            return
        self._qt_timer.stop()
        session = engine.record_finish(self._session, self._wall_clock())
        self._commit(session, self._timer_state)
        if self._cache is not None:
            self._cache.clear_last_active_session_id()
        log.info("Ended session %s", session.id)

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL
    # ══════════════════════════════════════════════════════════════════

    def _has_session(self) -> bool:
        return self._session is not None and self._timer_state is not None

    def _commit(self, session: Session, timer_state: TimerState) -> None:
        """Swap in the new pair, persist it, and announce what changed."""
        old_state = self._timer_state
        self._session = session
        self._timer_state = timer_state
        self._persist()

        if old_state is None or old_state.phase != timer_state.phase:
            self.phase_changed.emit(timer_state.phase)
        if old_state is None or old_state.is_paused != timer_state.is_paused:
            self.pause_changed.emit(timer_state.is_paused)

    def _persist(self) -> None:
        if self._session is None:
            return
        if self._db_enabled:
            store.save_session(self._session, self._wall_clock())
            self.session_saved.emit(self._session.id)
        if self._cache is not None and self._timer_state is not None:
            self._cache.set_timer_state(
                self._session.id,
                self._timer_state,
                self._wall_clock(),
                self._monotonic_clock(),
            )

    def _on_tick(self) -> None:
        if not self._has_session():
            return

        state = self._timer_state
        if state.phase == TimerPhase.READING_TIME and not state.is_paused:
            reading_left = engine.calculate_reading_remaining_ms(
                self._session, state, self._monotonic_clock()
            )
            if reading_left <= 0:
                self.transition_to_exam()

        snap = self.snapshot()
        self.tick.emit(snap)

        if engine.is_exam_running(snap.phase):
            for row in snap.desks:
                if row.finished and row.desk.id not in self._finished_desk_ids:
                    self._finished_desk_ids.add(row.desk.id)
                    log.info("Desk %d finished", row.desk.desk_number)
                    self.desk_finished.emit(row.desk.id)
