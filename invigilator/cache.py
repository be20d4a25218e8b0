"""Best-effort JSON cache for restart recovery.

Holds the last active session id and, per session, the latest
:class:`TimerState` plus the wall-clock and monotonic readings taken when
it was saved.  The record store stays authoritative; this file only
spares the driver from losing a running countdown on restart.

Layout of ``cache.json``::

    {
      "last_active_session_id": "…",
      "timer_states": {
        "<session id>": {
          "phase": "exam_active", "is_paused": false,
          "monotonic_start_ms": …, "paused_at_monotonic_ms": null,
          "paused_duration_ms": …,
          "wall_clock_save_time": …, "monotonic_save_time": …
        }
      }
    }

A missing, unreadable or corrupt file reads as empty.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path

from .paths import CACHE_PATH
from .timer.models import TimerState

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedTimerState:
    timer_state: TimerState
    wall_clock_save_time: int
    monotonic_save_time: float

    def to_dict(self) -> dict:
        data = self.timer_state.to_dict()
        data["wall_clock_save_time"] = self.wall_clock_save_time
        data["monotonic_save_time"] = self.monotonic_save_time
        return data

    @classmethod
    def from_dict(cls, data: dict) -> CachedTimerState:
        return cls(
            timer_state=TimerState.from_dict(data),
            wall_clock_save_time=int(data["wall_clock_save_time"]),
            monotonic_save_time=data["monotonic_save_time"],
        )

    def restore(self, current_epoch_ms: int, current_monotonic_ms: float) -> TimerState:
        """Rebase the cached state onto this process's monotonic clock.

        The monotonic clock restarts with the process, so the saved
        readings are shifted by the distance between "now" and the save
        point.  The wall-clock gap since saving counts as elapsed exam
        time, or as paused time if the timers were paused.  A backwards
        wall-clock jump counts as no gap.
        """
        wall_gap = max(0, current_epoch_ms - self.wall_clock_save_time)
        offset = current_monotonic_ms - (self.monotonic_save_time + wall_gap)

        state = self.timer_state
        paused_at = state.paused_at_monotonic_ms
        return replace(
            state,
            monotonic_start_ms=state.monotonic_start_ms + offset,
            paused_at_monotonic_ms=None if paused_at is None else paused_at + offset,
        )


class TimerStateCache:
    """Small key-value store backed by one JSON file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = Path(path) if path is not None else CACHE_PATH

    @property
    def path(self) -> Path:
        return self._path

    # ── file i/o ─────────────────────────────────────────────────────────

    def _read(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable cache %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            log.warning("Ignoring malformed cache %s", self._path)
            return {}
        return data

    def _write(self, data: dict) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            log.warning("Could not write cache %s: %s", self._path, exc)

    # ── last active session ──────────────────────────────────────────────

    def get_last_active_session_id(self) -> str | None:
        value = self._read().get("last_active_session_id")
        return value if isinstance(value, str) else None

    def set_last_active_session_id(self, session_id: str) -> None:
        data = self._read()
        data["last_active_session_id"] = session_id
        self._write(data)

    def clear_last_active_session_id(self) -> None:
        data = self._read()
        if data.pop("last_active_session_id", None) is not None:
            self._write(data)

    # ── timer states ─────────────────────────────────────────────────────

    def _states(self, data: dict) -> dict:
        states = data.get("timer_states")
        return states if isinstance(states, dict) else {}

    def get_timer_state(self, session_id: str) -> CachedTimerState | None:
        entry = self._states(self._read()).get(session_id)
        if entry is None:
            return None
        try:
            return CachedTimerState.from_dict(entry)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            log.warning("Ignoring bad cached timer state for %s: %s", session_id, exc)
            return None

    def set_timer_state(
        self,
        session_id: str,
        timer_state: TimerState,
        wall_clock_save_time: int,
        monotonic_save_time: float,
    ) -> None:
        data = self._read()
        states = self._states(data)
        states[session_id] = CachedTimerState(
            timer_state, wall_clock_save_time, monotonic_save_time
        ).to_dict()
        data["timer_states"] = states
        self._write(data)

    def clear_timer_state(self, session_id: str) -> None:
        data = self._read()
        if self._states(data).pop(session_id, None) is not None:
            self._write(data)

    def clear_all(self) -> None:
        self._write({})
