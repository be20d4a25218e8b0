"""Shared test helpers for Invigilator Timer."""

from invigilator.timer.models import Desk, Session

MINUTE = 60 * 1000

# 2026-03-02 09:00:00 UTC
START_EPOCH_MS = 1_772_442_000_000


class SignalCollector:
    """Utility to capture pyqtSignal emissions into a list."""

    def __init__(self):
        self.items: list = []

    def slot(self, *args):
        self.items.append(args if len(args) > 1 else args[0] if args else None)

    def __call__(self, *args):
        self.slot(*args)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, idx):
        return self.items[idx]

    @property
    def last(self):
        return self.items[-1] if self.items else None

    def clear(self):
        self.items.clear()


class FakeClock:
    """Hand-cranked wall and monotonic clocks, both in milliseconds."""

    def __init__(self, wall_ms: int = START_EPOCH_MS, monotonic_ms: float = 50_000):
        self.wall_ms = wall_ms
        self.monotonic_ms = monotonic_ms

    def wall(self) -> int:
        return self.wall_ms

    def monotonic(self) -> float:
        return self.monotonic_ms

    def advance(self, ms: float) -> None:
        self.wall_ms += int(ms)
        self.monotonic_ms += ms


def make_session(
    exam_minutes: int = 90,
    reading_minutes: int = 10,
    desk_count: int = 3,
    start_epoch_ms: int = START_EPOCH_MS,
) -> Session:
    """Session with predictable ids (``s1``, ``d1``..``dN``)."""
    desks = tuple(
        Desk(id=f"d{n}", desk_number=n) for n in range(1, desk_count + 1)
    )
    return Session(
        id="s1",
        name="Year 12 Chemistry",
        exam_duration_minutes=exam_minutes,
        reading_time_minutes=reading_minutes,
        start_time_epoch_ms=start_epoch_ms,
        desks=desks,
    )
