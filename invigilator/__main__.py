"""Allow running the timer headless: python -m invigilator.

Resumes the last active session (or starts a new one from the saved
defaults, or the demo with ``--demo``), activates it, and prints the
desk board on every tick until every desk is done.
"""

import argparse
import logging
import sys
from collections.abc import Sequence

from PyQt6.QtCore import QCoreApplication

from .cache import TimerStateCache
from .database.db import init_db
from .demo import DEFAULT_SESSION_NAME, create_default_session, create_demo_session
from .errors import SessionNotFoundError, ValidationError
from .logger import get_logger
from .settings import Settings, load_settings
from .timer.controller import ExamController
from .timer.models import ExamSnapshot, Session
from .timer.utils import format_clock_time, format_countdown

log = logging.getLogger(__name__)


def render_board(snapshot: ExamSnapshot) -> str:
    """Plain-text board for one tick."""
    status = snapshot.phase.value + (" (paused)" if snapshot.is_paused else "")
    lines = [
        f"[{status}] general {format_countdown(snapshot.general_remaining_ms)}"
        f"  finishes {format_clock_time(snapshot.general_finish_epoch_ms)}",
    ]
    if snapshot.reading_remaining_ms > 0:
        lines.append(f"  reading {format_countdown(snapshot.reading_remaining_ms)}")
    for row in snapshot.desks:
        name = row.desk.student_name or ""
        mark = "done" if row.finished else row.colour.value
        lines.append(
            f"  #{row.desk.desk_number:<3} {name:<16} "
            f"{format_countdown(row.remaining_ms):>8}  "
            f"{format_clock_time(row.finish_epoch_ms):>8}  "
            f"+{row.desk.dp_time_taken_minutes}m  {mark}"
        )
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invigilator-timer",
        description="Invigilator Timer - desk-by-desk exam countdowns",
    )
    parser.add_argument(
        "--name",
        "-n",
        default=DEFAULT_SESSION_NAME,
        help="Name for a new session built from the saved defaults",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Start the quick demo session instead",
    )
    parser.add_argument(
        "--realistic",
        action="store_true",
        help="With --demo, use the full-length 8-desk demo",
    )
    parser.add_argument(
        "--new",
        action="store_true",
        help="Ignore the last active session and start a new one",
    )
    return parser


def new_session(args: argparse.Namespace, settings: Settings) -> Session:
    """The session to start when nothing is resumed."""
    if args.demo:
        return create_demo_session(realistic=args.realistic)
    return create_default_session(settings, args.name)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    get_logger(level=settings.log_level, console=settings.log_to_console)
    init_db()

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName("InvigilatorTimer")

    cache = TimerStateCache()
    controller = ExamController(
        cache=cache, tick_interval_ms=settings.tick_interval_ms
    )

    last_id = None if args.new else cache.get_last_active_session_id()
    if last_id is not None:
        try:
            controller.load_session(last_id)
        except SessionNotFoundError:
            log.warning("Last active session %s is gone, starting fresh", last_id)
            cache.clear_last_active_session_id()
    if controller.session is None:
        try:
            controller.open_session(new_session(args, settings))
        except ValidationError as exc:
            log.error("Saved session defaults are unusable: %s", exc)
            print(f"! {exc}", file=sys.stderr)
            return 1

    def on_tick(snapshot: ExamSnapshot) -> None:
        print(render_board(snapshot), flush=True)
        if snapshot.all_finished:
            controller.end_exam()
            app.quit()

    controller.tick.connect(on_tick)
    controller.validation_failed.connect(lambda msg: print(f"! {msg}"))
    controller.activate()

    print("Invigilator Timer ready!")
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
