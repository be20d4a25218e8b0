"""Application settings with JSON persistence.

Settings are stored at:
    ~/.invigilator_timer/settings.json   (or $INVIGILATOR_HOME/settings.json)

Usage::

    settings = load_settings()
    settings.default_desk_count = 12
    save_settings(settings)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path

from .paths import SETTINGS_PATH

log = logging.getLogger(__name__)


@dataclass
class Settings:
    """All user-configurable preferences."""

    # ── timer ─────────────────────────────────────────────────────────
    tick_interval_ms: int = 1000

    # ── new-session defaults ──────────────────────────────────────────
    default_exam_duration_minutes: int = 90
    default_reading_time_minutes: int = 10
    default_desk_count: int = 2
    default_start_hour: int = 9
    default_start_minute: int = 0

    # ── logging ───────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_to_console: bool = False


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from disk, falling back to defaults."""
    path = path or SETTINGS_PATH
    if not path.exists():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        # Only use keys that exist in the dataclass
        valid_keys = {f.name for f in fields(Settings)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return Settings(**filtered)
    except (OSError, ValueError, AttributeError) as exc:
        log.warning("Using default settings, could not read %s: %s", path, exc)
        return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Write settings to disk as JSON."""
    path = path or SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(asdict(settings), indent=2) + "\n",
        encoding="utf-8",
    )
