"""Filesystem locations for the database, cache, settings and logs.

Everything lives under one application-support directory:
``~/.invigilator_timer`` by default, or ``$INVIGILATOR_HOME`` when set.
"""

import os
from pathlib import Path

APP_SUPPORT_DIR = Path(
    os.environ.get("INVIGILATOR_HOME", Path.home() / ".invigilator_timer")
)
DB_PATH = APP_SUPPORT_DIR / "invigilator_timer.db"
CACHE_PATH = APP_SUPPORT_DIR / "cache.json"
SETTINGS_PATH = APP_SUPPORT_DIR / "settings.json"
LOG_DIR = APP_SUPPORT_DIR / "logs"
