"""Package logging setup.

Modules log through ``logging.getLogger(__name__)``; :func:`get_logger`
attaches the rotating file and optional console handlers to the
``invigilator`` parent logger once, at startup.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .paths import LOG_DIR

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(
        name: str = "invigilator",
        level: int | str = logging.INFO,
        log_dir: Path | None = None,
        max_bytes: int = 5 * 1024 * 1024,
        backup_count: int = 5,
        persistent: bool = True,
        console: bool = False,
) -> logging.Logger:
    """Configure and return the package logger.

    Module loggers (``logging.getLogger(__name__)``) are children of
    ``invigilator`` and inherit these handlers.  Calling this again is
    safe: handlers are looked up by name and only added once.
    """
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    # Rotating on-disk log
    persistent_handler_name = f"{name}:persistent"
    if persistent and not any(h.get_name() == persistent_handler_name for h in logger.handlers):
        log_dir = log_dir or LOG_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        persistent_handler = RotatingFileHandler(
            filename=log_dir / f"{name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )
        persistent_handler.setLevel(level)
        persistent_handler.setFormatter(fmt)
        persistent_handler.set_name(persistent_handler_name)
        logger.addHandler(persistent_handler)

    # Console
    console_handler_name = f"{name}:console"
    if console and not any(h.get_name() == console_handler_name for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(fmt)
        console_handler.set_name(console_handler_name)
        logger.addHandler(console_handler)

    return logger
