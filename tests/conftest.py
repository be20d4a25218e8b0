"""Shared pytest fixtures for Invigilator Timer tests."""

import sys
import pytest

from PyQt6.QtCore import QCoreApplication

from invigilator.cache import TimerStateCache
from invigilator.database.db import configure_engine, init_db
from invigilator.timer.controller import ExamController

from helpers import FakeClock


@pytest.fixture(scope="session")
def qapp():
    """A single QCoreApplication shared across the entire test run."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def test_db():
    """Point every test at a fresh in-memory SQLite database."""
    configure_engine("sqlite:///:memory:")
    init_db()
    yield


@pytest.fixture
def cache(tmp_path):
    return TimerStateCache(tmp_path / "cache.json")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def controller(qapp, cache, clock):
    """Controller with DB and cache enabled, driven by a fake clock."""
    return ExamController(
        parent=None,
        db_enabled=True,
        cache=cache,
        wall_clock=clock.wall,
        monotonic_clock=clock.monotonic,
    )


@pytest.fixture
def controller_no_db(qapp, clock):
    """Controller with no storage at all (pure driver tests)."""
    return ExamController(
        parent=None,
        db_enabled=False,
        cache=None,
        wall_clock=clock.wall,
        monotonic_clock=clock.monotonic,
    )
