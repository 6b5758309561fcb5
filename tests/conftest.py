"""Shared pytest fixtures for MindfulTimer tests."""

import os
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt6.QtCore import QCoreApplication

from mindfultimer.database import Database, SessionRepository
from mindfultimer.settings import SettingsStore
from mindfultimer.timer.engine import TimerEngine

from helpers import FakeClock, FakeSound


@pytest.fixture(scope="session")
def qapp():
    """A single QCoreApplication instance shared across the entire test run."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    yield app


@pytest.fixture
def database():
    """A fresh in-memory SQLite database per test."""
    db = Database("sqlite:///:memory:")
    db.init()
    yield db
    db.dispose()


@pytest.fixture
def repository(qapp, database):
    return SessionRepository(database)


@pytest.fixture
def settings_store(qapp, tmp_path):
    return SettingsStore(path=tmp_path / "settings.json")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sound():
    return FakeSound()


@pytest.fixture
def engine(qapp, repository, sound, clock):
    """Fresh TimerEngine, 300 s default, bells off, no settings store."""
    eng = TimerEngine(repository, sound, clock=clock)
    yield eng
    eng.shutdown()


@pytest.fixture
def engine_with_settings(qapp, repository, sound, clock, settings_store):
    """TimerEngine following a real SettingsStore (bells on by default)."""
    eng = TimerEngine(repository, sound, settings_store, clock=clock)
    yield eng
    eng.shutdown()
