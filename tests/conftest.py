from __future__ import annotations

import random

import pytest

from jetoni.config.settings import Settings
from jetoni.services.kv_store import MemoryStore
from jetoni.services.notifier import RecordingNotifier
from jetoni.services.session_manager import SessionManager
from jetoni.services.session_store import SessionRepository


class FakeClock:
    """Horloge manuelle (secondes epoch)."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def repository(store):
    return SessionRepository(store, session_ttl=3600, index_ttl=3600)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def test_settings():
    return Settings(_env_file=None)


@pytest.fixture
def manager(repository, clock, notifier, test_settings):
    return SessionManager(
        repository,
        rng=random.Random(1234),
        clock=clock,
        notifier=notifier,
        config=test_settings,
    )
