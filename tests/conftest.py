"""
Global pytest fixtures for the shortmap test suite.

Responsibilities:
    - Provide a frozen, adjustable clock so expiry is deterministic
    - Provide isolated in-memory Storage and a MappingService wired to it
    - Provide a fresh FastAPI TestClient via the app factory for integration tests

Why an app factory?
    Using `create_app()` ensures each test gets fresh in-memory state,
    eliminating cross-test flakiness.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from main import create_app
from shortmap.manager.mapping_service import MappingService
from shortmap.storage.storage import Storage


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage() -> Storage:
    """Fresh in-memory storage backend."""
    return Storage()


@pytest.fixture
def service(storage: Storage, clock: FrozenClock) -> MappingService:
    """MappingService wired to the storage and clock fixtures."""
    return MappingService(storage=storage, clock=clock)


@pytest.fixture
def client(storage: Storage, clock: FrozenClock) -> TestClient:
    """
    Fresh TestClient with a new app instance sharing the storage and clock
    fixtures, so tests can arrange state directly and move time.
    """
    app = create_app(storage=storage, clock=clock)
    return TestClient(app)
