"""
Pytest fixtures for querycache tests.

Uses an in-memory SQLite database shared by the read and write paths.
"""

import pytest

from querycache.cache import MemoryCacheProvider, QueryCache
from querycache.cache.entries import NANOSECONDS
from querycache.config import Settings
from querycache.db import ReadWriteDatabase
from tests.sample_models import Order, Widget


class FakeClock:
    """Nanosecond clock that only moves when told to."""

    def __init__(self, start_seconds: int = 1_700_000_000):
        self.now = start_seconds * NANOSECONDS

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * NANOSECONDS)


class RecordingStore:
    """Stand-in backing store that records every miss-handler call."""

    def __init__(self):
        self.calls = 0


@pytest.fixture
def test_settings():
    """Settings pointing both access paths at in-memory SQLite."""
    return Settings(
        read_database_url="sqlite://",
        write_database_url="sqlite://",
        cache_backend="memory",
    )


@pytest.fixture
def database(test_settings):
    """Fresh database with all tables created."""
    database = ReadWriteDatabase(test_settings)
    database.initialize()
    database.create_all_tables()
    yield database
    database.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return MemoryCacheProvider()


@pytest.fixture
def query_cache(database, provider, clock):
    """QueryCache over the SQLite database with a controllable clock."""
    return QueryCache(database, provider=provider, clock=clock, bucket_ttl=60 * 60 * 24)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def store_cache(store, provider, clock):
    """QueryCache over a RecordingStore, for driving custom miss handlers."""
    return QueryCache(store, provider=provider, clock=clock, bucket_ttl=60 * 60 * 24)


@pytest.fixture
def sample_orders(database):
    """Three active orders and one cancelled order."""
    with database.write() as session:
        session.add_all(
            [
                Order(id=1, status="active", region="eu"),
                Order(id=2, status="active", region="us"),
                Order(id=3, status="active", region="eu"),
                Order(id=4, status="cancelled", region="eu"),
            ]
        )


@pytest.fixture
def sample_widgets(database):
    with database.write() as session:
        session.add_all(
            [
                Widget(id=1, name="sprocket", color="red"),
                Widget(id=2, name="gear", color="blue"),
            ]
        )
