"""Shared test fixtures for the meme recommendation test suite."""

import time
from pathlib import Path
from typing import Any

import fakeredis
import pytest

from memerank.api.cache import ScoreCache
from memerank.queue.redis_queue import RedisJobQueue
from memerank.utils import database

NOW = 1_700_000_000.0
HOUR = 3600.0
DAY = 86400.0


class FakeClock:
    """Settable clock for time-dependent components."""

    def __init__(self, start: float = NOW) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_memes(now: float) -> list[dict[str, Any]]:
    """A small catalogue relative to ``now``."""
    return [
        {
            "id": "m1", "title": "Cat on keyboard", "author_id": "alice",
            "tags": ["cats", "programming"], "like_count": 10, "views": 200,
            "hot_score": 80.0, "created_at": now - 2 * HOUR,
        },
        {
            "id": "m2", "title": "Good boy", "author_id": "bob",
            "tags": ["dogs"], "like_count": 30, "views": 400,
            "hot_score": 150.0, "created_at": now - 2 * DAY,
        },
        {
            "id": "m3", "title": "Grumpy cat", "author_id": "alice",
            "tags": ["cats"], "like_count": 5, "views": 50,
            "hot_score": 20.0, "created_at": now - 10 * DAY, "modified_at": now - 1 * DAY,
        },
        {
            "id": "m4", "title": "It works on my machine", "author_id": "carol",
            "tags": ["programming"], "like_count": 2, "views": 30,
            "hot_score": 5.0, "created_at": now - 20 * DAY,
        },
        {
            "id": "m5", "title": "Cat vs dog", "author_id": "bob",
            "tags": ["cats", "dogs"], "views": 3,
            "hot_score": 0.0, "created_at": now - 3 * HOUR,
        },
        {
            "id": "m6", "title": "Draft", "author_id": "carol",
            "tags": ["cats"], "status": "private",
            "hot_score": 999.0, "created_at": now - HOUR,
        },
    ]


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    """A fake Redis server shared by every client in a test."""
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(redis_server: fakeredis.FakeServer) -> fakeredis.FakeRedis:
    """Create a fake Redis client for testing."""
    client = fakeredis.FakeRedis(server=redis_server, decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def cache(redis_client: fakeredis.FakeRedis) -> ScoreCache:
    """Create a ScoreCache with a fake Redis backend."""
    return ScoreCache(redis_client)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue(redis_client: fakeredis.FakeRedis, clock: FakeClock) -> RedisJobQueue:
    """A notification queue on fake Redis with a controllable clock."""
    return RedisJobQueue(redis_client, name="test-notifications", clock=clock)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """An initialized, empty SQLite database."""
    path = str(tmp_path / "memerank.db")
    database.init_db(path)
    return path


@pytest.fixture
def seeded_db(db_path: str) -> str:
    """A database holding the sample catalogue and a few interactions.

    ``u1`` and ``u2`` share taste for cat memes; ``u3`` only likes dogs.
    """
    for meme in make_memes(NOW):
        database.insert_meme(db_path, meme)
    for user_id, meme_id, kind in [
        ("u1", "m1", "like"),
        ("u1", "m3", "like"),
        ("u1", "m3", "comment"),
        ("u2", "m1", "like"),
        ("u2", "m3", "like"),
        ("u2", "m5", "share"),
        ("u3", "m2", "like"),
    ]:
        database.record_interaction(db_path, user_id, meme_id, kind, NOW - HOUR)
    return db_path


@pytest.fixture
def live_memes(db_path: str) -> str:
    """The sample catalogue anchored to the real current time."""
    for meme in make_memes(time.time()):
        database.insert_meme(db_path, meme)
    return db_path
