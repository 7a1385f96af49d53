"""Tests for the clear-cache maintenance command."""

import json

import fakeredis
import pytest

from memerank import clear_cache
from memerank.api.cache import ScoreCache
from memerank.utils.exceptions import UpstreamError


@pytest.fixture(autouse=True)
def fake_redis(redis_server: fakeredis.FakeServer, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        clear_cache,
        "create_redis_client",
        lambda url: fakeredis.FakeRedis(server=redis_server, decode_responses=True),
    )


@pytest.fixture
def populated(redis_client: fakeredis.FakeRedis) -> fakeredis.FakeRedis:
    redis_client.set("mixed_recommendations:a", "{}")
    redis_client.set("mixed_recommendations:b", "{}")
    redis_client.set("trending_recommendations:a", "{}")
    redis_client.set("session:keep", "1")
    return redis_client


class TestClearCache:
    def test_clears_every_namespace(
        self, populated: fakeredis.FakeRedis, capsys: pytest.CaptureFixture
    ) -> None:
        assert clear_cache.main([]) == clear_cache.EXIT_OK
        out = capsys.readouterr().out
        assert "Total deleted: 3" in out
        assert "mixed_recommendations:*" in out
        assert populated.keys("*") == ["session:keep"]

    def test_explicit_pattern(
        self, populated: fakeredis.FakeRedis, capsys: pytest.CaptureFixture
    ) -> None:
        assert clear_cache.main(["--pattern", "trending_recommendations:*"]) == 0
        assert "Total deleted: 1" in capsys.readouterr().out
        assert len(populated.keys("mixed_recommendations:*")) == 2

    def test_json_report(
        self, populated: fakeredis.FakeRedis, capsys: pytest.CaptureFixture
    ) -> None:
        clear_cache.main(["--json", "--pattern", "mixed_recommendations:*"])
        report = json.loads(capsys.readouterr().out)
        assert report == {
            "total_deleted": 2,
            "per_pattern": {"mixed_recommendations:*": 2},
            "failed": [],
        }

    def test_unreachable_redis(
        self, redis_server: fakeredis.FakeServer, capsys: pytest.CaptureFixture
    ) -> None:
        redis_server.connected = False
        assert clear_cache.main([]) == clear_cache.EXIT_UNREACHABLE
        assert "Could not connect to Redis" in capsys.readouterr().err

    def test_partial_failure(
        self,
        populated: fakeredis.FakeRedis,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        """A failing pattern is reported and the others are still cleared."""
        original = ScoreCache.delete_by_pattern

        def flaky(self: ScoreCache, pattern: str) -> int:
            if pattern.startswith("mixed"):
                raise UpstreamError("redis", "timeout")
            return original(self, pattern)

        monkeypatch.setattr(ScoreCache, "delete_by_pattern", flaky)
        assert clear_cache.main([]) == clear_cache.EXIT_PARTIAL
        assert "FAILED" in capsys.readouterr().out
        assert populated.keys("trending_recommendations:*") == []
        assert len(populated.keys("mixed_recommendations:*")) == 2
