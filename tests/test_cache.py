"""Tests for the Redis caching layer."""

from unittest.mock import MagicMock

import fakeredis
import pytest
import redis

from memerank.api.cache import ScoreCache
from memerank.utils.exceptions import UpstreamError


class TestScoreCache:
    """Tests for the ScoreCache class."""

    def test_set_and_get(self, cache: ScoreCache) -> None:
        """Stored values can be retrieved."""
        cache.set("test_key", {"value": 42})
        assert cache.get("test_key") == {"value": 42}

    def test_get_missing_key(self, cache: ScoreCache) -> None:
        """Missing keys return None."""
        assert cache.get("nonexistent") is None

    def test_set_with_ttl(
        self, cache: ScoreCache, redis_client: fakeredis.FakeRedis
    ) -> None:
        """Values are set with the specified TTL."""
        cache.set("ttl_key", "data", ttl=60)
        ttl = redis_client.ttl("ttl_key")
        assert 0 < ttl <= 60

    def test_default_ttl_applied(
        self, cache: ScoreCache, redis_client: fakeredis.FakeRedis
    ) -> None:
        """The configured default TTL is applied when none is given."""
        cache.set("default_ttl", "value")
        assert 0 < redis_client.ttl("default_ttl") <= cache.default_ttl

    def test_get_fails_open(self) -> None:
        """A Redis error on read is reported as a miss."""
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        assert ScoreCache(client).get("key") is None

    def test_get_corrupt_value_is_miss(
        self, cache: ScoreCache, redis_client: fakeredis.FakeRedis
    ) -> None:
        """Undecodable cached data is treated as a miss."""
        redis_client.set("broken", "{not json")
        assert cache.get("broken") is None

    def test_set_unserializable_returns_false(self, cache: ScoreCache) -> None:
        assert cache.set("bad", {"value": object()}) is False

    def test_stats(self, cache: ScoreCache) -> None:
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.stats() == {"connected": True, "keys": 2}

    def test_ping(self, cache: ScoreCache) -> None:
        assert cache.ping() is True


class TestSingleKeyOperations:
    """Tests for delete, exists and read-through."""

    def test_delete_and_exists(self, cache: ScoreCache) -> None:
        cache.set("meme_social_score:m1", 4.5)
        assert cache.exists("meme_social_score:m1") is True
        assert cache.delete("meme_social_score:m1") is True
        assert cache.exists("meme_social_score:m1") is False

    def test_delete_missing_key(self, cache: ScoreCache) -> None:
        assert cache.delete("nonexistent") is True

    def test_delete_and_exists_fail_open(self) -> None:
        client = MagicMock()
        client.delete.side_effect = redis.ConnectionError("down")
        client.exists.side_effect = redis.ConnectionError("down")
        cache = ScoreCache(client)
        assert cache.delete("key") is False
        assert cache.exists("key") is False

    def test_get_or_set_computes_once(self, cache: ScoreCache) -> None:
        calls = []

        def compute() -> dict:
            calls.append(1)
            return {"score": 3}

        assert cache.get_or_set("k", compute, ttl=60) == {"score": 3}
        assert cache.get_or_set("k", compute, ttl=60) == {"score": 3}
        assert len(calls) == 1

    def test_get_or_set_caches_falsy_values(self, cache: ScoreCache) -> None:
        cache.get_or_set("zero", lambda: 0)
        assert cache.get_or_set("zero", lambda: pytest.fail("recomputed")) == 0

    def test_get_or_set_applies_ttl(
        self, cache: ScoreCache, redis_client: fakeredis.FakeRedis
    ) -> None:
        cache.get_or_set("ttl_key", lambda: "v", ttl=30)
        assert 0 < redis_client.ttl("ttl_key") <= 30

    def test_get_or_set_when_redis_down(self) -> None:
        """The factory result is still returned when Redis is unreachable."""
        server = fakeredis.FakeServer()
        server.connected = False
        cache = ScoreCache(fakeredis.FakeRedis(server=server, decode_responses=True))
        assert cache.get_or_set("k", lambda: [1, 2]) == [1, 2]

    def test_get_or_set_propagates_factory_errors(self, cache: ScoreCache) -> None:
        def broken() -> None:
            raise ValueError("no data")

        with pytest.raises(ValueError):
            cache.get_or_set("k", broken)
        assert cache.exists("k") is False


class TestDeleteByPattern:
    """Tests for glob-pattern deletion."""

    def test_deletes_only_matching_keys(self, cache: ScoreCache) -> None:
        """Only keys matching the pattern are removed."""
        cache.set("mixed_recommendations:a", 1)
        cache.set("mixed_recommendations:b", 2)
        cache.set("trending_recommendations:a", 3)

        assert cache.delete_by_pattern("mixed_recommendations:*") == 2
        assert cache.get("mixed_recommendations:a") is None
        assert cache.get("trending_recommendations:a") == 3

    def test_second_call_deletes_nothing(self, cache: ScoreCache) -> None:
        """Deletion is idempotent when no new keys were written."""
        cache.set("meme_social_score:1", 1)
        assert cache.delete_by_pattern("meme_social_score:*") == 1
        assert cache.delete_by_pattern("meme_social_score:*") == 0

    def test_no_matches(self, cache: ScoreCache) -> None:
        assert cache.delete_by_pattern("nothing:*") == 0

    def test_more_keys_than_one_batch(
        self, cache: ScoreCache, redis_client: fakeredis.FakeRedis
    ) -> None:
        """Keys beyond one SCAN batch are all deleted."""
        for i in range(1200):
            redis_client.set(f"social_graph:{i}", i)
        assert cache.delete_by_pattern("social_graph:*") == 1200
        assert redis_client.dbsize() == 0

    def test_connection_error_raises_upstream(self) -> None:
        client = MagicMock()
        client.scan_iter.side_effect = redis.ConnectionError("down")
        with pytest.raises(UpstreamError):
            ScoreCache(client).delete_by_pattern("any:*")


class TestKeys:
    """Tests for cache key construction."""

    def test_recommendation_key_is_namespaced(self) -> None:
        key = ScoreCache.recommendation_key("mixed", {"user_id": "u1"}, 1, 20)
        assert key.startswith("mixed_recommendations:")

    def test_recommendation_key_ignores_option_order(self) -> None:
        """Equivalent option dicts produce the same key."""
        a = ScoreCache.recommendation_key("mixed", {"user_id": "u1", "tags": []}, 2, 10)
        b = ScoreCache.recommendation_key("mixed", {"tags": [], "user_id": "u1"}, 2, 10)
        assert a == b

    def test_recommendation_key_varies_with_page(self) -> None:
        a = ScoreCache.recommendation_key("mixed", {}, 1, 10)
        b = ScoreCache.recommendation_key("mixed", {}, 2, 10)
        assert a != b



    def test_social_score_key(self) -> None:
        assert ScoreCache.social_score_key("m1") == "meme_social_score:m1"
        assert ScoreCache.social_score_key("m1", "u2") == "meme_social_score:m1:u2"
