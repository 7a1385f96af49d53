"""Redis caching layer for scores and recommendation pages.

Provides Redis cache operations with configurable TTL, fail-open reads,
read-through helpers and pattern-based deletion for namespaced cache keys.
"""

import hashlib
import json
from typing import Any, Callable

import redis

from memerank.utils.config import config
from memerank.utils.exceptions import UpstreamError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

SCAN_BATCH_SIZE = 500


class ScoreCache:
    """Redis-backed cache for precomputed scores and recommendation pages.

    Reads fail open: any Redis error is logged and reported as a miss so
    callers recompute. Pattern deletion raises ``UpstreamError`` instead,
    leaving the caller to decide how to isolate the failure.

    Attributes:
        client: The Redis client instance.
        default_ttl: TTL applied when ``set`` is called without one.
    """

    def __init__(self, redis_client: redis.Redis) -> None:
        """Initialize the cache with a Redis client.

        Args:
            redis_client: A connected Redis client instance.
        """
        self.client = redis_client
        self.default_ttl: int = config["redis"]["default_ttl"]

    def get(self, key: str) -> Any | None:
        """Retrieve a cached value by key.

        Args:
            key: The cache key.

        Returns:
            The deserialized cached value, or None if not found or on error.
        """
        try:
            data = self.client.get(key)
            if data is not None:
                return json.loads(data)
        except (redis.RedisError, ValueError) as e:
            logger.warning("Cache get error for key %s: %s", key, e)
        return None

    def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store a value in the cache with TTL.

        Args:
            key: The cache key.
            value: The value to cache (must be JSON-serializable).
            ttl: Time-to-live in seconds. Defaults to the configured TTL.

        Returns:
            True if the value was cached successfully.
        """
        try:
            self.client.set(key, json.dumps(value), ex=ttl or self.default_ttl)
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning("Cache set error for key %s: %s", key, e)
            return False

    def delete(self, key: str) -> bool:
        """Remove a single key.

        Returns:
            True if the command ran, whether or not the key existed.
        """
        try:
            self.client.delete(key)
            return True
        except redis.RedisError as e:
            logger.warning("Cache delete error for key %s: %s", key, e)
            return False

    def exists(self, key: str) -> bool:
        """Return True if the key is present; errors report False."""
        try:
            return self.client.exists(key) == 1
        except redis.RedisError as e:
            logger.warning("Cache exists error for key %s: %s", key, e)
            return False

    def get_or_set(self, key: str, factory: Callable[[], Any], ttl: int | None = None) -> Any:
        """Return the cached value, computing and storing it on a miss.

        A Redis fault behaves like a miss, so ``factory`` still runs and
        its result is returned even when it cannot be stored. Exceptions
        raised by ``factory`` propagate.

        Args:
            key: The cache key.
            factory: Zero-argument callable producing a JSON-serializable value.
            ttl: Time-to-live in seconds. Defaults to the configured TTL.

        Returns:
            The cached or freshly computed value.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = factory()
        self.set(key, value, ttl)
        return value

    def delete_by_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern.

        Keys are discovered with SCAN and removed in batches; there is no
        atomicity across batches.

        Args:
            pattern: Glob-style pattern, e.g. ``mixed_recommendations:*``.

        Returns:
            Number of keys actually removed.

        Raises:
            UpstreamError: If Redis cannot be reached.
        """
        deleted = 0
        batch: list[str] = []
        try:
            for key in self.client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= SCAN_BATCH_SIZE:
                    deleted += self.client.delete(*batch)
                    batch = []
            if batch:
                deleted += self.client.delete(*batch)
        except redis.RedisError as e:
            raise UpstreamError("redis", str(e)) from e

        if deleted:
            logger.info("Deleted %d cache entries matching %s", deleted, pattern)
        return deleted

    def ping(self) -> bool:
        """Return True if Redis answers a PING."""
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning("Cache ping failed: %s", e)
            return False

    def stats(self) -> dict[str, Any]:
        """Report connectivity and the number of keys in the database."""
        try:
            return {"connected": True, "keys": int(self.client.dbsize())}
        except redis.RedisError as e:
            logger.warning("Cache stats error: %s", e)
            return {"connected": False, "keys": 0}

    @staticmethod
    def recommendation_key(
        algorithm: str, options: dict[str, Any], page: int, limit: int
    ) -> str:
        """Generate a cache key for a recommendation page.

        The options are hashed as canonical JSON, so dict ordering does not
        affect the key.

        Args:
            algorithm: The recommendation algorithm.
            options: Request options that influence the result.
            page: Page number.
            limit: Page size.

        Returns:
            Key of the form ``<algorithm>_recommendations:<sha1>``.
        """
        payload = json.dumps(
            {"options": options, "page": page, "limit": limit},
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        digest = hashlib.sha1(payload.encode("utf-8")).hexdigest()
        return f"{algorithm}_recommendations:{digest}"

    @staticmethod
    def social_score_key(meme_id: str, user_id: str | None = None) -> str:
        """Key of a meme's social score, optionally scoped to one viewer.

        Viewer-scoped keys extend the meme key, so
        ``social_score_key(meme_id) + ":*"`` matches every viewer's entry.
        """
        key = f"meme_social_score:{meme_id}"
        return f"{key}:{user_id}" if user_id else key


def create_redis_client(url: str) -> redis.Redis:
    """Build a Redis client from a connection URI.

    Args:
        url: Redis URI, e.g. ``redis://localhost:6379/0``.

    Returns:
        A client decoding responses to ``str``.
    """
    timeout = config["redis"]["socket_timeout"]
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )
