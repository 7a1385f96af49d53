"""Maintenance command that clears the recommendation cache.

Usage:
    memerank-clear-cache [--pattern PATTERN ...] [--json]
"""

import argparse
import json
import sys
from typing import Iterable

from memerank.api.cache import ScoreCache, create_redis_client
from memerank.recommendation.invalidator import (
    RECOMMENDATION_CACHE_PATTERNS,
    CacheInvalidator,
)
from memerank.utils.config import settings
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_UNREACHABLE = 1
EXIT_PARTIAL = 2


def parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete cached recommendation data from Redis.")
    parser.add_argument(
        "--pattern",
        action="append",
        dest="patterns",
        help="Glob pattern to delete; repeatable. Defaults to every recommendation namespace.",
    )
    parser.add_argument(
        "--redis-url",
        default=None,
        help="Redis URI (default: REDIS_URL).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON instead of text.",
    )
    return parser.parse_args(None if argv is None else list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    """Run the clear and print per-pattern and total counts.

    Returns:
        0 when every pattern was cleared, 1 when Redis is unreachable and 2
        when some patterns failed.
    """
    args = parse_args(argv)
    client = create_redis_client(args.redis_url or settings.redis_url)
    try:
        cache = ScoreCache(client)
        if not cache.ping():
            print("Could not connect to Redis", file=sys.stderr)
            return EXIT_UNREACHABLE

        patterns = args.patterns or list(RECOMMENDATION_CACHE_PATTERNS)
        report = CacheInvalidator(cache).invalidate_all(patterns)
    finally:
        client.close()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        for pattern, deleted in report.per_pattern.items():
            status = "FAILED" if pattern in report.failed else f"{deleted} keys"
            print(f"  {pattern:<45} {status}")
        print(f"Total deleted: {report.total_deleted}")

    return EXIT_OK if report.ok else EXIT_PARTIAL


if __name__ == "__main__":
    sys.exit(main())
