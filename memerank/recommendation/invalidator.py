"""Pattern-based cache invalidation.

Deletes every key matching a list of glob patterns, isolating failures per
pattern so one unreachable namespace never stops the rest of the run.
Write-side events are mapped to the namespaces they make stale.
"""

from dataclasses import dataclass, field

from memerank.api.cache import ScoreCache
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

RECOMMENDATION_CACHE_PATTERNS = (
    "meme_social_score:*",
    "batch_social_scores:*",
    "social_graph:*",
    "cache_version:*",
    "mixed_recommendations:*",
    "content_based:*",
    "collaborative_filtering:*",
    "trending_recommendations:*",
    "hot_recommendations:*",
    "content_based_recommendations:*",
    "collaborative_filtering_recommendations:*",
)

_USER_FACING = (
    "mixed_recommendations:*",
    "content_based_recommendations:*",
    "collaborative_filtering_recommendations:*",
)

EVENT_PATTERNS = {
    "like": ("trending_recommendations:*", "hot_recommendations:*", *_USER_FACING),
    "dislike": ("trending_recommendations:*", "hot_recommendations:*", *_USER_FACING),
    "collection": ("trending_recommendations:*", *_USER_FACING),
    "share": ("trending_recommendations:*", *_USER_FACING),
    "comment": ("trending_recommendations:*", "hot_recommendations:*", *_USER_FACING),
    "view": ("content_based_recommendations:*", "mixed_recommendations:*"),
    "follow": ("social_graph:*", "meme_social_score:*", "mixed_recommendations:*"),
    "meme_created": RECOMMENDATION_CACHE_PATTERNS,
    "meme_updated": ("trending_recommendations:*", "hot_recommendations:*", *_USER_FACING),
    "meme_deleted": RECOMMENDATION_CACHE_PATTERNS,
}

# Interactions that count toward a meme's social score.
SOCIAL_EVENTS = ("like", "collection", "share", "comment", "view")


@dataclass
class InvalidationReport:
    """Outcome of an invalidation run.

    Attributes:
        total_deleted: Sum of keys removed across all patterns.
        per_pattern: Keys removed per pattern; failed patterns map to 0.
        failed: Patterns whose deletion raised.
    """

    total_deleted: int = 0
    per_pattern: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "total_deleted": self.total_deleted,
            "per_pattern": dict(self.per_pattern),
            "failed": list(self.failed),
        }


class CacheInvalidator:
    """Deletes cache namespaces by glob pattern.

    Attributes:
        cache: The score cache whose keys are removed.
    """

    def __init__(self, cache: ScoreCache) -> None:
        self.cache = cache

    def invalidate_all(self, patterns: tuple[str, ...] | list[str]) -> InvalidationReport:
        """Delete keys for each pattern in order.

        A failure on one pattern is logged and recorded, and the remaining
        patterns are still attempted.

        Args:
            patterns: Ordered glob patterns.

        Returns:
            An InvalidationReport with per-pattern counts.
        """
        report = InvalidationReport()
        for pattern in patterns:
            try:
                deleted = self.cache.delete_by_pattern(pattern)
            except Exception as e:
                logger.error("Failed to invalidate pattern %s: %s", pattern, e)
                report.per_pattern[pattern] = 0
                report.failed.append(pattern)
                continue
            report.per_pattern[pattern] = deleted
            report.total_deleted += deleted

        logger.info(
            "Invalidated %d keys across %d patterns (%d failed)",
            report.total_deleted,
            len(report.per_pattern),
            len(report.failed),
        )
        return report

    def invalidate_for_event(self, event: str, meme_id: str | None = None) -> InvalidationReport:
        """Invalidate the namespaces made stale by a write-side event.

        Args:
            event: An interaction type, ``follow`` or a meme lifecycle event.
            meme_id: The meme involved. Social interactions on it also drop
                every viewer's cached social score for that meme.

        Returns:
            The InvalidationReport; empty for events with no mapping.
        """
        patterns = list(EVENT_PATTERNS.get(event, ()))
        if meme_id and event in SOCIAL_EVENTS:
            patterns.append(f"{ScoreCache.social_score_key(meme_id)}:*")
        if not patterns:
            logger.debug("No cache patterns registered for event %s", event)
            return InvalidationReport()
        return self.invalidate_all(patterns)
