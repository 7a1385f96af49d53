"""Hot score functions for ranking memes by recent engagement.

All timestamps are unix seconds. Scores are clamped at zero so a burst of
dislikes cannot push a meme below fresh, untouched content.
"""

import math
import time
from typing import Any

SECONDS_PER_HOUR = 3600.0
SECONDS_PER_DAY = 86400.0

ENGAGEMENT_WEIGHTS = {
    "like_count": 1.0,
    "dislike_count": -0.5,
    "views": 0.1,
    "comment_count": 2.0,
    "collection_count": 3.0,
    "share_count": 2.5,
}

MODIFIED_FRESHNESS_BONUS = 1.2

HOT_LEVELS = (
    (1000, "viral"),
    (500, "trending"),
    (100, "popular"),
    (50, "active"),
    (10, "normal"),
)


def _count(meme: dict[str, Any], field: str) -> int:
    try:
        return max(0, int(meme.get(field) or 0))
    except (TypeError, ValueError):
        return 0


def reddit_hot_score(
    upvotes: int, downvotes: int, created_at: float, now: float | None = None
) -> float:
    """Reddit-style score: log10(max(up - down, 1)) + (age - 45000) / 45000."""
    now = time.time() if now is None else now
    z = max(upvotes - downvotes, 1)
    age = math.floor(now - created_at)
    return max(math.log10(z) + (age - 45000) / 45000, 0.0)


def hacker_news_score(upvotes: int, created_at: float, now: float | None = None) -> float:
    """Hacker News gravity score: (p - 1) / (hours + 2) ** 1.5."""
    now = time.time() if now is None else now
    hours = (now - created_at) / SECONDS_PER_HOUR
    return max((upvotes - 1) / math.pow(hours + 2, 1.5), 0.0)


def meme_hot_score(meme: dict[str, Any], now: float | None = None) -> float:
    """Weighted engagement with logarithmic time decay.

    The decay clock starts at ``modified_at`` when present, and modified memes
    get a freshness bonus on top.

    Args:
        meme: Meme dict with counter fields, ``created_at`` and optionally
            ``modified_at``.
        now: Reference time; defaults to the current time.

    Returns:
        Non-negative hot score.

    Raises:
        ValueError: If ``created_at`` is missing.
    """
    now = time.time() if now is None else now
    created_at = meme.get("created_at")
    if created_at is None:
        raise ValueError("meme has no created_at")
    modified_at = meme.get("modified_at")

    base = sum(_count(meme, field) * w for field, w in ENGAGEMENT_WEIGHTS.items())

    effective = modified_at or created_at
    days = max(0.0, (now - effective) / SECONDS_PER_DAY)
    decay = 1 / (1 + math.log(days + 1))
    if modified_at and modified_at != created_at:
        decay *= MODIFIED_FRESHNESS_BONUS

    score = base * decay
    if not math.isfinite(score):
        raise ValueError(f"hot score is not finite: {score}")
    return max(score, 0.0)


def hot_score_level(hot_score: float) -> str:
    """Bucket a hot score into a named level."""
    for threshold, level in HOT_LEVELS:
        if hot_score >= threshold:
            return level
    return "new"


def engagement_score(meme: dict[str, Any]) -> float:
    """Interactions per view as a percentage, capped at 100."""
    views = _count(meme, "views")
    if views == 0:
        return 0.0
    interactions = sum(
        _count(meme, f)
        for f in ("like_count", "dislike_count", "comment_count", "collection_count", "share_count")
    )
    return min(interactions / views * 100, 100.0)


def quality_score(meme: dict[str, Any]) -> int:
    """Share of positive interactions, 0-100; 50 when there are none."""
    positive = sum(
        _count(meme, f)
        for f in ("like_count", "comment_count", "collection_count", "share_count")
    )
    total = positive + _count(meme, "dislike_count")
    if total == 0:
        return 50
    return round(positive / total * 100)


def updated_content_score(meme: dict[str, Any], now: float | None = None) -> float:
    """Boost the hot score of recently modified memes.

    Recent edits earn a freshness multiplier, and older memes that were
    edited earn an additional age bonus.
    """
    now = time.time() if now is None else now
    hot = float(meme.get("hot_score") or 0.0)
    created_at = meme.get("created_at")
    modified_at = meme.get("modified_at")
    if not modified_at or modified_at == created_at:
        return hot

    hours_since_modified = (now - modified_at) / SECONDS_PER_HOUR
    if hours_since_modified <= 1:
        freshness = 2.0
    elif hours_since_modified <= 6:
        freshness = 1.5
    elif hours_since_modified <= 24:
        freshness = 1.3
    elif hours_since_modified <= 72:
        freshness = 1.1
    else:
        freshness = 1.0

    days_since_creation = (now - created_at) / SECONDS_PER_DAY
    if days_since_creation > 7:
        age_bonus = 1.4
    elif days_since_creation > 3:
        age_bonus = 1.2
    else:
        age_bonus = 1.0

    return hot * freshness * age_bonus
