"""Popularity and recency candidate sources.

Each source filters the public catalogue by a time window and widens the
window once when it yields fewer than half of the wanted results.
"""

import math
from typing import Any

from memerank.recommendation.hot_score import (
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    updated_content_score,
)
from memerank.utils.config import config
from memerank.utils.logger import get_logger

logger = get_logger(__name__)


def _windowed(
    memes: list[dict[str, Any]],
    field: str,
    now: float,
    window: float,
    extended_window: float,
    min_results: int,
) -> list[dict[str, Any]]:
    in_window = [m for m in memes if m.get(field) and m[field] >= now - window]
    if len(in_window) < math.ceil(min_results * 0.5):
        logger.debug(
            "Only %d memes within %.0fs on %s, widening window", len(in_window), window, field
        )
        in_window = [
            m for m in memes if m.get(field) and m[field] >= now - extended_window
        ]
    return in_window


def hot_candidates(
    memes: list[dict[str, Any]], now: float, min_results: int = 0
) -> list[tuple[str, float]]:
    """Memes from the hot window ranked by stored hot score.

    Args:
        memes: Public memes to draw from.
        now: Reference unix time.
        min_results: Widen the window when fewer than half of this are found.

    Returns:
        (meme_id, hot_score) pairs, highest first.
    """
    windows = config["recommendation"]["windows"]
    selected = _windowed(
        memes,
        "created_at",
        now,
        windows["hot_days"] * SECONDS_PER_DAY,
        windows["hot_extended_days"] * SECONDS_PER_DAY,
        min_results,
    )
    ranked = [(m["id"], float(m.get("hot_score") or 0.0)) for m in selected]
    return sorted(ranked, key=lambda x: (-x[1], x[0]))


def latest_candidates(
    memes: list[dict[str, Any]], now: float, min_results: int = 0
) -> list[tuple[str, float]]:
    """Recently created memes scored by inverse age in seconds."""
    windows = config["recommendation"]["windows"]
    selected = _windowed(
        memes,
        "created_at",
        now,
        windows["latest_hours"] * SECONDS_PER_HOUR,
        windows["latest_extended_hours"] * SECONDS_PER_HOUR,
        min_results,
    )
    ranked = [(m["id"], 1.0 / max(now - m["created_at"], 1.0)) for m in selected]
    return sorted(ranked, key=lambda x: (-x[1], x[0]))


def updated_candidates(
    memes: list[dict[str, Any]], now: float, min_results: int = 0
) -> list[tuple[str, float]]:
    """Recently edited memes scored by ``updated_content_score``."""
    windows = config["recommendation"]["windows"]
    selected = _windowed(
        memes,
        "modified_at",
        now,
        windows["updated_days"] * SECONDS_PER_DAY,
        windows["updated_extended_days"] * SECONDS_PER_DAY,
        min_results,
    )
    ranked = [(m["id"], updated_content_score(m, now)) for m in selected]
    return sorted(ranked, key=lambda x: (-x[1], x[0]))
