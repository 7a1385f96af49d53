"""Algorithm weights for mixed recommendations.

Anonymous and cold-start users lean almost entirely on popularity; warmer
users shift weight toward personalised algorithms as activity grows.
"""

import math

from memerank.utils.config import config

# (min activity score, level, weights) from most to least active.
ACTIVITY_WEIGHTS = (
    (50, "very_active", {
        "content_based": 0.28, "collaborative_filtering": 0.18,
        "social_collaborative_filtering": 0.18,
        "hot": 0.13, "latest": 0.13, "updated": 0.10,
    }),
    (30, "active", {
        "content_based": 0.22, "collaborative_filtering": 0.18,
        "social_collaborative_filtering": 0.13,
        "hot": 0.18, "latest": 0.17, "updated": 0.12,
    }),
    (15, "moderate", {
        "content_based": 0.17, "collaborative_filtering": 0.13,
        "social_collaborative_filtering": 0.08,
        "hot": 0.22, "latest": 0.25, "updated": 0.15,
    }),
)

LOW_ACTIVITY_WEIGHTS = {
    "hot": 0.35, "latest": 0.25, "updated": 0.20,
    "content_based": 0.15, "collaborative_filtering": 0.03,
    "social_collaborative_filtering": 0.02,
}


def activity_score(interaction_count: int) -> float:
    """Log-scaled user activity: ``10 * log10(count + 1)``."""
    return math.log10(interaction_count + 1) * 10


def activity_level(interaction_count: int) -> str:
    """Name the activity bucket for an interaction count."""
    score = activity_score(interaction_count)
    for threshold, level, _ in ACTIVITY_WEIGHTS:
        if score >= threshold:
            return level
    return "low" if score >= 5 else "inactive"


def is_cold_start(user_id: str | None, interaction_count: int) -> bool:
    """Anonymous users and users below the interaction threshold are cold."""
    min_interactions = config["recommendation"]["cold_start"]["min_interactions"]
    return user_id is None or interaction_count < min_interactions


def adjust_weights(user_id: str | None, interaction_count: int) -> dict[str, float]:
    """Select mixed-recommendation weights for a user.

    Args:
        user_id: The requesting user, or None when anonymous.
        interaction_count: Number of interactions the user has made.

    Returns:
        Algorithm name to weight. Cold-start weights zero out the
        personalised algorithms.
    """
    if is_cold_start(user_id, interaction_count):
        cold = config["recommendation"]["cold_start"]
        return {
            "hot": cold["hot_weight"],
            "latest": cold["latest_weight"],
            "updated": cold["updated_weight"],
            "content_based": 0.0,
            "collaborative_filtering": 0.0,
            "social_collaborative_filtering": 0.0,
        }

    score = activity_score(interaction_count)
    for threshold, _, weights in ACTIVITY_WEIGHTS:
        if score >= threshold:
            return dict(weights)
    if score >= 5:
        return dict(config["recommendation"]["weights"])
    return dict(LOW_ACTIVITY_WEIGHTS)
