"""Content-based recommendations from meme tags.

Builds a tag preference map and a TF-IDF user profile from a user's
interaction history, then scores unseen memes by preference match and
cosine similarity, blended with their hot score.
"""

import math
from typing import Any

import numpy as np
from scipy.sparse import spmatrix
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from memerank.utils.logger import get_logger

logger = get_logger(__name__)

PREFERENCE_WEIGHTS = {
    "like": 1.0,
    "comment": 2.0,
    "share": 3.0,
    "collection": 1.5,
    "view": 0.1,
}

SECONDS_PER_DAY = 86400.0


def _tag_analyzer(tags: list[str]) -> list[str]:
    return [t.lower() for t in tags]


def user_tag_preferences(
    interactions: list[dict[str, Any]],
    now: float,
    decay_factor: float = 0.95,
) -> dict[str, float]:
    """Aggregate interaction weights per tag with daily exponential decay.

    Dislikes carry no weight here. The result is normalised so the
    strongest tag scores 1.0.

    Args:
        interactions: Dicts with type, created_at and tags.
        now: Reference unix time.
        decay_factor: Multiplier applied per day of interaction age.

    Returns:
        Mapping of lower-cased tag to preference in [0, 1].
    """
    raw: dict[str, float] = {}
    for interaction in interactions:
        weight = PREFERENCE_WEIGHTS.get(interaction["type"])
        if not weight:
            continue
        age_days = max(0.0, (now - interaction["created_at"]) / SECONDS_PER_DAY)
        decayed = weight * math.pow(decay_factor, age_days)
        for tag in _tag_analyzer(interaction["tags"]):
            raw[tag] = raw.get(tag, 0.0) + decayed

    if not raw:
        return {}
    top = max(raw.values())
    return {tag: value / top for tag, value in raw.items()}


def preference_match(meme_tags: list[str], preferences: dict[str, float]) -> float:
    """Blend the share of matching tags with their mean preference.

    Returns:
        ``0.4 * match_ratio + 0.6 * mean_preference``, 0 when nothing matches.
    """
    tags = _tag_analyzer(meme_tags)
    if not tags or not preferences:
        return 0.0
    matched = [preferences[t] for t in tags if t in preferences]
    if not matched:
        return 0.0
    return (len(matched) / len(tags)) * 0.4 + (sum(matched) / len(matched)) * 0.6


class ContentBasedScorer:
    """Tag-based content recommender.

    Attributes:
        hot_score_weight: Share of the final score taken by the hot score.
        min_score: Candidates scoring below this are dropped.
        vectorizer: TF-IDF vectorizer fitted on the catalogue tags.
        item_features: TF-IDF matrix (memes x tags).
        item_ids: Meme ids matching the matrix rows.
    """

    def __init__(self, hot_score_weight: float = 0.3, min_score: float = 0.1) -> None:
        self.hot_score_weight = hot_score_weight
        self.min_score = min_score
        self.vectorizer: TfidfVectorizer | None = None
        self.item_features: spmatrix | None = None
        self.item_ids: list[str] = []
        self.item_id_to_idx: dict[str, int] = {}

    def fit(self, memes: list[dict[str, Any]]) -> "ContentBasedScorer":
        """Fit TF-IDF features over the catalogue's tag lists.

        Args:
            memes: Meme dicts with id and tags.

        Returns:
            Self, for method chaining.
        """
        tagged = [m for m in memes if m.get("tags")]
        self.item_ids = [m["id"] for m in tagged]
        self.item_id_to_idx = {meme_id: i for i, meme_id in enumerate(self.item_ids)}
        if not tagged:
            self.vectorizer = None
            self.item_features = None
            return self

        self.vectorizer = TfidfVectorizer(analyzer=_tag_analyzer)
        self.item_features = self.vectorizer.fit_transform([m["tags"] for m in tagged])
        logger.debug(
            "Fitted tag features: %d memes x %d tags",
            self.item_features.shape[0],
            self.item_features.shape[1],
        )
        return self

    def build_user_profile(self, preferences: dict[str, float]) -> np.ndarray | None:
        """Project the tag preference map into TF-IDF feature space."""
        if self.vectorizer is None or not preferences:
            return None
        vocabulary = self.vectorizer.vocabulary_
        profile = np.zeros(len(vocabulary))
        for tag, weight in preferences.items():
            idx = vocabulary.get(tag)
            if idx is not None:
                profile[idx] = weight
        if not profile.any():
            return None
        return profile

    def recommend(
        self,
        memes: list[dict[str, Any]],
        interactions: list[dict[str, Any]],
        now: float,
        n: int | None = None,
    ) -> list[tuple[str, float]]:
        """Score unseen memes for a user.

        Args:
            memes: Candidate public memes.
            interactions: The user's interactions (type, created_at, tags,
                meme_id).
            now: Reference unix time.
            n: Maximum number of results; None for all.

        Returns:
            (meme_id, score) pairs, highest first. Empty when the user has no
            usable preferences.
        """
        preferences = user_tag_preferences(interactions, now)
        if not preferences:
            return []

        self.fit(memes)
        profile = self.build_user_profile(preferences)
        if profile is not None:
            similarities = cosine_similarity(profile.reshape(1, -1), self.item_features)[0]
        else:
            similarities = np.zeros(len(self.item_ids))

        seen = {i["meme_id"] for i in interactions}
        scored = []
        for meme in memes:
            if meme["id"] in seen:
                continue
            idx = self.item_id_to_idx.get(meme["id"])
            similarity = float(similarities[idx]) if idx is not None else 0.0
            score = preference_match(meme.get("tags", []), preferences) * 0.6 + similarity * 0.4

            hot = float(meme.get("hot_score") or 0.0)
            if hot > 0:
                normalized_hot = min(hot / 1000, 1.0)
                score = score * (1 - self.hot_score_weight) + normalized_hot * self.hot_score_weight

            if score >= self.min_score:
                scored.append((meme["id"], score))

        scored.sort(key=lambda x: (-x[1], x[0]))
        return scored if n is None else scored[:n]
