"""User-based collaborative filtering over implicit interactions.

Interactions are weighted by type and pivoted into a user x meme matrix.
Users are compared with Pearson correlation over co-interacted memes, and
candidates are scored by the similarity-weighted mean of similar users'
interaction scores.
"""

import numpy as np
import pandas as pd

from memerank.utils.logger import get_logger

logger = get_logger(__name__)

INTERACTION_WEIGHTS = {
    "like": 1.0,
    "dislike": -0.5,
    "comment": 2.0,
    "share": 3.0,
    "collection": 1.5,
    "view": 0.1,
}


def build_interaction_matrix(
    interactions: list[tuple[str, str, str, float]],
) -> pd.DataFrame:
    """Pivot raw interactions into a weighted user x meme matrix.

    Args:
        interactions: (user_id, meme_id, type, created_at) tuples.

    Returns:
        DataFrame indexed by user_id with one column per meme_id; cells a
        user never touched are NaN.
    """
    if not interactions:
        return pd.DataFrame()

    df = pd.DataFrame(interactions, columns=["user_id", "meme_id", "type", "created_at"])
    df["weight"] = df["type"].map(INTERACTION_WEIGHTS).fillna(0.0)
    return df.pivot_table(
        index="user_id", columns="meme_id", values="weight", aggfunc="sum"
    )


def pearson_similarity(a: pd.Series, b: pd.Series) -> float:
    """Pearson correlation over memes both users interacted with.

    Returns:
        Correlation clamped to [0, 1]; 0 with no overlap or zero variance.
    """
    with np.errstate(divide="ignore", invalid="ignore"):
        similarity = a.corr(b)
    if pd.isna(similarity):
        return 0.0
    return max(0.0, float(similarity))


def find_similar_users(
    user_id: str,
    matrix: pd.DataFrame,
    min_similarity: float = 0.1,
    max_users: int = 50,
) -> list[tuple[str, float]]:
    """Rank other users by similarity to ``user_id``.

    Returns:
        (user_id, similarity) pairs at or above ``min_similarity``, highest
        first, at most ``max_users`` long.
    """
    if matrix.empty or user_id not in matrix.index:
        return []

    target = matrix.loc[user_id]
    similar = []
    for other_id, row in matrix.iterrows():
        if other_id == user_id:
            continue
        similarity = pearson_similarity(target, row)
        if similarity >= min_similarity:
            similar.append((other_id, similarity))

    similar.sort(key=lambda x: (-x[1], x[0]))
    return similar[:max_users]


class CollaborativeScorer:
    """Similarity-weighted user-based collaborative filtering.

    Attributes:
        min_similarity: Minimum Pearson similarity for a neighbour.
        max_similar_users: Neighbourhood size cap.
        hot_score_weight: Share of the final score taken by the hot score.
    """

    def __init__(
        self,
        min_similarity: float = 0.1,
        max_similar_users: int = 50,
        hot_score_weight: float = 0.3,
    ) -> None:
        self.min_similarity = min_similarity
        self.max_similar_users = max_similar_users
        self.hot_score_weight = hot_score_weight

    def recommend(
        self,
        user_id: str,
        interactions: list[tuple[str, str, str, float]],
        hot_scores: dict[str, float],
        n: int | None = None,
    ) -> list[tuple[str, float]]:
        """Recommend memes liked by similar users that ``user_id`` has not seen.

        Args:
            user_id: The target user.
            interactions: Every (user_id, meme_id, type, created_at) tuple.
            hot_scores: Hot score per candidate meme; memes absent from this
                map are not recommended.
            n: Maximum number of results; None for all.

        Returns:
            (meme_id, score) pairs, highest first. Empty when the user has
            no history or no similar users.
        """
        matrix = build_interaction_matrix(interactions)
        similar_users = find_similar_users(
            user_id, matrix, self.min_similarity, self.max_similar_users
        )
        if not similar_users:
            logger.debug("No similar users found for %s", user_id)
            return []

        seen = set(matrix.loc[user_id].dropna().index)
        totals: dict[str, float] = {}
        similarity_sums: dict[str, float] = {}
        for other_id, similarity in similar_users:
            for meme_id, score in matrix.loc[other_id].dropna().items():
                if meme_id in seen or meme_id not in hot_scores:
                    continue
                totals[meme_id] = totals.get(meme_id, 0.0) + float(score) * similarity
                similarity_sums[meme_id] = similarity_sums.get(meme_id, 0.0) + similarity

        scored = []
        for meme_id, total in totals.items():
            score = total / similarity_sums[meme_id]
            hot = hot_scores[meme_id]
            if hot > 0:
                normalized_hot = min(hot / 1000, 1.0)
                score = score * (1 - self.hot_score_weight) + normalized_hot * self.hot_score_weight
            scored.append((meme_id, score))

        scored.sort(key=lambda x: (-x[1], x[0]))
        logger.debug(
            "Collaborative filtering for %s: %d neighbours, %d candidates",
            user_id,
            len(similar_users),
            len(scored),
        )
        return scored if n is None else scored[:n]
