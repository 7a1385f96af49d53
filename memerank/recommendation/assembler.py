"""Recommendation assembly with read-through caching.

Combines the popularity, recency, content-based, collaborative and social
scorers into one ranked, paginated response. Pages are cached under a key
derived from the request, and each scorer is isolated so one failure only
removes its contribution.
"""

import sqlite3
import time
from typing import Any, Callable

from memerank.api.cache import ScoreCache
from memerank.recommendation.collaborative import CollaborativeScorer
from memerank.recommendation.content_based import ContentBasedScorer
from memerank.recommendation.hot_score import hot_score_level
from memerank.recommendation.ranking import merge_candidates, paginate
from memerank.recommendation.social import SocialScorer
from memerank.recommendation.trending import (
    hot_candidates,
    latest_candidates,
    updated_candidates,
)
from memerank.recommendation.weights import activity_level, adjust_weights, is_cold_start
from memerank.utils import database
from memerank.utils.config import config, ttl_for
from memerank.utils.exceptions import ComputationError, UpstreamError, ValidationError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

ALGORITHMS = ("trending", "mixed", "content_based", "collaborative_filtering")
PERSONALISED = ("content_based", "collaborative_filtering")
SOCIAL_GRAPH_KEY = "social_graph:follows"

Scorer = Callable[["ScoringContext"], list[tuple[str, float]]]


class ScoringContext:
    """Inputs shared by every scorer during one assembly.

    Attributes:
        db_path: Path to the SQLite database.
        user_id: Requesting user, or None when anonymous.
        memes: Public memes after tag filtering.
        now: Reference unix time.
        min_results: Window-widening threshold for time-windowed sources.
        cache: Score cache for per-item scores, or None to compute uncached.
    """

    def __init__(
        self,
        db_path: str,
        user_id: str | None,
        memes: list[dict[str, Any]],
        now: float,
        min_results: int,
        cache: ScoreCache | None = None,
    ) -> None:
        self.db_path = db_path
        self.user_id = user_id
        self.memes = memes
        self.now = now
        self.min_results = min_results
        self.cache = cache
        self._user_interactions: list[dict[str, Any]] | None = None

    @property
    def user_interactions(self) -> list[dict[str, Any]]:
        if self._user_interactions is None:
            self._user_interactions = (
                database.get_user_interactions(self.db_path, self.user_id)
                if self.user_id
                else []
            )
        return self._user_interactions


def _hot(ctx: ScoringContext) -> list[tuple[str, float]]:
    return hot_candidates(ctx.memes, ctx.now, ctx.min_results)


def _latest(ctx: ScoringContext) -> list[tuple[str, float]]:
    return latest_candidates(ctx.memes, ctx.now, ctx.min_results)


def _updated(ctx: ScoringContext) -> list[tuple[str, float]]:
    return updated_candidates(ctx.memes, ctx.now, ctx.min_results)


def _content_based(ctx: ScoringContext) -> list[tuple[str, float]]:
    rec_cfg = config["recommendation"]
    scorer = ContentBasedScorer(
        hot_score_weight=rec_cfg["hot_score_weight"],
        min_score=rec_cfg["min_similarity"],
    )
    results = scorer.recommend(ctx.memes, ctx.user_interactions, ctx.now)
    return results or _hot(ctx)


def _collaborative(ctx: ScoringContext) -> list[tuple[str, float]]:
    rec_cfg = config["recommendation"]
    scorer = CollaborativeScorer(
        min_similarity=rec_cfg["min_similarity"],
        max_similar_users=rec_cfg["max_similar_users"],
        hot_score_weight=rec_cfg["hot_score_weight"],
    )
    hot_scores = {m["id"]: float(m.get("hot_score") or 0.0) for m in ctx.memes}
    results = scorer.recommend(
        ctx.user_id, database.get_all_interactions(ctx.db_path), hot_scores
    )
    return results or _hot(ctx)


def _social(ctx: ScoringContext) -> list[tuple[str, float]]:
    def load_follows() -> list[list[str]]:
        return [list(edge) for edge in database.get_all_follows(ctx.db_path)]

    if ctx.cache is None:
        follows = load_follows()
    else:
        follows = ctx.cache.get_or_set(SOCIAL_GRAPH_KEY, load_follows, ttl_for("social_graph"))
    scorer = SocialScorer(ctx.cache, ttl_for("social_score"))
    results = scorer.recommend(
        ctx.user_id,
        ctx.memes,
        database.get_all_interactions(ctx.db_path),
        [tuple(edge) for edge in follows],
    )
    return results or _hot(ctx)


DEFAULT_SCORERS: dict[str, Scorer] = {
    "hot": _hot,
    "latest": _latest,
    "updated": _updated,
    "content_based": _content_based,
    "collaborative_filtering": _collaborative,
    "social_collaborative_filtering": _social,
}


class RecommendationAssembler:
    """Assembles ranked recommendation pages.

    Attributes:
        db_path: Path to the SQLite database.
        cache: Score cache used for page read-through.
        scorers: Scorer callables keyed by component name.
        clock: Source of the reference time.
    """

    def __init__(
        self,
        db_path: str,
        cache: ScoreCache,
        scorers: dict[str, Scorer] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db_path = db_path
        self.cache = cache
        self.scorers = {**DEFAULT_SCORERS, **(scorers or {})}
        self.clock = clock

    def get_recommendations(
        self,
        algorithm: str,
        page: int = 1,
        limit: int = 20,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Return one page of ranked recommendations.

        Args:
            algorithm: One of ALGORITHMS.
            page: 1-based page number.
            limit: Page size.
            options: ``user_id``, ``tags`` and ``clear_cache``.

        Returns:
            Dict with recommendations, pagination and metadata.

        Raises:
            ValidationError: For bad paging, unknown algorithms, or a
                personalised algorithm requested without a user.
            ComputationError: If every scorer involved failed.
        """
        options = dict(options or {})
        clear_cache = bool(options.pop("clear_cache", False))
        user_id = options.get("user_id") or None
        tags = sorted(options.get("tags") or [])
        self._validate(algorithm, page, limit, user_id)

        key_options = {"user_id": user_id, "tags": tags}
        cache_key = ScoreCache.recommendation_key(algorithm, key_options, page, limit)

        if not clear_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Cache hit for %s", cache_key)
                cached["metadata"]["cached"] = True
                return cached

        result = self._compute(algorithm, page, limit, user_id, tags)
        if not result["metadata"]["failed_algorithms"]:
            self.cache.set(cache_key, result, ttl_for(algorithm))
        return result

    def _validate(self, algorithm: str, page: int, limit: int, user_id: str | None) -> None:
        if algorithm not in ALGORITHMS:
            raise ValidationError(
                f"Unknown algorithm: {algorithm}",
                details={"allowed": list(ALGORITHMS)},
            )
        if page < 1:
            raise ValidationError("page must be >= 1", details={"page": page})
        max_limit = config["recommendation"]["max_limit"]
        if limit < 1 or limit > max_limit:
            raise ValidationError(
                f"limit must be between 1 and {max_limit}", details={"limit": limit}
            )
        if algorithm in PERSONALISED and not user_id:
            raise ValidationError(f"user_id is required for {algorithm}")

    def _weights(self, algorithm: str, user_id: str | None, ctx: ScoringContext) -> dict[str, float]:
        if algorithm == "trending":
            return {"hot": 1.0}
        if algorithm in PERSONALISED:
            return {algorithm: 1.0}
        return adjust_weights(user_id, len(ctx.user_interactions))

    def _compute(
        self, algorithm: str, page: int, limit: int, user_id: str | None, tags: list[str]
    ) -> dict[str, Any]:
        now = self.clock()
        try:
            memes = database.list_memes(self.db_path, tags=tags or None)
        except sqlite3.Error as e:
            raise UpstreamError("database", str(e)) from e
        ctx = ScoringContext(
            self.db_path,
            user_id,
            memes,
            now,
            config["recommendation"]["min_candidates"],
            cache=self.cache,
        )
        weights = self._weights(algorithm, user_id, ctx)

        scored: dict[str, list[tuple[str, float]]] = {}
        failed: list[str] = []
        for name, weight in weights.items():
            if weight <= 0:
                continue
            try:
                scored[name] = self.scorers[name](ctx)
            except Exception as e:
                logger.warning("Scorer %s failed, omitting it: %s", name, e)
                failed.append(name)

        if failed and not scored:
            raise ComputationError(algorithm, f"all scorers failed: {', '.join(failed)}")

        ranked = merge_candidates(scored, weights)
        if algorithm == "trending":
            for candidate in ranked:
                candidate["recommendation_type"] = "trending"

        page_items, pagination = paginate(ranked, page, limit)
        by_id = {m["id"]: m for m in memes}
        recommendations = [self._decorate(c, by_id.get(c["id"], {})) for c in page_items]

        cold_start = is_cold_start(user_id, len(ctx.user_interactions)) if algorithm == "mixed" else None
        logger.info(
            "Computed %s recommendations: %d candidates, page %d/%d",
            algorithm,
            pagination["total"],
            page,
            pagination["totalPages"],
        )
        return {
            "recommendations": recommendations,
            "pagination": pagination,
            "metadata": {
                "algorithm": algorithm,
                "cached": False,
                "weights": weights,
                "failed_algorithms": failed,
                "cold_start": cold_start,
                "activity_level": activity_level(len(ctx.user_interactions)) if user_id else None,
                "applied_tags": tags,
                "generated_at": now,
            },
        }

    @staticmethod
    def _decorate(candidate: dict[str, Any], meme: dict[str, Any]) -> dict[str, Any]:
        hot = float(meme.get("hot_score") or 0.0)
        return {
            **candidate,
            "title": meme.get("title"),
            "author_id": meme.get("author_id"),
            "tags": meme.get("tags", []),
            "hot_score": hot,
            "hot_level": hot_score_level(hot),
            "created_at": meme.get("created_at"),
        }
