"""Social-graph scoring over the follow graph.

A meme earns social score for a viewer when people close to them in the
follow graph published or interacted with it. Each contribution is the
action's weight scaled by the social distance to the actor and by the
actor's influence. Per-meme totals are capped so a single widely shared
post cannot dominate the mixed ranking.
"""

from collections import defaultdict
from typing import Any, Iterable

from memerank.api.cache import ScoreCache
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

SOCIAL_ACTION_WEIGHTS = {
    "publish": 5.0,
    "share": 4.0,
    "like": 3.0,
    "comment": 3.0,
    "collection": 2.0,
    "view": 1.0,
}

DISTANCE_WEIGHTS = {
    "mutual_follow": 1.5,
    "direct_follow": 1.0,
    "second_degree": 0.6,
    "third_degree": 0.3,
}

FOLLOWER_WEIGHT = 0.3
FOLLOWING_WEIGHT = 0.2
MUTUAL_WEIGHT = 0.5
MAX_INFLUENCE = 100.0
MAX_SOCIAL_SCORE = 20.0


class SocialGraph:
    """Directed follow graph with derived follower and mutual sets.

    Attributes:
        following: User id to the ids that user follows.
        followers: User id to the ids following that user.
    """

    def __init__(self, edges: Iterable[tuple[str, str]] = ()) -> None:
        self.following: dict[str, set[str]] = defaultdict(set)
        self.followers: dict[str, set[str]] = defaultdict(set)
        for follower_id, followed_id in edges:
            if follower_id == followed_id:
                continue
            self.following[follower_id].add(followed_id)
            self.followers[followed_id].add(follower_id)

    def mutual(self, user_id: str) -> set[str]:
        return {
            other
            for other in self.following.get(user_id, ())
            if user_id in self.following.get(other, ())
        }

    def relation(self, user_id: str, target_id: str) -> str | None:
        """Classify how far ``target_id`` is from ``user_id`` along follow edges.

        Returns:
            A key of DISTANCE_WEIGHTS, or None beyond three hops.
        """
        direct = self.following.get(user_id, set())
        if target_id in direct:
            if user_id in self.following.get(target_id, ()):
                return "mutual_follow"
            return "direct_follow"

        second: set[str] = set()
        for followed_id in direct:
            second |= self.following.get(followed_id, set())
        if target_id in second:
            return "second_degree"

        for followed_id in second:
            if target_id in self.following.get(followed_id, ()):
                return "third_degree"
        return None

    def influence(self, user_id: str) -> float:
        """Weighted follower, following and mutual counts, capped at MAX_INFLUENCE."""
        score = (
            len(self.followers.get(user_id, ())) * FOLLOWER_WEIGHT
            + len(self.following.get(user_id, ())) * FOLLOWING_WEIGHT
            + len(self.mutual(user_id)) * MUTUAL_WEIGHT
        )
        return min(score, MAX_INFLUENCE)


def strongest_actions(
    author_id: str | None, interactions: Iterable[tuple[str, str]]
) -> dict[str, str]:
    """Reduce a meme's interactions to the highest-weighted action per actor.

    Args:
        author_id: The meme's author, credited with ``publish``.
        interactions: (user_id, type) pairs on the meme. Types without a
            social weight, such as dislikes, are ignored.

    Returns:
        Actor id to action name.
    """
    actions: dict[str, str] = {}
    if author_id:
        actions[author_id] = "publish"
    for actor_id, kind in interactions:
        weight = SOCIAL_ACTION_WEIGHTS.get(kind)
        if weight is None:
            continue
        current = actions.get(actor_id)
        if current is None or weight > SOCIAL_ACTION_WEIGHTS[current]:
            actions[actor_id] = kind
    return actions


def meme_social_score(user_id: str, actions: dict[str, str], graph: SocialGraph) -> float:
    """Score one meme for a viewer from the actions of their social circle.

    Each actor within three hops adds ``action weight x distance weight x
    (1 + influence / 100)``, plus the distance weight and the raw influence.
    The viewer's own actions never count.

    Returns:
        The total, capped at MAX_SOCIAL_SCORE.
    """
    interaction_total = 0.0
    distance_total = 0.0
    influence_total = 0.0
    for actor_id, action in actions.items():
        if actor_id == user_id:
            continue
        relation = graph.relation(user_id, actor_id)
        if relation is None:
            continue
        distance_weight = DISTANCE_WEIGHTS[relation]
        influence = graph.influence(actor_id)
        interaction_total += (
            SOCIAL_ACTION_WEIGHTS[action] * distance_weight * (1 + influence / MAX_INFLUENCE)
        )
        distance_total += distance_weight
        influence_total += influence
    return min(interaction_total + distance_total + influence_total, MAX_SOCIAL_SCORE)


class SocialScorer:
    """Ranks memes by the viewer's social score.

    Attributes:
        cache: Optional cache for per-viewer meme scores.
        ttl: TTL of cached scores; None uses the cache default.
    """

    def __init__(self, cache: ScoreCache | None = None, ttl: int | None = None) -> None:
        self.cache = cache
        self.ttl = ttl

    def recommend(
        self,
        user_id: str,
        memes: list[dict[str, Any]],
        interactions: list[tuple[str, str, str, float]],
        follows: Iterable[tuple[str, str]],
        n: int | None = None,
    ) -> list[tuple[str, float]]:
        """Recommend memes the viewer's social circle published or engaged with.

        Args:
            user_id: The viewer.
            memes: Candidate memes.
            interactions: Every (user_id, meme_id, type, created_at) tuple.
            follows: Every (follower_id, followed_id) edge.
            n: Maximum number of results; None for all.

        Returns:
            (meme_id, score) pairs with a positive score, highest first.
            Memes the viewer already interacted with are excluded. Empty
            when the viewer follows nobody.
        """
        graph = SocialGraph(follows)
        if not graph.following.get(user_id):
            logger.debug("User %s follows nobody, no social candidates", user_id)
            return []

        seen: set[str] = set()
        by_meme: dict[str, list[tuple[str, str]]] = defaultdict(list)
        for actor_id, meme_id, kind, _ in interactions:
            if actor_id == user_id:
                seen.add(meme_id)
            else:
                by_meme[meme_id].append((actor_id, kind))

        scored = []
        for meme in memes:
            if meme["id"] in seen:
                continue
            score = self._score(user_id, meme, by_meme.get(meme["id"], []), graph)
            if score > 0:
                scored.append((meme["id"], score))

        scored.sort(key=lambda x: (-x[1], x[0]))
        logger.debug("Social scoring for %s: %d candidates", user_id, len(scored))
        return scored if n is None else scored[:n]

    def _score(
        self,
        user_id: str,
        meme: dict[str, Any],
        interactions: list[tuple[str, str]],
        graph: SocialGraph,
    ) -> float:
        def compute() -> float:
            actions = strongest_actions(meme.get("author_id"), interactions)
            return meme_social_score(user_id, actions, graph)

        if self.cache is None:
            return compute()
        key = ScoreCache.social_score_key(meme["id"], user_id)
        return float(self.cache.get_or_set(key, compute, self.ttl))
