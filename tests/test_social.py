"""Tests for follow-graph social scoring."""

import fakeredis
import pytest

from memerank.api.cache import ScoreCache
from memerank.recommendation.social import (
    MAX_SOCIAL_SCORE,
    SocialGraph,
    SocialScorer,
    meme_social_score,
    strongest_actions,
)
from tests.conftest import NOW


@pytest.fixture
def graph() -> SocialGraph:
    """a and b follow each other; a -> c -> d -> e -> f is a chain."""
    return SocialGraph(
        [("a", "b"), ("b", "a"), ("a", "c"), ("c", "d"), ("d", "e"), ("e", "f")]
    )


class TestSocialGraph:
    @pytest.mark.parametrize(
        "target,relation",
        [
            ("b", "mutual_follow"),
            ("c", "direct_follow"),
            ("d", "second_degree"),
            ("e", "third_degree"),
            ("f", None),
            ("nobody", None),
        ],
    )
    def test_relation(self, graph: SocialGraph, target: str, relation: str | None) -> None:
        assert graph.relation("a", target) == relation

    def test_relation_is_directed(self, graph: SocialGraph) -> None:
        assert graph.relation("c", "a") is None

    def test_influence(self, graph: SocialGraph) -> None:
        # one follower, one followed, one mutual
        assert graph.influence("b") == pytest.approx(1.0)
        assert graph.influence("unknown") == 0.0

    def test_influence_capped(self) -> None:
        edges = [(f"fan{i}", "star") for i in range(500)]
        assert SocialGraph(edges).influence("star") == 100.0

    def test_self_follow_ignored(self) -> None:
        graph = SocialGraph([("a", "a")])
        assert graph.relation("a", "a") is None
        assert graph.influence("a") == 0.0


class TestStrongestActions:
    def test_author_publishes(self) -> None:
        assert strongest_actions("alice", []) == {"alice": "publish"}

    def test_keeps_highest_weight_per_actor(self) -> None:
        actions = strongest_actions(
            "alice",
            [("bob", "like"), ("bob", "view"), ("bob", "share"), ("alice", "like")],
        )
        assert actions == {"alice": "publish", "bob": "share"}

    def test_dislikes_ignored(self) -> None:
        assert strongest_actions(None, [("bob", "dislike")]) == {}


class TestMemeSocialScore:
    def test_direct_follow_share(self, graph: SocialGraph) -> None:
        # c: influence 0.3 (one follower) + 0.2 (one followed)
        expected = 4.0 * 1.0 * (1 + 0.5 / 100) + 1.0 + 0.5
        assert meme_social_score("a", {"c": "share"}, graph) == pytest.approx(expected)

    def test_mutual_follow_weighs_more(self, graph: SocialGraph) -> None:
        mutual = meme_social_score("a", {"b": "like"}, graph)
        second = meme_social_score("a", {"d": "like"}, graph)
        assert mutual > second > 0

    def test_strangers_and_viewer_ignored(self, graph: SocialGraph) -> None:
        assert meme_social_score("a", {"a": "publish", "f": "share"}, graph) == 0.0

    def test_capped(self) -> None:
        friends = [f"f{i}" for i in range(10)]
        edges = [("v", f) for f in friends] + [(f, "v") for f in friends]
        score = meme_social_score("v", {f: "like" for f in friends}, SocialGraph(edges))
        assert score == MAX_SOCIAL_SCORE


class TestSocialScorer:
    @pytest.fixture
    def memes(self) -> list[dict]:
        return [
            {"id": "m1", "author_id": "alice"},
            {"id": "m2", "author_id": "bob"},
            {"id": "m3", "author_id": "carol"},
            {"id": "m4", "author_id": "alice"},
        ]

    @pytest.fixture
    def interactions(self) -> list[tuple[str, str, str, float]]:
        return [
            ("u1", "m4", "like", NOW),
            ("bob", "m3", "share", NOW),
        ]

    def test_ranks_circle_activity(self, memes: list, interactions: list) -> None:
        follows = [("u1", "alice"), ("u1", "bob")]
        results = SocialScorer().recommend("u1", memes, interactions, follows)
        ids = [meme_id for meme_id, _ in results]
        # m4 already seen; m3 reached through bob's share
        assert ids == ["m1", "m2", "m3"]
        assert all(score > 0 for _, score in results)

    def test_nobody_followed(self, memes: list, interactions: list) -> None:
        assert SocialScorer().recommend("u1", memes, interactions, [("bob", "u1")]) == []

    def test_limit(self, memes: list, interactions: list) -> None:
        follows = [("u1", "alice"), ("u1", "bob")]
        assert len(SocialScorer().recommend("u1", memes, interactions, follows, n=1)) == 1

    def test_scores_cached_per_viewer(
        self, memes: list, interactions: list, cache: ScoreCache, redis_client: fakeredis.FakeRedis
    ) -> None:
        scorer = SocialScorer(cache, ttl=120)
        scorer.recommend("u1", memes, interactions, [("u1", "alice")])

        key = ScoreCache.social_score_key("m1", "u1")
        assert cache.get(key) > 0
        assert 0 < redis_client.ttl(key) <= 120
        assert not redis_client.exists(ScoreCache.social_score_key("m4", "u1"))

    def test_cached_scores_reused(
        self, memes: list, interactions: list, cache: ScoreCache
    ) -> None:
        cache.set(ScoreCache.social_score_key("m3", "u1"), 15.0)
        results = dict(SocialScorer(cache).recommend("u1", memes, interactions, [("u1", "alice")]))
        assert results["m3"] == 15.0
