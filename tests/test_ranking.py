"""Tests for candidate merging, ordering and pagination."""

import random

import pytest

from memerank.recommendation.ranking import (
    build_pagination,
    merge_candidates,
    paginate,
    sort_candidates,
)


class TestMergeCandidates:
    """Tests for merge_candidates."""

    def test_weighted_sum(self) -> None:
        scored = {"hot": [("a", 10.0), ("b", 5.0)], "latest": [("b", 20.0)]}
        merged = merge_candidates(scored, {"hot": 0.5, "latest": 0.25})
        by_id = {c["id"]: c for c in merged}
        assert by_id["a"]["total_score"] == pytest.approx(5.0)
        assert by_id["b"]["total_score"] == pytest.approx(2.5 + 5.0)
        assert by_id["b"]["component_scores"] == {"hot": 5.0, "latest": 20.0}

    def test_ids_unique(self) -> None:
        scored = {"hot": [("a", 1.0)], "latest": [("a", 2.0)], "updated": [("a", 3.0)]}
        merged = merge_candidates(scored, {"hot": 1, "latest": 1, "updated": 1})
        assert [c["id"] for c in merged] == ["a"]

    def test_recommendation_type_is_largest_contribution(self) -> None:
        scored = {"hot": [("a", 10.0)], "latest": [("a", 30.0)]}
        merged = merge_candidates(scored, {"hot": 0.8, "latest": 0.1})
        assert merged[0]["recommendation_type"] == "hot"

    def test_empty(self) -> None:
        assert merge_candidates({}, {"hot": 1.0}) == []


class TestSortCandidates:
    def test_descending_with_id_tiebreak(self) -> None:
        candidates = [
            {"id": "c", "total_score": 1.0},
            {"id": "a", "total_score": 1.0},
            {"id": "b", "total_score": 2.0},
        ]
        assert [c["id"] for c in sort_candidates(candidates)] == ["b", "a", "c"]

    def test_input_order_does_not_matter(self) -> None:
        candidates = [{"id": f"m{i}", "total_score": float(i % 4)} for i in range(20)]
        shuffled = candidates[:]
        random.Random(7).shuffle(shuffled)
        assert sort_candidates(candidates) == sort_candidates(shuffled)


class TestPagination:
    """Tests for build_pagination and paginate."""

    def test_empty_result(self) -> None:
        assert build_pagination(1, 5, 0) == {
            "page": 1, "limit": 5, "total": 0, "totalPages": 0, "hasMore": False,
        }

    @pytest.mark.parametrize("total,limit,pages", [(1, 5, 1), (5, 5, 1), (6, 5, 2), (101, 20, 6)])
    def test_total_pages_is_ceiling(self, total: int, limit: int, pages: int) -> None:
        assert build_pagination(1, limit, total)["totalPages"] == pages

    def test_has_more_only_before_last_page(self) -> None:
        assert build_pagination(1, 5, 12)["hasMore"] is True
        assert build_pagination(2, 5, 12)["hasMore"] is True
        assert build_pagination(3, 5, 12)["hasMore"] is False
        assert build_pagination(4, 5, 12)["hasMore"] is False

    def test_pages_partition_the_list(self) -> None:
        """Walking every page yields each item exactly once, in order."""
        items = [{"id": f"m{i:02d}"} for i in range(23)]
        seen = []
        page = 1
        while True:
            chunk, meta = paginate(items, page, 5)
            seen.extend(chunk)
            if not meta["hasMore"]:
                break
            page += 1
        assert seen == items
        assert page == 5

    def test_page_beyond_end_is_empty(self) -> None:
        chunk, meta = paginate([{"id": "a"}], 3, 5)
        assert chunk == []
        assert meta["total"] == 1
