"""Merging, ordering and pagination of scored candidates.

Each scorer yields ``(meme_id, score)`` pairs. Merging weights every
component score into a single ``total_score``; ordering is by total score
descending with the meme id as tie-break so pages are reproducible.
"""

import math
from typing import Any


def merge_candidates(
    scored: dict[str, list[tuple[str, float]]],
    weights: dict[str, float],
) -> list[dict[str, Any]]:
    """Combine per-algorithm candidate lists into one ranked list.

    ``total_score`` is the weighted sum of the component scores. The
    ``recommendation_type`` of a merged candidate is the component with the
    largest weighted contribution.

    Args:
        scored: Algorithm name to list of (meme_id, score) pairs.
        weights: Algorithm name to weight; missing algorithms weigh 0.

    Returns:
        Candidate dicts with id, total_score, recommendation_type and
        component_scores, sorted by ``sort_candidates``.
    """
    merged: dict[str, dict[str, Any]] = {}
    for algorithm, candidates in scored.items():
        weight = weights.get(algorithm, 0.0)
        for meme_id, score in candidates:
            entry = merged.setdefault(
                meme_id,
                {"id": meme_id, "total_score": 0.0, "component_scores": {}},
            )
            entry["component_scores"][algorithm] = float(score)
            entry["total_score"] += float(score) * weight

    for entry in merged.values():
        entry["recommendation_type"] = max(
            entry["component_scores"].items(),
            key=lambda item: (item[1] * weights.get(item[0], 0.0), item[0]),
        )[0]

    return sort_candidates(list(merged.values()))


def sort_candidates(candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Sort by total_score descending, then id ascending."""
    return sorted(candidates, key=lambda c: (-c["total_score"], str(c["id"])))


def build_pagination(page: int, limit: int, total: int) -> dict[str, Any]:
    """Compute pagination metadata for a page of a ranked list.

    Args:
        page: 1-based page number.
        limit: Page size.
        total: Number of items in the full ranked list.

    Returns:
        Dict with page, limit, total, totalPages and hasMore.
    """
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasMore": page < total_pages,
    }


def paginate(
    items: list[dict[str, Any]], page: int, limit: int
) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    """Slice one page out of a ranked list.

    Returns:
        The page items and its pagination metadata.
    """
    start = (page - 1) * limit
    return items[start : start + limit], build_pagination(page, limit, len(items))
