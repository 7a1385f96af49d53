"""Recommendation API endpoints.

Serves ranked, paginated meme recommendations. Computation runs in the
threadpool under a request deadline so a slow cache or scorer returns a
timeout instead of holding the connection.
"""

import asyncio

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from memerank.api.dependencies import get_assembler
from memerank.api.schemas import RecommendationsResponse
from memerank.recommendation.assembler import RecommendationAssembler
from memerank.utils.config import config
from memerank.utils.exceptions import RequestTimeoutError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])


def _parse_tags(tags: str | None) -> list[str]:
    if not tags:
        return []
    return sorted({t.strip().lower() for t in tags.split(",") if t.strip()})


@router.get("", response_model=RecommendationsResponse)
async def get_recommendations(
    algorithm: str = Query(default="mixed"),
    page: int = Query(default=1),
    limit: int = Query(default=config["recommendation"]["default_limit"]),
    clear_cache: bool = Query(default=False),
    user_id: str | None = Query(default=None),
    tags: str | None = Query(default=None, description="Comma-separated tag filter"),
    assembler: RecommendationAssembler = Depends(get_assembler),
) -> dict:
    """Get one page of recommendations.

    Args:
        algorithm: trending, mixed, content_based or collaborative_filtering.
        page: 1-based page number.
        limit: Page size.
        clear_cache: Recompute and overwrite the cached page.
        user_id: Requesting user; required by the personalised algorithms.
        tags: Comma-separated tags; memes must carry at least one.
        assembler: Injected recommendation assembler.

    Returns:
        ``{success, data: {recommendations, pagination, metadata}}``.

    Raises:
        RequestTimeoutError: If the result is not ready before the deadline.
    """
    options = {"user_id": user_id, "tags": _parse_tags(tags), "clear_cache": clear_cache}
    timeout = config["recommendation"]["request_timeout_seconds"]
    try:
        result = await asyncio.wait_for(
            run_in_threadpool(assembler.get_recommendations, algorithm, page, limit, options),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error("Recommendation request timed out after %ss (%s)", timeout, algorithm)
        raise RequestTimeoutError(timeout)

    return {"success": True, "data": result}
