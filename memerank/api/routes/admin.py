"""Administrative cache endpoints."""

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from memerank.api.dependencies import get_invalidator
from memerank.api.schemas import CacheClearResponse
from memerank.recommendation.invalidator import (
    RECOMMENDATION_CACHE_PATTERNS,
    CacheInvalidator,
)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/cache/clear", response_model=CacheClearResponse)
async def clear_cache(
    invalidator: CacheInvalidator = Depends(get_invalidator),
) -> CacheClearResponse:
    """Delete every recommendation cache namespace.

    ``success`` is false when any pattern failed; the remaining patterns
    are still cleared.
    """
    report = await run_in_threadpool(invalidator.invalidate_all, RECOMMENDATION_CACHE_PATTERNS)
    return CacheClearResponse(success=report.ok, **report.to_dict())
