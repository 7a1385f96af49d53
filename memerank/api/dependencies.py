"""FastAPI dependency injection for shared resources.

Components are built once in the application lifespan and stored on
``app.state``; these accessors hand them to the route functions.
"""

from fastapi import Request

from memerank.queue.redis_queue import RedisJobQueue
from memerank.recommendation.assembler import RecommendationAssembler
from memerank.recommendation.invalidator import CacheInvalidator


def get_db_path(request: Request) -> str:
    return request.app.state.db_path


def get_assembler(request: Request) -> RecommendationAssembler:
    """Retrieve the recommendation assembler from app state.

    Args:
        request: The incoming FastAPI request.

    Returns:
        The shared RecommendationAssembler.
    """
    return request.app.state.assembler


def get_invalidator(request: Request) -> CacheInvalidator:
    return request.app.state.invalidator


def get_queue(request: Request) -> RedisJobQueue:
    """Retrieve the notification queue from app state.

    Args:
        request: The incoming FastAPI request.

    Returns:
        The shared RedisJobQueue.
    """
    return request.app.state.queue
