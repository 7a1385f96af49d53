"""Follow-graph API endpoints.

A new follow edge changes every social score near it, so the social
namespaces are dropped and the followed user is notified.
"""

import sqlite3
import time

from fastapi import APIRouter, Depends

from memerank.api.dependencies import get_db_path, get_invalidator, get_queue
from memerank.api.schemas import FollowRequest, FollowResponse
from memerank.queue.notifications import add_follow_notification
from memerank.queue.redis_queue import RedisJobQueue
from memerank.recommendation.invalidator import CacheInvalidator
from memerank.utils import database
from memerank.utils.exceptions import UpstreamError, ValidationError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/follows", tags=["follows"])


@router.post("", response_model=FollowResponse)
def follow_user(
    body: FollowRequest,
    db_path: str = Depends(get_db_path),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    queue: RedisJobQueue = Depends(get_queue),
) -> FollowResponse:
    """Record that one user follows another.

    Raises:
        ValidationError: If a user tries to follow themselves.
        UpstreamError: If the database cannot be written.
    """
    if body.follower_id == body.followed_id:
        raise ValidationError("users cannot follow themselves")
    try:
        created = database.insert_follow(db_path, body.follower_id, body.followed_id, time.time())
    except sqlite3.Error as e:
        raise UpstreamError("database", str(e)) from e

    invalidated = 0
    job_id = None
    if created:
        invalidated = invalidator.invalidate_for_event("follow").total_deleted
        try:
            job_id = add_follow_notification(queue, body.followed_id, body.follower_id).id
        except UpstreamError as e:
            logger.warning("Follow notification for %s not enqueued: %s", body.followed_id, e.message)

    logger.info("Follow recorded: %s -> %s, new=%s", body.follower_id, body.followed_id, created)
    return FollowResponse(
        success=True,
        created=created,
        invalidated_keys=invalidated,
        notification_job_id=job_id,
    )
