"""Interaction submission API endpoints.

Recording an interaction bumps the meme's counters, refreshes its hot
score, drops the cache namespaces the event makes stale and, for likes and
comments, enqueues a notification for the author.
"""

import sqlite3
import time

from fastapi import APIRouter, Depends

from memerank.api.dependencies import get_db_path, get_invalidator, get_queue
from memerank.api.schemas import InteractionRequest, InteractionResponse
from memerank.queue.notifications import add_comment_notification, add_like_notification
from memerank.queue.redis_queue import RedisJobQueue
from memerank.recommendation.hot_score import meme_hot_score
from memerank.recommendation.invalidator import CacheInvalidator
from memerank.utils import database
from memerank.utils.exceptions import NotFoundError, UpstreamError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/interactions", tags=["interactions"])


@router.post("", response_model=InteractionResponse)
def submit_interaction(
    body: InteractionRequest,
    db_path: str = Depends(get_db_path),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    queue: RedisJobQueue = Depends(get_queue),
) -> InteractionResponse:
    """Record a user interaction with a meme.

    Args:
        body: The interaction to record.
        db_path: Injected database path.
        invalidator: Injected cache invalidator.
        queue: Injected notification queue.

    Returns:
        InteractionResponse with the new hot score and side effects.

    Raises:
        NotFoundError: If the meme does not exist.
        UpstreamError: If the database cannot be written.
    """
    now = time.time()
    try:
        if database.get_meme(db_path, body.meme_id) is None:
            raise NotFoundError("meme", body.meme_id)
        created = database.record_interaction(db_path, body.user_id, body.meme_id, body.type, now)
        meme = database.get_meme(db_path, body.meme_id)
        hot_score = meme_hot_score(meme, now)
        database.update_hot_score(db_path, body.meme_id, hot_score)
    except sqlite3.Error as e:
        raise UpstreamError("database", str(e)) from e

    report = invalidator.invalidate_for_event(body.type, meme_id=body.meme_id)

    job_id = None
    if created and body.type in ("like", "comment"):
        try:
            if body.type == "like":
                job = add_like_notification(queue, body.meme_id, body.user_id)
            else:
                job = add_comment_notification(queue, body.meme_id, body.user_id, body.content or "")
            job_id = job.id
        except UpstreamError as e:
            logger.warning("Notification for %s on %s not enqueued: %s", body.type, body.meme_id, e.message)

    logger.info(
        "Interaction recorded: user=%s, meme=%s, type=%s, new=%s",
        body.user_id,
        body.meme_id,
        body.type,
        created,
    )
    return InteractionResponse(
        success=True,
        created=created,
        hot_score=hot_score,
        invalidated_keys=report.total_deleted,
        notification_job_id=job_id,
    )
