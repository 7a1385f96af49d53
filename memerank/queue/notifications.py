"""Notification jobs: producers and the handlers that deliver them.

Producers enqueue one job per social event. Handlers run inside the
worker and write notification rows; each row is keyed by (job id,
recipient) so a redelivered job does not notify anyone twice.
"""

import re
import time
from typing import Any, Callable

from memerank.queue.jobs import QueueJob
from memerank.queue.redis_queue import RedisJobQueue
from memerank.utils import database
from memerank.utils.exceptions import ComputationError, NotFoundError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

MENTION_PATTERN = re.compile(r"@(\w+)")


def add_like_notification(queue: RedisJobQueue, meme_id: str, liker_user_id: str) -> QueueJob:
    return queue.enqueue("like", {"meme_id": meme_id, "liker_user_id": liker_user_id})


def add_comment_notification(
    queue: RedisJobQueue, meme_id: str, comment_user_id: str, content: str = ""
) -> QueueJob:
    return queue.enqueue(
        "comment",
        {"meme_id": meme_id, "comment_user_id": comment_user_id, "content": content},
    )


def add_follow_notification(
    queue: RedisJobQueue, followed_user_id: str, follower_user_id: str
) -> QueueJob:
    return queue.enqueue(
        "follow",
        {"followed_user_id": followed_user_id, "follower_user_id": follower_user_id},
    )


def add_mention_notification(
    queue: RedisJobQueue, content: str, mentioner_user_id: str, meme_id: str | None = None
) -> QueueJob:
    return queue.enqueue(
        "mention",
        {"content": content, "mentioner_user_id": mentioner_user_id, "meme_id": meme_id},
    )


def add_bulk_notification(
    queue: RedisJobQueue,
    event: dict[str, Any],
    user_ids: list[str] | None = None,
    followers_of: str | None = None,
) -> QueueJob:
    """Enqueue one job that notifies many users about the same event.

    Recipients are either listed explicitly or resolved from the followers
    of ``followers_of`` when the job runs.

    Args:
        queue: Target queue.
        event: ``verb`` plus optional ``actor_id``, ``object_id``,
            ``title`` and ``content``.
        user_ids: Explicit recipients.
        followers_of: User whose followers receive the notification.
    """
    if user_ids is None and followers_of is None:
        raise ValueError("bulk notification needs user_ids or followers_of")
    payload: dict[str, Any] = {"event": event}
    if user_ids is not None:
        payload["user_ids"] = list(user_ids)
    else:
        payload["followers_of"] = followers_of
    return queue.enqueue("bulk", payload)


class NotificationHandlers:
    """Dispatches notification jobs to per-type handlers.

    Each handler returns the number of notification rows written.
    Unknown job names and missing referenced records raise, which the
    worker turns into a failed attempt.

    Attributes:
        db_path: Path to the SQLite database.
        clock: Source of notification timestamps.
    """

    def __init__(self, db_path: str, clock: Callable[[], float] = time.time) -> None:
        self.db_path = db_path
        self.clock = clock
        self._handlers: dict[str, Callable[[QueueJob], int]] = {
            "like": self._handle_like,
            "comment": self._handle_comment,
            "follow": self._handle_follow,
            "mention": self._handle_mention,
            "bulk": self._handle_bulk,
        }

    def handle(self, job: QueueJob) -> int:
        handler = self._handlers.get(job.name)
        if handler is None:
            raise ComputationError("notification", f"unknown job type: {job.name}")
        return handler(job)

    def _notify(self, job: QueueJob, user_id: str, verb: str, **fields: Any) -> int:
        written = database.insert_notification(
            self.db_path, job.id, user_id, verb, self.clock(), **fields
        )
        if not written:
            logger.debug("Notification for job %s to %s already delivered", job.id, user_id)
        return int(written)

    def _meme(self, meme_id: str) -> dict[str, Any]:
        meme = database.get_meme(self.db_path, meme_id)
        if meme is None:
            raise NotFoundError("meme", meme_id)
        return meme

    def _handle_like(self, job: QueueJob) -> int:
        meme = self._meme(job.payload["meme_id"])
        liker = job.payload["liker_user_id"]
        # no self-notifications
        if meme["author_id"] == liker:
            return 0
        return self._notify(
            job, meme["author_id"], "like",
            actor_id=liker, object_id=meme["id"], title=meme["title"],
        )

    def _handle_comment(self, job: QueueJob) -> int:
        meme = self._meme(job.payload["meme_id"])
        commenter = job.payload["comment_user_id"]
        if meme["author_id"] == commenter:
            return 0
        return self._notify(
            job, meme["author_id"], "comment",
            actor_id=commenter, object_id=meme["id"], title=meme["title"],
            content=job.payload.get("content") or None,
        )

    def _handle_follow(self, job: QueueJob) -> int:
        follower = job.payload["follower_user_id"]
        return self._notify(
            job, job.payload["followed_user_id"], "follow", actor_id=follower
        )

    def _handle_mention(self, job: QueueJob) -> int:
        content = job.payload.get("content") or ""
        mentioner = job.payload["mentioner_user_id"]
        mentioned = sorted(set(MENTION_PATTERN.findall(content)) - {mentioner})
        written = 0
        for user_id in mentioned:
            written += self._notify(
                job, user_id, "mention",
                actor_id=mentioner, object_id=job.payload.get("meme_id"), content=content,
            )
        return written

    def _handle_bulk(self, job: QueueJob) -> int:
        event = job.payload["event"]
        if "user_ids" in job.payload:
            recipients = job.payload["user_ids"]
        else:
            recipients = database.get_followers(self.db_path, job.payload["followers_of"])
        written = 0
        for user_id in recipients:
            written += self._notify(
                job, user_id, event["verb"],
                actor_id=event.get("actor_id"),
                object_id=event.get("object_id"),
                title=event.get("title"),
                content=event.get("content"),
            )
        logger.info("Bulk job %s notified %d of %d users", job.id, written, len(recipients))
        return written
