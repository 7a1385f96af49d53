"""Durable job queue on Redis lists and sorted sets.

Key layout under ``queue:<name>``:

* ``:waiting`` list of job ids; producers LPUSH, workers BLMOVE from the
  right into ``:active`` so a reserved job is never only in memory.
* ``:active`` list of ids currently held by a worker.
* ``:delayed`` sorted set of ids scored by the time they become due.
* ``:completed`` / ``:failed`` capped lists of terminal ids.
* ``:job:<id>`` hash holding the job record.
"""

import json
import time
from typing import Any, Callable

import redis
from redis.backoff import NoBackoff
from redis.retry import Retry

from memerank.queue.jobs import JobState, QueueJob
from memerank.utils.config import config
from memerank.utils.exceptions import UpstreamError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)


class RedisJobQueue:
    """Redis-backed job queue with retries and exponential backoff.

    Attributes:
        client: The Redis client instance.
        name: Queue name, used as the key prefix.
        max_attempts: Default deliveries before a job is marked failed.
        backoff_seconds: Base delay for the first retry.
        remove_on_complete: Completed jobs retained.
        remove_on_fail: Failed jobs retained.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        name: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        queue_cfg = config["queue"]
        self.client = redis_client
        self.name = name or queue_cfg["name"]
        self.max_attempts: int = queue_cfg["max_attempts"]
        self.backoff_seconds: float = queue_cfg["backoff_seconds"]
        self.remove_on_complete: int = queue_cfg["remove_on_complete"]
        self.remove_on_fail: int = queue_cfg["remove_on_fail"]
        self.clock = clock
        prefix = f"queue:{self.name}"
        self.keys = {
            "id": f"{prefix}:id",
            "waiting": f"{prefix}:waiting",
            "active": f"{prefix}:active",
            "delayed": f"{prefix}:delayed",
            "completed": f"{prefix}:completed",
            "failed": f"{prefix}:failed",
        }
        self._job_prefix = f"{prefix}:job:"

    def _job_key(self, job_id: str) -> str:
        return f"{self._job_prefix}{job_id}"

    def enqueue(
        self,
        name: str,
        payload: dict[str, Any],
        delay: float = 0,
        max_attempts: int | None = None,
    ) -> QueueJob:
        """Add a job to the queue.

        Args:
            name: Handler name.
            payload: JSON-serializable job data.
            delay: Seconds before the job becomes available.
            max_attempts: Override of the default delivery limit.

        Returns:
            The stored job.

        Raises:
            UpstreamError: If Redis cannot be reached.
        """
        now = self.clock()
        try:
            job_id = str(self.client.incr(self.keys["id"]))
            job = QueueJob(
                id=job_id,
                name=name,
                payload=payload,
                state=JobState.DELAYED if delay > 0 else JobState.WAITING,
                max_attempts=max_attempts or self.max_attempts,
                created_at=now,
            )
            pipe = self.client.pipeline()
            pipe.hset(self._job_key(job_id), mapping=job.to_hash())
            if delay > 0:
                pipe.zadd(self.keys["delayed"], {job_id: now + delay})
            else:
                pipe.lpush(self.keys["waiting"], job_id)
            pipe.execute()
        except redis.RedisError as e:
            raise UpstreamError("queue", str(e)) from e

        logger.info("Enqueued %s job %s", name, job_id)
        return job

    def get_job(self, job_id: str) -> QueueJob | None:
        """Load a job record, or None if it no longer exists."""
        data = self.client.hgetall(self._job_key(job_id))
        return QueueJob.from_hash(data) if data else None

    def promote_delayed(self) -> int:
        """Move delayed jobs whose due time has passed back to waiting.

        Returns:
            Number of jobs promoted by this call.
        """
        due = self.client.zrangebyscore(self.keys["delayed"], "-inf", self.clock())
        promoted = 0
        for job_id in due:
            # zrem arbitrates between workers promoting concurrently
            if self.client.zrem(self.keys["delayed"], job_id):
                pipe = self.client.pipeline()
                pipe.hset(self._job_key(job_id), "state", JobState.WAITING.value)
                pipe.lpush(self.keys["waiting"], job_id)
                pipe.execute()
                promoted += 1
        return promoted

    def reserve(self, timeout: float = 0) -> QueueJob | None:
        """Take the oldest waiting job, blocking up to ``timeout`` seconds.

        The id moves to the active list atomically, so a worker crash
        leaves the job recoverable with ``requeue_active``.

        Args:
            timeout: Seconds to block; 0 returns immediately.

        Returns:
            The reserved job, or None if nothing became available.
        """
        self.promote_delayed()
        if timeout > 0:
            job_id = self.client.blmove(
                self.keys["waiting"], self.keys["active"], timeout, "RIGHT", "LEFT"
            )
        else:
            job_id = self.client.lmove(
                self.keys["waiting"], self.keys["active"], "RIGHT", "LEFT"
            )
        if job_id is None:
            return None

        pipe = self.client.pipeline()
        pipe.hset(self._job_key(job_id), "state", JobState.ACTIVE.value)
        pipe.hincrby(self._job_key(job_id), "attempts", 1)
        pipe.execute()
        job = self.get_job(job_id)
        if job is None:
            logger.warning("Reserved job %s has no record, discarding", job_id)
            self.client.lrem(self.keys["active"], 1, job_id)
        return job

    def _retire(self, list_key: str, job_id: str, keep: int) -> None:
        self.client.lpush(list_key, job_id)
        overflow = self.client.lrange(list_key, keep, -1)
        if overflow:
            pipe = self.client.pipeline()
            pipe.ltrim(list_key, 0, keep - 1)
            pipe.delete(*(self._job_key(old) for old in overflow))
            pipe.execute()

    def complete(self, job: QueueJob, result: Any = None) -> None:
        """Mark an active job completed, storing the handler result."""
        job.state = JobState.COMPLETED
        job.processed_at = self.clock()
        pipe = self.client.pipeline()
        pipe.lrem(self.keys["active"], 1, job.id)
        pipe.hset(
            self._job_key(job.id),
            mapping={
                "state": job.state.value,
                "processed_at": repr(job.processed_at),
                "result": json.dumps(result, default=str),
            },
        )
        pipe.execute()
        self._retire(self.keys["completed"], job.id, self.remove_on_complete)

    def fail(self, job: QueueJob, error: str) -> JobState:
        """Record a failed attempt, scheduling a retry while attempts remain.

        The retry delay doubles with each attempt starting from
        ``backoff_seconds``.

        Returns:
            The resulting state: DELAYED for a retry, FAILED when exhausted.
        """
        job.error = error
        pipe = self.client.pipeline()
        pipe.lrem(self.keys["active"], 1, job.id)
        if job.attempts < job.max_attempts:
            delay = self.backoff_seconds * (2 ** max(job.attempts - 1, 0))
            job.state = JobState.DELAYED
            pipe.hset(self._job_key(job.id), mapping={"state": job.state.value, "error": error})
            pipe.zadd(self.keys["delayed"], {job.id: self.clock() + delay})
            pipe.execute()
            logger.warning(
                "Job %s (%s) failed attempt %d/%d, retrying in %.0fs: %s",
                job.id, job.name, job.attempts, job.max_attempts, delay, error,
            )
            return job.state

        job.state = JobState.FAILED
        job.processed_at = self.clock()
        pipe.hset(
            self._job_key(job.id),
            mapping={
                "state": job.state.value,
                "error": error,
                "processed_at": repr(job.processed_at),
            },
        )
        pipe.execute()
        self._retire(self.keys["failed"], job.id, self.remove_on_fail)
        logger.error("Job %s (%s) failed permanently: %s", job.id, job.name, error)
        return job.state

    def requeue(self, job: QueueJob) -> None:
        """Return an interrupted active job to the head of the waiting list.

        The interrupted delivery does not count toward ``max_attempts``.
        """
        job.state = JobState.WAITING
        job.attempts = max(job.attempts - 1, 0)
        pipe = self.client.pipeline()
        pipe.lrem(self.keys["active"], 1, job.id)
        pipe.hset(
            self._job_key(job.id),
            mapping={"state": job.state.value, "attempts": str(job.attempts)},
        )
        pipe.rpush(self.keys["waiting"], job.id)
        pipe.execute()
        logger.info("Requeued job %s (%s)", job.id, job.name)

    def requeue_active(self) -> int:
        """Move every active job back to waiting.

        Used at worker start to recover jobs orphaned by a crashed worker.
        Jobs still held by a live worker will be delivered twice.

        Returns:
            Number of jobs moved.
        """
        moved = 0
        while True:
            job_id = self.client.lmove(
                self.keys["active"], self.keys["waiting"], "LEFT", "RIGHT"
            )
            if job_id is None:
                break
            self.client.hset(self._job_key(job_id), "state", JobState.WAITING.value)
            moved += 1
        if moved:
            logger.warning("Recovered %d orphaned active jobs", moved)
        return moved

    def counts(self) -> dict[str, int]:
        """Number of jobs in each state."""
        pipe = self.client.pipeline()
        pipe.llen(self.keys["waiting"])
        pipe.llen(self.keys["active"])
        pipe.llen(self.keys["completed"])
        pipe.llen(self.keys["failed"])
        pipe.zcard(self.keys["delayed"])
        waiting, active, completed, failed, delayed = pipe.execute()
        return {
            "waiting": waiting,
            "active": active,
            "completed": completed,
            "failed": failed,
            "delayed": delayed,
        }

    def ping(self) -> bool:
        """Return True if the queue's Redis answers a PING."""
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning("Queue ping failed: %s", e)
            return False

    def close(self) -> None:
        """Release the Redis connection pool."""
        self.client.close()
        logger.info("Queue %s closed", self.name)


def create_queue_client(url: str) -> redis.Redis:
    """Build a Redis client for queue traffic.

    The socket timeout outlasts the BLMOVE block time so an idle reserve
    returns None instead of timing out, and commands are never retried:
    a resent BLMOVE could move a second job while the first reply is lost.

    Args:
        url: Redis URI of the queue instance.

    Returns:
        A client decoding responses to ``str``.
    """
    queue_cfg = config["queue"]
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=queue_cfg["block_timeout"] + queue_cfg["socket_timeout_margin"],
        socket_connect_timeout=config["redis"]["socket_timeout"],
        retry=Retry(NoBackoff(), 0),
    )
