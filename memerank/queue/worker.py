"""Notification worker process.

Consumes jobs from the notification queue until it receives SIGTERM or
SIGINT, logging queue statistics as JSON on a fixed interval. The first
signal lets the in-flight job finish. A second one interrupts a running
handler and puts its job back on the queue before exiting.
"""

import argparse
import signal
import sys
import threading
from typing import Any, Callable

import redis

from memerank.queue.jobs import QueueJob
from memerank.queue.notifications import NotificationHandlers
from memerank.queue.redis_queue import RedisJobQueue, create_queue_client
from memerank.utils.config import config, settings
from memerank.utils.database import init_db
from memerank.utils.environment import (
    check_environment,
    database_uri,
    queue_url,
    sqlite_path,
)
from memerank.utils.exceptions import ConfigurationError
from memerank.utils.logger import get_logger

logger = get_logger(__name__, json_format=True)


class WorkerInterrupted(Exception):
    """Raised inside the worker loop when shutdown is forced."""


class NotificationWorker:
    """Single-threaded job consumer with a background stats reporter.

    Attributes:
        queue: The job queue to consume.
        handler: Callable processing one job.
        stats_interval: Seconds between stats log records.
        block_timeout: Seconds each reserve call blocks waiting for work.
        recover_active: Requeue orphaned active jobs on start.
    """

    def __init__(
        self,
        queue: RedisJobQueue,
        handler: Callable[[QueueJob], Any],
        stats_interval: float | None = None,
        block_timeout: float | None = None,
        recover_active: bool = True,
    ) -> None:
        queue_cfg = config["queue"]
        self.queue = queue
        self.handler = handler
        self.stats_interval = stats_interval or queue_cfg["stats_interval"]
        self.block_timeout = block_timeout if block_timeout is not None else queue_cfg["block_timeout"]
        self.recover_active = recover_active
        self.processed = 0
        self.failed = 0
        self._stop = threading.Event()
        self._stats_thread: threading.Thread | None = None
        self._current: QueueJob | None = None
        self._in_handler = False

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> None:
        """Ask the loop to exit after the current job."""
        self._stop.set()

    def _handle_signal(self, signum: int, frame: Any) -> None:
        name = signal.Signals(signum).name
        if not self._stop.is_set():
            logger.info("Received %s, shutting down after current job", name)
            self.request_stop()
            return
        # Only the handler is interrupted; queue bookkeeping always runs to the end.
        if self._in_handler:
            logger.warning("Received %s again, interrupting current job", name)
            raise WorkerInterrupted(name)
        logger.warning("Received %s again, already shutting down", name)

    def install_signal_handlers(self) -> None:
        """Route SIGTERM and SIGINT to graceful shutdown."""
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

    def log_stats(self) -> dict[str, int] | None:
        """Log queue counts and worker totals as one JSON record."""
        try:
            counts = self.queue.counts()
        except redis.RedisError as e:
            logger.warning("Could not read queue stats: %s", e)
            return None
        stats = {**counts, "processed": self.processed, "failed_attempts": self.failed}
        logger.info(
            "Notification queue stats",
            extra={"event": "notification_queue_stats", "queue": self.queue.name, **stats},
        )
        return stats

    def _stats_loop(self) -> None:
        while not self._stop.wait(self.stats_interval):
            self.log_stats()

    def start_stats_reporter(self) -> threading.Thread:
        """Start the background thread logging stats every ``stats_interval``."""
        self._stats_thread = threading.Thread(
            target=self._stats_loop, name="queue-stats", daemon=True
        )
        self._stats_thread.start()
        return self._stats_thread

    def process(self, job: QueueJob) -> bool:
        """Run one reserved job and record its outcome.

        Returns:
            True if the job completed.

        Raises:
            WorkerInterrupted: If shutdown was forced while the handler ran.
                The job is back on the waiting list.
        """
        self._current = job
        try:
            self._in_handler = True
            try:
                result = self.handler(job)
            finally:
                self._in_handler = False
        except WorkerInterrupted:
            self._in_handler = False
            self.queue.requeue(job)
            self._current = None
            raise
        except Exception as e:
            self.failed += 1
            logger.error(
                "Job %s (%s) raised: %s", job.id, job.name, e,
                extra={"job_id": job.id, "job_name": job.name, "attempt": job.attempts},
            )
            self.queue.fail(job, str(e))
            self._current = None
            return False

        self.queue.complete(job, result)
        self._current = None
        self.processed += 1
        logger.info(
            "Job %s (%s) completed", job.id, job.name,
            extra={"job_id": job.id, "job_name": job.name},
        )
        return True

    def process_one(self, timeout: float | None = None) -> bool | None:
        """Reserve and run at most one job.

        A job reserved after a stop was requested goes straight back to
        the waiting list without running.

        Returns:
            None when no job was run, else the outcome of ``process``.
        """
        job = self.queue.reserve(self.block_timeout if timeout is None else timeout)
        if job is None:
            return None
        self._current = job
        if self._stop.is_set():
            self.queue.requeue(job)
            self._current = None
            return None
        return self.process(job)

    def run(self) -> None:
        """Consume jobs until a stop is requested, then close the queue."""
        if self.recover_active:
            self.queue.requeue_active()
        self.start_stats_reporter()
        logger.info("Worker started on queue %s", self.queue.name)

        try:
            while not self._stop.is_set():
                try:
                    self.process_one()
                except WorkerInterrupted:
                    break
                except redis.RedisError as e:
                    logger.error("Queue connection error: %s", e)
                    self._stop.wait(self.block_timeout)
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop the stats thread, requeue any held job and close the queue."""
        self._stop.set()
        if self._current is not None:
            try:
                self.queue.requeue(self._current)
            except redis.RedisError as e:
                logger.error(
                    "Could not requeue job %s, it stays active until recovered: %s",
                    self._current.id, e,
                )
            self._current = None
        if self._stats_thread is not None:
            self._stats_thread.join(timeout=5)
        self.log_stats()
        self.queue.close()
        logger.info(
            "Worker stopped",
            extra={"processed": self.processed, "failed_attempts": self.failed},
        )


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``memerank-worker``.

    Returns:
        Process exit code: 0 after a clean shutdown, 1 when configuration
        is invalid or the queue is unreachable.
    """
    parser = argparse.ArgumentParser(description="Run the notification queue worker")
    parser.add_argument("--queue", default=config["queue"]["name"], help="Queue name")
    parser.add_argument(
        "--no-recover",
        action="store_true",
        help="Do not requeue jobs left active by a previous worker",
    )
    args = parser.parse_args(argv)

    try:
        check_environment(settings)
        db_path = sqlite_path(database_uri(settings))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e.message, extra={"details": e.details})
        return 1

    queue = RedisJobQueue(create_queue_client(queue_url(settings)), name=args.queue)
    if not queue.ping():
        logger.error("Queue Redis is unreachable")
        queue.close()
        return 1

    init_db(db_path)
    worker = NotificationWorker(
        queue, NotificationHandlers(db_path).handle, recover_active=not args.no_recover
    )
    worker.install_signal_handlers()
    worker.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
