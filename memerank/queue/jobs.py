"""Job records for the Redis-backed queue."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class JobState(str, Enum):
    """Lifecycle states of a queued job."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"


@dataclass
class QueueJob:
    """A unit of work stored in the queue.

    Attributes:
        id: Queue-assigned identifier, unique per queue.
        name: Handler name, e.g. "like".
        payload: JSON-serializable job data.
        state: Current lifecycle state.
        attempts: Number of times the job has been handed to a worker.
        max_attempts: Deliveries allowed before the job is marked failed.
        created_at: Unix time of enqueue.
        processed_at: Unix time the job reached a terminal state.
        error: Message of the most recent failure.
    """

    id: str
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    state: JobState = JobState.WAITING
    attempts: int = 0
    max_attempts: int = 3
    created_at: float = 0.0
    processed_at: float | None = None
    error: str | None = None

    def to_hash(self) -> dict[str, str]:
        """Serialize to a flat mapping suitable for HSET."""
        data = {
            "id": self.id,
            "name": self.name,
            "payload": json.dumps(self.payload),
            "state": self.state.value,
            "attempts": str(self.attempts),
            "max_attempts": str(self.max_attempts),
            "created_at": repr(self.created_at),
        }
        if self.processed_at is not None:
            data["processed_at"] = repr(self.processed_at)
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_hash(cls, data: dict[str, str]) -> "QueueJob":
        """Rebuild a job from its HGETALL mapping."""
        processed_at = data.get("processed_at")
        return cls(
            id=data["id"],
            name=data["name"],
            payload=json.loads(data.get("payload") or "{}"),
            state=JobState(data["state"]),
            attempts=int(data.get("attempts", 0)),
            max_attempts=int(data.get("max_attempts", 3)),
            created_at=float(data.get("created_at", 0.0)),
            processed_at=float(processed_at) if processed_at else None,
            error=data.get("error"),
        )
