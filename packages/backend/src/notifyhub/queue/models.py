"""Dispatch job record — the unit of work held by the JobQueue.

Learn: Jobs are plain dataclasses owned by the queue's arena. Workers
only ever see copies (see JobQueue.dequeue), so mutating a job outside
the queue never changes queue state.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DispatchJob:
    """A queued unit of work: one domain event to turn into notification(s)."""

    event_type: str
    priority: int
    payload: dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None  # assigned at enqueue
    attempt: int = 0
    max_attempts: int = 3
    next_eligible_at: Optional[datetime] = None
    status: JobStatus = JobStatus.PENDING

    # Queue bookkeeping
    sequence: int = 0  # FIFO tie-breaker within a priority class
    enqueued_at: Optional[datetime] = None
    visible_until: Optional[datetime] = None  # visibility deadline while in flight
    lease_id: Optional[str] = None  # issued per dequeue
    last_error: Optional[str] = None
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        """Completed, or failed with no retries left."""
        if self.status == JobStatus.COMPLETED:
            return True
        return self.status == JobStatus.FAILED and self.attempt >= self.max_attempts

    def snapshot(self) -> "DispatchJob":
        """Detached copy safe to hand outside the queue lock."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "priority": self.priority,
            "payload": self.payload,
            "attempt": self.attempt,
            "max_attempts": self.max_attempts,
            "next_eligible_at": _iso(self.next_eligible_at),
            "status": self.status.value,
            "enqueued_at": _iso(self.enqueued_at),
            "visible_until": _iso(self.visible_until),
            "last_error": self.last_error,
            "finished_at": _iso(self.finished_at),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
