"""Pydantic schemas for event intake and queue introspection.

Learn: JobRead mirrors DispatchJob.to_dict() — lease ids and heap
sequence numbers stay internal to the queue.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class EventAccepted(BaseModel):
    """Response to POST /events. job_id is null when nothing was queued."""
    job_id: Optional[str]
    queued: bool


class JobRead(BaseModel):
    id: str
    event_type: str
    priority: int
    payload: dict[str, Any]
    attempt: int
    max_attempts: int
    status: str
    next_eligible_at: Optional[datetime] = None
    enqueued_at: Optional[datetime] = None
    visible_until: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_error: Optional[str] = None
