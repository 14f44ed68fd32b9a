"""Job journal — write-through persistence of JobQueue records.

Learn: The queue calls save() after every state transition and delete()
when a retained job falls out of the completed/failed rings. On startup
load_all() returns every job that still has work left, plus the
retained rings, so JobQueue.restore() can rebuild the arena.

A journal failure never blocks the queue — it's logged by the caller.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notifyhub.db.models import DispatchJobRecord
from notifyhub.queue.models import DispatchJob, JobStatus


def _to_record(job: DispatchJob) -> DispatchJobRecord:
    return DispatchJobRecord(
        id=job.id,
        event_type=job.event_type,
        priority=job.priority,
        payload=job.payload,
        attempt=job.attempt,
        max_attempts=job.max_attempts,
        status=job.status.value,
        sequence=job.sequence,
        enqueued_at=job.enqueued_at,
        next_eligible_at=job.next_eligible_at,
        visible_until=job.visible_until,
        finished_at=job.finished_at,
        last_error=job.last_error,
    )


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything in the queue is UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_job(record: DispatchJobRecord) -> DispatchJob:
    return DispatchJob(
        id=record.id,
        event_type=record.event_type,
        priority=record.priority,
        payload=dict(record.payload or {}),
        attempt=record.attempt,
        max_attempts=record.max_attempts,
        status=JobStatus(record.status),
        sequence=record.sequence,
        enqueued_at=_aware(record.enqueued_at),
        next_eligible_at=_aware(record.next_eligible_at),
        visible_until=_aware(record.visible_until),
        finished_at=_aware(record.finished_at),
        last_error=record.last_error,
    )


class SqlJobJournal:
    """Durable job store backed by the dispatch_jobs table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def save(self, job: DispatchJob) -> None:
        async with self.session_factory() as db:
            await db.merge(_to_record(job))
            await db.commit()

    async def delete(self, job_ids: list[str]) -> None:
        async with self.session_factory() as db:
            await db.execute(
                delete(DispatchJobRecord).where(DispatchJobRecord.id.in_(job_ids))
            )
            await db.commit()

    async def load_all(self) -> list[DispatchJob]:
        """All journaled jobs in enqueue order."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(DispatchJobRecord).order_by(DispatchJobRecord.sequence)
            )
            return [_to_job(record) for record in result.scalars().all()]
