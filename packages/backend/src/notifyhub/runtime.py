"""Pipeline wiring — builds every component from settings.

Learn: Each stage takes explicit collaborators in its constructor; there
is no implicit shared context. build_pipeline() is the one place that
knows how they connect:

  EventService → JobQueue ← WorkerPool → handlers
                    ↑                     ├─ NotificationMaterializer → store
               SqlJobJournal              └─ RealtimeDispatcher → transport

The FastAPI lifespan and the tests both go through here.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notifyhub.config import Settings, settings
from notifyhub.events.service import EventService
from notifyhub.notifications.materializer import NotificationMaterializer
from notifyhub.notifications.store import NotificationStore, SqlNotificationStore
from notifyhub.queue.job_queue import JobQueue
from notifyhub.queue.journal import SqlJobJournal
from notifyhub.queue.models import utcnow
from notifyhub.realtime.dispatcher import RealtimeDispatcher, Transport
from notifyhub.workers.handlers import build_handlers
from notifyhub.workers.pool import WorkerPool

logger = structlog.get_logger()


@dataclass
class Pipeline:
    queue: JobQueue
    events: EventService
    store: NotificationStore
    materializer: NotificationMaterializer
    realtime: RealtimeDispatcher
    pool: WorkerPool
    shutdown_timeout: float = 10.0

    async def start(self) -> None:
        """Restore journaled jobs, then start the workers."""
        journal = self.queue.journal
        if journal is not None:
            try:
                await self.queue.restore(await journal.load_all())
            except Exception as e:
                logger.warning("pipeline.restore_failed", error=str(e))
        await self.pool.start()

    async def stop(self) -> None:
        await self.pool.stop(timeout=self.shutdown_timeout)
        await self.realtime.drain(timeout=self.shutdown_timeout)

    async def stats(self) -> dict:
        return {
            "queue": await self.queue.stats(),
            "workers": self.pool.get_stats(),
            "realtime": {
                "sent": self.realtime.stats.sent,
                "dropped": self.realtime.stats.dropped,
                "failed": self.realtime.stats.failed,
            },
        }


def build_pipeline(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    transport: Optional[Transport] = None,
    config: Settings = settings,
    store: Optional[NotificationStore] = None,
    clock: Callable[[], datetime] = utcnow,
) -> Pipeline:
    """Assemble the dispatch pipeline from settings."""
    journal = SqlJobJournal(session_factory) if config.journal_jobs else None
    queue = JobQueue(
        max_attempts=config.job_max_attempts,
        backoff_base_seconds=config.job_backoff_base_seconds,
        visibility_timeout_seconds=config.job_visibility_timeout_seconds,
        retain_completed=config.retain_completed_jobs,
        retain_failed=config.retain_failed_jobs,
        clock=clock,
        journal=journal,
    )
    store = store or SqlNotificationStore(session_factory)
    materializer = NotificationMaterializer(store)
    realtime = RealtimeDispatcher(transport)
    pool = WorkerPool(
        queue,
        build_handlers(materializer, realtime),
        concurrency=config.worker_concurrency,
        poll_timeout=config.worker_poll_timeout_seconds,
        sweep_interval=config.stall_sweep_interval_seconds,
    )
    return Pipeline(
        queue=queue,
        events=EventService(queue),
        store=store,
        materializer=materializer,
        realtime=realtime,
        pool=pool,
        shutdown_timeout=config.shutdown_timeout_seconds,
    )
