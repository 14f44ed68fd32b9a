"""Worker pool — N concurrent consumers of the dispatch job queue.

Learn: The pool runs N worker tasks plus one stall sweeper:
1. Workers — get() → handler → ack on success, nack on exception
2. Sweeper — every few seconds, reclaim jobs whose worker never acked

While a handler runs, a heartbeat task renews the job's lease every third
of the visibility timeout, so only jobs whose worker is gone get reclaimed.

Key design decisions:
- Mutual exclusion per job comes from the queue's atomic claim, not
  from the pool — the pool just bounds concurrency to N jobs
- Handler exceptions are logged and turned into nacks; the retry cap
  lives on the job (max_attempts), so no worker ever loops forever
- Unknown event types are logged and acked — a no-op is not a failure
- stop() stops pulling, lets in-flight handlers finish up to a timeout,
  then cancels; anything cut off is reclaimed by stall recovery
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from notifyhub.queue.job_queue import JobQueue
from notifyhub.queue.models import DispatchJob
from notifyhub.workers.handlers import Handler

logger = structlog.get_logger()


@dataclass
class WorkerPoolStats:
    """Runtime statistics for monitoring."""
    processed: int = 0
    failed: int = 0
    unrecognized: int = 0
    dead_lettered: int = 0
    in_flight: set = field(default_factory=set)
    started_at: Optional[datetime] = None


class WorkerPool:
    """Bounded set of asyncio workers pulling from one JobQueue.

    Usage:
        pool = WorkerPool(queue, handlers, concurrency=10)
        await pool.start()
        ...
        await pool.stop()
    """

    def __init__(
        self,
        queue: JobQueue,
        handlers: dict[str, Handler],
        *,
        concurrency: int = 10,
        poll_timeout: float = 1.0,
        sweep_interval: float = 1.0,
        heartbeat_interval: Optional[float] = None,
    ):
        self.queue = queue
        self.handlers = handlers
        self.concurrency = concurrency
        self.poll_timeout = poll_timeout
        self.sweep_interval = sweep_interval
        self.heartbeat_interval = (
            heartbeat_interval
            if heartbeat_interval is not None
            else queue.visibility_timeout.total_seconds() / 3
        )
        self.stats = WorkerPoolStats()
        self._workers: list[asyncio.Task] = []
        self._sweeper: Optional[asyncio.Task] = None
        self._running = False

        queue.on_terminal_failure(self._on_terminal_failure)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Spawn the workers and the sweeper, then return."""
        if self._running:
            return
        self._running = True
        self.stats.started_at = datetime.now(timezone.utc)
        self._workers = [
            asyncio.create_task(self._worker_loop(i), name=f"notifyhub-worker-{i}")
            for i in range(self.concurrency)
        ]
        self._sweeper = asyncio.create_task(
            self._sweep_loop(), name="notifyhub-stall-sweeper"
        )
        logger.info("worker_pool.started", concurrency=self.concurrency)

    async def stop(self, timeout: float = 10.0) -> None:
        """Graceful shutdown: no new jobs, in-flight jobs get `timeout` seconds."""
        if not self._running:
            return
        self._running = False
        logger.info("worker_pool.stopping", in_flight=len(self.stats.in_flight))

        await self.queue.interrupt()

        if self._sweeper:
            self._sweeper.cancel()
            await asyncio.gather(self._sweeper, return_exceptions=True)
            self._sweeper = None

        if self._workers:
            _, pending = await asyncio.wait(self._workers, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("worker_pool.cancelled_in_flight", workers=len(pending))
                await asyncio.gather(*pending, return_exceptions=True)
            self._workers = []

        logger.info("worker_pool.stopped", **self.get_stats())

    # ─── Worker loop ──────────────────────────────────────

    async def _worker_loop(self, index: int) -> None:
        while self._running:
            try:
                job = await self.queue.get(timeout=self.poll_timeout)
                if job is None:
                    continue
                await self.process(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("worker.error", worker=index)
                await asyncio.sleep(1)

    async def process(self, job: DispatchJob) -> None:
        """Run one claimed job through its handler and report back to the queue."""
        log = logger.bind(
            job_id=job.id, event_type=job.event_type, attempt=job.attempt + 1
        )
        handler = self.handlers.get(job.event_type)
        if handler is None:
            self.stats.unrecognized += 1
            log.warning("job.unrecognized")
            await self.queue.ack(job.id, lease_id=job.lease_id)
            return

        self.stats.in_flight.add(job.id)
        try:
            await self._run_leased(handler, job)
        except Exception as e:
            self.stats.failed += 1
            log.warning("job.handler_failed", error=str(e), exc_info=True)
            await self.queue.nack(job.id, e, lease_id=job.lease_id)
        else:
            self.stats.processed += 1
            await self.queue.ack(job.id, lease_id=job.lease_id)
        finally:
            self.stats.in_flight.discard(job.id)

    async def _run_leased(self, handler: Handler, job: DispatchJob) -> None:
        heartbeat = asyncio.create_task(self._keep_leased(job))
        try:
            await handler(job)
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)

    async def _keep_leased(self, job: DispatchJob) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                held = await self.queue.extend(job.id, lease_id=job.lease_id)
            except Exception:
                logger.exception("job.lease_extend_failed", job_id=job.id)
                continue
            if not held:
                logger.warning("job.lease_lost", job_id=job.id)
                return

    # ─── Stall sweeper ────────────────────────────────────

    async def _sweep_loop(self) -> None:
        """Periodic stall recovery for jobs abandoned by dead workers."""
        while self._running:
            try:
                await asyncio.sleep(self.sweep_interval)
                if not self._running:
                    break
                reclaimed = await self.queue.reclaim_stalled()
                if reclaimed:
                    logger.info("worker_pool.reclaimed_stalled", jobs=reclaimed)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("worker_pool.sweep_error")
                await asyncio.sleep(self.sweep_interval)

    def _on_terminal_failure(self, job: DispatchJob, error: str) -> None:
        self.stats.dead_lettered += 1

    # ─── Stats endpoint ──────────────────────────────────

    def get_stats(self) -> dict:
        """Return worker pool statistics for monitoring."""
        return {
            "running": self._running,
            "processed": self.stats.processed,
            "failed": self.stats.failed,
            "unrecognized": self.stats.unrecognized,
            "dead_lettered": self.stats.dead_lettered,
            "in_flight": len(self.stats.in_flight),
            "concurrency": self.concurrency,
            "started_at": (
                self.stats.started_at.isoformat()
                if self.stats.started_at
                else None
            ),
        }
