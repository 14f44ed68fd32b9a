"""Job queue — priority-ordered dispatch jobs with retry, backoff and stall recovery.

Learn: The queue is an arena of job records addressed by id. Two heaps
index into it:
- ready heap   (priority, sequence, id) — jobs eligible right now
- delayed heap (next_eligible_at, sequence, id) — failed jobs waiting out backoff

Every state transition happens under one asyncio.Lock, so a job can only
be handed to one worker at a time:

  pending → in_flight → completed
                      ↘ failed (retry after 2s, 4s, 8s...) → in_flight → ...
                      ↘ failed permanently (attempt >= max_attempts)

Live workers renew their lease with extend() while a handler runs.
Workers that die mid-job leave it in_flight; reclaim_stalled() treats
anything past its visibility deadline as a nack, so no job is lost.

Ordering is decided at dequeue time: a steady stream of priority-1 jobs
can starve priority-5 jobs indefinitely. That is accepted.
"""

import asyncio
import heapq
import inspect
import uuid
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Union

import structlog

from notifyhub.queue.models import DispatchJob, JobStatus, utcnow

logger = structlog.get_logger()

TerminalFailureListener = Callable[
    [DispatchJob, str], Union[None, Awaitable[None]]
]


class JobStalledError(Exception):
    """Recorded as the failure reason when stall recovery reclaims a job."""


class JobJournal(Protocol):
    """Durable mirror of job records (see queue.journal.SqlJobJournal)."""

    async def save(self, job: DispatchJob) -> None: ...

    async def delete(self, job_ids: list[str]) -> None: ...

    async def load_all(self) -> list[DispatchJob]: ...


def describe_error(error: Any) -> str:
    if isinstance(error, BaseException):
        text = str(error)
        return f"{type(error).__name__}: {text}" if text else type(error).__name__
    return str(error)


class JobQueue:
    """In-process, asyncio-synchronized priority queue of dispatch jobs."""

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        backoff_base_seconds: float = 2.0,
        visibility_timeout_seconds: float = 30.0,
        retain_completed: int = 100,
        retain_failed: int = 50,
        clock: Callable[[], datetime] = utcnow,
        journal: Optional[JobJournal] = None,
    ):
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.visibility_timeout = timedelta(seconds=visibility_timeout_seconds)
        self.retain_completed = retain_completed
        self.retain_failed = retain_failed
        self.journal = journal
        self._clock = clock

        self._jobs: dict[str, DispatchJob] = {}
        self._ready: list[tuple[int, int, str]] = []
        self._delayed: list[tuple[datetime, int, str]] = []
        self._in_flight: set[str] = set()
        self._completed: deque[str] = deque()
        self._failed: deque[str] = deque()
        self._next_sequence = 1
        self._interrupts = 0
        self._listeners: list[TerminalFailureListener] = []

        self._lock = asyncio.Lock()
        self._available = asyncio.Condition(self._lock)

        self.counters = {
            "enqueued": 0,
            "completed": 0,
            "retried": 0,
            "failed": 0,
            "reclaimed": 0,
        }

    # ─── Producer side ────────────────────────────────────

    async def enqueue(self, job: DispatchJob) -> str:
        """Insert a job as pending and return its id. Never waits on workers."""
        async with self._available:
            now = self._clock()
            job.id = job.id or uuid.uuid4().hex
            job.status = JobStatus.PENDING
            job.attempt = 0
            job.max_attempts = self.max_attempts
            job.next_eligible_at = None
            job.visible_until = None
            job.lease_id = None
            job.last_error = None
            job.finished_at = None
            job.enqueued_at = now
            job.sequence = self._take_sequence()

            self._jobs[job.id] = job
            heapq.heappush(self._ready, (job.priority, job.sequence, job.id))
            self.counters["enqueued"] += 1
            snapshot = job.snapshot()
            self._available.notify()

        logger.info(
            "job.enqueued",
            job_id=snapshot.id,
            event_type=snapshot.event_type,
            priority=snapshot.priority,
        )
        await self._journal_save(snapshot)
        return snapshot.id

    # ─── Consumer side ────────────────────────────────────

    async def dequeue(self) -> Optional[DispatchJob]:
        """Claim the best eligible job, or return None if nothing is eligible."""
        async with self._lock:
            job = self._claim(self._clock())
            snapshot = job.snapshot() if job else None
        if snapshot:
            await self._journal_save(snapshot)
        return snapshot

    async def get(self, timeout: Optional[float] = None) -> Optional[DispatchJob]:
        """Blocking dequeue for workers.

        Suspends until a job is eligible (new enqueue or a retry whose
        backoff elapsed), the timeout passes, or interrupt() is called.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        async with self._available:
            generation = self._interrupts
            while True:
                now = self._clock()
                job = self._claim(now)
                if job:
                    snapshot = job.snapshot()
                    break

                wait = self._seconds_until_next_retry(now)
                if deadline is not None:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)

                try:
                    await asyncio.wait_for(self._available.wait(), wait)
                except asyncio.TimeoutError:
                    pass
                if self._interrupts != generation:
                    return None

        await self._journal_save(snapshot)
        return snapshot

    async def ack(self, job_id: str, lease_id: Optional[str] = None) -> bool:
        """Mark an in-flight job completed. No-op (returns False) otherwise."""
        async with self._lock:
            job = self._held(job_id, lease_id)
            if job is None:
                logger.debug("job.ack_ignored", job_id=job_id)
                return False

            job.status = JobStatus.COMPLETED
            job.finished_at = self._clock()
            self._release(job)
            self.counters["completed"] += 1
            evicted = self._retain(self._completed, job.id, self.retain_completed)
            snapshot = job.snapshot()

        logger.info("job.completed", job_id=job_id, attempt=snapshot.attempt + 1)
        await self._journal_save(snapshot)
        await self._journal_delete(evicted)
        return True

    async def nack(
        self, job_id: str, error: Any = None, lease_id: Optional[str] = None
    ) -> Optional[DispatchJob]:
        """Record a failed attempt: schedule a retry or fail permanently.

        Returns the updated job, or None if the job was not in flight
        (already acked, reclaimed, or a stale lease).
        """
        async with self._available:
            job = self._held(job_id, lease_id)
            if job is None:
                logger.debug("job.nack_ignored", job_id=job_id)
                return None
            terminal, evicted = self._fail(job, describe_error(error), self._clock())
            snapshot = job.snapshot()

        await self._after_failure(snapshot, terminal, evicted)
        return snapshot

    async def extend(self, job_id: str, lease_id: Optional[str] = None) -> bool:
        """Push an in-flight job's visibility deadline forward.

        Workers call this while a handler is still running, so a slow but
        live job is never reclaimed. Returns False if the lease is gone
        (acked, nacked, reclaimed, or never held by this caller).
        """
        async with self._lock:
            job = self._held(job_id, lease_id)
            if job is None:
                return False
            job.visible_until = self._clock() + self.visibility_timeout
            snapshot = job.snapshot()

        logger.debug(
            "job.lease_extended",
            job_id=job_id,
            visible_until=snapshot.visible_until.isoformat(),
        )
        await self._journal_save(snapshot)
        return True

    # ─── Stall recovery ───────────────────────────────────

    async def reclaim_stalled(self) -> list[str]:
        """Nack every in-flight job whose visibility deadline has passed."""
        failures = []
        async with self._available:
            now = self._clock()
            for job_id in list(self._in_flight):
                job = self._jobs[job_id]
                if job.visible_until is None or job.visible_until > now:
                    continue
                error = JobStalledError(
                    f"no ack before visibility deadline {job.visible_until.isoformat()}"
                )
                terminal, evicted = self._fail(job, describe_error(error), now)
                self.counters["reclaimed"] += 1
                failures.append((job.snapshot(), terminal, evicted))

        for snapshot, terminal, evicted in failures:
            logger.warning(
                "job.reclaimed", job_id=snapshot.id, attempt=snapshot.attempt
            )
            await self._after_failure(snapshot, terminal, evicted)
        return [snapshot.id for snapshot, _, _ in failures]

    async def restore(self, jobs: Iterable[DispatchJob]) -> int:
        """Reload journaled jobs after a restart.

        Learn: In-flight jobs keep their old deadline — the worker that
        held them is gone, so the next sweep reclaims them.
        """
        restored = 0
        async with self._available:
            now = self._clock()
            for job in sorted(jobs, key=lambda j: j.sequence):
                if job.id is None or job.id in self._jobs:
                    continue
                self._jobs[job.id] = job
                self._next_sequence = max(self._next_sequence, job.sequence + 1)

                if job.status == JobStatus.COMPLETED:
                    self._retain(self._completed, job.id, self.retain_completed)
                elif job.is_terminal:
                    self._retain(self._failed, job.id, self.retain_failed)
                elif job.status == JobStatus.PENDING:
                    heapq.heappush(self._ready, (job.priority, job.sequence, job.id))
                elif job.status == JobStatus.FAILED:
                    job.next_eligible_at = job.next_eligible_at or now
                    heapq.heappush(
                        self._delayed, (job.next_eligible_at, job.sequence, job.id)
                    )
                else:
                    job.visible_until = job.visible_until or now
                    self._in_flight.add(job.id)
                restored += 1
            self._available.notify_all()

        logger.info("job_queue.restored", jobs=restored)
        return restored

    # ─── Observers & introspection ────────────────────────

    def on_terminal_failure(self, listener: TerminalFailureListener) -> None:
        """Register an observer for jobs that exhausted their attempts."""
        self._listeners.append(listener)

    async def interrupt(self) -> None:
        """Wake every worker blocked in get(); they return None."""
        async with self._available:
            self._interrupts += 1
            self._available.notify_all()

    async def get_job(self, job_id: str) -> Optional[DispatchJob]:
        async with self._lock:
            job = self._jobs.get(job_id)
            return job.snapshot() if job else None

    async def recent(self, status: JobStatus) -> list[DispatchJob]:
        """Retained completed / permanently failed jobs, newest first."""
        ring = self._completed if status == JobStatus.COMPLETED else self._failed
        async with self._lock:
            return [self._jobs[job_id].snapshot() for job_id in reversed(ring)]

    async def stats(self) -> dict[str, int]:
        async with self._lock:
            waiting = sum(
                1
                for job in self._jobs.values()
                if job.status == JobStatus.FAILED and not job.is_terminal
            )
            pending = sum(
                1 for job in self._jobs.values() if job.status == JobStatus.PENDING
            )
            return {
                "pending": pending,
                "waiting_retry": waiting,
                "in_flight": len(self._in_flight),
                "completed_retained": len(self._completed),
                "failed_retained": len(self._failed),
                **self.counters,
            }

    def __len__(self) -> int:
        """Jobs that still need work (pending, waiting retry, in flight)."""
        return sum(1 for job in self._jobs.values() if not job.is_terminal)

    # ─── Internals (caller holds the lock) ────────────────

    def _take_sequence(self) -> int:
        sequence = self._next_sequence
        self._next_sequence += 1
        return sequence

    def _promote_due(self, now: datetime) -> None:
        while self._delayed and self._delayed[0][0] <= now:
            eligible_at, _, job_id = heapq.heappop(self._delayed)
            job = self._jobs.get(job_id)
            if (
                job is None
                or job.status != JobStatus.FAILED
                or job.is_terminal
                or job.next_eligible_at != eligible_at
            ):
                continue
            heapq.heappush(self._ready, (job.priority, job.sequence, job.id))

    def _claim(self, now: datetime) -> Optional[DispatchJob]:
        self._promote_due(now)
        while self._ready:
            _, _, job_id = heapq.heappop(self._ready)
            job = self._jobs.get(job_id)
            if job is None or job.status not in (JobStatus.PENDING, JobStatus.FAILED):
                continue
            if job.is_terminal:
                continue

            job.status = JobStatus.IN_FLIGHT
            job.visible_until = now + self.visibility_timeout
            job.lease_id = uuid.uuid4().hex
            self._in_flight.add(job.id)
            return job
        return None

    def _seconds_until_next_retry(self, now: datetime) -> Optional[float]:
        if not self._delayed:
            return None
        return max(0.0, (self._delayed[0][0] - now).total_seconds())

    def _held(self, job_id: str, lease_id: Optional[str]) -> Optional[DispatchJob]:
        job = self._jobs.get(job_id)
        if job is None or job.status != JobStatus.IN_FLIGHT:
            return None
        if lease_id is not None and job.lease_id != lease_id:
            return None
        return job

    def _release(self, job: DispatchJob) -> None:
        job.visible_until = None
        job.lease_id = None
        self._in_flight.discard(job.id)

    def _fail(
        self, job: DispatchJob, error: str, now: datetime
    ) -> tuple[bool, list[str]]:
        job.attempt += 1
        job.last_error = error
        job.status = JobStatus.FAILED
        self._release(job)

        if job.attempt < job.max_attempts:
            delay = self.backoff_base_seconds * 2 ** (job.attempt - 1)
            job.next_eligible_at = now + timedelta(seconds=delay)
            heapq.heappush(self._delayed, (job.next_eligible_at, job.sequence, job.id))
            self.counters["retried"] += 1
            self._available.notify_all()
            return False, []

        job.next_eligible_at = None
        job.finished_at = now
        self.counters["failed"] += 1
        return True, self._retain(self._failed, job.id, self.retain_failed)

    def _retain(self, ring: deque[str], job_id: str, limit: int) -> list[str]:
        ring.append(job_id)
        evicted = []
        while len(ring) > limit:
            old = ring.popleft()
            self._jobs.pop(old, None)
            evicted.append(old)
        return evicted

    # ─── Side effects (lock released) ─────────────────────

    async def _after_failure(
        self, job: DispatchJob, terminal: bool, evicted: list[str]
    ) -> None:
        if terminal:
            logger.error(
                "job.failed_permanently",
                job_id=job.id,
                event_type=job.event_type,
                attempts=job.attempt,
                error=job.last_error,
            )
        else:
            logger.warning(
                "job.retry_scheduled",
                job_id=job.id,
                attempt=job.attempt,
                next_eligible_at=job.next_eligible_at.isoformat(),
                error=job.last_error,
            )

        await self._journal_save(job)
        await self._journal_delete(evicted)
        if terminal:
            await self._notify_terminal(job)

    async def _notify_terminal(self, job: DispatchJob) -> None:
        for listener in self._listeners:
            try:
                result = listener(job, job.last_error or "")
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("job.terminal_listener_failed", job_id=job.id)

    async def _journal_save(self, job: DispatchJob) -> None:
        if self.journal is None:
            return
        try:
            await self.journal.save(job)
        except Exception:
            logger.exception("job_queue.journal_save_failed", job_id=job.id)

    async def _journal_delete(self, job_ids: list[str]) -> None:
        if self.journal is None or not job_ids:
            return
        try:
            await self.journal.delete(job_ids)
        except Exception:
            logger.exception("job_queue.journal_delete_failed", job_ids=job_ids)
