"""Dispatch job queue — the only shared mutable state in the pipeline."""

from notifyhub.queue.job_queue import JobQueue, JobStalledError
from notifyhub.queue.models import DispatchJob, JobStatus

__all__ = ["DispatchJob", "JobQueue", "JobStalledError", "JobStatus"]
