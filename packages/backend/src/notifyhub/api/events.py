"""Event intake — the application layer reports domain events here.

Learn: The endpoint only routes and enqueues, then answers 202. A POST
event with no followers is accepted but queues nothing (job_id=null).
"""

from fastapi import APIRouter, Depends, HTTPException

from notifyhub.api.deps import get_pipeline
from notifyhub.events.router import DomainEvent, InvalidEventError
from notifyhub.runtime import Pipeline
from notifyhub.schemas.queue import EventAccepted

router = APIRouter()


@router.post("/events", response_model=EventAccepted, status_code=202)
async def submit_event(
    event: DomainEvent,
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Route a domain event into the dispatch queue."""
    try:
        job_id = await pipeline.events.emit(event)
    except InvalidEventError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return EventAccepted(job_id=job_id, queued=job_id is not None)
