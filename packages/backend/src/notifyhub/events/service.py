"""Event service — the producer-side entry point of the pipeline.

Learn: Application code calls emit_*() right after its own database
write (follow created, post published...). Each call routes the event
and enqueues the resulting job; it never waits for workers.
"""

from typing import Optional

import structlog

from notifyhub.events.router import DomainEvent, EventRouter
from notifyhub.events.types import EventType
from notifyhub.queue.job_queue import JobQueue

logger = structlog.get_logger()


class EventService:
    """Route domain events and enqueue the resulting dispatch jobs."""

    def __init__(self, queue: JobQueue, router: Optional[EventRouter] = None):
        self.queue = queue
        self.router = router or EventRouter()

    async def emit(self, event: DomainEvent) -> Optional[str]:
        """Route + enqueue. Returns the job id, or None when nothing was queued."""
        job = self.router.route(event)
        if job is None:
            logger.info(
                "event.skipped",
                event_type=event.event_type,
                actor_id=event.actor_id,
                reason="no_recipients",
            )
            return None
        return await self.queue.enqueue(job)

    async def emit_follow_event(
        self, user_id: str, follower_id: str, follower_username: Optional[str]
    ) -> Optional[str]:
        return await self.emit(
            DomainEvent(
                event_type=EventType.FOLLOW.value,
                actor_id=follower_id,
                actor_username=follower_username,
                payload={"user_id": user_id},
            )
        )

    async def emit_post_event(
        self,
        post_id: str,
        author_id: str,
        author_username: Optional[str],
        title: str,
        follower_ids: list[str],
    ) -> Optional[str]:
        return await self.emit(
            DomainEvent(
                event_type=EventType.POST.value,
                actor_id=author_id,
                actor_username=author_username,
                payload={
                    "post_id": post_id,
                    "title": title,
                    "follower_ids": follower_ids,
                },
            )
        )

    async def emit_like_event(
        self,
        post_id: str,
        liker_id: str,
        liker_username: Optional[str],
        post_author_id: str,
    ) -> Optional[str]:
        return await self.emit(
            DomainEvent(
                event_type=EventType.LIKE.value,
                actor_id=liker_id,
                actor_username=liker_username,
                payload={"post_id": post_id, "post_author_id": post_author_id},
            )
        )

    async def emit_comment_event(
        self,
        post_id: str,
        commenter_id: str,
        commenter_username: Optional[str],
        post_author_id: str,
        comment: str,
    ) -> Optional[str]:
        return await self.emit(
            DomainEvent(
                event_type=EventType.COMMENT.value,
                actor_id=commenter_id,
                actor_username=commenter_username,
                payload={
                    "post_id": post_id,
                    "post_author_id": post_author_id,
                    "comment": comment,
                },
            )
        )
