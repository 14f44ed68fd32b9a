"""Event router — translate a domain event into a dispatch job.

Learn: route() is pure. It picks the priority class and packages exactly
the payload fields the materializer needs for that event type. The only
decision with consequences is the POST rule:

- zero followers → no job at all (empty fan-out never enters the queue)
- N followers    → ONE BULK_POST job carrying all N ids, never N POST jobs,
                   so queue growth is O(posts), not O(posts × followers)
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from notifyhub.events.types import EventType, priority_for, type_name
from notifyhub.queue.models import DispatchJob


class InvalidEventError(ValueError):
    """Raised when an event is missing a field its type requires."""


class DomainEvent(BaseModel):
    """An event as emitted by the application layer."""

    event_type: str = Field(..., min_length=1, max_length=32)
    actor_id: str = Field(..., min_length=1)
    # Shown in notification text; the actor id stands in when absent
    actor_username: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)


def _require(event: DomainEvent, *keys: str) -> dict[str, Any]:
    missing = [key for key in keys if event.payload.get(key) in (None, "")]
    if missing:
        raise InvalidEventError(
            f"{event.event_type} event missing payload field(s): {', '.join(missing)}"
        )
    return event.payload


def _display_name(event: DomainEvent) -> str:
    return event.actor_username or event.actor_id


class EventRouter:
    """Maps domain events to dispatch jobs. No I/O, no enqueue."""

    def route(self, event: DomainEvent) -> Optional[DispatchJob]:
        event_type = type_name(event.event_type)

        if event_type == EventType.FOLLOW.value:
            payload = self._follow_payload(event)
        elif event_type == EventType.POST.value:
            payload = self._post_payload(event)
            if payload is None:
                return None
            event_type = EventType.BULK_POST.value
        elif event_type == EventType.LIKE.value:
            payload = self._like_payload(event)
        elif event_type == EventType.COMMENT.value:
            payload = self._comment_payload(event)
        else:
            # Unknown types still become jobs; the worker logs and acks them.
            payload = {
                **event.payload,
                "actor_id": event.actor_id,
                "actor_username": event.actor_username,
            }

        return DispatchJob(
            event_type=event_type,
            priority=priority_for(event_type),
            payload=payload,
        )

    # ─── Per-type payloads ────────────────────────────────

    def _follow_payload(self, event: DomainEvent) -> dict[str, Any]:
        data = _require(event, "user_id")
        return {
            "user_id": data["user_id"],
            "follower_id": event.actor_id,
            "follower_username": _display_name(event),
        }

    def _post_payload(self, event: DomainEvent) -> Optional[dict[str, Any]]:
        data = _require(event, "post_id", "title")
        follower_ids = [str(fid) for fid in data.get("follower_ids") or []]
        if not follower_ids:
            return None
        return {
            "post_id": data["post_id"],
            "author_id": event.actor_id,
            "author_username": _display_name(event),
            "title": data["title"],
            "follower_ids": follower_ids,
        }

    def _like_payload(self, event: DomainEvent) -> dict[str, Any]:
        data = _require(event, "post_id", "post_author_id")
        return {
            "user_id": data["post_author_id"],
            "post_id": data["post_id"],
            "liker_id": event.actor_id,
            "liker_username": _display_name(event),
        }

    def _comment_payload(self, event: DomainEvent) -> dict[str, Any]:
        data = _require(event, "post_id", "post_author_id")
        return {
            "user_id": data["post_author_id"],
            "post_id": data["post_id"],
            "commenter_id": event.actor_id,
            "commenter_username": _display_name(event),
            "comment": data.get("comment", ""),
        }
