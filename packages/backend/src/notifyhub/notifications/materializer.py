"""Notification materializer — one dispatch job in, one or many notification rows out.

Learn: build() is the pure part (templates + fan-out), materialize()
adds the single batch write through the store. Every record gets its
own id, even when a BULK_POST job produces thousands of them.

Templates:
  FOLLOW          "New Follower" / "{follower_username} started following you"
  POST, BULK_POST "New Post"     / "{author_username} created a new post: {title}"

LIKE and COMMENT have no template yet; the handler registry doesn't
route them here.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from notifyhub.db.models import Notification
from notifyhub.events.types import EventType
from notifyhub.notifications.store import NotificationStore
from notifyhub.queue.models import DispatchJob

FOLLOW_TITLE = "New Follower"
FOLLOW_MESSAGE = "{follower_username} started following you"
POST_TITLE = "New Post"
POST_MESSAGE = "{author_username} created a new post: {title}"


class UnsupportedEventTypeError(Exception):
    """Raised when asked to materialize a type without a template."""


def _new_notification(
    *, user_id: str, type_: str, title: str, message: str, data: dict[str, Any]
) -> Notification:
    return Notification(
        id=str(uuid.uuid4()),
        user_id=str(user_id),
        type=type_,
        title=title,
        message=message,
        data=data,
        read=False,
        created_at=datetime.now(timezone.utc),
    )


def _post_message(payload: dict[str, Any]) -> str:
    return POST_MESSAGE.format(
        author_username=payload.get("author_username") or payload.get("author_id"),
        title=payload.get("title"),
    )


def _post_data(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "post_id": payload.get("post_id"),
        "author_id": payload.get("author_id"),
        "author_username": payload.get("author_username"),
    }


class NotificationMaterializer:
    """Turns dispatch jobs into Notification records and writes them."""

    def __init__(self, store: NotificationStore):
        self.store = store
        self._builders: dict[str, Callable[[dict[str, Any]], list[Notification]]] = {
            EventType.FOLLOW.value: self._build_follow,
            EventType.POST.value: self._build_post,
            EventType.BULK_POST.value: self._build_bulk_post,
        }

    @property
    def supported_types(self) -> frozenset[str]:
        return frozenset(self._builders)

    def build(self, job: DispatchJob) -> list[Notification]:
        """Pure fan-out: job → unsaved Notification records."""
        builder = self._builders.get(job.event_type)
        if builder is None:
            raise UnsupportedEventTypeError(
                f"No notification template for event type {job.event_type}"
            )
        return builder(job.payload)

    async def materialize(self, job: DispatchJob) -> list[Notification]:
        """Build and persist; returns the records the store actually wrote."""
        notifications = self.build(job)
        if not notifications:
            return []
        return await self.store.create_batch(notifications)

    # ─── Builders ─────────────────────────────────────────

    def _build_follow(self, payload: dict[str, Any]) -> list[Notification]:
        return [
            _new_notification(
                user_id=payload["user_id"],
                type_=EventType.FOLLOW.value,
                title=FOLLOW_TITLE,
                message=FOLLOW_MESSAGE.format(
                    follower_username=payload.get("follower_username")
                    or payload.get("follower_id")
                ),
                data={
                    "follower_id": payload.get("follower_id"),
                    "follower_username": payload.get("follower_username"),
                },
            )
        ]

    def _build_post(self, payload: dict[str, Any]) -> list[Notification]:
        # Single-recipient path; the router only ever emits BULK_POST.
        return [
            _new_notification(
                user_id=payload["user_id"],
                type_=EventType.POST.value,
                title=POST_TITLE,
                message=_post_message(payload),
                data=_post_data(payload),
            )
        ]

    def _build_bulk_post(self, payload: dict[str, Any]) -> list[Notification]:
        message = _post_message(payload)
        data = _post_data(payload)
        return [
            _new_notification(
                user_id=follower_id,
                type_=EventType.POST.value,
                title=POST_TITLE,
                message=message,
                data=dict(data),
            )
            for follower_id in payload.get("follower_ids") or []
        ]
