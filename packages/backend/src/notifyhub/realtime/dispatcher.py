"""Realtime dispatcher — best-effort live push of freshly written notifications.

Learn: push() never blocks, never retries and never raises. Each push is
scheduled as its own task; a failure is logged and counted, then
forgotten. The notification row is the source of truth — a dropped
push only means the client sees it on its next fetch instead of now.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol

import structlog

from notifyhub.db.models import Notification

logger = structlog.get_logger()


class Transport(Protocol):
    async def publish(self, user_id: str, notification: dict[str, Any]) -> Any: ...


@dataclass
class PushStats:
    sent: int = 0
    dropped: int = 0  # no transport, or nobody listening
    failed: int = 0


class RealtimeDispatcher:
    """Fire-and-forget delivery to the recipient's live connections."""

    def __init__(self, transport: Optional[Transport] = None):
        self.transport = transport
        self.stats = PushStats()
        self._pending: set[asyncio.Task] = set()

    def push(self, notification: Notification) -> None:
        """Schedule delivery and return immediately."""
        if self.transport is None:
            self.stats.dropped += 1
            return
        task = asyncio.create_task(
            self._deliver(notification.user_id, notification.to_dict())
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def push_many(self, notifications: Iterable[Notification]) -> None:
        # No ordering across recipients is promised.
        for notification in notifications:
            self.push(notification)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding pushes (shutdown, tests)."""
        if self._pending:
            await asyncio.wait(set(self._pending), timeout=timeout)

    async def _deliver(self, user_id: str, payload: dict[str, Any]) -> None:
        try:
            receivers = await self.transport.publish(user_id, payload)
        except Exception as e:
            self.stats.failed += 1
            logger.warning(
                "realtime.push_failed",
                user_id=user_id,
                notification_id=payload.get("id"),
                error=str(e),
            )
            return

        if receivers == 0:
            self.stats.dropped += 1
            logger.debug("realtime.recipient_offline", user_id=user_id)
        else:
            self.stats.sent += 1
