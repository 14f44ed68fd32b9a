"""Notification store — the narrow persistence interface the pipeline writes through.

Learn: The materializer only creates rows; the read path (API) only
lists, counts and flips `read`. Batch inserts are NOT all-or-nothing:
if the single-transaction insert fails we fall back to row-by-row so one
bad recipient can't block its siblings. The fallback is only for
per-row errors (constraint or data problems). A connectivity failure
raises StoreUnavailableError at once, as does a batch where nothing at
all could be written; the worker then retries the whole job.
"""

from typing import Protocol, Sequence

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import (
    DBAPIError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notifyhub.db.models import Notification

logger = structlog.get_logger()


class StoreUnavailableError(Exception):
    """Raised when the store could not persist any of the given records."""


class NotificationNotFoundError(Exception):
    """Raised when a notification id does not exist."""


class NotificationStore(Protocol):
    async def create(self, notification: Notification) -> Notification: ...

    async def create_batch(
        self, notifications: Sequence[Notification]
    ) -> list[Notification]: ...

    async def list_for_user(
        self, user_id: str, page: int = 1, limit: int = 20
    ) -> list[Notification]: ...

    async def count_unread(self, user_id: str) -> int: ...

    async def mark_read(self, notification_id: str) -> Notification: ...

    async def mark_all_read(self, user_id: str) -> int: ...


def _connection_lost(error: SQLAlchemyError) -> bool:
    if isinstance(error, (OperationalError, InterfaceError, PoolTimeoutError)):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated


def _row(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data or {},
        "read": bool(notification.read),
        "created_at": notification.created_at,
    }


class SqlNotificationStore:
    """NotificationStore backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # ─── Write path (materializer) ────────────────────────

    async def create(self, notification: Notification) -> Notification:
        created = await self.create_batch([notification])
        return created[0]

    async def create_batch(
        self, notifications: Sequence[Notification]
    ) -> list[Notification]:
        """Insert many rows; returns the ones that were written."""
        if not notifications:
            return []

        try:
            async with self.session_factory() as db:
                await db.execute(insert(Notification), [_row(n) for n in notifications])
                await db.commit()
            return list(notifications)
        except SQLAlchemyError as e:
            if _connection_lost(e):
                logger.warning(
                    "store.unavailable", count=len(notifications), error=str(e)
                )
                raise StoreUnavailableError(str(e)) from e
            logger.warning(
                "store.batch_insert_failed",
                count=len(notifications),
                error=str(e),
            )

        created = []
        last_error = None
        for notification in notifications:
            try:
                async with self.session_factory() as db:
                    await db.execute(insert(Notification), [_row(notification)])
                    await db.commit()
                created.append(notification)
            except SQLAlchemyError as e:
                last_error = e
                logger.warning(
                    "store.insert_failed",
                    notification_id=notification.id,
                    user_id=notification.user_id,
                    error=str(e),
                )
                if _connection_lost(e):
                    break

        if not created:
            raise StoreUnavailableError(
                f"none of {len(notifications)} notifications could be written"
            ) from last_error

        logger.info(
            "store.batch_partial",
            created=len(created),
            failed=len(notifications) - len(created),
        )
        return created

    # ─── Read path (API) ──────────────────────────────────

    async def list_for_user(
        self, user_id: str, page: int = 1, limit: int = 20
    ) -> list[Notification]:
        """Newest first, paginated."""
        page = max(page, 1)
        async with self.session_factory() as db:
            result = await db.execute(
                select(Notification)
                .where(Notification.user_id == user_id)
                .order_by(Notification.created_at.desc(), Notification.id)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def count_unread(self, user_id: str) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.count())
                .select_from(Notification)
                .where(Notification.user_id == user_id, Notification.read.is_(False))
            )
            return result.scalar_one()

    async def mark_read(self, notification_id: str) -> Notification:
        async with self.session_factory() as db:
            notification = await db.get(Notification, notification_id)
            if not notification:
                raise NotificationNotFoundError(
                    f"Notification {notification_id} not found"
                )
            notification.read = True
            await db.commit()
            return notification

    async def mark_all_read(self, user_id: str) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.read.is_(False))
                .values(read=True)
            )
            await db.commit()
            return result.rowcount
