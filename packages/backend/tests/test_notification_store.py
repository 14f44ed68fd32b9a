"""Notification store tests — batch writes, partial success, read path."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from notifyhub.db.models import Notification
from notifyhub.notifications.store import (
    NotificationNotFoundError,
    SqlNotificationStore,
    StoreUnavailableError,
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _notification(user_id="U1", id=None, minutes=0, title="New Follower"):
    return Notification(
        id=id or str(uuid.uuid4()),
        user_id=user_id,
        type="FOLLOW",
        title=title,
        message="bob started following you",
        data={"follower_id": "U2"},
        read=False,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


# ─── Write path ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_and_list(store):
    created = await store.create(_notification())
    [row] = await store.list_for_user("U1")
    assert row.id == created.id
    assert row.data == {"follower_id": "U2"}
    assert row.read is False


@pytest.mark.asyncio
async def test_create_batch_writes_every_record(store):
    batch = [_notification(user_id=u) for u in ("A", "B", "C")]
    written = await store.create_batch(batch)
    assert [n.id for n in written] == [n.id for n in batch]
    for user_id in ("A", "B", "C"):
        assert await store.count_unread(user_id) == 1


@pytest.mark.asyncio
async def test_batch_partial_success_keeps_good_rows(store):
    existing = await store.create(_notification(user_id="A"))
    batch = [
        _notification(user_id="A", id=existing.id),  # duplicate primary key
        _notification(user_id="B"),
        _notification(user_id="C"),
    ]

    written = await store.create_batch(batch)

    assert [n.user_id for n in written] == ["B", "C"]
    assert await store.count_unread("A") == 1
    assert await store.count_unread("B") == 1
    assert await store.count_unread("C") == 1


@pytest.mark.asyncio
async def test_batch_total_failure_raises(store):
    existing = await store.create(_notification(user_id="A"))
    with pytest.raises(StoreUnavailableError):
        await store.create_batch([_notification(user_id="A", id=existing.id)])


class UnreachableDatabase:
    """Session factory whose every connection attempt is refused."""

    def __init__(self):
        self.attempts = 0

    def __call__(self):
        self.attempts += 1
        raise OperationalError(
            "INSERT INTO notifications", {}, ConnectionRefusedError("connection refused")
        )


@pytest.mark.asyncio
async def test_unreachable_database_fails_fast():
    database = UnreachableDatabase()
    store = SqlNotificationStore(database)
    batch = [_notification(user_id=u) for u in ("A", "B", "C", "D")]

    with pytest.raises(StoreUnavailableError):
        await store.create_batch(batch)

    assert database.attempts == 1


@pytest.mark.asyncio
async def test_empty_batch(store):
    assert await store.create_batch([]) == []


# ─── Read path ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_is_newest_first_and_paginated(store):
    await store.create_batch(
        [_notification(minutes=m, title=f"n{m}") for m in range(5)]
    )

    first = await store.list_for_user("U1", page=1, limit=2)
    second = await store.list_for_user("U1", page=2, limit=2)
    last = await store.list_for_user("U1", page=3, limit=2)

    assert [n.title for n in first] == ["n4", "n3"]
    assert [n.title for n in second] == ["n2", "n1"]
    assert [n.title for n in last] == ["n0"]
    assert await store.list_for_user("nobody") == []


@pytest.mark.asyncio
async def test_mark_read(store):
    created = await store.create(_notification())
    assert await store.count_unread("U1") == 1

    updated = await store.mark_read(created.id)
    assert updated.read is True
    assert await store.count_unread("U1") == 0


@pytest.mark.asyncio
async def test_mark_read_unknown_id(store):
    with pytest.raises(NotificationNotFoundError):
        await store.mark_read("missing")


@pytest.mark.asyncio
async def test_mark_all_read_only_touches_one_user(store):
    await store.create_batch(
        [_notification(), _notification(), _notification(user_id="U9")]
    )

    assert await store.mark_all_read("U1") == 2
    assert await store.count_unread("U1") == 0
    assert await store.count_unread("U9") == 1
    assert await store.mark_all_read("U1") == 0
