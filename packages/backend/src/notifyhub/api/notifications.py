"""Notification read path — list, unread count, mark read.

Learn: These are synchronous, non-queued operations straight against the
store. Read state is last-write-wins; nothing here touches the queue.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from notifyhub.api.deps import get_pipeline
from notifyhub.notifications.store import NotificationNotFoundError
from notifyhub.runtime import Pipeline
from notifyhub.schemas.notification import NotificationRead, ReadAllResult, UnreadCount

router = APIRouter()


@router.get("/notifications/users/{user_id}", response_model=list[NotificationRead])
async def list_notifications(
    user_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    pipeline: Pipeline = Depends(get_pipeline),
):
    """A user's notifications, newest first."""
    return await pipeline.store.list_for_user(user_id, page=page, limit=limit)


@router.get("/notifications/users/{user_id}/unread-count", response_model=UnreadCount)
async def unread_count(user_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    return UnreadCount(count=await pipeline.store.count_unread(user_id))


@router.patch("/notifications/{notification_id}/read", response_model=NotificationRead)
async def mark_read(notification_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    try:
        return await pipeline.store.mark_read(notification_id)
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/notifications/users/{user_id}/read-all", response_model=ReadAllResult)
async def mark_all_read(user_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    updated = await pipeline.store.mark_all_read(user_id)
    return ReadAllResult(updated_count=updated)
