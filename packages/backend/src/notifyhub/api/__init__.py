"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Authentication is the application layer's job; this service sits
behind it, so every router is mounted without auth dependencies.
"""

from fastapi import APIRouter

from notifyhub.api.events import router as events_router
from notifyhub.api.health import router as health_router
from notifyhub.api.notifications import router as notifications_router
from notifyhub.api.queue import router as queue_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(events_router, tags=["events"])
api_router.include_router(notifications_router, tags=["notifications"])
api_router.include_router(queue_router, tags=["queue"])
