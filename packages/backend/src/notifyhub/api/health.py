"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running
and dependencies (database, Redis) are reachable. Redis being down only
degrades the service — notifications are still persisted, just not pushed.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from notifyhub import __version__
from notifyhub.db.engine import engine as default_engine
from notifyhub.realtime.pubsub import get_redis

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    # Check database
    engine = getattr(request.app.state, "engine", default_engine)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    # Check Redis
    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    pipeline = getattr(request.app.state, "pipeline", None)
    checks["workers"] = "ok" if pipeline and pipeline.pool.running else "stopped"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, **checks}
