"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown:

  startup:  tables → Redis → pipeline (restore journaled jobs, start workers)
  shutdown: stop workers (graceful) → drain live pushes → Redis → engine

The workers run inside the API process because the job queue lives in
its memory; the journal makes it survive restarts.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notifyhub import __version__
from notifyhub.api import api_router
from notifyhub.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    from notifyhub.db.engine import async_session_factory, create_tables, engine
    from notifyhub.realtime.pubsub import RedisTransport, close_redis, init_redis
    from notifyhub.runtime import build_pipeline

    logger.info(
        "notifyhub.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    if settings.create_tables:
        await create_tables(engine)

    transport = None
    try:
        transport = RedisTransport(await init_redis())
        logger.info("notifyhub.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("notifyhub.redis_unavailable", error=str(e))
        # Redis is optional — notifications persist, live push is skipped

    pipeline = build_pipeline(async_session_factory, transport=transport)
    app.state.pipeline = pipeline
    app.state.engine = engine
    await pipeline.start()
    logger.info("notifyhub.workers_started", concurrency=settings.worker_concurrency)

    yield

    logger.info("notifyhub.shutdown")
    await pipeline.stop()
    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="notifyhub",
        description="Notification fan-out and real-time dispatch service",
        version=__version__,
        lifespan=lifespan,
    )

    from notifyhub.middleware.request_id import RequestIdMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from notifyhub.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: notifyhub.main:app)
app = create_app()
