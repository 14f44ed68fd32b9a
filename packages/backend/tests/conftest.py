"""Test fixtures — a throwaway SQLite database per test plus fake collaborators.

Learn: Testing pattern for the dispatch pipeline:

1. Each test gets its own file-backed SQLite database (aiosqlite), so
   concurrent worker sessions each get a real connection of their own.
2. Redis is replaced by FakeTransport, which records every publish and
   can simulate offline recipients or a broken connection.
3. Time-sensitive queue tests use FakeClock; pipeline tests shrink the
   backoff base to milliseconds and use the real clock.
4. The API client injects the test pipeline into app.state — the
   lifespan (which would connect to Postgres/Redis) never runs.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notifyhub.config import Settings
from notifyhub.db.engine import create_tables
from notifyhub.notifications.store import SqlNotificationStore
from notifyhub.runtime import build_pipeline


class FakeTransport:
    """Records publishes; `offline` users have no live connection."""

    def __init__(self, offline=(), fail=False):
        self.published: list[tuple[str, dict]] = []
        self.offline = set(offline)
        self.fail = fail

    async def publish(self, user_id, notification):
        if self.fail:
            raise ConnectionError("redis connection reset")
        self.published.append((user_id, notification))
        return 0 if user_id in self.offline else 1


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def fake_transport():
    return FakeTransport()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def test_settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/notifyhub.db",
        worker_concurrency=4,
        worker_poll_timeout_seconds=0.05,
        job_backoff_base_seconds=0.01,
        job_visibility_timeout_seconds=5.0,
        stall_sweep_interval_seconds=0.05,
        shutdown_timeout_seconds=2.0,
    )


@pytest_asyncio.fixture()
async def db_engine(test_settings):
    engine = create_async_engine(test_settings.database_url, echo=False)
    await create_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def store(session_factory):
    return SqlNotificationStore(session_factory)


@pytest_asyncio.fixture()
async def pipeline(session_factory, fake_transport, test_settings):
    """Pipeline wired to the test database, workers NOT started."""
    return build_pipeline(
        session_factory, transport=fake_transport, config=test_settings
    )


@pytest_asyncio.fixture()
async def running_pipeline(pipeline):
    await pipeline.start()
    try:
        yield pipeline
    finally:
        await pipeline.stop()


@pytest.fixture()
def eventually():
    """Poll an (async or sync) predicate until true or fail after `timeout`."""

    async def _eventually(predicate, timeout=3.0, interval=0.02):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            result = predicate()
            if asyncio.iscoroutine(result):
                result = await result
            if result:
                return result
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(interval)

    return _eventually


@pytest_asyncio.fixture()
async def client(running_pipeline, db_engine):
    """HTTP client with the test pipeline injected into app.state."""
    from notifyhub.main import app

    app.state.pipeline = running_pipeline
    app.state.engine = db_engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    del app.state.pipeline
    del app.state.engine
