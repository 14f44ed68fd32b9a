"""Redis pub/sub — per-user notification channels.

Learn: Redis pub/sub is fire-and-forget. If no one is listening, the message
is lost. That's fine for live notifications: the row is already in the
database, and the client catches up on its next fetch.

Channel naming: notifyhub:notifications:{user_id}
Each user's WebSocket only subscribes to its own channel, so publishing
to a user with no open connection is a cheap no-op.
"""

import json
from typing import Any, Optional

import redis.asyncio as aioredis

from notifyhub.config import settings

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


def user_channel(user_id: str) -> str:
    return f"notifyhub:notifications:{user_id}"


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Only a client that answered ping becomes the global one
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


class RedisTransport:
    """Transport that publishes to the recipient's Redis channel."""

    def __init__(self, redis: aioredis.Redis):
        self.redis = redis

    async def publish(self, user_id: str, notification: dict[str, Any]) -> int:
        """Publish to every live connection of `user_id`; returns receiver count."""
        payload = json.dumps(
            {"type": "notification", "notification": notification},
            default=str,
        )
        return await self.redis.publish(user_channel(user_id), payload)
