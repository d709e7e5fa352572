"""Redis client used for AI quota counters."""

import redis.asyncio as redis
import structlog

from stratix.core.config import get_settings

logger = structlog.get_logger(__name__)

_redis: redis.Redis | None = None


async def init_redis(url: str | None = None) -> None:
    """Create the shared client and verify connectivity.

    A failed ping is logged, not raised: quota checks degrade to "allowed"
    when Redis is down (see AIUsageLimiter).
    """
    global _redis

    if _redis is not None:
        return

    _redis = redis.from_url(
        url or get_settings().redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await _redis.ping()
    except redis.RedisError as e:
        logger.warning("redis_unreachable_at_startup", error=str(e))


async def close_redis() -> None:
    global _redis

    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> redis.Redis:
    """Return the shared client.

    Raises RuntimeError if init_redis() has not been called.
    """
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
