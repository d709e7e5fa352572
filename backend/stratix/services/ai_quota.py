"""Hourly per-user quotas for AI-assisted onboarding calls."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from stratix.core.config import get_settings
from stratix.core.exceptions import InvalidArgumentError, RateLimitExceededError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class QuotaStatus:
    operation: str
    used: int
    limit: int
    reset_at: int  # unix seconds

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    @property
    def allowed(self) -> bool:
        return self.used <= self.limit

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_at": self.reset_at,
        }


class AIUsageLimiter:
    """Fixed-window hourly counters keyed by user, operation and UTC hour.

    Redis outages never block onboarding: the check is logged and allowed.
    """

    def __init__(self, redis: Redis, limits: dict[str, int] | None = None):
        self.redis = redis
        self.limits = limits if limits is not None else get_settings().ai_hourly_limits

    def limit_for(self, operation: str) -> int:
        if operation not in self.limits:
            raise InvalidArgumentError(f"Unknown AI operation: {operation}")
        return self.limits[operation]

    @staticmethod
    def _window(now: datetime) -> tuple[str, datetime]:
        start = now.replace(minute=0, second=0, microsecond=0)
        return start.strftime("%Y%m%d%H"), start + timedelta(hours=1)

    @staticmethod
    def _key(user_id: str, operation: str, window: str) -> str:
        return f"ai_quota:{user_id}:{operation}:{window}"

    async def consume(self, user_id: str, operation: str, now: datetime | None = None) -> QuotaStatus:
        """Count one call against the user's hourly quota.

        Args:
            user_id: Authenticated user id
            operation: "analysis", "validation" or "completion"
            now: Current time (for deterministic testing)

        Raises:
            RateLimitExceededError: If this call exceeds the hourly limit
        """
        now = now or datetime.now(UTC)
        limit = self.limit_for(operation)
        window, reset = self._window(now)
        reset_at = int(reset.timestamp())
        key = self._key(user_id, operation, window)

        try:
            used = await self.redis.incr(key)
            if used == 1:
                await self.redis.expireat(key, reset_at)
        except RedisError as e:
            logger.warning("ai_quota_check_skipped", user_id=user_id, operation=operation, error=str(e))
            return QuotaStatus(operation=operation, used=0, limit=limit, reset_at=reset_at)

        status = QuotaStatus(operation=operation, used=used, limit=limit, reset_at=reset_at)
        if not status.allowed:
            logger.info("ai_quota_exceeded", user_id=user_id, operation=operation, limit=limit)
            raise RateLimitExceededError(operation, limit, reset_at)
        return status

    async def get_status(self, user_id: str, operation: str, now: datetime | None = None) -> QuotaStatus:
        """Current usage without consuming a call."""
        now = now or datetime.now(UTC)
        limit = self.limit_for(operation)
        window, reset = self._window(now)
        reset_at = int(reset.timestamp())

        try:
            raw = await self.redis.get(self._key(user_id, operation, window))
        except RedisError as e:
            logger.warning("ai_quota_status_unavailable", user_id=user_id, operation=operation, error=str(e))
            raw = None

        return QuotaStatus(operation=operation, used=int(raw) if raw else 0, limit=limit, reset_at=reset_at)
