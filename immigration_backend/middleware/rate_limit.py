"""
Rate Limiting
=============

Redis-based sliding-window rate limiting for API endpoints.

Counters live in Redis so every worker shares them. When Redis cannot be
reached requests are allowed and a warning is logged.

Usage:
    @router.post("/invite", dependencies=[Depends(rate_limit("calls:invite", 10))])
"""

import time
import uuid
import logging
from typing import Optional

import redis
from fastapi import Request

from ..auth import decode_token
from ..config import get_settings
from ..errors import RateLimitError

logger = logging.getLogger(__name__)

# Requests per minute per caller
LIMIT_CASE_STATUS = 100
LIMIT_CALL_INVITE = 10
LIMIT_CALL_ACTION = 20
LIMIT_DOCUMENTS = 100
LIMIT_NOTIFICATIONS = 100
LIMIT_AUTH_SENSITIVE = 5
LIMIT_LOGIN = 20


class RateLimiter:
    """
    Redis-based rate limiter using sliding window algorithm.
    """

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._client = None

    @property
    def client(self):
        """Lazy-load Redis client"""
        if self._client is None:
            try:
                self._client = redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=1,
                )
                self._client.ping()
            except redis.RedisError as e:
                logger.warning(f"Redis connection failed: {e}")
                self._client = None

        return self._client

    def is_allowed(
        self,
        key: str,
        limit: int,
        window_seconds: int = 60
    ) -> tuple:
        """
        Check if request is allowed under rate limit.

        Args:
            key: Rate limit key (e.g., "ratelimit:calls:invite:user:123")
            limit: Maximum requests allowed
            window_seconds: Time window in seconds

        Returns:
            (is_allowed, remaining, reset_time)
        """
        client = self.client
        if not client:
            # No Redis - allow all
            return (True, limit, 0)

        now = time.time()
        window_start = now - window_seconds

        try:
            pipe = client.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            # Unique member so requests in the same instant are all counted
            pipe.zadd(key, {f"{now}:{uuid.uuid4().hex}": now})
            pipe.expire(key, window_seconds)

            results = pipe.execute()
            current_count = results[1]

            remaining = max(0, limit - current_count - 1)
            reset_time = int(now + window_seconds)

            if current_count >= limit:
                return (False, 0, reset_time)

            return (True, remaining, reset_time)

        except redis.RedisError as e:
            logger.warning(f"Rate limit check failed: {e}")
            return (True, limit, 0)


# Singleton rate limiter
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get singleton rate limiter instance"""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(get_settings().redis_url)
    return _rate_limiter


def set_rate_limiter(limiter: Optional[RateLimiter]) -> None:
    """Replace the singleton (tests)."""
    global _rate_limiter
    _rate_limiter = limiter


def _caller_key(request: Request) -> str:
    """Authenticated user id when the bearer token decodes, else client address."""
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith("bearer "):
        payload = decode_token(authorization.split(" ", 1)[1].strip())
        if payload and payload.get("sub"):
            return f"user:{payload['sub']}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def rate_limit(scope: str, limit: int, window_seconds: int = 60):
    """Dependency factory enforcing `limit` requests per window for `scope`."""

    async def _dependency(request: Request) -> None:
        if not get_settings().rate_limit_enabled:
            return

        key = f"ratelimit:{scope}:{_caller_key(request)}"
        allowed, _remaining, reset = get_rate_limiter().is_allowed(key, limit, window_seconds)
        if not allowed:
            retry_after = max(1, reset - int(time.time()))
            logger.warning(f"Rate limit exceeded for {key} ({limit}/{window_seconds}s)")
            raise RateLimitError(
                f"Rate limit exceeded: {limit} requests per minute",
                retry_after=retry_after,
            )

    return _dependency
