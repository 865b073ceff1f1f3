"""Shared Redis connection plus the profile cache and auth throttle built on it.

Redis is an accelerator here, never a source of truth: every helper in this
module degrades to "cache miss" or "allowed" when Redis is unreachable.
"""

import json
from typing import Any, cast
from uuid import UUID

import redis
import structlog

from inkwell.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None


def user_cache_key(user_id: UUID | str) -> str:
    return f"user:{user_id}"


def auth_rate_limit_key(client_ip: str) -> str:
    return f"ratelimit:auth:{client_ip}"


def get_redis_client() -> redis.Redis:
    """Return the process-wide client, connecting lazily on first use."""
    global _redis_client

    if _redis_client is None:
        pool = redis.ConnectionPool(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username or None,
            password=settings.redis_password or None,
            decode_responses=True,
            socket_connect_timeout=settings.redis_connect_timeout,
            socket_keepalive=True,
            health_check_interval=30,
        )
        _redis_client = redis.Redis(connection_pool=pool)
        logger.debug("redis_client_created", host=settings.redis_host, port=settings.redis_port)

    return _redis_client


async def check_redis_connection() -> bool:
    """Ping Redis; used by startup logging and the detailed health check."""
    try:
        return bool(get_redis_client().ping())
    except redis.RedisError as e:
        logger.debug("redis_ping_failed", error=str(e))
        return False


def close_redis_connection() -> None:
    global _redis_client

    if _redis_client is None:
        return
    _redis_client.close()
    _redis_client = None


class RateLimiter:
    """Fixed-window hit counter keyed by caller."""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def check_rate_limit(self, key: str, limit: int, window: int = 60) -> bool:
        """
        Record one hit for ``key`` and report whether it is still within ``limit``.

        The window opens on the first hit and is not extended by later ones.
        A counter left without an expiry (the first ``expire`` failed) gets one
        on its next hit. An unreachable Redis admits the request.
        """
        try:
            hits = int(cast(int, self.redis.incr(key)))
            if hits == 1 or int(cast(int, self.redis.ttl(key))) == -1:
                self.redis.expire(key, window)
        except Exception as e:
            logger.warning("rate_limiter_unavailable", key=key, error=str(e))
            return True

        if hits > limit:
            logger.info("rate_limit_exceeded", key=key, hits=hits, limit=limit)
            return False
        return True


class CacheManager:
    """JSON values in Redis with best-effort semantics."""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def get_json(self, key: str) -> Any | None:
        try:
            raw = cast(str | None, self.redis.get(key))
        except Exception as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            # Unreadable entry: drop it so the next read repopulates
            self.delete(key)
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store ``value`` as JSON; UUIDs and datetimes are written via ``str``."""
        payload = json.dumps(value, default=str)
        try:
            if ttl:
                self.redis.setex(key, ttl, payload)
            else:
                self.redis.set(key, payload)
        except Exception as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            self.redis.delete(key)
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False
        return True
