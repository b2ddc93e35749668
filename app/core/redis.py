"""
Redis Connection
Connection pool for the RQ scheduler backend. The in-process scheduler never
touches Redis, so nothing here runs unless SCHEDULER_BACKEND is "rq".
"""

import logging
from functools import lru_cache
from typing import Optional

from redis import ConnectionPool, Redis
from redis.exceptions import ConnectionError, TimeoutError

from app.core.config import settings

logger = logging.getLogger(__name__)


class Queues:
    """Queue names used by the appraisal service."""
    APPRAISAL = "appraisal"


def mask_redis_url(url: str) -> str:
    """redis://:secret@host:6379 -> redis://***@host:6379"""
    if "@" not in url:
        return url
    scheme = url.split("://", 1)[0] if "://" in url else "redis"
    return f"{scheme}://***@{url.rsplit('@', 1)[-1]}"


class RedisManager:
    """Lazily creates one pooled client per process."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self._client: Optional[Redis] = None

    @property
    def client(self) -> Redis:
        if self._client is None:
            pool = ConnectionPool.from_url(
                self.url,
                max_connections=10,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                decode_responses=False  # RQ stores pickled payloads
            )
            self._client = Redis(connection_pool=pool)
            logger.info(f"Created Redis connection pool for {mask_redis_url(self.url)}")
        return self._client

    def health_check(self) -> dict:
        """Ping Redis and report the appraisal backlog."""
        try:
            info = self.client.info("server")
            backlog = self.client.llen(f"rq:queue:{Queues.APPRAISAL}")
            return {
                "connected": True,
                "redis_version": info.get("redis_version", "unknown"),
                "appraisal_backlog": backlog,
                "url": mask_redis_url(self.url),
            }
        except (ConnectionError, TimeoutError) as e:
            logger.error(f"Redis health check failed: {e}")
            return {
                "connected": False,
                "error": str(e),
                "url": mask_redis_url(self.url),
            }


@lru_cache()
def get_redis_manager() -> RedisManager:
    return RedisManager()


def get_redis() -> Redis:
    """Pooled Redis client for RQ queues and workers."""
    return get_redis_manager().client


def redis_health_check() -> dict:
    return get_redis_manager().health_check()


__all__ = [
    "Queues",
    "RedisManager",
    "get_redis",
    "get_redis_manager",
    "mask_redis_url",
    "redis_health_check",
]
