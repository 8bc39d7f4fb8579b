"""Redis connection shared by the API and the ARQ worker.

Redis is optional: without it the service runs single-process and graph
moves are not serialized across workers.
"""

import logging
import time
from typing import Any, Optional

import redis.asyncio as aioredis

from ..config import settings
from .project_lock_service import LOCK_KEY_PREFIX, ProjectLockService

logger = logging.getLogger(__name__)


class RedisService:
    """Owns the lifecycle of one pooled ``redis.asyncio`` client."""

    def __init__(self) -> None:
        self._redis: Optional[aioredis.Redis] = None

    async def connect(self, url: Optional[str] = None) -> None:
        """Open the pool and verify the server answers."""
        client = aioredis.from_url(
            url or settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            retry_on_timeout=settings.redis_retry_on_timeout,
            decode_responses=True,
        )
        await client.ping()
        self._redis = client
        logger.info(f"Redis connected ({settings.redis_max_connections} max connections)")

    async def disconnect(self) -> None:
        if self._redis is None:
            return
        await self._redis.aclose()
        self._redis = None
        logger.info("Redis disconnected")

    @property
    def client(self) -> aioredis.Redis:
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis

    @property
    def is_connected(self) -> bool:
        return self._redis is not None

    def project_lock(self) -> Optional[ProjectLockService]:
        """Project lock on this connection, or None when Redis is unavailable."""
        if self._redis is None:
            return None
        return ProjectLockService(self._redis)

    async def health_check(self) -> dict[str, Any]:
        """
        Ping latency and the number of project locks currently held.

        Returns:
            dict with ``status`` and, when connected, ``latency_ms`` and
            ``held_project_locks``
        """
        if self._redis is None:
            return {"status": "disconnected"}

        try:
            started = time.perf_counter()
            await self._redis.ping()
            latency_ms = round((time.perf_counter() - started) * 1000, 2)

            held = 0
            async for _ in self._redis.scan_iter(match=f"{LOCK_KEY_PREFIX}*", count=100):
                held += 1
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            return {"status": "error", "error": str(e)}

        return {"status": "healthy", "latency_ms": latency_ms, "held_project_locks": held}


redis_service = RedisService()
