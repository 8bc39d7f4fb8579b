"""Project lock service using Redis for atomic lock operations.

Serializes graph-moving operations (archive, restore, purge) on one project
across API workers and the background worker:
- Atomic acquire with SET NX and a TTL
- Owner-checked release through a Lua script
- ``hold`` context manager for the lifetime of one operation

A lock outliving its TTL is simply dropped by Redis; since every graph move
can be re-run, an expired lock costs at most a duplicate run.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis

from ..config import settings

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = "project_lock:"


def _lock_key(project_id: str) -> str:
    """Build Redis key for a project lock."""
    return f"{LOCK_KEY_PREFIX}{project_id}"


# Lua script: Release lock only if the token matches
# KEYS[1] = lock key, ARGV[1] = token
# Returns 1 if released, 0 if not owner or not found
_RELEASE_LOCK_SCRIPT = """
local data = redis.call('GET', KEYS[1])
if data == false then
    return 0
end
local holder = cjson.decode(data)
if holder.token == ARGV[1] then
    redis.call('DEL', KEYS[1])
    return 1
end
return 0
"""


class ProjectLockedError(Exception):
    """Another archive, restore or purge run holds the project."""

    def __init__(self, project_id: str, holder: Optional[dict] = None) -> None:
        self.project_id = project_id
        self.holder = holder or {}
        operation = self.holder.get("operation", "another operation")
        super().__init__(f"Project {project_id} is locked by {operation}")


class ProjectLockService:
    """
    Service for managing project locks via Redis.

    Redis is expected to be configured with decode_responses=True, so all
    returns are strings (not bytes).
    """

    def __init__(self, client: aioredis.Redis, ttl_seconds: Optional[int] = None) -> None:
        self._client = client
        self._ttl = ttl_seconds or settings.project_lock_ttl_seconds

    async def acquire(self, project_id: str, actor_id: str, operation: str) -> Optional[str]:
        """
        Acquire the lock on a project.

        Args:
            project_id: Project being moved
            actor_id: Identity starting the operation
            operation: "archive", "restore" or "purge"

        Returns:
            Lock token on success, None if the project is already locked.
        """
        token = uuid.uuid4().hex
        value = json.dumps(
            {
                "token": token,
                "actor_id": actor_id,
                "operation": operation,
                "acquired_at": time.time(),
            }
        )

        acquired = await self._client.set(_lock_key(project_id), value, nx=True, ex=self._ttl)
        if not acquired:
            logger.debug(f"Project lock busy: project={project_id}, operation={operation}")
            return None

        logger.info(f"Project lock acquired: project={project_id}, operation={operation}")
        return token

    async def release(self, project_id: str, token: str) -> bool:
        """
        Release a lock only if the token matches (atomic via Lua script).

        Returns:
            True if the lock was released, False if expired or taken over.
        """
        result = await self._client.eval(_RELEASE_LOCK_SCRIPT, 1, _lock_key(project_id), token)

        released = result == 1
        if released:
            logger.info(f"Project lock released: project={project_id}")
        else:
            logger.warning(f"Project lock already gone on release: project={project_id}")
        return released

    async def get_holder(self, project_id: str) -> Optional[dict]:
        """Current lock holder info, or None if the project is not locked."""
        data = await self._client.get(_lock_key(project_id))
        if data is None:
            return None
        return json.loads(data)

    @asynccontextmanager
    async def hold(self, project_id: str, actor_id: str, operation: str) -> AsyncIterator[str]:
        """
        Hold the project lock for the duration of the block.

        Raises:
            ProjectLockedError: If the project is already locked
        """
        token = await self.acquire(project_id, actor_id, operation)
        if token is None:
            raise ProjectLockedError(project_id, await self.get_holder(project_id))
        try:
            yield token
        finally:
            await self.release(project_id, token)
