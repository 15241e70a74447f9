"""
Redis-based distributed lock.

Used to serialise a driver's COD hand-in across API processes and to keep
the transfer-expiry sweep single-instance.

Implementation uses SET NX EX for acquire and a Lua script for
atomic check-and-delete on release.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

from cargolink.domain.errors import InvalidOperationError

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(InvalidOperationError):
    """Another holder owns the lock."""


class DistributedLock:
    def __init__(self, client: aioredis.Redis, key: str, ttl_seconds: int = 30):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(await self.redis.set(self.key, self.token, nx=True, ex=self.ttl))

    async def release(self) -> bool:
        """Release only if we still own the lock (atomic via Lua)."""
        return bool(await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token))

    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(f"Operation already in progress: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()
