"""
Distributed lock.

Redis lease lock (SET NX PX with an owner token). Release and extend
only succeed for the owner, so an expired lease taken over by another
process is never released by the previous holder.
"""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from loguru import logger

from payplan.utils.exceptions import LockNotAcquiredError

# Delete only if the stored token is ours
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

# Extend only if the stored token is ours
_EXTEND_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("pexpire", KEYS[1], ARGV[2])
else
    return 0
end
"""

KEY_PREFIX = "payplan:lock:"


class DistributedLock:
    """
    Redis lease lock.

    Example:
        lock = DistributedLock(redis_client=redis_client)
        async with lock.lock("binary_matching", timeout=900) as lease:
            ...
            await lease.extend()
    """

    def __init__(self, redis_client: redis.Redis) -> None:
        """
        Initialize lock.

        Args:
            redis_client: Async Redis client
        """
        self.redis_client = redis_client

    async def acquire(self, key: str, timeout: int) -> "Lease | None":
        """
        Try to take the lease once.

        Args:
            key: Lock name
            timeout: Lease duration in seconds

        Returns:
            Lease or None if someone else holds it
        """
        token = uuid.uuid4().hex
        full_key = KEY_PREFIX + key
        acquired = await self.redis_client.set(
            full_key, token, nx=True, px=timeout * 1000
        )
        if not acquired:
            return None
        logger.debug(f"Lock acquired: {key}")
        return Lease(self.redis_client, full_key, token, timeout)

    @asynccontextmanager
    async def lock(self, key: str, timeout: int) -> AsyncIterator["Lease"]:
        """
        Hold the lease for the duration of the block.

        Args:
            key: Lock name
            timeout: Lease duration in seconds

        Raises:
            LockNotAcquiredError: If the lease is held elsewhere
        """
        lease = await self.acquire(key, timeout)
        if lease is None:
            raise LockNotAcquiredError(key)
        try:
            yield lease
        finally:
            await lease.release()


class Lease:
    """Held lease on a lock key."""

    def __init__(
        self,
        redis_client: redis.Redis,
        key: str,
        token: str,
        timeout: int,
    ) -> None:
        self.redis_client = redis_client
        self.key = key
        self.token = token
        self.timeout = timeout

    async def extend(self) -> bool:
        """
        Push lease expiry forward by the original timeout.

        Returns:
            False if the lease was lost
        """
        result = await self.redis_client.eval(
            _EXTEND_SCRIPT, 1, self.key, self.token, self.timeout * 1000
        )
        if not result:
            logger.warning(f"Lease lost before extend: {self.key}")
        return bool(result)

    async def release(self) -> bool:
        """
        Release the lease if still owned.

        Returns:
            True if released
        """
        try:
            result = await self.redis_client.eval(
                _RELEASE_SCRIPT, 1, self.key, self.token
            )
        except redis.RedisError as e:
            # Lease expires on its own
            logger.warning(f"Failed to release lock {self.key}: {e}")
            return False
        return bool(result)
