"""
Per-Thread Turn Leases

At most one turn per thread id is processed at a time. A second turn for a
thread that is in flight is either rejected (SessionBusyError) or waits for
the first to finish, depending on the configured policy.

TurnLeaseManager serializes turns inside one process. RedisTurnLeaseManager
adds a Redis lock per thread on top, so workers sharing a Redis session
store also exclude each other.

Author: System Architect
Date: 2026-01-12
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from redis.exceptions import LockError, RedisError

from evassist.core.config.constants import REDIS_KEY_TURN_LEASE, Stage
from evassist.core.exceptions import SessionBusyError, SessionError
from evassist.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class TurnLeaseManager:
    def __init__(self, policy: str = "reject"):
        if policy not in ("reject", "queue"):
            raise ValueError(f"Unknown turn concurrency policy: {policy}")
        self.policy = policy
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def is_busy(self, thread_id: str) -> bool:
        lock = self._locks.get(thread_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def lease(self, thread_id: str) -> AsyncIterator[None]:
        """Hold the turn slot of thread_id for the duration of the block."""
        if self.policy == "reject" and self.is_busy(thread_id):
            raise SessionBusyError("A turn for this conversation is already in progress", thread_id=thread_id)

        lock = self._locks.setdefault(thread_id, asyncio.Lock())
        self._holders[thread_id] = self._holders.get(thread_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[thread_id] -= 1
            if self._holders[thread_id] == 0:
                del self._holders[thread_id]
                del self._locks[thread_id]


class RedisTurnLeaseManager(TurnLeaseManager):
    """
    Turn leases shared by every process using the same Redis.

    The local lease is taken first, so turns from one worker never compete
    for the Redis lock among themselves. The Redis lock expires after
    lease_timeout seconds, which frees threads held by a crashed worker.

    Args:
        client: redis.asyncio client
        policy: "reject" or "queue"
        lease_timeout: Lifetime of the Redis lock, also the longest wait under "queue"
    """

    def __init__(self, client, policy: str = "reject", lease_timeout: float = 300.0):
        super().__init__(policy)
        self._redis = client
        self.lease_timeout = lease_timeout

    @staticmethod
    def _key(thread_id: str) -> str:
        return f"{REDIS_KEY_TURN_LEASE}:{thread_id}"

    @asynccontextmanager
    async def lease(self, thread_id: str) -> AsyncIterator[None]:
        async with super().lease(thread_id):
            lock = self._redis.lock(
                self._key(thread_id),
                timeout=self.lease_timeout,
                blocking=self.policy == "queue",
                blocking_timeout=self.lease_timeout,
            )
            try:
                acquired = await lock.acquire()
            except RedisError as e:
                raise SessionError.from_exception(e, thread_id=thread_id) from e
            if not acquired:
                raise SessionBusyError(
                    "A turn for this conversation is already in progress", thread_id=thread_id
                )

            try:
                yield
            finally:
                try:
                    await lock.release()
                except LockError:
                    log_stage(
                        logger,
                        Stage.CLEANUP,
                        "Turn lease expired before the turn finished",
                        level="warning",
                        thread_id=thread_id,
                        lease_timeout=self.lease_timeout,
                    )
