"""
Unit Tests for TurnLeaseManager

One turn per thread id at a time: reject or queue the second. The Redis
variant extends the exclusion to every worker sharing the same Redis.
"""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from evassist.core.exceptions import SessionBusyError, SessionError
from evassist.infrastructure.session.turn_lock import RedisTurnLeaseManager, TurnLeaseManager


@pytest.mark.unit
class TestRejectPolicy:
    async def test_second_turn_for_busy_thread_is_rejected(self):
        leases = TurnLeaseManager("reject")
        async with leases.lease("t-1"):
            assert leases.is_busy("t-1")
            with pytest.raises(SessionBusyError):
                async with leases.lease("t-1"):
                    pass

    async def test_other_threads_are_independent(self):
        leases = TurnLeaseManager("reject")
        async with leases.lease("t-1"):
            async with leases.lease("t-2"):
                assert leases.is_busy("t-1") and leases.is_busy("t-2")

    async def test_lease_is_released_after_error(self):
        leases = TurnLeaseManager("reject")
        with pytest.raises(RuntimeError):
            async with leases.lease("t-1"):
                raise RuntimeError("turn failed")
        assert not leases.is_busy("t-1")
        assert leases._locks == {}


@pytest.mark.unit
class TestQueuePolicy:
    async def test_turns_for_same_thread_run_one_after_another(self):
        # Arrange
        leases = TurnLeaseManager("queue")
        order: list[str] = []

        async def turn(name: str):
            async with leases.lease("t-1"):
                order.append(f"{name}-start")
                await asyncio.sleep(0)
                order.append(f"{name}-end")

        # Act
        await asyncio.gather(turn("first"), turn("second"))

        # Assert
        assert order == ["first-start", "first-end", "second-start", "second-end"]
        assert leases._locks == {}


@pytest.mark.unit
class TestConfiguration:
    def test_unknown_policy_is_rejected(self):
        with pytest.raises(ValueError):
            TurnLeaseManager("drop")


@pytest.mark.unit
class TestSharedLeases:
    async def test_second_worker_is_rejected_while_first_holds_the_thread(self, in_memory_redis_client):
        # Arrange: two workers over one Redis
        worker_a = RedisTurnLeaseManager(in_memory_redis_client, "reject")
        worker_b = RedisTurnLeaseManager(in_memory_redis_client, "reject")

        # Act / Assert
        async with worker_a.lease("t-1"):
            assert "conv:turn:t-1" in in_memory_redis_client.lock_owners
            with pytest.raises(SessionBusyError):
                async with worker_b.lease("t-1"):
                    pass
            async with worker_b.lease("t-2"):
                pass

        async with worker_b.lease("t-1"):
            pass
        assert in_memory_redis_client.lock_owners == {}

    async def test_queued_turns_across_workers_run_one_after_another(self, in_memory_redis_client):
        worker_a = RedisTurnLeaseManager(in_memory_redis_client, "queue", lease_timeout=5.0)
        worker_b = RedisTurnLeaseManager(in_memory_redis_client, "queue", lease_timeout=5.0)
        order: list[str] = []

        async def turn(leases, name: str):
            async with leases.lease("t-1"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(turn(worker_a, "a"), turn(worker_b, "b"))

        assert order in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    async def test_local_lease_is_released_when_redis_refuses(self, in_memory_redis_client):
        leases = RedisTurnLeaseManager(in_memory_redis_client, "reject")
        in_memory_redis_client.lock_owners["conv:turn:t-1"] = object()

        with pytest.raises(SessionBusyError):
            async with leases.lease("t-1"):
                pass

        assert not leases.is_busy("t-1")

    async def test_redis_failure_becomes_session_error(self, in_memory_redis_client):
        class BrokenLock:
            async def acquire(self):
                raise RedisConnectionError("down")

        in_memory_redis_client.lock = lambda *args, **kwargs: BrokenLock()
        leases = RedisTurnLeaseManager(in_memory_redis_client, "reject")

        with pytest.raises(SessionError):
            async with leases.lease("t-1"):
                pass

    async def test_expired_lease_does_not_fail_the_turn(self, in_memory_redis_client):
        leases = RedisTurnLeaseManager(in_memory_redis_client, "reject")

        async with leases.lease("t-1"):
            # Lock expired and was taken over by another worker
            in_memory_redis_client.lock_owners["conv:turn:t-1"] = object()

        assert not leases.is_busy("t-1")
