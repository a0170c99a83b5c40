"""
Pytest Configuration and Shared Test Fixtures

All fixtures defined here are automatically available to all test files.
Time never passes on its own in these tests: components receive a FakeClock
and a RecordingSleep, and the upstream API is an httpx.MockTransport.
"""

import asyncio
from collections.abc import Callable

import httpx
import orjson
import pytest
from redis.exceptions import LockNotOwnedError

from evassist.core.config.constants import TTLClass
from evassist.core.config.settings import Settings
from evassist.core.resilience import (
    CircuitBreaker,
    FixedWindowRateLimiter,
    ResilienceCache,
    RetryPolicy,
)
from evassist.infrastructure.session import InMemorySessionStore
from evassist.infrastructure.upstream import AmpecoTransport, ResilientExternalClient

UPSTREAM_BASE_URL = "https://tenant.ampeco.test"


# ============================================================================
# Time
# ============================================================================


class FakeClock:
    """Manually advanced clock, usable wherever time.time/time.monotonic is."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep that records requested delays and advances a clock instead of waiting."""

    def __init__(self, clock: FakeClock | None = None):
        self.delays: list[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep(clock):
    return RecordingSleep(clock)


# ============================================================================
# Upstream API stub
# ============================================================================


class UpstreamStub:
    """
    Scriptable charging-network API.

    Responses are queued per path; once a path's queue is empty the last
    response is repeated. Unknown paths answer 404. A non-zero latency makes
    every response wait, so concurrent callers overlap in flight.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.latency = 0.0
        self._responses: dict[str, list[Callable[[httpx.Request], httpx.Response]]] = {}

    def add(self, path: str, status_code: int = 200, json=None, headers: dict | None = None) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            content = orjson.dumps(json) if json is not None else b""
            return httpx.Response(status_code, content=content, headers=headers)

        self._responses.setdefault(path, []).append(respond)

    def fail_with(self, path: str, exc: Exception) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            raise exc

        self._responses.setdefault(path, []).append(respond)

    def calls_to(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.latency:
            await asyncio.sleep(self.latency)
        queue = self._responses.get(request.url.path)
        if not queue:
            return httpx.Response(404, content=b'{"message": "Not found"}')
        respond = queue.pop(0) if len(queue) > 1 else queue[0]
        return respond(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def transport(upstream):
    return AmpecoTransport(UPSTREAM_BASE_URL, api_key="test-key", timeout=8.0, client=upstream.client())


TTL_SECONDS = {
    TTLClass.REALTIME: 30,
    TTLClass.VOLATILE: 60,
    TTLClass.DEFAULT: 300,
    TTLClass.STATIC: 3600,
}


@pytest.fixture
def make_client(transport, clock, sleep):
    """Factory for a ResilientExternalClient wired to the stub and fake time."""

    def factory(
        limit: int = 20,
        window_seconds: float = 60,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 4.0,
        retry_after_max: float = 10.0,
    ) -> ResilientExternalClient:
        return ResilientExternalClient(
            transport=transport,
            cache=ResilienceCache(max_entries=100, clock=clock),
            rate_limiter=FixedWindowRateLimiter(limit, window_seconds, clock=clock),
            breaker=CircuitBreaker("ampeco", failure_threshold, recovery_timeout, clock=clock),
            retry_policy=RetryPolicy(
                max_attempts=max_attempts,
                base_delay=base_delay,
                max_delay=max_delay,
                retry_after_max=retry_after_max,
            ),
            ttl_seconds=TTL_SECONDS,
            sleep=sleep,
        )

    return factory


# ============================================================================
# Storage
# ============================================================================


class InMemoryRedisLock:
    """Non-expiring stand-in for redis.asyncio.lock.Lock over a shared owner table."""

    def __init__(self, owners: dict[str, object], name: str, blocking: bool, blocking_timeout: float | None):
        self._owners = owners
        self.name = name
        self.blocking = blocking
        self.blocking_timeout = blocking_timeout
        self._token = object()

    async def acquire(self) -> bool:
        loop = asyncio.get_running_loop()
        deadline = None if self.blocking_timeout is None else loop.time() + self.blocking_timeout
        while self.name in self._owners:
            if not self.blocking or (deadline is not None and loop.time() >= deadline):
                return False
            await asyncio.sleep(0.001)
        self._owners[self.name] = self._token
        return True

    async def release(self) -> None:
        if self._owners.get(self.name) is not self._token:
            raise LockNotOwnedError("Cannot release a lock that's no longer owned")
        del self._owners[self.name]


class InMemoryPipeline:
    """Buffers commands and applies them on execute(), like a MULTI/EXEC pipeline."""

    def __init__(self, redis: "InMemoryRedis"):
        self._redis = redis
        self._commands: list[tuple[str, tuple, dict]] = []

    def __getattr__(self, command):
        def queue(*args, **kwargs):
            self._commands.append((command, args, kwargs))
            return self

        return queue

    async def execute(self):
        self._redis.executed_pipelines += 1
        return [await getattr(self._redis, c)(*args, **kwargs) for c, args, kwargs in self._commands]


class InMemoryRedis:
    """
    Minimal redis.asyncio stand-in covering the commands RedisSessionStore and
    RedisTurnLeaseManager use.

    Values are stored as strings, as a decode_responses=True client returns them.
    TTLs are recorded, not enforced.
    """

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}
        self.lists: dict[str, list[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.ttls: dict[str, int] = {}
        self.lock_owners: dict[str, object] = {}
        self.executed_pipelines = 0
        self.closed = False

    def pipeline(self, transaction: bool = True) -> InMemoryPipeline:
        return InMemoryPipeline(self)

    def lock(self, name, timeout=None, blocking=True, blocking_timeout=None) -> InMemoryRedisLock:
        return InMemoryRedisLock(self.lock_owners, name, blocking, blocking_timeout)

    async def expire(self, key, seconds):
        exists = key in self.hashes or key in self.lists
        if exists:
            self.ttls[key] = int(seconds)
        return exists

    async def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})
        return len(mapping)

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def rpush(self, key, *values):
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    async def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        return items[start:] if end == -1 else items[start : end + 1]

    async def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    async def zrevrange(self, key, start, end):
        ordered = sorted(self.zsets.get(key, {}).items(), key=lambda kv: kv[1], reverse=True)
        return [member for member, _ in ordered[start : end + 1]]

    async def zremrangebyscore(self, key, low, high):
        low = float(low)
        members = self.zsets.get(key, {})
        stale = [m for m, score in members.items() if low <= score <= float(high)]
        for member in stale:
            del members[member]
        return len(stale)

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def in_memory_redis_client():
    return InMemoryRedis()


@pytest.fixture
def memory_store(clock):
    return InMemorySessionStore(default_language="he", idle_timeout=3600, clock=clock)


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        AMPECO_BASE_URL=UPSTREAM_BASE_URL,
        AMPECO_API_KEY="test-key",
        OPENAI_API_KEY=None,
        STREAM_WORD_DELAY=0.0,
        LOG_FORMAT="console",
    )
