"""
Service Container

Builds every long-lived component of the process from Settings, exactly
once, and owns their shutdown. The FastAPI lifespan stores the container in
app.state; tests build one directly with injected fakes (http client,
redis client, model provider, clock, sleep).

    Settings
      ├─ ResilienceCache, FixedWindowRateLimiter, CircuitBreakerRegistry
      ├─ AmpecoTransport ─> ResilientExternalClient ─> ToolDispatcher
      ├─ SessionStore + TurnLeaseManager (memory | redis)
      ├─ ContextWindowBuilder
      ├─ provider (OpenAI | offline fake) ─> StreamOrchestrator
      └─ StreamingResponseEmitter ─> ChatService

Author: System Architect
Date: 2026-01-12
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from evassist.application.services.chat_service import ChatService
from evassist.core.config.constants import CircuitState, Stage, TTLClass
from evassist.core.config.settings import Settings
from evassist.core.logging.logger import get_logger, log_stage
from evassist.core.resilience import (
    CircuitBreakerRegistry,
    FixedWindowRateLimiter,
    ResilienceCache,
    RetryPolicy,
)
from evassist.infrastructure.session import (
    InMemorySessionStore,
    RedisSessionStore,
    RedisTurnLeaseManager,
    SessionStore,
    TurnLeaseManager,
    create_redis_client,
)
from evassist.infrastructure.upstream import AmpecoTransport, ResilientExternalClient
from evassist.llm_stream.context import ContextWindowBuilder
from evassist.llm_stream.providers import BaseProvider, FakeProvider, OpenAIProvider, ProviderConfig
from evassist.llm_stream.services import StreamingResponseEmitter, StreamOrchestrator
from evassist.llm_stream.tools import ToolDispatcher

logger = get_logger(__name__)


def build_provider(settings: Settings) -> BaseProvider:
    """OpenAI when a key is configured, otherwise the offline notice provider."""
    llm = settings.llm
    config = ProviderConfig(
        name="openai",
        api_key=llm.OPENAI_API_KEY,
        base_url=llm.OPENAI_BASE_URL,
        timeout=llm.OPENAI_TIMEOUT,
        default_model=llm.OPENAI_MODEL,
        temperature=llm.LLM_TEMPERATURE,
        max_tokens=llm.LLM_MAX_TOKENS,
    )
    if not llm.OPENAI_API_KEY:
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "OPENAI_API_KEY not set, using offline provider",
            level="warning",
        )
        return FakeProvider(ProviderConfig(name="offline", default_model="offline"))
    return OpenAIProvider(config)


def build_session_store(settings: Settings, redis_client: Any = None, clock=None) -> SessionStore:
    session = settings.session
    kwargs: dict[str, Any] = {
        "default_language": session.DEFAULT_LANGUAGE,
        "idle_timeout": session.SESSION_IDLE_TIMEOUT,
    }
    if clock is not None:
        kwargs["clock"] = clock
    if session.SESSION_BACKEND == "redis":
        return RedisSessionStore(redis_client or create_redis_client(settings), **kwargs)
    return InMemorySessionStore(max_conversations=session.SESSION_MAX_CONVERSATIONS, **kwargs)


class ServiceContainer:
    """
    Process-wide components.

    Args:
        settings: Application settings
        http_client: httpx client for the upstream API (tests pass a MockTransport client)
        redis_client: redis.asyncio client for SESSION_BACKEND=redis
        provider: Model provider override
        clock: Time source shared by cache, limiter, breaker and store (tests)
        sleep: Async sleep used for retry backoff and word pacing (tests)
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        redis_client: Any = None,
        provider: BaseProvider | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        clock_kwargs: dict[str, Any] = {"clock": clock} if clock is not None else {}

        # Resilience state, shared by every turn
        cache_settings = settings.cache
        self.cache = ResilienceCache(max_entries=cache_settings.CACHE_MAX_ENTRIES, **clock_kwargs)
        self.rate_limiter = FixedWindowRateLimiter(
            limit=settings.rate_limit.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.rate_limit.RATE_LIMIT_WINDOW_SECONDS,
            **clock_kwargs,
        )
        self.breakers = CircuitBreakerRegistry(
            failure_threshold=settings.circuit_breaker.CB_FAILURE_THRESHOLD,
            recovery_timeout=settings.circuit_breaker.CB_RECOVERY_TIMEOUT,
            **clock_kwargs,
        )
        retry = settings.retry
        self.retry_policy = RetryPolicy(
            max_attempts=retry.RETRY_MAX_ATTEMPTS,
            base_delay=retry.RETRY_BASE_DELAY,
            max_delay=retry.RETRY_MAX_DELAY,
            jitter=retry.RETRY_JITTER,
            retry_after_max=retry.RETRY_AFTER_MAX,
        )

        # Upstream
        upstream = settings.upstream
        self.transport = AmpecoTransport(
            base_url=upstream.AMPECO_BASE_URL,
            api_key=upstream.AMPECO_API_KEY,
            timeout=upstream.UPSTREAM_TIMEOUT,
            client=http_client,
        )
        self.client = ResilientExternalClient(
            transport=self.transport,
            cache=self.cache,
            rate_limiter=self.rate_limiter,
            breaker=self.breakers.get(upstream.UPSTREAM_SERVICE_NAME),
            retry_policy=self.retry_policy,
            ttl_seconds={
                TTLClass.REALTIME: cache_settings.CACHE_TTL_REALTIME,
                TTLClass.VOLATILE: cache_settings.CACHE_TTL_VOLATILE,
                TTLClass.DEFAULT: cache_settings.CACHE_TTL_DEFAULT,
                TTLClass.STATIC: cache_settings.CACHE_TTL_STATIC,
            },
            sleep=sleep,
        )
        self.dispatcher = ToolDispatcher(self.client)

        # Conversations
        session = settings.session
        if session.SESSION_BACKEND == "redis":
            redis_client = redis_client or create_redis_client(settings)
            self.leases: TurnLeaseManager = RedisTurnLeaseManager(
                redis_client, session.TURN_CONCURRENCY_POLICY, session.TURN_LEASE_TIMEOUT
            )
        else:
            self.leases = TurnLeaseManager(session.TURN_CONCURRENCY_POLICY)
        self.store = build_session_store(settings, redis_client, clock)
        self.context_builder = ContextWindowBuilder(self.store, settings.llm.MODEL_TOKEN_BUDGET)

        # Model side
        self.provider = provider or build_provider(settings)
        self.orchestrator = StreamOrchestrator(
            self.provider, self.dispatcher, max_tool_rounds=settings.llm.MAX_TOOL_ROUNDS
        )
        self.emitter = StreamingResponseEmitter(
            self.store,
            word_delay=settings.streaming.STREAM_WORD_DELAY,
            buffer_size=settings.streaming.STREAM_BUFFER_SIZE,
            sleep=sleep,
        )
        self.chat_service = ChatService(
            store=self.store,
            leases=self.leases,
            context_builder=self.context_builder,
            orchestrator=self.orchestrator,
            emitter=self.emitter,
            default_language=settings.session.DEFAULT_LANGUAGE,
        )

        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Service container ready",
            session_backend=settings.session.SESSION_BACKEND,
            provider=self.provider.config.name,
            upstream_configured=bool(upstream.AMPECO_BASE_URL) or http_client is not None,
        )

    async def health(self) -> dict[str, Any]:
        """Unhealthy when storage fails, degraded while any circuit is open."""
        session = await self.store.health_check()
        circuits = {name: snap.to_dict() for name, snap in self.breakers.snapshot().items()}
        model = await self.provider.health_check()

        status = "healthy"
        if session.get("status") != "healthy":
            status = "unhealthy"
        elif any(c["state"] == CircuitState.OPEN.value for c in circuits.values()):
            status = "degraded"

        return {
            "status": status,
            "components": {
                "session_store": session,
                "circuit_breakers": circuits,
                "model": model,
                "upstream_cache": self.cache.stats(),
            },
        }

    async def close(self) -> None:
        await self.orchestrator.drain()
        await self.client.close()
        await self.provider.close()
        await self.store.close_connections()
        log_stage(logger, Stage.CLEANUP, "Service container closed")
