#!/usr/bin/env python3
"""
Redis Session Store

Shared conversation storage for multi-process deployments.

Key layout:
    conv:{thread_id}         HASH   id, language, status, created_at, last_activity_at
    conv:msgs:{thread_id}    LIST   orjson-encoded messages, RPUSH order = creation order
    conv:recent              ZSET   thread_id scored by last activity
    conv:turn:{thread_id}    STRING turn lease (see RedisTurnLeaseManager)

Every write refreshes a TTL of two idle periods on the conversation keys,
so ended conversations are archived for one idle period and then dropped
by Redis. Writes of one call go out as a single MULTI/EXEC pipeline.

Author: System Architect
Date: 2026-01-12
"""

import time
from collections.abc import Callable

import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError

from evassist.core.config.constants import (
    REDIS_KEY_CONVERSATION,
    REDIS_KEY_MESSAGES,
    REDIS_KEY_RECENT,
    ConversationStatus,
    Stage,
)
from evassist.core.exceptions import SessionClosedError, SessionError, SessionNotFoundError
from evassist.core.logging.logger import get_logger, log_stage
from evassist.infrastructure.session.base import SessionStore
from evassist.infrastructure.session.models import Conversation, Message

logger = get_logger(__name__)


def create_redis_client(settings) -> redis.Redis:
    """Build a pooled client from settings.redis (decode_responses=True)."""
    return redis.Redis(
        host=settings.redis.REDIS_HOST,
        port=settings.redis.REDIS_PORT,
        db=settings.redis.REDIS_DB,
        password=settings.redis.REDIS_PASSWORD,
        socket_timeout=settings.redis.REDIS_SOCKET_TIMEOUT,
        decode_responses=True,
    )


class RedisSessionStore(SessionStore):
    def __init__(
        self,
        client,
        default_language: str = "he",
        idle_timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(default_language, idle_timeout)
        self._redis = client
        self._clock = clock
        self._retention = int(idle_timeout * 2) if idle_timeout is not None else None

    @staticmethod
    def _meta_key(thread_id: str) -> str:
        return f"{REDIS_KEY_CONVERSATION}:{thread_id}"

    @staticmethod
    def _messages_key(thread_id: str) -> str:
        return f"{REDIS_KEY_MESSAGES}:{thread_id}"

    def _expire_keys(self, pipe, thread_id: str) -> None:
        if self._retention is not None:
            pipe.expire(self._meta_key(thread_id), self._retention)
            pipe.expire(self._messages_key(thread_id), self._retention)

    async def _read(self, thread_id: str) -> Conversation | None:
        meta = await self._redis.hgetall(self._meta_key(thread_id))
        if not meta:
            return None
        raw_messages = await self._redis.lrange(self._messages_key(thread_id), 0, -1)
        conversation = Conversation(
            id=meta["id"],
            language=meta["language"],
            status=ConversationStatus(meta["status"]),
            created_at=float(meta["created_at"]),
            last_activity_at=float(meta["last_activity_at"]),
            messages=[Message.model_validate(orjson.loads(raw)) for raw in raw_messages],
        )
        if self._is_idle(conversation, self._clock()):
            conversation.status = ConversationStatus.ENDED
            await self._redis.hset(self._meta_key(thread_id), mapping={"status": conversation.status.value})
            log_stage(logger, Stage.SESSION_LOAD, "Conversation ended by idle timeout", thread_id=thread_id)
        return conversation

    async def load_or_create(self, thread_id: str, language: str | None = None) -> Conversation:
        try:
            conversation = await self._read(thread_id)
            if conversation is not None:
                return conversation

            now = self._clock()
            conversation = Conversation(
                id=thread_id,
                language=language or self.default_language,
                created_at=now,
                last_activity_at=now,
            )
            pipe = self._redis.pipeline(transaction=True)
            pipe.hset(
                self._meta_key(thread_id),
                mapping={
                    "id": thread_id,
                    "language": conversation.language,
                    "status": conversation.status.value,
                    "created_at": now,
                    "last_activity_at": now,
                },
            )
            pipe.zadd(REDIS_KEY_RECENT, {thread_id: now})
            self._expire_keys(pipe, thread_id)
            if self._retention is not None:
                pipe.zremrangebyscore(REDIS_KEY_RECENT, "-inf", now - self._retention)
            await pipe.execute()
            log_stage(logger, Stage.SESSION_LOAD, "Conversation created", thread_id=thread_id)
            return conversation
        except RedisError as e:
            raise SessionError.from_exception(e, thread_id=thread_id) from e

    async def append(self, thread_id: str, message: Message) -> Message:
        try:
            conversation = await self._read(thread_id)
            if conversation is None:
                raise SessionNotFoundError(f"Unknown conversation {thread_id}", thread_id=thread_id)
            if not conversation.is_active:
                raise SessionClosedError("Conversation has ended", thread_id=thread_id)

            floor = conversation.messages[-1].created_at if conversation.messages else 0.0
            stored = message.model_copy(update={"created_at": max(self._clock(), floor)})
            pipe = self._redis.pipeline(transaction=True)
            pipe.rpush(self._messages_key(thread_id), orjson.dumps(stored.model_dump(mode="json")).decode())
            pipe.hset(self._meta_key(thread_id), mapping={"last_activity_at": stored.created_at})
            pipe.zadd(REDIS_KEY_RECENT, {thread_id: stored.created_at})
            self._expire_keys(pipe, thread_id)
            await pipe.execute()
            return stored
        except RedisError as e:
            raise SessionError.from_exception(e, thread_id=thread_id) from e

    async def get(self, thread_id: str) -> Conversation | None:
        try:
            return await self._read(thread_id)
        except RedisError as e:
            raise SessionError.from_exception(e, thread_id=thread_id) from e

    async def close(self, thread_id: str) -> Conversation:
        try:
            conversation = await self._read(thread_id)
            if conversation is None:
                raise SessionNotFoundError(f"Unknown conversation {thread_id}", thread_id=thread_id)
            conversation.status = ConversationStatus.ENDED
            await self._redis.hset(self._meta_key(thread_id), mapping={"status": conversation.status.value})
            return conversation
        except RedisError as e:
            raise SessionError.from_exception(e, thread_id=thread_id) from e

    async def list_recent(self, limit: int = 20) -> list[Conversation]:
        try:
            thread_ids = await self._redis.zrevrange(REDIS_KEY_RECENT, 0, max(0, limit - 1))
            conversations = []
            for thread_id in thread_ids:
                conversation = await self._read(thread_id)
                if conversation is not None:
                    conversations.append(conversation)
            return conversations
        except RedisError as e:
            raise SessionError.from_exception(e) from e

    async def health_check(self) -> dict:
        try:
            await self._redis.ping()
            return {"status": "healthy", "backend": "redis"}
        except RedisError as e:
            return {"status": "unhealthy", "backend": "redis", "error": str(e)}

    async def close_connections(self) -> None:
        await self._redis.aclose()
