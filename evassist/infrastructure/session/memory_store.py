"""
In-Memory Session Store

Process-local conversation storage. Readers get deep copies, so callers can
never mutate stored history behind the store's back.

Creating a conversation evicts ended ones whose last activity is more
than one idle period old. Past max_conversations the least recently
active ones go first, ended before active.

Author: System Architect
Date: 2026-01-12
"""

import threading
import time
from collections.abc import Callable

from evassist.core.config.constants import ConversationStatus, Stage
from evassist.core.exceptions import SessionClosedError, SessionNotFoundError
from evassist.core.logging.logger import get_logger, log_stage
from evassist.infrastructure.session.base import SessionStore
from evassist.infrastructure.session.models import Conversation, Message

logger = get_logger(__name__)


class InMemorySessionStore(SessionStore):
    def __init__(
        self,
        default_language: str = "he",
        idle_timeout: float | None = None,
        clock: Callable[[], float] = time.time,
        max_conversations: int = 10_000,
    ):
        super().__init__(default_language, idle_timeout)
        self._clock = clock
        self.max_conversations = max_conversations
        self._conversations: dict[str, Conversation] = {}
        self._lock = threading.Lock()

    def _expire_if_idle(self, conversation: Conversation, now: float) -> None:
        if self._is_idle(conversation, now):
            conversation.status = ConversationStatus.ENDED
            log_stage(logger, Stage.SESSION_LOAD, "Conversation ended by idle timeout", thread_id=conversation.id)

    async def load_or_create(self, thread_id: str, language: str | None = None) -> Conversation:
        with self._lock:
            now = self._clock()
            conversation = self._conversations.get(thread_id)
            if conversation is None:
                self._prune(now)
                conversation = Conversation(
                    id=thread_id,
                    language=language or self.default_language,
                    created_at=now,
                    last_activity_at=now,
                )
                self._conversations[thread_id] = conversation
                log_stage(logger, Stage.SESSION_LOAD, "Conversation created", thread_id=thread_id)
            else:
                self._expire_if_idle(conversation, now)
            return conversation.model_copy(deep=True)

    def _prune(self, now: float) -> None:
        """Evict archived conversations, then the least recently active past capacity."""
        for conversation in self._conversations.values():
            self._expire_if_idle(conversation, now)
        evicted = []
        if self.idle_timeout is not None:
            evicted = [
                c.id
                for c in self._conversations.values()
                if not c.is_active and now - c.last_activity_at > self.idle_timeout
            ]
        for thread_id in evicted:
            del self._conversations[thread_id]

        overflow = len(self._conversations) - self.max_conversations + 1
        if overflow > 0:
            oldest = sorted(self._conversations.values(), key=lambda c: (c.is_active, c.last_activity_at))
            for conversation in oldest[:overflow]:
                del self._conversations[conversation.id]
                evicted.append(conversation.id)

        if evicted:
            log_stage(logger, Stage.SESSION_LOAD, "Conversations evicted", count=len(evicted))

    async def append(self, thread_id: str, message: Message) -> Message:
        with self._lock:
            conversation = self._conversations.get(thread_id)
            if conversation is None:
                raise SessionNotFoundError(f"Unknown conversation {thread_id}", thread_id=thread_id)
            now = self._clock()
            self._expire_if_idle(conversation, now)
            if not conversation.is_active:
                raise SessionClosedError("Conversation has ended", thread_id=thread_id)

            # Creation order is append order even if the clock steps back
            floor = conversation.messages[-1].created_at if conversation.messages else 0.0
            stored = message.model_copy(update={"created_at": max(now, floor)})
            conversation.messages.append(stored)
            conversation.last_activity_at = stored.created_at
            return stored

    async def get(self, thread_id: str) -> Conversation | None:
        with self._lock:
            conversation = self._conversations.get(thread_id)
            if conversation is None:
                return None
            self._expire_if_idle(conversation, self._clock())
            return conversation.model_copy(deep=True)

    async def close(self, thread_id: str) -> Conversation:
        with self._lock:
            conversation = self._conversations.get(thread_id)
            if conversation is None:
                raise SessionNotFoundError(f"Unknown conversation {thread_id}", thread_id=thread_id)
            conversation.status = ConversationStatus.ENDED
            return conversation.model_copy(deep=True)

    async def list_recent(self, limit: int = 20) -> list[Conversation]:
        with self._lock:
            ordered = sorted(
                self._conversations.values(), key=lambda c: c.last_activity_at, reverse=True
            )
            return [c.model_copy(deep=True) for c in ordered[:limit]]
