"""
Session Store Interface

Author: System Architect
Date: 2026-01-12
"""

from abc import ABC, abstractmethod

from evassist.infrastructure.session.models import Conversation, Message


class SessionStore(ABC):
    """
    Durable conversation storage.

    append() is the only mutator of history. The chat service calls it once
    for the user's turn before the model runs and once for the assistant's
    turn after the full response is produced.
    """

    def __init__(self, default_language: str = "he", idle_timeout: float | None = None):
        self.default_language = default_language
        self.idle_timeout = idle_timeout

    @abstractmethod
    async def load_or_create(self, thread_id: str, language: str | None = None) -> Conversation:
        """Return the conversation, creating an empty one for unseen ids."""

    @abstractmethod
    async def append(self, thread_id: str, message: Message) -> Message:
        """
        Append a message to an active conversation.

        Raises:
            SessionNotFoundError: thread id unknown
            SessionClosedError: conversation has ended
        """

    @abstractmethod
    async def get(self, thread_id: str) -> Conversation | None:
        ...

    @abstractmethod
    async def close(self, thread_id: str) -> Conversation:
        """Mark the conversation ended. Idempotent."""

    @abstractmethod
    async def list_recent(self, limit: int = 20) -> list[Conversation]:
        """Conversations ordered by last activity, newest first."""

    async def health_check(self) -> dict:
        return {"status": "healthy", "backend": type(self).__name__}

    async def close_connections(self) -> None:
        return None

    def _is_idle(self, conversation: Conversation, now: float) -> bool:
        return (
            self.idle_timeout is not None
            and conversation.is_active
            and now - conversation.last_activity_at > self.idle_timeout
        )
