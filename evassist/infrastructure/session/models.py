"""
Conversation Models

Author: System Architect
Date: 2026-01-12
"""

from pydantic import BaseModel, ConfigDict, Field

from evassist.core.config.constants import ConversationStatus, MessageRole


class Message(BaseModel):
    """One chat message. Immutable once appended."""

    role: MessageRole
    content: str
    created_at: float = Field(default=0.0, description="Clock seconds at creation")

    model_config = ConfigDict(frozen=True, use_enum_values=False)


class Conversation(BaseModel):
    """
    Durable per-thread state.

    Messages are append-only and ordered by creation; status moves from
    active to ended exactly once (explicit close or idle timeout).
    """

    id: str
    language: str
    status: ConversationStatus = ConversationStatus.ACTIVE
    messages: list[Message] = Field(default_factory=list)
    created_at: float = 0.0
    last_activity_at: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.status == ConversationStatus.ACTIVE

    def summary(self) -> dict:
        return {
            "thread_id": self.id,
            "language": self.language,
            "status": self.status.value,
            "message_count": len(self.messages),
            "created_at": self.created_at,
            "last_activity_at": self.last_activity_at,
        }
