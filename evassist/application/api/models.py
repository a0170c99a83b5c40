"""
API Response Models

Pydantic models for the JSON endpoints. The chat turn request itself is
ChatTurnRequest (llm_stream.models); the chat endpoint answers with an SSE
stream rather than a JSON body.
"""

from pydantic import BaseModel, Field

from evassist.infrastructure.session.models import Conversation


class MessageModel(BaseModel):
    role: str
    content: str
    created_at: float


class ConversationSummary(BaseModel):
    """One row of the conversation list."""

    thread_id: str
    language: str
    status: str
    message_count: int
    created_at: float
    last_activity_at: float

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationSummary":
        return cls(**conversation.summary())


class ConversationResponse(ConversationSummary):
    messages: list[MessageModel] = Field(default_factory=list)

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationResponse":
        return cls(
            **conversation.summary(),
            messages=[
                MessageModel(role=m.role.value, content=m.content, created_at=m.created_at)
                for m in conversation.messages
            ],
        )


class ConversationListResponse(BaseModel):
    conversations: list[ConversationSummary]
    count: int


class HealthResponse(BaseModel):
    """
    Health check response.

    status is "healthy", "degraded" (a circuit is open, answers go on
    without live data) or "unhealthy" (conversation storage is down).
    """

    status: str
    timestamp: str
    components: dict | None = None
