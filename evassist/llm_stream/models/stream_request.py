"""
Chat Turn Request and SSE Event Models

Author: System Architect
Date: 2026-01-12
"""

import uuid
from copy import deepcopy
from typing import Any, Literal

import orjson
from pydantic import BaseModel, Field, field_validator, model_validator


class ChatTurnMessage(BaseModel):
    """A prior turn as sent by the client."""

    model_config = {"frozen": True}

    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=20000)


class ChatTurnRequest(BaseModel):
    """
    One inbound conversational turn.

    The last message is the new user message. Earlier messages only seed a
    conversation the server has never seen; stored history wins otherwise.
    """

    model_config = {"frozen": True}

    messages: list[ChatTurnMessage] = Field(..., min_length=1, max_length=200)
    thread_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        min_length=1,
        max_length=128,
        description="Conversation id; generated when omitted",
    )
    language: str | None = Field(default=None, min_length=2, max_length=8)
    principal: str | None = Field(default=None, description="Rate-limit principal (from X-User-ID)")

    @field_validator("thread_id")
    @classmethod
    def strip_thread_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("thread_id must not be blank")
        return v

    @model_validator(mode="after")
    def last_message_is_user(self):
        if self.messages[-1].role != "user":
            raise ValueError("the last message must be a user message")
        if not self.messages[-1].content.strip():
            raise ValueError("the user message must not be blank")
        return self

    @property
    def user_message(self) -> str:
        return self.messages[-1].content

    @property
    def prior_turns(self) -> list[ChatTurnMessage]:
        return list(self.messages[:-1])

    @property
    def rate_limit_principal(self) -> str:
        return self.principal or self.thread_id


class SSEEvent(BaseModel):
    """Represents an SSE event to send to the client."""

    model_config = {"frozen": True}

    event: str
    data: Any
    id: str | None = None

    @field_validator("data", mode="before")
    @classmethod
    def copy_data(cls, v):
        """Ensure data is copied to prevent mutation of the original reference."""
        if isinstance(v, dict | list):
            return deepcopy(v)
        return v

    def format(self) -> str:
        """Format as SSE protocol string."""
        lines = []
        if self.id:
            lines.append(f"id: {self.id}")
        lines.append(f"event: {self.event}")
        if isinstance(self.data, str):
            lines.append(f"data: {self.data}")
        else:
            lines.append(f"data: {orjson.dumps(self.data).decode()}")
        return "\n".join(lines) + "\n\n"
