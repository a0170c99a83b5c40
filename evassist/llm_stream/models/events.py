"""
Model Stream Events

What a provider yields while streaming one model round.

Author: System Architect
Date: 2026-01-12
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TextDelta:
    """A fragment of assistant text, in generation order."""

    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    """The model paused to ask for a tool. arguments is the raw JSON string."""

    call_id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class TurnFinished:
    finish_reason: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)


ModelEvent = TextDelta | ToolCallRequest | TurnFinished
