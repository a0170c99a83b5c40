"""Request, SSE and model event models."""

from evassist.llm_stream.models.events import ModelEvent, TextDelta, ToolCallRequest, TurnFinished
from evassist.llm_stream.models.stream_request import ChatTurnMessage, ChatTurnRequest, SSEEvent

__all__ = [
    "ChatTurnMessage",
    "ChatTurnRequest",
    "ModelEvent",
    "SSEEvent",
    "TextDelta",
    "ToolCallRequest",
    "TurnFinished",
]
