"""
Chat Routes
===========

POST /chat opens a Server-Sent Events stream for one conversational turn:

    event: chunk
    data: {"content": "The ", "index": 0}

    event: chunk
    data: {"content": "station ", "index": 1}

    event: complete
    data: {"thread_id": "3f6c..."}

Exactly one terminal event ends every stream: `complete`, or `error` with
{"error", "message", "thread_id"}. The thread id is also returned in the
X-Thread-ID response header so a client that omitted it can continue the
conversation.

The remaining routes read and close stored conversations.
"""

from collections.abc import AsyncIterator

from fastapi import APIRouter, Query, status
from fastapi.responses import StreamingResponse

from evassist.application.api.dependencies import ChatServiceDep, UserIdDep
from evassist.application.api.models import (
    ConversationListResponse,
    ConversationResponse,
    ConversationSummary,
)
from evassist.core.config.constants import HEADER_THREAD_ID, HISTORY_LIST_MAX
from evassist.core.logging.logger import get_logger
from evassist.llm_stream.models.stream_request import ChatTurnRequest

# ============================================================================
# ROUTER SETUP
# ============================================================================

router = APIRouter(prefix="/chat", tags=["Chat"])

logger = get_logger(__name__)


# ============================================================================
# STREAMING TURN
# ============================================================================


@router.post(
    "",
    status_code=status.HTTP_200_OK,
    responses={
        200: {
            "description": "SSE stream of chunk events ending in complete or error",
            "content": {"text/event-stream": {}},
        },
        422: {"description": "Validation error - invalid request format"},
    },
)
async def chat(body: ChatTurnRequest, service: ChatServiceDep, user_id: UserIdDep):
    """
    Stream the assistant's answer to the last user message.

    The principal for upstream rate limiting is the X-User-ID header when
    present, otherwise the thread id.
    """
    turn = body.model_copy(update={"principal": user_id})

    async def event_stream() -> AsyncIterator[str]:
        async for event in service.stream_turn(turn):
            yield event.format()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            HEADER_THREAD_ID: turn.thread_id,
        },
    )


# ============================================================================
# CONVERSATIONS
# ============================================================================


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    service: ChatServiceDep,
    limit: int = Query(default=20, ge=1, le=HISTORY_LIST_MAX),
):
    """Most recently active conversations first."""
    conversations = await service.list_conversations(limit)
    summaries = [ConversationSummary.from_conversation(c) for c in conversations]
    return ConversationListResponse(conversations=summaries, count=len(summaries))


@router.get("/{thread_id}", response_model=ConversationResponse)
async def get_conversation(thread_id: str, service: ChatServiceDep):
    conversation = await service.get_conversation(thread_id)
    return ConversationResponse.from_conversation(conversation)


@router.post("/{thread_id}/close", response_model=ConversationSummary)
async def close_conversation(thread_id: str, service: ChatServiceDep):
    """End a conversation; later turns on this thread are refused."""
    conversation = await service.close_conversation(thread_id)
    return ConversationSummary.from_conversation(conversation)
