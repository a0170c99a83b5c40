#!/usr/bin/env python3
"""
Streaming Response Emitter

Turns the model's fragment stream into ordered, paced SSE events and
persists the final assistant message.

    producer task                 bounded queue              consumer (emit)
    fragments -> word units  -->  [unit, unit, ...]  -->  chunk events, paced
                                  DONE / ERROR marker  -->  persist + complete
                                                            or one error event

The queue gives backpressure (the producer waits when the client reads
slowly) and makes cancellation explicit: closing emit() cancels the
producer, which stops the model stream. Nothing is persisted unless the
model finished; a cancelled or failed turn leaves no assistant message.

Author: System Architect
Date: 2026-01-12
"""

import asyncio
import re
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing, suppress
from typing import Any

from evassist.core.config.constants import (
    EMPTY_RESPONSE_FALLBACK,
    SSE_EVENT_CHUNK,
    SSE_EVENT_COMPLETE,
    SSE_EVENT_ERROR,
    MessageRole,
    Stage,
)
from evassist.core.exceptions import EVAssistError, ModelProviderError
from evassist.core.logging.logger import get_logger, log_stage
from evassist.infrastructure.session.base import SessionStore
from evassist.infrastructure.session.models import Message
from evassist.llm_stream.models.stream_request import SSEEvent

logger = get_logger(__name__)

_WORD_UNIT = re.compile(r"\S+\s*|\s+")

_DONE = object()


def split_into_words(text: str) -> list[str]:
    """Split text into word units, each keeping its trailing whitespace."""
    return _WORD_UNIT.findall(text)


def error_event(exc: BaseException, thread_id: str) -> SSEEvent:
    if isinstance(exc, ModelProviderError):
        message = "The assistant is temporarily unavailable, please try again shortly."
    elif isinstance(exc, EVAssistError):
        message = exc.message
    else:
        message = "An unexpected error occurred."
    return SSEEvent(
        event=SSE_EVENT_ERROR,
        data={"error": type(exc).__name__, "message": message, "thread_id": thread_id},
    )


class StreamingResponseEmitter:
    """
    STAGE-5: Emit

    Args:
        session_store: Where the final assistant message is appended
        word_delay: Pause after each emitted word unit (seconds)
        buffer_size: Capacity of the fragment channel
        sleep: Async sleep used for pacing (tests inject a no-op)
    """

    def __init__(
        self,
        session_store: SessionStore,
        word_delay: float = 0.02,
        buffer_size: int = 64,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_store = session_store
        self.word_delay = word_delay
        self.buffer_size = buffer_size
        self._sleep = sleep

    async def _produce(self, fragments: AsyncIterator[str], queue: asyncio.Queue) -> None:
        try:
            async with aclosing(fragments) as stream:
                async for fragment in stream:
                    for unit in split_into_words(fragment):
                        await queue.put(unit)
        except Exception as e:
            await queue.put(e)
            return
        await queue.put(_DONE)

    async def emit(self, thread_id: str, fragments: AsyncIterator[str]) -> AsyncIterator[SSEEvent]:
        """
        Yield chunk events in generation order, then exactly one terminal
        event: complete (carrying the thread id) or error.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=self.buffer_size)
        producer = asyncio.create_task(self._produce(fragments, queue))
        parts: list[str] = []
        finished = False

        try:
            while True:
                item = await queue.get()

                if item is _DONE:
                    break
                if isinstance(item, BaseException):
                    log_stage(
                        logger,
                        Stage.EMIT,
                        "Model stream failed",
                        level="error",
                        error=str(item),
                        error_type=type(item).__name__,
                        emitted_chunks=len(parts),
                    )
                    finished = True
                    yield error_event(item, thread_id)
                    return

                yield SSEEvent(event=SSE_EVENT_CHUNK, data={"content": item, "index": len(parts)})
                parts.append(item)
                if self.word_delay:
                    await self._sleep(self.word_delay)

            text = "".join(parts)
            if not text.strip():
                for unit in split_into_words(EMPTY_RESPONSE_FALLBACK):
                    yield SSEEvent(event=SSE_EVENT_CHUNK, data={"content": unit, "index": len(parts)})
                    parts.append(unit)
                text = EMPTY_RESPONSE_FALLBACK

            try:
                await asyncio.shield(self._persist(thread_id, text))
            except EVAssistError as e:
                finished = True
                yield error_event(e, thread_id)
                return

            finished = True
            yield SSEEvent(event=SSE_EVENT_COMPLETE, data={"thread_id": thread_id})

        finally:
            if not producer.done():
                producer.cancel()
                with suppress(asyncio.CancelledError):
                    await producer
            if not finished:
                log_stage(
                    logger,
                    Stage.EMIT,
                    "Client disconnected, partial answer discarded",
                    level="warning",
                    emitted_chunks=len(parts),
                )

    async def _persist(self, thread_id: str, text: str) -> None:
        await self.session_store.append(thread_id, Message(role=MessageRole.ASSISTANT, content=text))
        log_stage(logger, Stage.PERSISTENCE, "Assistant message persisted", chars=len(text))
