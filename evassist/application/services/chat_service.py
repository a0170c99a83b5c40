"""
Chat Service
============

WHAT IS THIS SERVICE?
---------------------
ChatService runs one conversational turn end to end and hands the route a
plain async iterator of SSE events. The route only deals with HTTP; every
ordering rule of a turn lives here.

TURN LIFECYCLE:
---------------
    lease(thread_id)                  one turn per thread at a time
      └─ load_or_create               ended conversations refuse the turn
      └─ seed prior turns             only when the store has no history
      └─ build_context                system + recent history + user message
      └─ append(user message)         before the model is invoked
      └─ emitter.emit(orchestrator)   chunks, then complete or error
                                      (assistant message appended once)

Errors raised before the first chunk (busy thread, ended conversation,
storage failure) are turned into the single terminal error event, so the
client always reads a well-formed stream.
"""

from collections.abc import AsyncIterator

from evassist.core.config.constants import MessageRole, Stage
from evassist.core.exceptions import EVAssistError, SessionClosedError, SessionNotFoundError
from evassist.core.logging.logger import clear_thread_id, get_logger, log_stage, set_thread_id
from evassist.infrastructure.session.base import SessionStore
from evassist.infrastructure.session.models import Conversation, Message
from evassist.infrastructure.session.turn_lock import TurnLeaseManager
from evassist.llm_stream.context.context_builder import ContextWindowBuilder
from evassist.llm_stream.models.stream_request import ChatTurnRequest, SSEEvent
from evassist.llm_stream.services.emitter import StreamingResponseEmitter, error_event
from evassist.llm_stream.services.stream_orchestrator import StreamOrchestrator
from evassist.utils.language import resolve_language

logger = get_logger(__name__)


class ChatService:
    """
    Conversation operations exposed over HTTP.

    USAGE:
    ------
    async for event in service.stream_turn(request):
        yield event.format()
    """

    def __init__(
        self,
        store: SessionStore,
        leases: TurnLeaseManager,
        context_builder: ContextWindowBuilder,
        orchestrator: StreamOrchestrator,
        emitter: StreamingResponseEmitter,
        default_language: str = "he",
    ):
        self.store = store
        self.leases = leases
        self.context_builder = context_builder
        self.orchestrator = orchestrator
        self.emitter = emitter
        self.default_language = default_language

    # ========================================================================
    # TURN
    # ========================================================================

    async def stream_turn(self, request: ChatTurnRequest) -> AsyncIterator[SSEEvent]:
        thread_id = request.thread_id
        set_thread_id(thread_id)
        log_stage(
            logger,
            Stage.REQUEST_INTAKE,
            "Turn received",
            messages=len(request.messages),
            principal=request.rate_limit_principal,
        )
        try:
            async with self.leases.lease(thread_id):
                language = resolve_language(request.language, request.user_message, self.default_language)
                conversation = await self.store.load_or_create(thread_id, language)
                if not conversation.is_active:
                    raise SessionClosedError("Conversation has ended", thread_id=thread_id)

                if not conversation.messages and request.prior_turns:
                    await self._seed_history(thread_id, request)

                context = await self.context_builder.build_context(thread_id, request.user_message)
                await self.store.append(
                    thread_id, Message(role=MessageRole.USER, content=request.user_message)
                )

                fragments = self.orchestrator.generate(context, request.rate_limit_principal, thread_id)
                async for event in self.emitter.emit(thread_id, fragments):
                    yield event
        except EVAssistError as e:
            log_stage(
                logger,
                Stage.REQUEST_INTAKE,
                "Turn refused",
                level="warning",
                error_type=type(e).__name__,
                error=e.message,
            )
            yield error_event(e, thread_id)
        finally:
            log_stage(logger, Stage.CLEANUP, "Turn finished")
            clear_thread_id()

    async def _seed_history(self, thread_id: str, request: ChatTurnRequest) -> None:
        for turn in request.prior_turns:
            await self.store.append(thread_id, Message(role=MessageRole(turn.role), content=turn.content))
        log_stage(logger, Stage.SESSION_LOAD, "History seeded from request", seeded=len(request.prior_turns))

    # ========================================================================
    # CONVERSATION MANAGEMENT
    # ========================================================================

    async def get_conversation(self, thread_id: str) -> Conversation:
        conversation = await self.store.get(thread_id)
        if conversation is None:
            raise SessionNotFoundError(f"Unknown conversation {thread_id}", thread_id=thread_id)
        return conversation

    async def list_conversations(self, limit: int = 20) -> list[Conversation]:
        return await self.store.list_recent(limit)

    async def close_conversation(self, thread_id: str) -> Conversation:
        conversation = await self.store.close(thread_id)
        log_stage(logger, Stage.SESSION_LOAD, "Conversation closed", thread_id=thread_id)
        return conversation
