"""
Stream Orchestrator Service
===========================

WHAT DOES IT DO?
----------------
Runs the model side of one turn: it streams the model's text and, whenever
the model pauses to request a tool, dispatches the tool, feeds the result
back and resumes generation. The output is a plain async iterator of text
fragments in generation order; framing, pacing and persistence belong to
the StreamingResponseEmitter.

THE TOOL LOOP:
--------------
┌──────────────────────────────────────────────────────────────┐
│ ROUND n (n < MAX_TOOL_ROUNDS): model streams with tools       │
│ - TextDelta          -> yielded to the caller at once          │
│ - ToolCallRequest(s) -> collected until the round ends         │
└──────────────────────────────────────────────────────────────┘
                            ↓ tool calls requested?
┌──────────────────────────────────────────────────────────────┐
│ TOOL DISPATCH                                                 │
│ - assistant message with tool_calls appended to the prompt    │
│ - each call goes through ToolDispatcher (cache, limiter,      │
│   breaker, retries are all hidden in there)                   │
│ - a failed tool becomes a natural-language note, never an     │
│   aborted turn                                                │
└──────────────────────────────────────────────────────────────┘
                            ↓ next round
The last allowed round runs without tools, so a turn always ends in text.

CANCELLATION:
-------------
When the client disconnects, the task consuming this iterator is
cancelled and the model stream stops. An in-flight tool call is shielded:
it finishes in the background (its result lands in the upstream cache) but
nothing reads it for the disconnected response.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from evassist.core.config.constants import Stage
from evassist.core.logging.logger import get_logger, log_stage
from evassist.infrastructure.session.models import Message
from evassist.llm_stream.models.events import TextDelta, ToolCallRequest
from evassist.llm_stream.providers.base_provider import BaseProvider
from evassist.llm_stream.tools.dispatcher import ToolDispatcher, ToolResult

logger = get_logger(__name__)


def to_provider_messages(context: list[Message]) -> list[dict[str, Any]]:
    return [{"role": m.role.value, "content": m.content} for m in context]


class StreamOrchestrator:
    """
    Model/tool loop for a single turn.

    Args:
        provider: Streaming model provider
        dispatcher: Tool dispatcher
        max_tool_rounds: Rounds in which the model may call tools
    """

    def __init__(self, provider: BaseProvider, dispatcher: ToolDispatcher, max_tool_rounds: int = 4):
        self.provider = provider
        self.dispatcher = dispatcher
        self.max_tool_rounds = max_tool_rounds
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def pending_tool_calls(self) -> int:
        return len(self._background_tasks)

    async def generate(
        self, context: list[Message], principal: str, thread_id: str | None = None
    ) -> AsyncIterator[str]:
        """
        Yield assistant text fragments for the turn.

        Raises:
            ModelProviderError: the model call failed
        """
        messages = to_provider_messages(context)
        tools = self.dispatcher.tool_schemas()

        for round_index in range(self.max_tool_rounds + 1):
            tools_allowed = bool(tools) and round_index < self.max_tool_rounds
            text_parts: list[str] = []
            calls: list[ToolCallRequest] = []

            async for event in self.provider.stream(
                messages, tools if tools_allowed else None, thread_id
            ):
                if isinstance(event, TextDelta):
                    if event.text:
                        text_parts.append(event.text)
                        yield event.text
                elif isinstance(event, ToolCallRequest):
                    calls.append(event)

            if not calls:
                return
            if not tools_allowed:
                log_stage(
                    logger,
                    Stage.TOOL_DISPATCH,
                    "Tool calls ignored, round budget exhausted",
                    level="warning",
                    requested=[c.name for c in calls],
                )
                return

            messages.append(
                {
                    "role": "assistant",
                    "content": "".join(text_parts) or None,
                    "tool_calls": [
                        {
                            "id": call.call_id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": call.arguments},
                        }
                        for call in calls
                    ],
                }
            )
            for call in calls:
                result = await self._run_tool(call, principal)
                messages.append(
                    {"role": "tool", "tool_call_id": call.call_id, "content": result.to_model_content()}
                )

    async def _run_tool(self, call: ToolCallRequest, principal: str) -> ToolResult:
        """Dispatch a tool call so that cancelling the turn does not cancel it."""
        task = asyncio.create_task(self.dispatcher.invoke(call.name, call.arguments, principal))
        self._background_tasks.add(task)
        task.add_done_callback(self._on_tool_done)
        return await asyncio.shield(task)

    def _on_tool_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_stage(logger, Stage.TOOL_DISPATCH, "Tool call crashed", level="error", error=str(exc))

    async def drain(self) -> None:
        """Wait for tool calls still running in the background (shutdown, tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
