"""
Fake Provider

Scripted stand-in for the language model. Used when no model credential is
configured (it streams a short notice so the pipeline still runs end to end)
and by tests, which script exact rounds of text, tool calls and failures.

Author: System Architect
Date: 2026-01-12
"""

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Any

from evassist.llm_stream.models.events import ModelEvent, TextDelta, ToolCallRequest, TurnFinished
from evassist.llm_stream.providers.base_provider import BaseProvider, ProviderConfig

NOT_CONFIGURED_NOTICE = (
    "The assistant model is not configured yet. "
    "Please contact support or try again later."
)

ScriptRound = Sequence[ModelEvent | BaseException]


class FakeProvider(BaseProvider):
    """
    A provider that replays scripted rounds.

    Each call to stream() consumes the next round. A round is a list of
    events; an exception in the list is raised at that point of the stream.
    Once the script runs out, every round streams `fallback_text`.
    """

    def __init__(
        self,
        config: ProviderConfig | None = None,
        script: Sequence[ScriptRound] | None = None,
        fallback_text: str = NOT_CONFIGURED_NOTICE,
        chunk_delay: float = 0.0,
    ):
        super().__init__(config or ProviderConfig(name="fake", default_model="fake"))
        self._script = list(script or [])
        self.fallback_text = fallback_text
        self.chunk_delay = chunk_delay
        self.calls: list[dict[str, Any]] = []

    @classmethod
    def text(cls, *fragments: str, **kwargs) -> "FakeProvider":
        """Single round streaming the given fragments."""
        return cls(script=[[*(TextDelta(f) for f in fragments), TurnFinished("stop")]], **kwargs)

    @classmethod
    def tool_then_text(
        cls, name: str, arguments: str, *fragments: str, call_id: str = "call_1", **kwargs
    ) -> "FakeProvider":
        """A tool round followed by a text round."""
        return cls(
            script=[
                [ToolCallRequest(call_id, name, arguments), TurnFinished("tool_calls")],
                [*(TextDelta(f) for f in fragments), TurnFinished("stop")],
            ],
            **kwargs,
        )

    def _next_round(self) -> ScriptRound:
        if self._script:
            return self._script.pop(0)
        return [TextDelta(self.fallback_text), TurnFinished("stop")]

    async def _stream_internal(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        thread_id: str | None,
    ) -> AsyncIterator[ModelEvent]:
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        round_events = self._next_round()
        for item in round_events:
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)
            if isinstance(item, BaseException):
                raise item
            yield item

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy", "provider": self.name}
