#!/usr/bin/env python3
"""
OpenAI Provider Implementation

Streams chat completions with tool calling through the official AsyncOpenAI
client and maps OpenAI exceptions onto ModelProviderError.

Tool call arguments arrive as deltas spread over many chunks, keyed by the
call's index. They are accumulated and emitted as complete ToolCallRequest
events once the round's stream ends.

Author: System Architect
Date: 2026-01-12
"""

from collections.abc import AsyncIterator
from typing import Any

from openai import APIConnectionError, APIError, AsyncOpenAI, AuthenticationError, RateLimitError

from evassist.core.config.constants import Stage
from evassist.core.exceptions import ModelProviderError
from evassist.core.logging.logger import get_logger, log_stage
from evassist.llm_stream.models.events import ModelEvent, TextDelta, ToolCallRequest, TurnFinished
from evassist.llm_stream.providers.base_provider import BaseProvider, ProviderConfig

logger = get_logger(__name__)

DEFAULT_OPENAI_URL = "https://api.openai.com/v1"


class OpenAIProvider(BaseProvider):
    """STAGE-OPENAI: OpenAI provider operations"""

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None):
        super().__init__(config)
        self.client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url if config.base_url and config.base_url != DEFAULT_OPENAI_URL else None,
            timeout=config.timeout,
            max_retries=0,
        )
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "OpenAI provider initialized",
            provider_name=self.name,
            default_model=config.default_model,
        )

    async def _stream_internal(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        thread_id: str | None,
    ) -> AsyncIterator[ModelEvent]:
        request: dict[str, Any] = {
            "model": self.config.default_model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "stream": True,
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"

        pending_calls: dict[int, dict[str, str]] = {}
        finish_reason = None
        try:
            stream_response = await self.client.chat.completions.create(**request)
            async for chunk in stream_response:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if delta.content:
                    yield TextDelta(delta.content)
                for call_delta in delta.tool_calls or []:
                    slot = pending_calls.setdefault(
                        call_delta.index, {"id": "", "name": "", "arguments": ""}
                    )
                    if call_delta.id:
                        slot["id"] = call_delta.id
                    if call_delta.function is not None:
                        if call_delta.function.name:
                            slot["name"] += call_delta.function.name
                        if call_delta.function.arguments:
                            slot["arguments"] += call_delta.function.arguments
                if choice.finish_reason:
                    finish_reason = choice.finish_reason

        except AuthenticationError as auth_error:
            raise ModelProviderError(
                "Invalid OpenAI API key", thread_id=thread_id, details={"provider": self.name}
            ) from auth_error
        except RateLimitError as rate_error:
            raise ModelProviderError(
                "OpenAI rate limit exceeded", thread_id=thread_id, details={"provider": self.name}
            ) from rate_error
        except APIConnectionError as conn_error:
            raise ModelProviderError(
                "Could not connect to OpenAI", thread_id=thread_id, details={"provider": self.name}
            ) from conn_error
        except APIError as api_error:
            raise ModelProviderError(
                f"OpenAI API returned an error: {api_error.message}",
                thread_id=thread_id,
                details={"provider": self.name, "code": api_error.code},
            ) from api_error

        for index in sorted(pending_calls):
            slot = pending_calls[index]
            yield ToolCallRequest(
                call_id=slot["id"] or f"call_{index}", name=slot["name"], arguments=slot["arguments"]
            )
        yield TurnFinished(finish_reason=finish_reason)

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "configured" if self.config.api_key else "unconfigured",
            "provider": self.name,
            "model": self.config.default_model,
        }

    async def close(self) -> None:
        await self.client.close()
