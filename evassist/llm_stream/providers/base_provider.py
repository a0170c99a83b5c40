#!/usr/bin/env python3
"""
Base Provider Abstract Class

Abstract base for language model providers. A provider streams one model
round: text fragments in generation order, then any tool calls the model
requested, then a TurnFinished marker.

Messages are passed in the OpenAI chat format (role/content, assistant
tool_calls, tool results), which every supported provider understands.

Author: System Architect
Date: 2026-01-12
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from evassist.core.config.constants import Stage
from evassist.core.exceptions import EVAssistError, ModelProviderError
from evassist.core.logging.logger import get_logger, log_stage
from evassist.llm_stream.models.events import ModelEvent

logger = get_logger(__name__)


@dataclass
class ProviderConfig:
    """
    Configuration for a model provider.

    Attributes:
        name: Provider name
        api_key: API key for authentication
        base_url: Base URL for API
        timeout: Request timeout in seconds
        default_model: Model used for every round
        temperature: Sampling temperature
        max_tokens: Completion token cap per round
    """

    name: str
    api_key: str | None = None
    base_url: str | None = None
    timeout: float = 30.0
    default_model: str = ""
    temperature: float = 0.7
    max_tokens: int = 1500


class BaseProvider(ABC):
    """
    STAGE-4: Model provider base class

    Subclasses implement _stream_internal() and health_check(). stream()
    adds logging and wraps unexpected errors in ModelProviderError so the
    emitter has a single failure type to handle.
    """

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.name = config.name

    async def stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        thread_id: str | None = None,
    ) -> AsyncIterator[ModelEvent]:
        """
        Stream one model round.

        Raises:
            ModelProviderError: the provider failed before or during the round
        """
        log_stage(
            logger,
            Stage.MODEL_STREAMING,
            "Model round started",
            level="debug",
            provider=self.name,
            messages=len(messages),
            tools=len(tools or []),
        )
        try:
            async for event in self._stream_internal(messages, tools, thread_id):
                yield event
        except EVAssistError:
            raise
        except Exception as e:
            log_stage(
                logger,
                Stage.MODEL_STREAMING,
                "Model provider failed",
                level="error",
                provider=self.name,
                error=str(e),
            )
            raise ModelProviderError.from_exception(
                e, message=f"{self.name} provider failed", thread_id=thread_id, provider=self.name
            ) from e

    @abstractmethod
    def _stream_internal(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        thread_id: str | None,
    ) -> AsyncIterator[ModelEvent]:
        """Provider specific streaming (an async generator)."""

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        ...

    async def close(self) -> None:
        return None
