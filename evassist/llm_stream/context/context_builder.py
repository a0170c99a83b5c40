#!/usr/bin/env python3
"""
Context Window Builder

Selects the prompt for one model call so it fits the token budget.

Layout of the returned list:
    [system instruction] + [newest history suffix that fits] + [new user message]

Token counting is approximate (ceil(chars / 4) + 4 per message) but used
everywhere, so budget decisions are deterministic. Oldest history goes
first; the system message is never dropped. If even system + user do not
fit, the user text is truncated.

Author: System Architect
Date: 2026-01-12
"""

import math
from collections.abc import Callable, Sequence

from evassist.core.config.constants import MessageRole, Stage
from evassist.core.exceptions import ConfigurationError
from evassist.core.logging.logger import get_logger, log_stage
from evassist.infrastructure.session.base import SessionStore
from evassist.infrastructure.session.models import Message
from evassist.llm_stream.context.prompts import build_system_prompt

logger = get_logger(__name__)

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count of one message (content + framing)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN) + MESSAGE_OVERHEAD_TOKENS


def count_tokens(messages: Sequence[Message]) -> int:
    return sum(estimate_tokens(m.content) for m in messages)


def select_context(
    system_prompt: str,
    history: Sequence[Message],
    new_user_message: str,
    token_budget: int,
) -> list[Message]:
    """Pure selection step of build_context()."""
    system = Message(role=MessageRole.SYSTEM, content=system_prompt)
    system_tokens = estimate_tokens(system.content)
    if system_tokens + estimate_tokens("") > token_budget:
        raise ConfigurationError(
            "Token budget cannot hold the system instruction",
            details={"token_budget": token_budget, "system_tokens": system_tokens},
        )

    remaining = token_budget - system_tokens
    user_text = new_user_message
    if estimate_tokens(user_text) > remaining:
        max_chars = (remaining - MESSAGE_OVERHEAD_TOKENS) * CHARS_PER_TOKEN
        user_text = user_text[:max_chars]
        log_stage(
            logger,
            Stage.CONTEXT_BUILD,
            "User message truncated to fit token budget",
            level="warning",
            original_chars=len(new_user_message),
            kept_chars=len(user_text),
        )
    remaining -= estimate_tokens(user_text)

    suffix: list[Message] = []
    for message in reversed(history):
        if message.role == MessageRole.SYSTEM:
            continue
        cost = estimate_tokens(message.content)
        if cost > remaining:
            break
        suffix.append(message)
        remaining -= cost
    suffix.reverse()

    return [system, *suffix, Message(role=MessageRole.USER, content=user_text)]


class ContextWindowBuilder:
    """
    STAGE-3: Context assembly

    Args:
        session_store: Source of conversation history
        token_budget: Default prompt budget (MODEL_TOKEN_BUDGET)
        system_prompt_factory: language -> system instruction
    """

    def __init__(
        self,
        session_store: SessionStore,
        token_budget: int,
        system_prompt_factory: Callable[[str], str] = build_system_prompt,
    ):
        self.session_store = session_store
        self.token_budget = token_budget
        self.system_prompt_factory = system_prompt_factory

    async def build_context(
        self, thread_id: str, new_user_message: str, token_budget: int | None = None
    ) -> list[Message]:
        budget = token_budget if token_budget is not None else self.token_budget
        conversation = await self.session_store.load_or_create(thread_id)
        context = select_context(
            self.system_prompt_factory(conversation.language),
            conversation.messages,
            new_user_message,
            budget,
        )
        log_stage(
            logger,
            Stage.CONTEXT_BUILD,
            "Context built",
            history_messages=len(conversation.messages),
            selected_messages=len(context) - 2,
            tokens=count_tokens(context),
            token_budget=budget,
        )
        return context
