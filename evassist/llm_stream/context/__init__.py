"""Prompt assembly under a token budget."""

from evassist.llm_stream.context.context_builder import (
    ContextWindowBuilder,
    count_tokens,
    estimate_tokens,
    select_context,
)
from evassist.llm_stream.context.prompts import build_system_prompt

__all__ = [
    "ContextWindowBuilder",
    "build_system_prompt",
    "count_tokens",
    "estimate_tokens",
    "select_context",
]
