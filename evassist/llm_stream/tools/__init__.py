"""Tools the model may call, and their dispatch to the upstream client."""

from evassist.llm_stream.tools.dispatcher import (
    FALLBACK_MESSAGES,
    STALE_DATA_NOTE,
    ToolDispatcher,
    ToolResult,
    ToolSpec,
    build_registry,
)
from evassist.llm_stream.tools.schemas import ARGS_BY_TOOL, ToolArgs, tool_args_adapter

__all__ = [
    "ARGS_BY_TOOL",
    "FALLBACK_MESSAGES",
    "STALE_DATA_NOTE",
    "ToolArgs",
    "ToolDispatcher",
    "ToolResult",
    "ToolSpec",
    "build_registry",
    "tool_args_adapter",
]
