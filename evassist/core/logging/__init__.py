"""Structured logging package."""

from evassist.core.logging.logger import (
    clear_thread_id,
    get_logger,
    get_thread_id,
    log_stage,
    redact_text,
    set_thread_id,
    setup_logging,
)

__all__ = [
    "clear_thread_id",
    "get_logger",
    "get_thread_id",
    "log_stage",
    "redact_text",
    "set_thread_id",
    "setup_logging",
]
