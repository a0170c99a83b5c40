#!/usr/bin/env python3
"""
Structured Logging Module using structlog

Production-grade structured logging with:
- Thread ID correlation (the conversation id of the turn being served)
- Stage tagging for execution flow
- JSON formatting for log aggregation
- Automatic PII redaction

Author: System Architect
Date: 2026-01-12
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

# Conversation thread id of the request currently executing in this task
thread_id_ctx: ContextVar[str | None] = ContextVar("thread_id", default=None)

_EMAIL_RE = re.compile(r"\b[\w.-]+@[\w.-]+\.\w+\b")
_API_KEY_RE = re.compile(r"\bsk-[a-zA-Z0-9_-]+\b")
_BEARER_RE = re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+")
_PHONE_RE = re.compile(r"(?<!\w)\+?\d[\d -]{7,}\d\b")


def add_thread_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add thread ID to log event from context variable.

    STAGE-L.1: Thread ID injection
    """
    thread_id = thread_id_ctx.get()
    if thread_id and "thread_id" not in event_dict:
        event_dict["thread_id"] = thread_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """STAGE-L.2: Timestamp injection"""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def redact_text(text: str) -> str:
    """Mask emails, API keys, bearer tokens and phone numbers in free text."""
    text = _EMAIL_RE.sub("[EMAIL]", text)
    text = _API_KEY_RE.sub("[REDACTED]", text)
    text = _BEARER_RE.sub("Bearer [REDACTED]", text)
    return _PHONE_RE.sub("[PHONE]", text)


def redact_pii(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact PII from the log message.

    STAGE-L.3: PII redaction

    Users paste phone numbers and emails into support chats, so the event
    text is scrubbed before rendering.
    """
    message = event_dict.get("event", "")
    if isinstance(message, str):
        event_dict["event"] = redact_text(message)
    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """STAGE-L.4: Log level injection"""
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Setup structured logging with structlog.

    STAGE-L: Logging initialization

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_thread_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_pii,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value")
    """
    return structlog.get_logger(name)


def set_thread_id(thread_id: str) -> None:
    """
    Set thread ID in context for the current request.

    STAGE-1.1: Thread ID context initialization
    """
    thread_id_ctx.set(thread_id)


def get_thread_id() -> str | None:
    return thread_id_ctx.get()


def clear_thread_id() -> None:
    """STAGE-6: Thread ID context cleanup"""
    thread_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Args:
        logger: Logger instance
        stage: Stage identifier (a Stage enum member or its value)
        message: Log message
        level: Log level (debug, info, warning, error, critical)
        **kwargs: Additional fields to log

    Usage:
        log_stage(logger, Stage.UPSTREAM_CACHE, "Cache hit", operation="get_tariff")
    """
    log_func = getattr(logger, level.lower())
    log_func(message, stage=getattr(stage, "value", stage), **kwargs)
