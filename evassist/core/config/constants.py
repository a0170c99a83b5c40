"""
System Constants and Enumerations

System-wide constants and enumerations used across the EV support assistant.

Author: System Architect
Date: 2026-01-12
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Request processing stages.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    - SEQUENCE: numeric order for the turn lifecycle, alphabetic prefix for
      cross-cutting concerns (CB, R, RL)

    Every log entry emitted through log_stage() carries one of these so a
    single turn can be followed end to end by filtering on thread_id.
    """

    # Turn lifecycle
    INITIALIZATION = "0.0_INITIALIZATION"
    REQUEST_INTAKE = "1.0_REQUEST_INTAKE"
    SESSION_LOAD = "2.0_SESSION_LOAD"
    CONTEXT_BUILD = "3.0_CONTEXT_BUILD"
    MODEL_STREAMING = "4.0_MODEL_STREAMING"
    TOOL_DISPATCH = "4.1_TOOL_DISPATCH"
    EMIT = "5.0_EMIT"
    PERSISTENCE = "5.1_PERSISTENCE"
    CLEANUP = "6.0_CLEANUP"

    # Cross-cutting concerns
    UPSTREAM_CACHE = "C_UPSTREAM_CACHE"
    RATE_LIMITING = "RL_RATE_LIMITING"
    CIRCUIT_BREAKER = "CB_CIRCUIT_BREAKER"
    RETRY = "R_RETRY_LOGIC"
    UPSTREAM_CALL = "U_UPSTREAM_CALL"


# ============================================================================
# Circuit Breaker States
# ============================================================================


class CircuitState(str, Enum):
    """
    Circuit breaker states.

    CLOSED: Normal operation, requests allowed
    OPEN: Failing fast, requests blocked
    HALF_OPEN: Testing recovery, a single probe allowed
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# ============================================================================
# Failure taxonomy
# ============================================================================


class FailureKind(str, Enum):
    """Typed failure categories surfaced by the upstream client and tools."""

    INVALID_ARGS = "invalid_args"
    RATE_LIMITED = "rate_limited"
    CIRCUIT_OPEN = "circuit_open"
    UPSTREAM_TRANSIENT = "upstream_transient"
    UPSTREAM_PERMANENT = "upstream_permanent"
    UNKNOWN_TOOL = "unknown_tool"


class TTLClass(str, Enum):
    """Cache lifetime class of an upstream operation."""

    REALTIME = "realtime"
    VOLATILE = "volatile"
    DEFAULT = "default"
    STATIC = "static"
    NONE = "none"


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# ============================================================================
# Keys and headers
# ============================================================================

CACHE_KEY_PREFIX = "upstream"

REDIS_KEY_CONVERSATION = "conv"
REDIS_KEY_MESSAGES = "conv:msgs"
REDIS_KEY_RECENT = "conv:recent"
REDIS_KEY_TURN_LEASE = "conv:turn"

HEADER_THREAD_ID = "X-Thread-ID"
HEADER_USER_ID = "X-User-ID"

# ============================================================================
# SSE event types
# ============================================================================

SSE_EVENT_CHUNK = "chunk"
SSE_EVENT_COMPLETE = "complete"
SSE_EVENT_ERROR = "error"

# ============================================================================
# Miscellaneous
# ============================================================================

EMPTY_RESPONSE_FALLBACK = "Sorry, I could not generate a response."
HISTORY_LIST_MAX = 100
