"""Conversation storage and per-thread turn serialization."""

from evassist.infrastructure.session.base import SessionStore
from evassist.infrastructure.session.memory_store import InMemorySessionStore
from evassist.infrastructure.session.models import Conversation, Message
from evassist.infrastructure.session.redis_store import RedisSessionStore, create_redis_client
from evassist.infrastructure.session.turn_lock import RedisTurnLeaseManager, TurnLeaseManager

__all__ = [
    "Conversation",
    "InMemorySessionStore",
    "Message",
    "RedisSessionStore",
    "RedisTurnLeaseManager",
    "SessionStore",
    "TurnLeaseManager",
    "create_redis_client",
]
