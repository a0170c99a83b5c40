"""Application services."""

from evassist.application.services.chat_service import ChatService
from evassist.application.services.container import ServiceContainer, build_provider, build_session_store

__all__ = ["ChatService", "ServiceContainer", "build_provider", "build_session_store"]
