"""
FastAPI Dependencies
====================

Route handlers never build components themselves. The lifespan stores one
ServiceContainer in app.state and the functions below hand its parts to
routes through FastAPI's dependency injection:

    @router.get("/chat/{thread_id}")
    async def get_conversation(thread_id: str, service: ChatServiceDep):
        ...

Tests override nothing here; they pass a prepared container to create_app().
"""

from typing import Annotated

from fastapi import Depends, Request

from evassist.application.services.chat_service import ChatService
from evassist.application.services.container import ServiceContainer
from evassist.core.config.constants import HEADER_USER_ID

# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_container(request: Request) -> ServiceContainer:
    """
    Retrieve the ServiceContainer from application state.

    Raises:
        RuntimeError: the lifespan did not run (app used without its context)
    """
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError(
            "ServiceContainer not initialized in app.state. "
            "This indicates the application lifespan startup didn't complete properly."
        )
    return container


def get_chat_service(container: Annotated[ServiceContainer, Depends(get_container)]) -> ChatService:
    return container.chat_service


def get_user_id(request: Request) -> str | None:
    """
    Rate-limit principal supplied by the caller.

    Returns None when the X-User-ID header is absent or blank; the turn then
    falls back to its thread id as principal.
    """
    user_id = request.headers.get(HEADER_USER_ID, "").strip()
    return user_id or None


# ============================================================================
# TYPE ALIASES
# ============================================================================

ContainerDep = Annotated[ServiceContainer, Depends(get_container)]
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
UserIdDep = Annotated[str | None, Depends(get_user_id)]
