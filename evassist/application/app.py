"""
FastAPI Application Entry Point

Configures the EV support assistant: lifespan (logging, service container),
middleware, exception handlers and routes.

Run with:
    uvicorn evassist.application.app:app --host 0.0.0.0 --port 8000

Author: System Architect
Date: 2026-01-12
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from evassist.application.api.middleware.error_handler import ErrorHandlingMiddleware
from evassist.application.api.routes.chat import router as chat_router
from evassist.application.api.routes.health import router as health_router
from evassist.application.services.container import ServiceContainer
from evassist.core.config.constants import HEADER_THREAD_ID, Stage
from evassist.core.config.settings import Settings, get_settings
from evassist.core.exceptions import EVAssistError
from evassist.core.logging.logger import get_logger, log_stage, setup_logging

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, container: ServiceContainer | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to the global singleton)
        container: Pre-built container (tests); built in the lifespan otherwise

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    # ========================================================================
    # LIFESPAN
    # ========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Starting EV support assistant",
            environment=settings.app.ENVIRONMENT,
            version=settings.app.APP_VERSION,
        )

        owned = container is None
        app.state.container = container or ServiceContainer(settings)
        log_stage(logger, Stage.INITIALIZATION, "Application startup complete")
        try:
            yield
        finally:
            log_stage(logger, Stage.CLEANUP, "Shutting down application")
            if owned:
                await app.state.container.close()
            log_stage(logger, Stage.CLEANUP, "Application shutdown complete")

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Streaming support assistant for EV charging networks",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ========================================================================
    # MIDDLEWARE
    # ========================================================================

    app.add_middleware(
        ErrorHandlingMiddleware,
        include_traceback=(settings.app.ENVIRONMENT == "development"),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[HEADER_THREAD_ID],
    )

    # ========================================================================
    # ROUTES
    # ========================================================================

    base_path = settings.app.API_BASE_PATH
    app.include_router(health_router, prefix=base_path)
    app.include_router(chat_router, prefix=base_path)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{base_path}/health",
        }

    # ========================================================================
    # EXCEPTION HANDLERS
    # ========================================================================

    @app.exception_handler(EVAssistError)
    async def evassist_exception_handler(request: Request, exc: EVAssistError):
        logger.warning(
            f"Request failed: {exc.message}",
            error_type=type(exc).__name__,
            thread_id=exc.thread_id,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_dict(),
            headers={HEADER_THREAD_ID: exc.thread_id or ""},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "evassist.application.app:app",
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
