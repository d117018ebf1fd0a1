"""FastAPI application factory for Projectdock.

This module provides the main application factory function that creates
and configures a FastAPI application with:
- CORS middleware for cross-origin requests
- Request logging middleware with correlation IDs
- Database connection lifecycle management
- Lifecycle engines, activity recorder and actor resolver in app.state
- A single handler mapping lifecycle errors to JSON responses

Example usage:
    >>> from projectdock.config import ProjectdockConfig
    >>> from projectdock.web.app import create_app
    >>>
    >>> app = create_app(ProjectdockConfig())
    >>>
    >>> import uvicorn
    >>> uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from projectdock import __version__
from projectdock.config import ProjectdockConfig
from projectdock.database.connection import get_engine, get_session_factory
from projectdock.errors import InvalidTransitionError, LifecycleError
from projectdock.integrations.analysis import AnalysisSource, DatabaseAnalysisSource
from projectdock.integrations.auth import TokenActorResolver
from projectdock.integrations.file_store import FileStore, LocalFileStore
from projectdock.integrations.notifier import Notifier, WebhookNotifier
from projectdock.lifecycle.activity import ActivityRecorder
from projectdock.lifecycle.phase_machine import PhaseLifecycle
from projectdock.lifecycle.project_machine import ProjectLifecycle
from projectdock.logging import get_logger
from projectdock.web.middleware import RequestLoggingMiddleware
from projectdock.web.routes import (
    create_activity_router,
    create_assignments_router,
    create_health_router,
    create_phases_router,
    create_projects_router,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


def init_app_state(
    app: FastAPI,
    session_factory: async_sessionmaker[AsyncSession],
    notifier: Notifier | None = None,
    analysis_source: AnalysisSource | None = None,
    file_store: FileStore | None = None,
) -> None:
    """Build the engines and store them in app.state for dependency injection.

    Args:
        app: Application whose ``state.config`` is already set.
        session_factory: Session factory shared by every component.
        notifier: Notification transport; None disables notifications.
        analysis_source: Defaults to the database-backed source.
        file_store: Defaults to a LocalFileStore under ``storage.upload_dir``.
    """
    config: ProjectdockConfig = app.state.config
    activity = ActivityRecorder(session_factory)

    app.state.session_factory = session_factory
    app.state.activity = activity
    app.state.actor_resolver = TokenActorResolver(config.auth.token_secret)
    app.state.project_lifecycle = ProjectLifecycle(session_factory, activity, notifier)
    app.state.phase_lifecycle = PhaseLifecycle(
        session_factory,
        activity,
        notifier,
        analysis_source=analysis_source or DatabaseAnalysisSource(session_factory),
        file_store=file_store or LocalFileStore(config.storage.upload_dir),
        max_upload_bytes=config.storage.max_upload_mb * 1024 * 1024,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the database pool and engines on startup, release them on shutdown."""
    config: ProjectdockConfig = app.state.config

    logger.info("app_startup_begin", host=config.web.host, port=config.web.port)

    engine = get_engine(config.database)
    notifier = WebhookNotifier(config.notifier)
    app.state.engine = engine
    init_app_state(app, get_session_factory(engine), notifier=notifier)

    logger.info(
        "database_pool_initialized",
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )

    yield

    logger.info("app_shutdown_begin")
    await app.state.project_lifecycle.drain()
    await app.state.phase_lifecycle.drain()
    await notifier.close()
    await engine.dispose()
    logger.info("database_pool_disposed")


async def lifecycle_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map a LifecycleError to ``{"detail": message}`` with its status code."""
    assert isinstance(exc, LifecycleError)
    content: dict[str, Any] = {"detail": exc.message}
    if isinstance(exc, InvalidTransitionError):
        content["current"] = exc.current
        content["target"] = exc.target

    logger.info(
        "lifecycle_error",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.message,
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(config: ProjectdockConfig | None = None) -> FastAPI:
    """Create and configure a FastAPI application.

    Args:
        config: Optional ProjectdockConfig. If None, creates default config.

    Returns:
        Configured FastAPI application instance.
    """
    if config is None:
        config = ProjectdockConfig()

    app = FastAPI(
        title="Projectdock",
        version=__version__,
        description="Project and phase lifecycle engine for a development marketplace",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(LifecycleError, lifecycle_error_handler)

    app.include_router(create_health_router())
    app.include_router(create_projects_router())
    app.include_router(create_assignments_router())
    app.include_router(create_phases_router())
    app.include_router(create_activity_router())

    logger.info(
        "app_created",
        cors_origins=config.web.cors_origins,
        version=__version__,
    )

    return app
