"""Pytest fixtures for integration tests.

Provides a file-backed SQLite database per test (aiosqlite), the lifecycle
engines wired to it, and an HTTP client for the FastAPI app. The engine is
built by ``get_engine``, so SQLite transactions take the write lock at
BEGIN and concurrent operations serialize as they would under row locks.

The notifier is an AsyncMock. Engines deliver notifications in background
tasks, so tests call ``await engine.drain()`` before asserting on it.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from projectdock.config import AuthConfig, DatabaseConfig, ProjectdockConfig, StorageConfig
from projectdock.database.connection import create_schema, get_engine, get_session_factory
from projectdock.database.models.project import Project
from projectdock.database.queries.analysis import insert_analysis
from projectdock.integrations.analysis import DatabaseAnalysisSource
from projectdock.integrations.auth import TokenActorResolver
from projectdock.integrations.file_store import LocalFileStore
from projectdock.lifecycle.activity import ActivityRecorder
from projectdock.lifecycle.permissions import Actor
from projectdock.lifecycle.phase_machine import PhaseLifecycle
from projectdock.lifecycle.project_machine import ProjectLifecycle
from projectdock.web.app import create_app, init_app_state

TOKEN_SECRET = "integration-test-secret"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a SQLite database file with the full schema.

    Yields:
        AsyncEngine bound to the test database.
    """
    test_engine = get_engine(
        DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'projectdock.db'}")
    )
    await create_schema(test_engine)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return get_session_factory(engine)


@pytest.fixture
def notifier() -> AsyncMock:
    """Notifier double recording every notify() call."""
    return AsyncMock()


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest_asyncio.fixture
async def activity(session_factory: async_sessionmaker[AsyncSession]) -> ActivityRecorder:
    return ActivityRecorder(session_factory)


@pytest_asyncio.fixture
async def project_lifecycle(
    session_factory: async_sessionmaker[AsyncSession],
    activity: ActivityRecorder,
    notifier: AsyncMock,
) -> ProjectLifecycle:
    return ProjectLifecycle(session_factory, activity, notifier)


@pytest_asyncio.fixture
async def phase_lifecycle(
    session_factory: async_sessionmaker[AsyncSession],
    activity: ActivityRecorder,
    notifier: AsyncMock,
    upload_dir: Path,
) -> PhaseLifecycle:
    return PhaseLifecycle(
        session_factory,
        activity,
        notifier,
        analysis_source=DatabaseAnalysisSource(session_factory),
        file_store=LocalFileStore(upload_dir),
        max_upload_bytes=1024,
    )


# ---------------------------------------------------------------------------
# actors
# ---------------------------------------------------------------------------


@pytest.fixture
def owner() -> Actor:
    return Actor(id="client-1", role="client")


@pytest.fixture
def other_client() -> Actor:
    return Actor(id="client-2", role="client")


@pytest.fixture
def alice() -> Actor:
    return Actor(id="alice", role="programmer")


@pytest.fixture
def bob() -> Actor:
    return Actor(id="bob", role="programmer")


@pytest.fixture
def carol() -> Actor:
    return Actor(id="carol", role="programmer")


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", role="admin")


# ---------------------------------------------------------------------------
# project states
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def holding_project(project_lifecycle: ProjectLifecycle, owner: Actor) -> Project:
    return await project_lifecycle.create_project(
        owner,
        title="Bakery website",
        description="Menu, opening hours and online orders",
        project_type="New Website Design & Development",
    )


@pytest_asyncio.fixture
async def open_project(
    project_lifecycle: ProjectLifecycle, owner: Actor, holding_project: Project
) -> Project:
    return await project_lifecycle.set_recruitment(holding_project.id, owner, open=True)


@pytest_asyncio.fixture
async def ready_project(
    project_lifecycle: ProjectLifecycle,
    owner: Actor,
    alice: Actor,
    bob: Actor,
    open_project: Project,
) -> Project:
    """Open project whose team (alice, bob) confirmed and was marked ready."""
    for member in (alice, bob):
        await project_lifecycle.join_team(open_project.id, member)
        await project_lifecycle.confirm_ready(open_project.id, member)
    return await project_lifecycle.mark_ready(open_project.id, owner)


@pytest_asyncio.fixture
async def dev_project(
    project_lifecycle: ProjectLifecycle, alice: Actor, ready_project: Project
) -> Project:
    return await project_lifecycle.start_development(ready_project.id, alice)


@pytest.fixture
def store_analysis(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[Project, str], Awaitable[None]]:
    """Write a completed analysis preview for a project."""

    async def _store(project: Project, result: str) -> None:
        async with session_factory() as session, session.begin():
            await insert_analysis(session, project.id, result)

    return _store


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def app(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: AsyncMock,
    upload_dir: Path,
) -> FastAPI:
    """FastAPI app with engines in app.state.

    ASGITransport does not run the lifespan, so state is set up directly.
    """
    config = ProjectdockConfig(
        auth=AuthConfig(token_secret=TOKEN_SECRET),
        storage=StorageConfig(upload_dir=upload_dir, max_upload_mb=1),
    )
    test_app = create_app(config)
    init_app_state(test_app, session_factory, notifier=notifier)
    return test_app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, Any]]:
    """Build an Authorization header for an actor."""
    resolver = TokenActorResolver(TOKEN_SECRET)

    def _headers(actor: Actor) -> dict[str, Any]:
        token = resolver.issue_token(actor.id, actor.role, is_active=actor.is_active)
        return {"Authorization": f"Bearer {token}"}

    return _headers
