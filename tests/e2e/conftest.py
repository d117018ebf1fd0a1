"""Pytest fixtures for E2E tests.

Provides a full Projectdock application over a file-backed SQLite database,
an HTTP client, token helpers and a notifier that records deliveries, so
marketplace scenarios can be driven purely through the HTTP API.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from uuid import UUID

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from projectdock.config import AuthConfig, DatabaseConfig, ProjectdockConfig, StorageConfig
from projectdock.database.connection import create_schema, get_engine, get_session_factory
from projectdock.integrations.auth import TokenActorResolver
from projectdock.integrations.notifier import NotificationType
from projectdock.web.app import create_app, init_app_state

E2E_SECRET = "e2e-secret"


@dataclass
class RecordingNotifier:
    """Notifier that keeps every delivery in memory."""

    sent: list[tuple[str, NotificationType]] = field(default_factory=list)

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        project_id: UUID | None = None,
    ) -> None:
        self.sent.append((user_id, type))


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend for pytest-asyncio.

    Returns:
        The name of the async backend to use.
    """
    return "asyncio"


@pytest_asyncio.fixture
async def e2e_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a SQLite database file with all tables.

    Yields:
        Configured AsyncEngine instance.
    """
    test_engine = get_engine(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'e2e.db'}"))
    await create_schema(test_engine)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def e2e_session_factory(e2e_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return get_session_factory(e2e_engine)


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def e2e_app(
    e2e_session_factory: async_sessionmaker[AsyncSession],
    recording_notifier: RecordingNotifier,
    tmp_path: Path,
) -> FastAPI:
    """Application with engines wired to the E2E database.

    Args:
        e2e_session_factory: Session factory for the test database.
        recording_notifier: Notification sink.
        tmp_path: Directory for uploads.

    Returns:
        FastAPI application ready to serve requests.
    """
    config = ProjectdockConfig(
        auth=AuthConfig(token_secret=E2E_SECRET),
        storage=StorageConfig(upload_dir=tmp_path / "uploads"),
    )
    app = create_app(config)
    init_app_state(app, e2e_session_factory, notifier=recording_notifier)
    return app


@pytest_asyncio.fixture
async def e2e_client(e2e_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=e2e_app), base_url="http://e2e") as ac:
        yield ac


@pytest.fixture
def as_user() -> Callable[[str, str], dict[str, Any]]:
    """Build Authorization headers for a user id and role."""
    resolver = TokenActorResolver(E2E_SECRET)

    def _headers(user_id: str, role: str) -> dict[str, Any]:
        return {"Authorization": f"Bearer {resolver.issue_token(user_id, role)}"}

    return _headers


@pytest.fixture
def drain(e2e_app: FastAPI) -> Callable[[], Any]:
    """Wait for background notification delivery in both engines."""

    async def _drain() -> None:
        await e2e_app.state.project_lifecycle.drain()
        await e2e_app.state.phase_lifecycle.drain()

    return _drain
