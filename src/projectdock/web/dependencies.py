"""FastAPI dependencies shared by the routers.

Everything is read from ``app.state``, which the application lifespan (or a
test) populates through ``init_app_state``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, Request
from fastapi import status as http_status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from projectdock.integrations.auth import AuthenticationError
from projectdock.lifecycle.activity import ActivityRecorder
from projectdock.lifecycle.permissions import Actor
from projectdock.lifecycle.phase_machine import PhaseLifecycle
from projectdock.lifecycle.project_machine import ProjectLifecycle
from projectdock.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Dependency that retrieves session factory from app state."""
    return request.app.state.session_factory  # type: ignore[no-any-return]


def get_project_lifecycle(request: Request) -> ProjectLifecycle:
    return request.app.state.project_lifecycle  # type: ignore[no-any-return]


def get_phase_lifecycle(request: Request) -> PhaseLifecycle:
    return request.app.state.phase_lifecycle  # type: ignore[no-any-return]


def get_activity_recorder(request: Request) -> ActivityRecorder:
    return request.app.state.activity  # type: ignore[no-any-return]


def get_current_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
) -> Actor:
    """Resolve the bearer token to an active Actor.

    Raises:
        HTTPException: 401 if the token is missing, invalid or the account
            is deactivated.
    """
    if credentials is None:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        actor = request.app.state.actor_resolver.resolve(credentials.credentials)
    except AuthenticationError as exc:
        logger.warning("authentication_failed", error=str(exc))
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    if not actor.is_active:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated",
        )
    return actor
