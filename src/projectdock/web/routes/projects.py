"""Project lifecycle endpoints for Projectdock.

Each transition endpoint is a thin adapter: it resolves the caller, calls
one ProjectLifecycle operation and serialises the committed project.
Lifecycle errors are mapped to HTTP responses by the application's
exception handler.

Routes:
    POST /projects/ - Create a project (clients)
    GET /projects/{project_id} - Get a project
    PUT /projects/{project_id} - Edit project details
    DELETE /projects/{project_id} - Delete a project
    PUT /projects/{project_id}/<transition> - Apply a status transition
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from fastapi import status as http_status
from pydantic import BaseModel, Field

from projectdock.database.models.project import (
    Project,
    ProjectPriority,
    ProjectStatus,
    ProjectType,
)
from projectdock.lifecycle.permissions import Actor
from projectdock.lifecycle.project_machine import ProjectLifecycle, ProjectUpdate
from projectdock.logging import get_logger
from projectdock.web.dependencies import get_current_actor, get_project_lifecycle

logger = get_logger(__name__)


class ProjectCreate(BaseModel):
    """Request schema for creating a project.

    Attributes:
        title: Project title (1-500 characters)
        description: What the client needs built
        project_type: Optional engagement kind
        priority: Optional priority (defaults to medium)
        due_date: Optional deadline
    """

    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    project_type: ProjectType | None = None
    priority: ProjectPriority | None = None
    due_date: datetime | None = None


class RecruitmentRequest(BaseModel):
    open: bool


class ProjectResponse(BaseModel):
    """Response schema for project data."""

    id: UUID
    title: str
    description: str
    client_id: str
    project_type: ProjectType | None
    priority: ProjectPriority
    status: ProjectStatus
    assigned_programmer_id: str | None
    team: list[str]
    team_closed: bool
    ready_confirmed_by: list[str]
    start_date: datetime | None
    due_date: datetime | None
    completed_date: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_project(cls, project: Project) -> ProjectResponse:
        return cls(
            id=project.id,
            title=project.title,
            description=project.description,
            client_id=project.client_id,
            project_type=project.project_type,
            priority=project.priority,
            status=project.status,
            assigned_programmer_id=project.assigned_programmer_id,
            team=project.team_ids,
            team_closed=project.team_closed,
            ready_confirmed_by=list(project.ready_confirmed_by or []),
            start_date=project.start_date,
            due_date=project.due_date,
            completed_date=project.completed_date,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


def create_projects_router() -> APIRouter:
    """Create the projects router with creation and transition endpoints."""
    router = APIRouter(prefix="/projects", tags=["projects"])

    @router.post(
        "/",
        response_model=ProjectResponse,
        status_code=http_status.HTTP_201_CREATED,
    )
    async def create_project(
        payload: ProjectCreate,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> ProjectResponse:
        project = await lifecycle.create_project(
            actor,
            title=payload.title,
            description=payload.description,
            project_type=payload.project_type,
            priority=payload.priority,
            due_date=payload.due_date,
        )
        logger.info("project_created", project_id=str(project.id), client_id=actor.id)
        return ProjectResponse.from_project(project)

    @router.get("/{project_id}", response_model=ProjectResponse)
    async def get_project(
        project_id: UUID,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> ProjectResponse:
        project = await lifecycle.get_project(project_id, actor)
        return ProjectResponse.from_project(project)

    @router.put("/{project_id}", response_model=ProjectResponse)
    async def update_project(
        project_id: UUID,
        payload: ProjectUpdate,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> ProjectResponse:
        project = await lifecycle.update_project(project_id, actor, payload)
        return ProjectResponse.from_project(project)

    @router.delete("/{project_id}", status_code=http_status.HTTP_204_NO_CONTENT)
    async def delete_project(
        project_id: UUID,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> Response:
        await lifecycle.delete_project(project_id, actor)
        return Response(status_code=http_status.HTTP_204_NO_CONTENT)

    @router.put("/{project_id}/recruitment", response_model=ProjectResponse)
    async def set_recruitment(
        project_id: UUID,
        payload: RecruitmentRequest,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> ProjectResponse:
        project = await lifecycle.set_recruitment(project_id, actor, open=payload.open)
        return ProjectResponse.from_project(project)

    # Body-less transitions share one shape: PUT /projects/{id}/<name>
    transitions = {
        "join": ProjectLifecycle.join_team,
        "leave": ProjectLifecycle.leave_team,
        "confirm-ready": ProjectLifecycle.confirm_ready,
        "mark-ready": ProjectLifecycle.mark_ready,
        "start-development": ProjectLifecycle.start_development,
        "stop-development": ProjectLifecycle.stop_development,
        "complete": ProjectLifecycle.mark_completed,
        "cancel": ProjectLifecycle.mark_cancelled,
        "holding": ProjectLifecycle.set_holding,
        "ready": ProjectLifecycle.set_ready,
    }

    for path, operation in transitions.items():
        router.add_api_route(
            f"/{{project_id}}/{path}",
            _transition_endpoint(operation),
            methods=["PUT"],
            response_model=ProjectResponse,
            name=operation.__name__,
        )

    return router


def _transition_endpoint(operation):  # type: ignore[no-untyped-def]
    async def endpoint(
        project_id: UUID,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> ProjectResponse:
        project = await operation(lifecycle, project_id, actor)
        return ProjectResponse.from_project(project)

    endpoint.__doc__ = operation.__doc__
    return endpoint
