"""Single-assignee endpoints for Projectdock.

Routes:
    POST /assignments/{project_id}/assign - Assign a programmer (Ready -> Development)
    POST /assignments/{project_id}/accept - Accept a project (Ready -> Development)
    POST /assignments/{project_id}/reject - Primary assignee hands it back (-> Ready)
    DELETE /assignments/{project_id}/unassign - Remove the primary assignee (-> Ready)
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from projectdock.lifecycle.permissions import Actor
from projectdock.lifecycle.project_machine import ProjectLifecycle
from projectdock.web.dependencies import get_current_actor, get_project_lifecycle
from projectdock.web.routes.projects import ProjectResponse


class AssignRequest(BaseModel):
    """Admins name the programmer; programmers may omit it to assign themselves."""

    programmer_id: str | None = None


def create_assignments_router() -> APIRouter:
    """Create the assignments router."""
    router = APIRouter(prefix="/assignments", tags=["assignments"])

    @router.post("/{project_id}/assign", response_model=ProjectResponse)
    async def assign_project(
        project_id: UUID,
        payload: AssignRequest | None = Body(default=None),  # noqa: B008
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> ProjectResponse:
        project = await lifecycle.assign_project(
            project_id,
            actor,
            programmer_id=payload.programmer_id if payload else None,
        )
        return ProjectResponse.from_project(project)

    @router.post("/{project_id}/accept", response_model=ProjectResponse)
    async def accept_project(
        project_id: UUID,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> ProjectResponse:
        project = await lifecycle.accept_project(project_id, actor)
        return ProjectResponse.from_project(project)

    @router.post("/{project_id}/reject", response_model=ProjectResponse)
    async def reject_project(
        project_id: UUID,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> ProjectResponse:
        project = await lifecycle.reject_project(project_id, actor)
        return ProjectResponse.from_project(project)

    @router.delete("/{project_id}/unassign", response_model=ProjectResponse)
    async def unassign_project(
        project_id: UUID,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
    ) -> ProjectResponse:
        project = await lifecycle.unassign_project(project_id, actor)
        return ProjectResponse.from_project(project)

    return router
