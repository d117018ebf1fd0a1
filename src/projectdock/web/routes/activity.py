"""Project activity feed endpoint.

Routes:
    GET /projects/{project_id}/activity?page=&limit=&action= - Newest first
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from projectdock.lifecycle.activity import DEFAULT_PAGE_SIZE, ActivityRecorder
from projectdock.lifecycle.permissions import Actor, require, resolve_capabilities
from projectdock.lifecycle.project_machine import ProjectLifecycle
from projectdock.web.dependencies import (
    get_activity_recorder,
    get_current_actor,
    get_project_lifecycle,
)


class ActivityResponse(BaseModel):
    id: UUID
    project_id: UUID
    actor_id: str
    action: str
    target_type: str | None
    target_id: str | None
    metadata: dict[str, Any] | None
    created_at: datetime


class ActivityPage(BaseModel):
    """One page of the activity feed.

    Attributes:
        items: Records on this page, newest first
        total: Records matching the filter across all pages
        page: 1-based page number
        limit: Page size
    """

    items: list[ActivityResponse]
    total: int
    page: int
    limit: int


def create_activity_router() -> APIRouter:
    """Create the activity feed router."""
    router = APIRouter(prefix="/projects", tags=["activity"])

    @router.get("/{project_id}/activity", response_model=ActivityPage)
    async def list_activity(
        project_id: UUID,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        action: str | None = None,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        projects: ProjectLifecycle = Depends(get_project_lifecycle),  # noqa: B008
        recorder: ActivityRecorder = Depends(get_activity_recorder),  # noqa: B008
    ) -> ActivityPage:
        project = await projects.get_project(project_id, actor)
        caps = resolve_capabilities(actor, project)
        require(caps.has_project_access, "You do not have access to this project")

        rows, total = await recorder.list(project_id, page=page, limit=limit, action=action)
        items = [
            ActivityResponse(
                id=row.id,
                project_id=row.project_id,
                actor_id=row.actor_id,
                action=row.action,
                target_type=row.target_type,
                target_id=row.target_id,
                metadata=row.metadata_,
                created_at=row.created_at,
            )
            for row in rows
        ]
        return ActivityPage(items=items, total=total, page=page, limit=limit)

    return router
