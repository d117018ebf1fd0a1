"""Project query functions for Projectdock.

Provides async functions for inserting, loading and deleting Project
records using the SQLAlchemy 2.0 select() API. The caller owns the
transaction: these functions flush but never commit.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from projectdock.database.models.analysis import AnalysisPreview
from projectdock.database.models.phase import ProjectPhase
from projectdock.database.models.project import Project, ProjectStatus

logger = structlog.get_logger(__name__)


async def insert_project(
    session: AsyncSession,
    client_id: str,
    title: str,
    description: str,
    **fields: Any,
) -> Project:
    """Insert a new project in Holding status.

    Args:
        session: Active async database session.
        client_id: Owning client.
        title: Project title.
        description: Project description.
        **fields: Optional columns (project_type, priority, due_date).

    Returns:
        The flushed Project instance.
    """
    project = Project(
        client_id=client_id,
        title=title,
        description=description,
        status=ProjectStatus.holding,
        team_closed=False,
        assigned_programmer_ids=[],
        ready_confirmed_by=[],
        **fields,
    )
    session.add(project)
    await session.flush()

    logger.info(
        "project_inserted",
        project_id=str(project.id),
        client_id=client_id,
        status=project.status.value,
    )
    return project


async def get_project(
    session: AsyncSession,
    project_id: UUID,
    for_update: bool = False,
) -> Project | None:
    """Retrieve a project by ID.

    Args:
        session: Active async database session.
        project_id: UUID of the project to retrieve.
        for_update: Take a row lock for a read-modify-write.

    Returns:
        The Project instance if found, None otherwise.
    """
    stmt = select(Project).where(Project.id == project_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def delete_project(
    session: AsyncSession,
    project_id: UUID,
) -> bool:
    """Delete a project after deleting its phases and analysis previews.

    Args:
        session: Active async database session.
        project_id: UUID of the project to delete.

    Returns:
        True if the project row was deleted, False if not found.
    """
    await session.execute(delete(ProjectPhase).where(ProjectPhase.project_id == project_id))
    await session.execute(
        delete(AnalysisPreview).where(AnalysisPreview.project_id == project_id)
    )
    result = await session.execute(delete(Project).where(Project.id == project_id))
    deleted = result.rowcount > 0

    if deleted:
        logger.info("project_deleted", project_id=str(project_id))
    else:
        logger.warning("project_not_found", project_id=str(project_id))

    return deleted
