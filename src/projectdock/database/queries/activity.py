"""Project activity query functions for Projectdock."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from projectdock.database.models.activity import ProjectActivity


async def insert_activity(
    session: AsyncSession,
    project_id: UUID,
    actor_id: str,
    action: str,
    target_type: str | None = None,
    target_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> ProjectActivity:
    """Append one activity row."""
    activity = ProjectActivity(
        project_id=project_id,
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata_=metadata,
    )
    session.add(activity)
    await session.flush()
    return activity


async def list_activity(
    session: AsyncSession,
    project_id: UUID,
    offset: int,
    limit: int,
    action: str | None = None,
) -> tuple[list[ProjectActivity], int]:
    """Return one page of a project's activity, newest first, and the total.

    Args:
        session: Active async database session.
        project_id: Project to read.
        offset: Rows to skip.
        limit: Maximum rows to return.
        action: Optional exact action filter.

    Returns:
        Tuple of (rows, total matching rows).
    """
    conditions = [ProjectActivity.project_id == project_id]
    if action is not None:
        conditions.append(ProjectActivity.action == action)

    total_stmt = select(func.count()).select_from(ProjectActivity).where(*conditions)
    total = int((await session.execute(total_stmt)).scalar_one())

    stmt = (
        select(ProjectActivity)
        .where(*conditions)
        .order_by(ProjectActivity.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total
