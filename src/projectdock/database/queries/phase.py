"""Project phase query functions for Projectdock.

Provides async functions for batch-inserting, listing, counting and
locking ProjectPhase records. The caller owns the transaction.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from projectdock.database.models.phase import ProjectPhase

logger = structlog.get_logger(__name__)


async def count_phases(session: AsyncSession, project_id: UUID) -> int:
    """Return how many phases a project has."""
    stmt = select(func.count()).select_from(ProjectPhase).where(
        ProjectPhase.project_id == project_id
    )
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def list_phases(session: AsyncSession, project_id: UUID) -> list[ProjectPhase]:
    """List a project's phases in ascending order."""
    stmt = (
        select(ProjectPhase)
        .where(ProjectPhase.project_id == project_id)
        .order_by(ProjectPhase.order.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_phase(
    session: AsyncSession,
    project_id: UUID,
    phase_id: UUID,
    for_update: bool = False,
) -> ProjectPhase | None:
    """Retrieve one phase of a project.

    Args:
        session: Active async database session.
        project_id: Owning project; a phase of another project is not returned.
        phase_id: UUID of the phase.
        for_update: Take a row lock for a read-modify-write.

    Returns:
        The ProjectPhase if found, None otherwise.
    """
    stmt = select(ProjectPhase).where(
        ProjectPhase.id == phase_id,
        ProjectPhase.project_id == project_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def insert_phases(
    session: AsyncSession,
    project_id: UUID,
    rows: list[dict[str, Any]],
) -> list[ProjectPhase]:
    """Insert a batch of phases for a project.

    Args:
        session: Active async database session.
        project_id: Owning project.
        rows: Column values for each phase.

    Returns:
        The flushed phases, in the order given.
    """
    phases = [ProjectPhase(project_id=project_id, **row) for row in rows]
    session.add_all(phases)
    await session.flush()

    logger.info(
        "phases_inserted",
        project_id=str(project_id),
        count=len(phases),
    )
    return phases
