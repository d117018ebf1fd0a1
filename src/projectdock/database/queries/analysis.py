"""Analysis preview query functions for Projectdock."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from projectdock.database.models.analysis import AnalysisPreview, AnalysisStatus


async def insert_analysis(
    session: AsyncSession,
    project_id: UUID,
    result: str,
    status: AnalysisStatus = AnalysisStatus.completed,
) -> AnalysisPreview:
    """Store a generator result (used by the generator side and fixtures)."""
    preview = AnalysisPreview(project_id=project_id, result=result, status=status)
    session.add(preview)
    await session.flush()
    return preview


async def get_latest_completed_result(
    session: AsyncSession,
    project_id: UUID,
) -> str | None:
    """Return the raw text of the newest completed analysis, if any."""
    stmt = (
        select(AnalysisPreview.result)
        .where(
            AnalysisPreview.project_id == project_id,
            AnalysisPreview.status == AnalysisStatus.completed,
        )
        .order_by(AnalysisPreview.created_at.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
