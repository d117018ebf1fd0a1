"""Access to stored analysis generator output."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from projectdock.database.queries.analysis import get_latest_completed_result

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class AnalysisSource(Protocol):
    """Returns the newest completed analysis text for a project, or None."""

    async def latest_completed(self, project_id: UUID) -> str | None: ...


class DatabaseAnalysisSource:
    """AnalysisSource reading the ``analysis_previews`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def latest_completed(self, project_id: UUID) -> str | None:
        async with self.session_factory() as session:
            return await get_latest_completed_result(session, project_id)
