"""Activity recorder.

Appends audit rows for committed transitions and serves the paginated
activity feed. Recording runs in its own session after the transition's
transaction has committed; a failure there is logged and never reaches the
caller, because the transition itself already happened.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from projectdock.database.models.activity import ProjectActivity
from projectdock.database.queries.activity import insert_activity, list_activity
from projectdock.errors import PayloadValidationError
from projectdock.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class ActivityRecorder:
    """Writes and reads the append-only project activity trail."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def record(
        self,
        project_id: UUID,
        actor_id: str,
        action: str,
        target_type: str | None = None,
        target_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append one activity row. Never raises."""
        try:
            async with self.session_factory() as session, session.begin():
                await insert_activity(
                    session,
                    project_id=project_id,
                    actor_id=actor_id,
                    action=action,
                    target_type=target_type,
                    target_id=target_id,
                    metadata=metadata,
                )
        except Exception as exc:
            logger.error(
                "activity_record_failed",
                project_id=str(project_id),
                action=action,
                error=str(exc),
            )
            return

        logger.debug("activity_recorded", project_id=str(project_id), action=action)

    async def list(
        self,
        project_id: UUID,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        action: str | None = None,
    ) -> tuple[list[ProjectActivity], int]:
        """Return one page of a project's activity, newest first.

        Args:
            project_id: Project to read.
            page: 1-based page number.
            limit: Page size, between 1 and 100.
            action: Optional exact action filter.

        Returns:
            Tuple of (records, total matching records).

        Raises:
            PayloadValidationError: If page or limit is out of range.
        """
        if page < 1:
            raise PayloadValidationError("page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise PayloadValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        async with self.session_factory() as session:
            return await list_activity(
                session,
                project_id=project_id,
                offset=(page - 1) * limit,
                limit=limit,
                action=action,
            )
