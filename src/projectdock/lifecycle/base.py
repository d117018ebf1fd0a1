"""Shared plumbing for the project and phase engines."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING
from uuid import UUID

from projectdock.database.models.project import Project
from projectdock.database.queries.project import get_project
from projectdock.errors import NotFoundError
from projectdock.integrations.notifier import NotificationType
from projectdock.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from projectdock.integrations.notifier import Notifier
    from projectdock.lifecycle.activity import ActivityRecorder

logger = get_logger(__name__)


class LifecycleEngine:
    """Session, activity and notification handling common to both engines.

    Each public engine operation is one unit of work:
    ``async with self.session_factory() as session, session.begin():``.
    Activity and notifications are emitted only after that block exits.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        activity: ActivityRecorder,
        notifier: Notifier | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.activity = activity
        self.notifier = notifier
        self._deliveries: set[asyncio.Task[None]] = set()

    async def _load_project(
        self,
        session: AsyncSession,
        project_id: UUID,
        for_update: bool = False,
    ) -> Project:
        project = await get_project(session, project_id, for_update=for_update)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    def _notify(
        self,
        recipients: Iterable[str | None],
        type: NotificationType,
        title: str,
        message: str,
        project_id: UUID | None = None,
    ) -> None:
        """Schedule delivery to each distinct recipient in the background."""
        if self.notifier is None:
            return
        for user_id in dict.fromkeys(r for r in recipients if r):
            task = asyncio.create_task(
                self._deliver(user_id, type, title, message, project_id)
            )
            self._deliveries.add(task)
            task.add_done_callback(self._deliveries.discard)

    async def _deliver(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        project_id: UUID | None,
    ) -> None:
        assert self.notifier is not None
        try:
            await self.notifier.notify(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                project_id=project_id,
            )
        except Exception as exc:
            logger.error(
                "notification_failed",
                user_id=user_id,
                type=type.value,
                error=str(exc),
            )

    async def drain(self) -> None:
        """Wait for every scheduled notification to finish."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)
