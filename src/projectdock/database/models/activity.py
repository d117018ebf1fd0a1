"""Project activity model for Projectdock.

Append-only audit rows, one per committed transition. ``project_id`` is
deliberately not a foreign key: the trail outlives a deleted project.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from projectdock.database.models.base import Base, JSONType, TimestampMixin


class ProjectActivity(TimestampMixin, Base):
    """A single audit event.

    Attributes:
        project_id: Project the event belongs to.
        actor_id: User who caused it.
        action: Dotted event name, e.g. ``project.status_changed``.
        target_type: ``project``, ``phase`` or ``attachment``.
        target_id: Identifier of the target, as text.
        metadata_: Event details such as ``from_status``/``to_status``.
    """

    __tablename__ = "project_activities"
    __table_args__ = (
        Index("ix_project_activities_project_created", "project_id", "created_at"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    target_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
    )
