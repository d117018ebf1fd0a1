"""Project phase model for Projectdock.

Defines the ProjectPhase table and PhaseStatus enum. A project owns an
ordered batch of phases created exactly once; the unique
(project_id, order) constraint backs that rule at the storage layer.

Client questions, sub-steps and attachments are small ordered lists that
are always read and written together with their phase, so they live in
JSON columns. Each entry carries a generated ``id``.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from projectdock.database.models.base import (
    Base,
    JSONType,
    TimestampMixin,
    value_enum,
)


class PhaseStatus(enum.Enum):
    """Per-phase progress.

    States:
        not_started: Created, no work recorded.
        in_progress: Work started, started_at stamped.
        completed: Finished, completed_at stamped.
    """

    not_started = "not_started"
    in_progress = "in_progress"
    completed = "completed"


class ProjectPhase(TimestampMixin, Base):
    """One step of a project's delivery plan.

    Attributes:
        project_id: Owning project; rows go away with it.
        title: Phase title, editable by the team.
        description: Optional free text.
        order: Position within the project, unique per project.
        status: Current phase status.
        deliverables: Ordered list of deliverable names.
        estimated_duration_days: Planning estimate in days.
        actual_duration_days: Derived from started_at/completed_at.
        requires_client_approval: Decided from the title at creation, frozen.
        client_approved: Client sign-off flag.
        client_approved_at: When sign-off was given.
        client_questions: ``[{id, question, required, order, answer}]``.
        sub_steps: ``[{id, title, completed, order, notes}]``.
        attachments: ``[{id, filename, url, uploaded_by, uploaded_at, type}]``.
        started_at: Stamped on first entry into in_progress.
        completed_at: Non-null iff status is completed.
        due_date: Optional deadline.
        notes: Free-form team notes.
    """

    __tablename__ = "project_phases"
    __table_args__ = (
        UniqueConstraint("project_id", "order", name="uq_project_phases_project_order"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PhaseStatus] = mapped_column(
        value_enum(PhaseStatus, "phase_status"),
        default=PhaseStatus.not_started,
        nullable=False,
    )
    deliverables: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    estimated_duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    actual_duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    requires_client_approval: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    client_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    client_approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    client_questions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    sub_steps: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    attachments: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    due_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
