"""Project model for Projectdock.

Defines the Project table together with the ProjectStatus, ProjectType and
ProjectPriority enums.

Team membership is stored once, in ``assigned_programmer_ids``. The primary
assignee (``assigned_programmer_id``) is a distinguished member of that list;
the helper methods on Project are the only writers of either column so the
two never drift apart.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from projectdock.database.models.base import (
    Base,
    JSONType,
    TimestampMixin,
    value_enum,
)


class ProjectStatus(enum.Enum):
    """Lifecycle status for a project.

    States:
        holding: Created or parked by the client, recruitment closed.
        open: Recruitment open, programmers may join and confirm readiness.
        ready: Team locked (or awaiting a single assignee).
        development: Work under way.
        completed: Delivered. Terminal.
        cancelled: Abandoned. Terminal.
    """

    holding = "Holding"
    open = "Open"
    ready = "Ready"
    development = "Development"
    completed = "Completed"
    cancelled = "Cancelled"


TERMINAL_STATUSES = frozenset({ProjectStatus.completed, ProjectStatus.cancelled})


class ProjectType(enum.Enum):
    """Kind of engagement requested by the client."""

    new_website = "New Website Design & Development"
    redesign = "Website Redesign/Refresh"
    ecommerce = "E-commerce Store"
    landing_page = "Landing Page"
    web_application = "Web Application"
    maintenance = "Maintenance/Updates to Existing Site"
    other = "Other"


class ProjectPriority(enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class Project(TimestampMixin, Base):
    """A client project moving through recruitment and development.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        title: Short project title.
        description: Client's description of the work.
        client_id: Owning client, immutable after creation.
        project_type: Optional engagement kind, drives the phase template.
        priority: Client-declared priority.
        assigned_programmer_id: Primary assignee, a member of the team.
        assigned_programmer_ids: Canonical team membership list.
        status: Current lifecycle status.
        team_closed: True once recruitment is locked.
        ready_confirmed_by: Programmers who signalled readiness.
        start_date: Set when development first starts.
        due_date: Optional deadline.
        completed_date: Set iff status is completed.
    """

    __tablename__ = "projects"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    project_type: Mapped[ProjectType | None] = mapped_column(
        value_enum(ProjectType, "project_type"),
        nullable=True,
    )
    priority: Mapped[ProjectPriority] = mapped_column(
        value_enum(ProjectPriority, "project_priority"),
        default=ProjectPriority.medium,
        nullable=False,
    )
    assigned_programmer_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    assigned_programmer_ids: Mapped[list[str]] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
    )
    status: Mapped[ProjectStatus] = mapped_column(
        value_enum(ProjectStatus, "project_status"),
        default=ProjectStatus.holding,
        nullable=False,
        index=True,
    )
    team_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ready_confirmed_by: Mapped[list[str]] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
    )
    start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    due_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def team_ids(self) -> list[str]:
        """Team members in join order, primary included."""
        members = list(self.assigned_programmer_ids or [])
        if self.assigned_programmer_id and self.assigned_programmer_id not in members:
            members.insert(0, self.assigned_programmer_id)
        return members

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def add_member(self, user_id: str) -> bool:
        """Add a programmer to the team. Returns False if already a member."""
        if user_id in self.team_ids:
            return False
        # New list object so the JSON column is flagged dirty
        self.assigned_programmer_ids = [*self.team_ids, user_id]
        return True

    def remove_member(self, user_id: str) -> bool:
        """Remove a programmer from the team, the primary slot and the ready set."""
        if user_id not in self.team_ids:
            return False
        self.assigned_programmer_ids = [m for m in self.team_ids if m != user_id]
        if self.assigned_programmer_id == user_id:
            self.assigned_programmer_id = None
        self.ready_confirmed_by = [
            m for m in (self.ready_confirmed_by or []) if m != user_id
        ]
        return True

    def set_primary(self, user_id: str) -> None:
        """Make a programmer the primary assignee, adding them to the team."""
        self.add_member(user_id)
        self.assigned_programmer_id = user_id

    def clear_team(self) -> None:
        self.assigned_programmer_id = None
        self.assigned_programmer_ids = []
        self.ready_confirmed_by = []

    def confirm_ready(self, user_id: str) -> bool:
        """Add a programmer to the ready set. Returns False if already present."""
        confirmed = list(self.ready_confirmed_by or [])
        if user_id in confirmed:
            return False
        self.ready_confirmed_by = [*confirmed, user_id]
        return True

    def unconfirmed_members(self) -> list[str]:
        confirmed = set(self.ready_confirmed_by or [])
        return [m for m in self.team_ids if m not in confirmed]
