"""Initial schema for Projectdock.

Creates projects, project_phases, project_activities and
analysis_previews. Enum types are created explicitly so they can be
shared and dropped cleanly on PostgreSQL.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(JSONB(), "postgresql")

PROJECT_STATUSES = ("Holding", "Open", "Ready", "Development", "Completed", "Cancelled")
PROJECT_TYPES = (
    "New Website Design & Development",
    "Website Redesign/Refresh",
    "E-commerce Store",
    "Landing Page",
    "Web Application",
    "Maintenance/Updates to Existing Site",
    "Other",
)
PROJECT_PRIORITIES = ("low", "medium", "high", "urgent")
PHASE_STATUSES = ("not_started", "in_progress", "completed")
ANALYSIS_STATUSES = ("generating", "completed", "failed")


def _enum(name: str, values: tuple[str, ...]) -> sa.Enum:
    return sa.Enum(*values, name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in (
        ("project_status", PROJECT_STATUSES),
        ("project_type", PROJECT_TYPES),
        ("project_priority", PROJECT_PRIORITIES),
        ("phase_status", PHASE_STATUSES),
        ("analysis_status", ANALYSIS_STATUSES),
    ):
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("client_id", sa.String(64), nullable=False),
        sa.Column("project_type", _enum("project_type", PROJECT_TYPES), nullable=True),
        sa.Column(
            "priority",
            _enum("project_priority", PROJECT_PRIORITIES),
            nullable=False,
            server_default="medium",
        ),
        sa.Column("assigned_programmer_id", sa.String(64), nullable=True),
        sa.Column("assigned_programmer_ids", JSONType, nullable=False),
        sa.Column(
            "status",
            _enum("project_status", PROJECT_STATUSES),
            nullable=False,
            server_default="Holding",
        ),
        sa.Column("team_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ready_confirmed_by", JSONType, nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_projects_client_id", "projects", ["client_id"])
    op.create_index("ix_projects_assigned_programmer_id", "projects", ["assigned_programmer_id"])
    op.create_index("ix_projects_status", "projects", ["status"])

    op.create_table(
        "project_phases",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            _enum("phase_status", PHASE_STATUSES),
            nullable=False,
            server_default="not_started",
        ),
        sa.Column("deliverables", JSONType, nullable=False),
        sa.Column("estimated_duration_days", sa.Integer(), nullable=True),
        sa.Column("actual_duration_days", sa.Integer(), nullable=True),
        sa.Column(
            "requires_client_approval",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("client_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("client_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("client_questions", JSONType, nullable=False),
        sa.Column("sub_steps", JSONType, nullable=False),
        sa.Column("attachments", JSONType, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("project_id", "order", name="uq_project_phases_project_order"),
    )
    op.create_index("ix_project_phases_project_id", "project_phases", ["project_id"])

    # No foreign key: the trail outlives deleted projects
    op.create_table(
        "project_activities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("target_type", sa.String(32), nullable=True),
        sa.Column("target_id", sa.String(64), nullable=True),
        sa.Column("metadata", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_project_activities_project_created",
        "project_activities",
        ["project_id", "created_at"],
    )
    op.create_index("ix_project_activities_actor_id", "project_activities", ["actor_id"])

    op.create_table(
        "analysis_previews",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("analysis_status", ANALYSIS_STATUSES),
            nullable=False,
            server_default="generating",
        ),
        sa.Column("result", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_analysis_previews_project_id", "analysis_previews", ["project_id"])


def downgrade() -> None:
    op.drop_table("analysis_previews")
    op.drop_table("project_activities")
    op.drop_table("project_phases")
    op.drop_table("projects")

    bind = op.get_bind()
    for name in (
        "analysis_status",
        "phase_status",
        "project_priority",
        "project_type",
        "project_status",
    ):
        sa.Enum(name=name).drop(bind, checkfirst=True)
