"""SQLAlchemy ORM models for Projectdock.

This module defines the database schema: projects, their phases, the
activity audit trail, and stored analysis previews.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from projectdock.database.models.activity import ProjectActivity
from projectdock.database.models.analysis import AnalysisPreview, AnalysisStatus
from projectdock.database.models.base import Base, TimestampMixin
from projectdock.database.models.phase import PhaseStatus, ProjectPhase
from projectdock.database.models.project import (
    TERMINAL_STATUSES,
    Project,
    ProjectPriority,
    ProjectStatus,
    ProjectType,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Project",
    "ProjectStatus",
    "ProjectType",
    "ProjectPriority",
    "TERMINAL_STATUSES",
    "ProjectPhase",
    "PhaseStatus",
    "ProjectActivity",
    "AnalysisPreview",
    "AnalysisStatus",
]
