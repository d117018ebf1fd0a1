"""Analysis preview model for Projectdock.

Rows are written by the external AI analysis generator. This service only
reads the most recent completed result to propose phases and questions.
"""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from projectdock.database.models.base import Base, TimestampMixin, value_enum


class AnalysisStatus(enum.Enum):
    generating = "generating"
    completed = "completed"
    failed = "failed"


class AnalysisPreview(TimestampMixin, Base):
    """Raw output of one analysis run for a project.

    Attributes:
        project_id: Project the analysis was generated for.
        status: Generation state.
        result: Raw generator output, usually JSON, possibly code-fenced.
    """

    __tablename__ = "analysis_previews"

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[AnalysisStatus] = mapped_column(
        value_enum(AnalysisStatus, "analysis_status"),
        default=AnalysisStatus.generating,
        nullable=False,
    )
    result: Mapped[str] = mapped_column(Text, default="", nullable=False)
