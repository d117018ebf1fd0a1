"""Database layer for Projectdock.

This module handles database connections, session management, and the
SQLAlchemy models for projects, phases, activity and analysis previews.

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    create_schema: Create all tables on an engine.
    Base: SQLAlchemy declarative base for all models.
"""

from projectdock.database.connection import create_schema, get_engine, get_session_factory
from projectdock.database.models import (
    AnalysisPreview,
    AnalysisStatus,
    Base,
    PhaseStatus,
    Project,
    ProjectActivity,
    ProjectPhase,
    ProjectPriority,
    ProjectStatus,
    ProjectType,
    TimestampMixin,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "create_schema",
    "Base",
    "TimestampMixin",
    "Project",
    "ProjectStatus",
    "ProjectType",
    "ProjectPriority",
    "ProjectPhase",
    "PhaseStatus",
    "ProjectActivity",
    "AnalysisPreview",
    "AnalysisStatus",
]
