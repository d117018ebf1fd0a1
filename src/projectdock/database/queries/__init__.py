"""Database query functions for Projectdock.

This module provides async query functions for all database entities:
- Project insert, locked load and cascading delete
- Phase batch insert, listing and locked load
- Activity append and paginated listing
- Latest completed analysis lookup
"""

from projectdock.database.queries.activity import insert_activity, list_activity
from projectdock.database.queries.analysis import (
    get_latest_completed_result,
    insert_analysis,
)
from projectdock.database.queries.phase import (
    count_phases,
    get_phase,
    insert_phases,
    list_phases,
)
from projectdock.database.queries.project import (
    delete_project,
    get_project,
    insert_project,
)

__all__ = [
    # Project queries
    "insert_project",
    "get_project",
    "delete_project",
    # Phase queries
    "count_phases",
    "list_phases",
    "get_phase",
    "insert_phases",
    # Activity queries
    "insert_activity",
    "list_activity",
    # Analysis queries
    "insert_analysis",
    "get_latest_completed_result",
]
