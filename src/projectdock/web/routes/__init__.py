"""API routers for Projectdock."""

from projectdock.web.routes.activity import create_activity_router
from projectdock.web.routes.assignments import create_assignments_router
from projectdock.web.routes.health import create_health_router
from projectdock.web.routes.phases import create_phases_router
from projectdock.web.routes.projects import create_projects_router

__all__ = [
    "create_activity_router",
    "create_assignments_router",
    "create_health_router",
    "create_phases_router",
    "create_projects_router",
]
