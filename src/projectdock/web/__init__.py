"""Web API for Projectdock."""

from projectdock.web.app import create_app, init_app_state

__all__ = ["create_app", "init_app_state"]
