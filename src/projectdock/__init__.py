"""Projectdock - project and phase lifecycle engine for a development marketplace.

Clients post projects, programmers recruit into teams and deliver them in
phases; this package enforces who may advance a project or phase, and when,
and records what happened.
"""

__version__ = "0.1.0"
