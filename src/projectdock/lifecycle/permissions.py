"""Actor capability resolution.

Every transition guard in the engines is a boolean combination of the
capabilities computed here plus the record's status. Resolution is pure:
it never raises and never touches the database.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from projectdock.database.models.project import Project
from projectdock.errors import ForbiddenError


class ActorRole(str, enum.Enum):
    """Roles issued by the identity provider. ``user`` is the legacy client role."""

    user = "user"
    client = "client"
    programmer = "programmer"
    admin = "admin"


CLIENT_ROLES = frozenset({ActorRole.user, ActorRole.client})


@dataclass(frozen=True)
class Actor:
    """The authenticated caller.

    Attributes:
        id: User identifier.
        role: Raw role string from the identity provider.
        is_active: Deactivated accounts resolve no capabilities.
    """

    id: str
    role: str
    is_active: bool = True

    @property
    def known_role(self) -> ActorRole | None:
        try:
            return ActorRole(self.role)
        except ValueError:
            return None

    @property
    def is_client(self) -> bool:
        return self.is_active and self.known_role in CLIENT_ROLES

    @property
    def is_programmer(self) -> bool:
        return self.is_active and self.known_role is ActorRole.programmer

    @property
    def is_admin(self) -> bool:
        return self.is_active and self.known_role is ActorRole.admin


@dataclass(frozen=True)
class ActorCapabilities:
    """What an actor may do with one project."""

    is_client_owner: bool = False
    is_assigned_programmer: bool = False
    is_team_member: bool = False
    is_admin: bool = False

    @property
    def has_project_access(self) -> bool:
        return (
            self.is_client_owner
            or self.is_assigned_programmer
            or self.is_team_member
            or self.is_admin
        )


def resolve_capabilities(actor: Actor, project: Project) -> ActorCapabilities:
    """Compute an actor's capabilities on a project.

    Args:
        actor: The caller.
        project: The loaded project.

    Returns:
        ActorCapabilities; all False for unknown roles or inactive actors.
    """
    role = actor.known_role
    if role is None or not actor.is_active:
        return ActorCapabilities()

    is_primary = (
        project.assigned_programmer_id is not None
        and project.assigned_programmer_id == actor.id
    )
    return ActorCapabilities(
        is_client_owner=project.client_id == actor.id,
        is_assigned_programmer=is_primary,
        is_team_member=is_primary or actor.id in project.team_ids,
        is_admin=role is ActorRole.admin,
    )


def require(allowed: bool, message: str) -> None:
    """Raise ForbiddenError unless ``allowed``."""
    if not allowed:
        raise ForbiddenError(message)
