"""Project lifecycle engine.

This module implements the project status state machine: recruitment,
ready-confirmation consensus, development, completion, cancellation and the
single-assignee flow (assign, accept, reject, unassign). Project details are
edited under an explicit field allow-list.

Every operation loads the project under a row lock, checks guards in a
fixed order (existence, terminal status, capability, status precondition),
mutates, and commits. Activity and notifications follow the commit.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from projectdock.database.models.base import utcnow
from projectdock.database.models.project import (
    TERMINAL_STATUSES,
    Project,
    ProjectPriority,
    ProjectStatus,
    ProjectType,
)
from projectdock.database.queries import project as project_queries
from projectdock.errors import InvalidTransitionError, PayloadValidationError
from projectdock.integrations.notifier import NotificationType
from projectdock.lifecycle.base import LifecycleEngine
from projectdock.lifecycle.permissions import (
    Actor,
    ActorCapabilities,
    require,
    resolve_capabilities,
)
from projectdock.logging import bind_project_context, get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 500

NON_NULLABLE_FIELDS = frozenset({"title", "description", "priority"})


# Authoritative project state machine definition
VALID_TRANSITIONS: dict[ProjectStatus, set[ProjectStatus]] = {
    ProjectStatus.holding: {ProjectStatus.open, ProjectStatus.ready, ProjectStatus.cancelled},
    ProjectStatus.open: {ProjectStatus.holding, ProjectStatus.ready, ProjectStatus.cancelled},
    ProjectStatus.ready: {
        ProjectStatus.development,
        ProjectStatus.holding,
        ProjectStatus.cancelled,
    },
    ProjectStatus.development: {
        ProjectStatus.ready,
        ProjectStatus.completed,
        ProjectStatus.cancelled,
    },
    ProjectStatus.completed: set(),  # Terminal
    ProjectStatus.cancelled: set(),  # Terminal
}


def validate_transition(current: ProjectStatus, target: ProjectStatus) -> bool:
    """Validate if a project status transition is allowed.

    Args:
        current: Current project status.
        target: Target project status.

    Returns:
        True if the transition is valid according to VALID_TRANSITIONS.
    """
    return target in VALID_TRANSITIONS.get(current, set())


class ProjectUpdate(BaseModel):
    """Partial edit of a project's details. Only fields that are set are applied.

    Ownership, team and status are never editable here; they change only
    through the transition operations.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(default=None, min_length=1)
    project_type: ProjectType | None = None
    priority: ProjectPriority | None = None
    due_date: datetime | None = None


class ProjectLifecycle(LifecycleEngine):
    """Applies role-gated status transitions to projects.

    Every method returns the project as committed. Errors are raised before
    anything is written, so a raised error always leaves the project as it
    was.
    """

    # ------------------------------------------------------------------
    # guards and helpers
    # ------------------------------------------------------------------

    async def _load_for_transition(
        self,
        session: AsyncSession,
        project_id: UUID,
        actor: Actor,
    ) -> tuple[Project, ActorCapabilities]:
        project = await self._load_project(session, project_id, for_update=True)
        if project.status in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Project is {project.status.value}",
                current=project.status.value,
            )
        bind_project_context(str(project.id), actor.id)
        return project, resolve_capabilities(actor, project)

    def _require_status(
        self,
        project: Project,
        *allowed: ProjectStatus,
        target: ProjectStatus | None = None,
    ) -> None:
        if project.status not in allowed:
            expected = " or ".join(s.value for s in allowed)
            raise InvalidTransitionError(
                f"Project must be {expected}",
                current=project.status.value,
                target=target.value if target else None,
            )

    def _transition(self, project: Project, target: ProjectStatus) -> ProjectStatus:
        """Move project to target status and return the previous status."""
        current = project.status
        if not validate_transition(current, target):
            raise InvalidTransitionError(
                f"Invalid transition from {current.value} to {target.value}",
                current=current.value,
                target=target.value,
            )
        project.status = target

        if target is ProjectStatus.holding:
            project.team_closed = True
            project.clear_team()

        logger.info(
            "project_transition",
            project_id=str(project.id),
            from_status=current.value,
            to_status=target.value,
        )
        return current

    async def _record_status_change(
        self,
        project: Project,
        actor: Actor,
        previous: ProjectStatus,
        action: str = "project.status_changed",
        **metadata: Any,
    ) -> None:
        await self.activity.record(
            project_id=project.id,
            actor_id=actor.id,
            action=action,
            target_type="project",
            target_id=str(project.id),
            metadata={
                "from_status": previous.value,
                "to_status": project.status.value,
                **metadata,
            },
        )

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    async def get_project(self, project_id: UUID, actor: Actor) -> Project:
        """Load a project the actor may see.

        Programmers may view any project that is open for recruitment; other
        projects are visible to their owner, team and admins.

        Raises:
            NotFoundError: If the project does not exist.
            ForbiddenError: If the actor has no access.
        """
        async with self.session_factory() as session:
            project = await self._load_project(session, project_id)

        caps = resolve_capabilities(actor, project)
        browsing = actor.is_programmer and project.status is ProjectStatus.open
        require(caps.has_project_access or browsing, "You do not have access to this project")
        return project

    # ------------------------------------------------------------------
    # creation, editing and deletion
    # ------------------------------------------------------------------

    async def create_project(
        self,
        actor: Actor,
        title: str,
        description: str,
        project_type: ProjectType | str | None = None,
        priority: ProjectPriority | str | None = None,
        due_date: datetime | None = None,
    ) -> Project:
        """Create a project in Holding status owned by the calling client.

        Raises:
            ForbiddenError: If the caller is not a client.
            PayloadValidationError: If title, description or enums are invalid.
        """
        require(actor.is_client, "Only clients can create projects")

        title = (title or "").strip()
        description = (description or "").strip()
        if not title:
            raise PayloadValidationError("Project title is required")
        if len(title) > MAX_TITLE_LENGTH:
            raise PayloadValidationError(
                f"Project title must be at most {MAX_TITLE_LENGTH} characters"
            )
        if not description:
            raise PayloadValidationError("Project description is required")

        fields: dict[str, Any] = {"due_date": due_date}
        try:
            if project_type is not None:
                fields["project_type"] = ProjectType(project_type)
            if priority is not None:
                fields["priority"] = ProjectPriority(priority)
        except ValueError as exc:
            raise PayloadValidationError(str(exc)) from exc

        async with self.session_factory() as session, session.begin():
            project = await project_queries.insert_project(
                session,
                client_id=actor.id,
                title=title,
                description=description,
                **fields,
            )

        await self.activity.record(
            project_id=project.id,
            actor_id=actor.id,
            action="project.created",
            target_type="project",
            target_id=str(project.id),
            metadata={"title": project.title, "status": project.status.value},
        )
        return project

    async def delete_project(self, project_id: UUID, actor: Actor) -> None:
        """Delete a project and its phases. Allowed in any status.

        Raises:
            NotFoundError: If the project does not exist.
            ForbiddenError: If the caller is not the owner or an admin.
        """
        async with self.session_factory() as session, session.begin():
            project = await self._load_project(session, project_id, for_update=True)
            caps = resolve_capabilities(actor, project)
            require(
                caps.is_client_owner or caps.is_admin,
                "Only the project owner can delete this project",
            )
            title = project.title
            status = project.status
            await project_queries.delete_project(session, project_id)

        await self.activity.record(
            project_id=project_id,
            actor_id=actor.id,
            action="project.deleted",
            target_type="project",
            target_id=str(project_id),
            metadata={"title": title, "status": status.value},
        )

    async def update_project(
        self,
        project_id: UUID,
        actor: Actor,
        update: ProjectUpdate | dict[str, Any],
    ) -> Project:
        """Edit title, description, type, priority or due date.

        The owning client may edit while the project is Holding or Ready;
        admins may edit in any non-terminal status.

        Raises:
            PayloadValidationError: Unknown, null or invalid fields, or nothing to update.
            NotFoundError: If the project does not exist.
            InvalidTransitionError: If the project is terminal, or the owner edits
                outside Holding and Ready.
            ForbiddenError: If the caller is neither the owner nor an admin.
        """
        if not isinstance(update, ProjectUpdate):
            unknown = set(update) - set(ProjectUpdate.model_fields)
            if unknown:
                raise PayloadValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
            try:
                update = ProjectUpdate.model_validate(update)
            except ValidationError as exc:
                raise PayloadValidationError(f"Invalid project update: {exc}") from exc

        fields = {name: getattr(update, name) for name in update.model_fields_set}
        if not fields:
            raise PayloadValidationError("No fields to update")
        nulls = sorted(n for n in NON_NULLABLE_FIELDS if n in fields and fields[n] is None)
        if nulls:
            raise PayloadValidationError(f"Fields cannot be null: {', '.join(nulls)}")
        for name in ("title", "description"):
            if name in fields:
                fields[name] = fields[name].strip()
                if not fields[name]:
                    raise PayloadValidationError(f"Project {name} must not be blank")

        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(
                caps.is_client_owner or caps.is_admin,
                "Only the project owner can edit this project",
            )
            if not caps.is_admin:
                self._require_status(project, ProjectStatus.holding, ProjectStatus.ready)
            for name, value in fields.items():
                setattr(project, name, value)

        logger.info("project_updated", project_id=str(project.id), fields=sorted(fields))
        await self.activity.record(
            project_id=project.id,
            actor_id=actor.id,
            action="project.updated",
            target_type="project",
            target_id=str(project.id),
            metadata={"fields": sorted(fields)},
        )
        self._notify(
            project.team_ids,
            NotificationType.PROJECT_UPDATED,
            "Project details changed",
            f"The details of '{project.title}' have been updated.",
            project_id=project.id,
        )
        return project

    # ------------------------------------------------------------------
    # recruitment
    # ------------------------------------------------------------------

    async def set_recruitment(self, project_id: UUID, actor: Actor, open: bool) -> Project:
        """Open recruitment (Holding -> Open) or close it (Open -> Holding)."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(
                caps.is_client_owner or caps.is_admin,
                "Only the project owner can change recruitment",
            )

            if open:
                self._require_status(project, ProjectStatus.holding, target=ProjectStatus.open)
                previous = self._transition(project, ProjectStatus.open)
                project.team_closed = False
                project.ready_confirmed_by = []
            else:
                self._require_status(project, ProjectStatus.open, target=ProjectStatus.holding)
                previous = self._transition(project, ProjectStatus.holding)

        await self._record_status_change(project, actor, previous)
        return project

    async def join_team(self, project_id: UUID, actor: Actor) -> Project:
        """Add the calling programmer to an open project's team. Idempotent."""
        async with self.session_factory() as session, session.begin():
            project, _ = await self._load_for_transition(session, project_id, actor)
            require(actor.is_programmer, "Only programmers can join project teams")
            if project.status is not ProjectStatus.open or project.team_closed:
                raise InvalidTransitionError(
                    "Project is not recruiting",
                    current=project.status.value,
                )
            joined = project.add_member(actor.id)

        if joined:
            logger.info("team_joined", project_id=str(project.id), programmer_id=actor.id)
            await self.activity.record(
                project_id=project.id,
                actor_id=actor.id,
                action="team.joined",
                target_type="project",
                target_id=str(project.id),
                metadata={"team_size": len(project.team_ids)},
            )
        return project

    async def leave_team(self, project_id: UUID, actor: Actor) -> Project:
        """Remove the calling programmer from the team of an Open project."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(caps.is_team_member, "You are not a member of this project team")
            self._require_status(project, ProjectStatus.open)
            project.remove_member(actor.id)

        logger.info("team_left", project_id=str(project.id), programmer_id=actor.id)
        await self.activity.record(
            project_id=project.id,
            actor_id=actor.id,
            action="team.left",
            target_type="project",
            target_id=str(project.id),
            metadata={"team_size": len(project.team_ids)},
        )
        self._notify(
            [project.client_id],
            NotificationType.PROGRAMMER_LEFT,
            "Programmer left your project",
            f"A programmer left the team for '{project.title}'.",
            project_id=project.id,
        )
        return project

    async def confirm_ready(self, project_id: UUID, actor: Actor) -> Project:
        """Record the calling team member's readiness. Idempotent."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(caps.is_team_member, "Only team members can confirm readiness")
            if project.status is not ProjectStatus.open or project.team_closed:
                raise InvalidTransitionError(
                    "Project is not open for ready confirmation",
                    current=project.status.value,
                )
            confirmed = project.confirm_ready(actor.id)

        if confirmed:
            await self.activity.record(
                project_id=project.id,
                actor_id=actor.id,
                action="team.ready_confirmed",
                target_type="project",
                target_id=str(project.id),
                metadata={
                    "confirmed": len(project.ready_confirmed_by),
                    "team_size": len(project.team_ids),
                },
            )
        return project

    async def mark_ready(self, project_id: UUID, actor: Actor) -> Project:
        """Close recruitment once every team member confirmed (Open -> Ready)."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(
                caps.is_client_owner or caps.is_admin,
                "Only the project owner can mark the team ready",
            )
            self._require_status(project, ProjectStatus.open, target=ProjectStatus.ready)
            if not project.team_ids:
                raise InvalidTransitionError(
                    "Project team is empty",
                    current=project.status.value,
                    target=ProjectStatus.ready.value,
                )
            pending = project.unconfirmed_members()
            if pending:
                raise InvalidTransitionError(
                    f"{len(pending)} team member(s) have not confirmed readiness",
                    current=project.status.value,
                    target=ProjectStatus.ready.value,
                )
            previous = self._transition(project, ProjectStatus.ready)
            project.team_closed = True

        await self._record_status_change(project, actor, previous)
        self._notify(
            project.team_ids,
            NotificationType.PROJECT_UPDATED,
            "Project team is ready",
            f"'{project.title}' is ready to start development.",
            project_id=project.id,
        )
        return project

    # ------------------------------------------------------------------
    # development
    # ------------------------------------------------------------------

    async def start_development(self, project_id: UUID, actor: Actor) -> Project:
        """Ready -> Development, by a team member."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(caps.is_team_member, "Only team members can start development")
            self._require_status(project, ProjectStatus.ready, target=ProjectStatus.development)
            previous = self._transition(project, ProjectStatus.development)
            if project.start_date is None:
                project.start_date = utcnow()

        await self._record_status_change(project, actor, previous)
        return project

    async def stop_development(self, project_id: UUID, actor: Actor) -> Project:
        """Development -> Ready."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(
                caps.is_client_owner or caps.is_team_member or caps.is_admin,
                "You do not have permission to stop development",
            )
            self._require_status(project, ProjectStatus.development, target=ProjectStatus.ready)
            previous = self._transition(project, ProjectStatus.ready)

        await self._record_status_change(project, actor, previous)
        return project

    async def mark_completed(self, project_id: UUID, actor: Actor) -> Project:
        """Development -> Completed, stamping completed_date."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(
                caps.is_client_owner or caps.is_team_member or caps.is_admin,
                "You do not have permission to complete this project",
            )
            self._require_status(
                project, ProjectStatus.development, target=ProjectStatus.completed
            )
            previous = self._transition(project, ProjectStatus.completed)
            project.completed_date = utcnow()

        await self._record_status_change(project, actor, previous)
        self._notify(
            [m for m in [project.client_id, *project.team_ids] if m != actor.id],
            NotificationType.PROJECT_COMPLETED,
            "Project completed",
            f"'{project.title}' has been marked as completed.",
            project_id=project.id,
        )
        return project

    async def set_holding(self, project_id: UUID, actor: Actor) -> Project:
        """Ready -> Holding, dissolving the team."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(caps.is_client_owner, "Only the project owner can put it on hold")
            self._require_status(project, ProjectStatus.ready, target=ProjectStatus.holding)
            previous = self._transition(project, ProjectStatus.holding)

        await self._record_status_change(project, actor, previous)
        return project

    async def set_ready(self, project_id: UUID, actor: Actor) -> Project:
        """Holding -> Ready, for a single assignee to pick up."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(caps.is_client_owner, "Only the project owner can mark it ready")
            self._require_status(project, ProjectStatus.holding, target=ProjectStatus.ready)
            previous = self._transition(project, ProjectStatus.ready)

        await self._record_status_change(project, actor, previous)
        return project

    async def mark_cancelled(self, project_id: UUID, actor: Actor) -> Project:
        """Any non-terminal status -> Cancelled."""
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(
                caps.is_client_owner or caps.is_admin,
                "Only the project owner can cancel this project",
            )
            previous = self._transition(project, ProjectStatus.cancelled)

        await self._record_status_change(project, actor, previous)
        self._notify(
            project.team_ids,
            NotificationType.PROJECT_UPDATED,
            "Project cancelled",
            f"'{project.title}' has been cancelled.",
            project_id=project.id,
        )
        return project

    # ------------------------------------------------------------------
    # single-assignee flow
    # ------------------------------------------------------------------

    async def assign_project(
        self,
        project_id: UUID,
        actor: Actor,
        programmer_id: str | None = None,
    ) -> Project:
        """Make a programmer the primary assignee (Ready -> Development).

        Programmers assign themselves; admins must name the programmer.

        Raises:
            ForbiddenError: If the caller is neither programmer nor admin, or a
                programmer tries to assign someone else.
            PayloadValidationError: If an admin omits programmer_id.
            InvalidTransitionError: If the project is not Ready or already has
                a primary assignee.
        """
        async with self.session_factory() as session, session.begin():
            project, _ = await self._load_for_transition(session, project_id, actor)
            require(
                actor.is_programmer or actor.is_admin,
                "Only programmers or admins can assign projects",
            )
            if actor.is_programmer:
                require(
                    programmer_id in (None, actor.id),
                    "Programmers can only assign projects to themselves",
                )
                target = actor.id
            elif programmer_id:
                target = programmer_id
            else:
                raise PayloadValidationError("programmer_id is required")

            self._require_status(project, ProjectStatus.ready, target=ProjectStatus.development)
            if project.assigned_programmer_id is not None:
                raise InvalidTransitionError(
                    "Project already has an assigned programmer",
                    current=project.status.value,
                )
            previous = self._transition(project, ProjectStatus.development)
            project.set_primary(target)
            if project.start_date is None:
                project.start_date = utcnow()

        await self._record_status_change(
            project, actor, previous, action="project.assigned", programmer_id=target
        )
        self._notify(
            [project.client_id],
            NotificationType.PROJECT_ASSIGNED,
            "Programmer assigned",
            f"A programmer has been assigned to '{project.title}'.",
            project_id=project.id,
        )
        return project

    async def accept_project(self, project_id: UUID, actor: Actor) -> Project:
        """Calling programmer takes a Ready project (Ready -> Development)."""
        async with self.session_factory() as session, session.begin():
            project, _ = await self._load_for_transition(session, project_id, actor)
            require(actor.is_programmer, "Only programmers can accept projects")
            self._require_status(project, ProjectStatus.ready, target=ProjectStatus.development)
            require(
                project.assigned_programmer_id in (None, actor.id),
                "Project is assigned to another programmer",
            )
            previous = self._transition(project, ProjectStatus.development)
            project.set_primary(actor.id)
            if project.start_date is None:
                project.start_date = utcnow()

        await self._record_status_change(
            project, actor, previous, action="project.accepted", programmer_id=actor.id
        )
        self._notify(
            [project.client_id],
            NotificationType.PROJECT_ACCEPTED,
            "Project accepted",
            f"A programmer has accepted '{project.title}'.",
            project_id=project.id,
        )
        return project

    async def reject_project(self, project_id: UUID, actor: Actor) -> Project:
        """Primary assignee hands the project back (-> Ready)."""
        return await self._release_primary(project_id, actor, action="project.rejected")

    async def unassign_project(self, project_id: UUID, actor: Actor) -> Project:
        """Remove the primary assignee (-> Ready)."""
        return await self._release_primary(project_id, actor, action="project.unassigned")

    async def _release_primary(self, project_id: UUID, actor: Actor, action: str) -> Project:
        async with self.session_factory() as session, session.begin():
            project, caps = await self._load_for_transition(session, project_id, actor)
            require(
                caps.is_assigned_programmer or caps.is_admin,
                "Only the assigned programmer can release this project",
            )
            self._require_status(project, ProjectStatus.development, ProjectStatus.ready)
            released = project.assigned_programmer_id
            if released is None:
                raise InvalidTransitionError(
                    "Project has no assigned programmer",
                    current=project.status.value,
                )
            previous = project.status
            if previous is not ProjectStatus.ready:
                self._transition(project, ProjectStatus.ready)
            project.remove_member(released)

        await self._record_status_change(
            project, actor, previous, action=action, programmer_id=released
        )
        self._notify(
            [project.client_id],
            NotificationType.PROJECT_UPDATED,
            "Programmer released project",
            f"'{project.title}' no longer has an assigned programmer.",
            project_id=project.id,
        )
        return project
