"""Phase lifecycle engine.

Creates a project's phase batch exactly once and manages each phase
afterwards: field updates under per-role allow-lists, sub-steps, client
question answers, client approval with auto-completion, and attachments.

Phase status is deliberately loose (any status may follow any other); the
rules here concern timestamps and derived durations, not ordering.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.exc import IntegrityError

from projectdock.database.models.base import utcnow
from projectdock.database.models.phase import PhaseStatus, ProjectPhase
from projectdock.database.models.project import Project
from projectdock.database.queries import phase as phase_queries
from projectdock.errors import (
    InvalidTransitionError,
    NotFoundError,
    PayloadValidationError,
)
from projectdock.integrations.notifier import NotificationType
from projectdock.lifecycle.base import LifecycleEngine
from projectdock.lifecycle.permissions import (
    Actor,
    ActorCapabilities,
    require,
    resolve_capabilities,
)
from projectdock.lifecycle.phase_rules import (
    can_advance,
    compute_actual_duration,
    default_questions,
    extract_questions,
    infer_approval_requirement,
    phase_requirements,
    unanswered_required,
)
from projectdock.lifecycle.phase_source import PhaseDraft, load_analysis, propose_phases
from projectdock.logging import bind_project_context, get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from projectdock.integrations.analysis import AnalysisSource
    from projectdock.integrations.file_store import FileStore
    from projectdock.integrations.notifier import Notifier
    from projectdock.lifecycle.activity import ActivityRecorder

logger = get_logger(__name__)

TEAM_FIELDS = frozenset(
    {
        "status",
        "title",
        "description",
        "notes",
        "deliverables",
        "estimated_duration_days",
        "due_date",
        "client_questions",
    }
)
CLIENT_FIELDS = frozenset({"client_questions", "client_approved"})
ADMIN_FIELDS = TEAM_FIELDS | CLIENT_FIELDS

NON_NULLABLE_FIELDS = frozenset(
    {"status", "title", "notes", "deliverables", "client_questions", "client_approved"}
)


class QuestionAnswer(BaseModel):
    """Answer to one client question, matched by ``id`` or else ``order``.

    Any other keys (such as the question text) are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    order: int | None = None
    answer: str | None = None


class PhaseUpdate(BaseModel):
    """Partial update of a phase. Only fields that are set are applied."""

    model_config = ConfigDict(extra="forbid")

    status: PhaseStatus | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    notes: str | None = None
    deliverables: list[str] | None = None
    estimated_duration_days: int | None = Field(default=None, ge=0)
    due_date: datetime | None = None
    client_questions: list[QuestionAnswer] | None = None
    client_approved: bool | None = None


def _new_id() -> str:
    return uuid.uuid4().hex


def _copy_items(items: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    # Fresh dicts so the JSON column compares unequal to its committed value
    return [dict(item) for item in items or []]


def _find_question(
    questions: list[dict[str, Any]],
    question_id: str | None = None,
    order: int | None = None,
) -> dict[str, Any] | None:
    if question_id is not None:
        for question in questions:
            if question.get("id") == question_id:
                return question
    if order is not None:
        for question in questions:
            if question.get("order") == order:
                return question
    return None


def _attachment_type(content_type: str | None) -> str:
    return "image" if (content_type or "").lower().startswith("image/") else "file"


class PhaseLifecycle(LifecycleEngine):
    """Creates and manages project phases.

    Args:
        session_factory: Session factory for units of work.
        activity: Recorder for the audit trail.
        notifier: Optional notification transport.
        analysis_source: Optional source of analysis output for proposals
            and question extraction.
        file_store: Storage for attachment bytes.
        max_upload_bytes: Largest accepted attachment, None for unlimited.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        activity: ActivityRecorder,
        notifier: Notifier | None = None,
        analysis_source: AnalysisSource | None = None,
        file_store: FileStore | None = None,
        max_upload_bytes: int | None = None,
    ) -> None:
        super().__init__(session_factory, activity, notifier)
        self.analysis_source = analysis_source
        self.file_store = file_store
        self.max_upload_bytes = max_upload_bytes

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    async def _load_phase(
        self,
        session: AsyncSession,
        project_id: UUID,
        phase_id: UUID,
        actor: Actor,
        for_update: bool = False,
        mutating: bool = False,
    ) -> tuple[Project, ProjectPhase, ActorCapabilities]:
        """Load a phase with its project and the actor's capabilities.

        With ``mutating`` set, phases of a Completed or Cancelled project are
        refused before any capability check.
        """
        project = await self._load_project(session, project_id)
        phase = await phase_queries.get_phase(
            session, project_id, phase_id, for_update=for_update
        )
        if phase is None:
            raise NotFoundError("Phase", phase_id)
        if mutating and project.is_terminal:
            raise InvalidTransitionError(
                f"Project is {project.status.value}",
                current=project.status.value,
            )
        bind_project_context(str(project.id), actor.id)
        return project, phase, resolve_capabilities(actor, project)

    def _set_status(self, phase: ProjectPhase, target: PhaseStatus) -> PhaseStatus | None:
        """Apply a status change with its timestamp rules.

        Returns:
            The previous status, or None if the status did not change.
        """
        previous = phase.status
        if target is previous:
            return None

        now = utcnow()
        phase.status = target
        if target is PhaseStatus.in_progress and phase.started_at is None:
            phase.started_at = now
        if target is PhaseStatus.completed:
            phase.completed_at = now
            phase.actual_duration_days = compute_actual_duration(phase, now)
        elif previous is PhaseStatus.completed:
            phase.completed_at = None
            phase.actual_duration_days = None

        logger.info(
            "phase_status_changed",
            phase_id=str(phase.id),
            from_status=previous.value,
            to_status=target.value,
            actual_duration_days=phase.actual_duration_days,
        )
        return previous

    async def _record_phase(
        self,
        project_id: UUID,
        actor: Actor,
        action: str,
        target_id: str,
        target_type: str = "phase",
        **metadata: Any,
    ) -> None:
        await self.activity.record(
            project_id=project_id,
            actor_id=actor.id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            metadata=metadata or None,
        )

    # ------------------------------------------------------------------
    # proposal and creation
    # ------------------------------------------------------------------

    async def get_proposal(self, project_id: UUID, actor: Actor) -> list[PhaseDraft]:
        """Propose phases for a project without persisting anything."""
        async with self.session_factory() as session:
            project = await self._load_project(session, project_id)
        caps = resolve_capabilities(actor, project)
        require(caps.has_project_access, "You do not have access to this project")
        return await propose_phases(project, self.analysis_source)

    async def list_phases(self, project_id: UUID, actor: Actor) -> list[ProjectPhase]:
        """List a project's phases in order."""
        async with self.session_factory() as session:
            project = await self._load_project(session, project_id)
            caps = resolve_capabilities(actor, project)
            require(caps.has_project_access, "You do not have access to this project")
            return await phase_queries.list_phases(session, project_id)

    async def confirm_phases(
        self,
        project_id: UUID,
        actor: Actor,
        drafts: list[PhaseDraft] | list[dict[str, Any]],
    ) -> list[ProjectPhase]:
        """Create the project's phase batch. Succeeds at most once per project.

        Args:
            project_id: Project to plan.
            actor: A team member or admin.
            drafts: Proposed phases, possibly edited by the team. Missing
                orders become 1-based positions.

        Returns:
            The created phases in order.

        Raises:
            PayloadValidationError: If drafts are empty, invalid or share an order.
            ForbiddenError: If the caller is not a team member or admin.
            InvalidTransitionError: If the project is terminal or already has phases.
        """
        try:
            drafts = [
                d if isinstance(d, PhaseDraft) else PhaseDraft.model_validate(d)
                for d in drafts
            ]
        except ValidationError as exc:
            raise PayloadValidationError(f"Invalid phase draft: {exc}") from exc
        if not drafts:
            raise PayloadValidationError("At least one phase is required")

        orders = [
            d.order if d.order is not None else position
            for position, d in enumerate(drafts, start=1)
        ]
        if len(set(orders)) != len(orders):
            raise PayloadValidationError("Phase orders must be unique")

        async with self.session_factory() as session:
            project = await self._load_project(session, project_id)
        self._check_can_confirm(project, actor)

        # Analysis is fetched before the locked transaction
        parsed = await load_analysis(self.analysis_source, project)

        rows = [self._draft_row(d, order, parsed) for d, order in zip(drafts, orders)]
        rows.sort(key=lambda row: row["order"])

        try:
            async with self.session_factory() as session, session.begin():
                project = await self._load_project(session, project_id, for_update=True)
                self._check_can_confirm(project, actor)
                if await phase_queries.count_phases(session, project_id) > 0:
                    raise InvalidTransitionError(
                        "Phases have already been created for this project"
                    )
                phases = await phase_queries.insert_phases(session, project_id, rows)
        except IntegrityError as exc:
            logger.warning("phase_batch_conflict", project_id=str(project_id))
            raise InvalidTransitionError(
                "Phases have already been created for this project"
            ) from exc

        await self._record_phase(
            project_id,
            actor,
            "phases.confirmed",
            target_id=str(project_id),
            target_type="project",
            count=len(phases),
            titles=[p.title for p in phases],
        )
        return phases

    def _check_can_confirm(self, project: Project, actor: Actor) -> None:
        if project.is_terminal:
            raise InvalidTransitionError(
                f"Project is {project.status.value}",
                current=project.status.value,
            )
        caps = resolve_capabilities(actor, project)
        require(
            caps.is_team_member or caps.is_admin,
            "Only team members can confirm phases",
        )

    def _draft_row(self, draft: PhaseDraft, order: int, parsed: Any) -> dict[str, Any]:
        questions = extract_questions(parsed, draft.title) or default_questions(draft.title)
        weeks = draft.estimated_weeks
        return {
            "title": draft.title,
            "description": draft.description,
            "order": order,
            "status": PhaseStatus.not_started,
            "deliverables": list(draft.deliverables),
            "estimated_duration_days": round(weeks * 7) if weeks is not None else None,
            "requires_client_approval": infer_approval_requirement(draft.title),
            "client_approved": False,
            "client_questions": [
                {
                    "id": _new_id(),
                    "question": q["question"],
                    "required": bool(q["required"]),
                    "order": q["order"],
                    "answer": None,
                }
                for q in questions
            ],
            "sub_steps": [
                {
                    "id": _new_id(),
                    "title": deliverable,
                    "completed": False,
                    "order": index,
                    "notes": "",
                }
                for index, deliverable in enumerate(draft.deliverables, start=1)
            ],
            "attachments": [],
            "notes": "",
        }

    # ------------------------------------------------------------------
    # updates
    # ------------------------------------------------------------------

    async def update_phase(
        self,
        project_id: UUID,
        phase_id: UUID,
        actor: Actor,
        update: PhaseUpdate | dict[str, Any],
    ) -> ProjectPhase:
        """Apply a partial update under the caller's field allow-list.

        Team members edit work fields, the client owner answers questions and
        sets approval, admins may do both. Client questions accept answers
        only.

        Raises:
            PayloadValidationError: Unknown or invalid fields.
            ForbiddenError: Known fields outside the caller's allow-list.
            NotFoundError: Missing project, phase or question.
            InvalidTransitionError: If the project is Completed or Cancelled.
        """
        if not isinstance(update, PhaseUpdate):
            unknown = set(update) - set(PhaseUpdate.model_fields)
            if unknown:
                raise PayloadValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
            try:
                update = PhaseUpdate.model_validate(update)
            except ValidationError as exc:
                raise PayloadValidationError(f"Invalid phase update: {exc}") from exc

        fields = {name: getattr(update, name) for name in update.model_fields_set}
        if not fields:
            raise PayloadValidationError("No fields to update")
        nulls = sorted(n for n in NON_NULLABLE_FIELDS if n in fields and fields[n] is None)
        if nulls:
            raise PayloadValidationError(f"Fields cannot be null: {', '.join(nulls)}")
        if "title" in fields and not fields["title"].strip():
            raise PayloadValidationError("Phase title must not be blank")

        async with self.session_factory() as session, session.begin():
            project, phase, caps = await self._load_phase(
                session, project_id, phase_id, actor, for_update=True, mutating=True
            )
            require(caps.has_project_access, "You do not have access to this project")

            allowed: frozenset[str] = frozenset()
            if caps.is_admin:
                allowed = ADMIN_FIELDS
            else:
                if caps.is_team_member:
                    allowed |= TEAM_FIELDS
                if caps.is_client_owner:
                    allowed |= CLIENT_FIELDS
            disallowed = sorted(set(fields) - allowed)
            require(not disallowed, f"Not allowed to update: {', '.join(disallowed)}")

            previous_status = None
            for name, value in fields.items():
                if name == "status":
                    previous_status = self._set_status(phase, value)
                elif name == "client_questions":
                    self._apply_answers(phase, value)
                elif name == "client_approved":
                    phase.client_approved = value
                    phase.client_approved_at = utcnow() if value else None
                elif name == "deliverables":
                    phase.deliverables = [d.strip() for d in value if d and d.strip()]
                elif name == "title":
                    phase.title = value.strip()
                else:
                    setattr(phase, name, value)

        entered = phase.status if previous_status is not None else None
        if entered is PhaseStatus.in_progress and previous_status is PhaseStatus.not_started:
            action = "phase.started"
        elif entered is PhaseStatus.completed:
            action = "phase.completed"
        else:
            action = "phase.updated"

        metadata: dict[str, Any] = {"fields": sorted(fields)}
        if previous_status is not None:
            metadata["from_status"] = previous_status.value
            metadata["to_status"] = phase.status.value
        await self._record_phase(project_id, actor, action, target_id=str(phase.id), **metadata)

        if entered is PhaseStatus.completed and caps.is_team_member:
            self._notify(
                [project.client_id],
                NotificationType.PHASE_COMPLETED,
                "Phase completed",
                f"Phase '{phase.title}' of '{project.title}' has been completed.",
                project_id=project.id,
            )
        return phase

    def _apply_answers(self, phase: ProjectPhase, answers: list[QuestionAnswer]) -> None:
        questions = _copy_items(phase.client_questions)
        for item in answers:
            question = _find_question(questions, item.id, item.order)
            if question is None:
                raise NotFoundError("Question", item.id if item.id is not None else item.order)
            question["answer"] = item.answer
        phase.client_questions = questions

    async def update_sub_step(
        self,
        project_id: UUID,
        phase_id: UUID,
        actor: Actor,
        sub_step_id: str | None = None,
        title: str | None = None,
        completed: bool | None = None,
        notes: str | None = None,
        order: int | None = None,
    ) -> ProjectPhase:
        """Update a sub-step by id, or append a new one when no id is given.

        Appended sub-steps get ``order = max(existing) + 1``; the phase row is
        locked for the read-modify-write.
        """
        async with self.session_factory() as session, session.begin():
            _, phase, caps = await self._load_phase(
                session, project_id, phase_id, actor, for_update=True, mutating=True
            )
            require(
                caps.is_team_member or caps.is_admin,
                "Only team members can manage sub-steps",
            )

            sub_steps = _copy_items(phase.sub_steps)
            if sub_step_id is not None:
                step = next((s for s in sub_steps if s.get("id") == sub_step_id), None)
                if step is None:
                    raise NotFoundError("Sub-step", sub_step_id)
                if title is not None:
                    if not title.strip():
                        raise PayloadValidationError("Sub-step title must not be blank")
                    step["title"] = title.strip()
                if completed is not None:
                    step["completed"] = completed
                if notes is not None:
                    step["notes"] = notes
                if order is not None:
                    step["order"] = order
                action_detail = "sub_step_updated"
            else:
                if not title or not title.strip():
                    raise PayloadValidationError("Sub-step title is required")
                next_order = max((s.get("order") or 0 for s in sub_steps), default=0) + 1
                step = {
                    "id": _new_id(),
                    "title": title.strip(),
                    "completed": bool(completed),
                    "order": next_order,
                    "notes": notes or "",
                }
                sub_steps.append(step)
                action_detail = "sub_step_added"
            phase.sub_steps = sub_steps

        await self._record_phase(
            project_id,
            actor,
            "phase.updated",
            target_id=str(phase.id),
            change=action_detail,
            sub_step_id=step["id"],
        )
        return phase

    async def answer_question(
        self,
        project_id: UUID,
        phase_id: UUID,
        actor: Actor,
        key: str,
        answer: str,
    ) -> ProjectPhase:
        """Answer one client question; ``key`` is a question id or order."""
        async with self.session_factory() as session, session.begin():
            _, phase, caps = await self._load_phase(
                session, project_id, phase_id, actor, for_update=True, mutating=True
            )
            require(caps.has_project_access, "You do not have access to this project")

            questions = _copy_items(phase.client_questions)
            question = _find_question(
                questions,
                question_id=key,
                order=int(key) if key.isdigit() else None,
            )
            if question is None:
                raise NotFoundError("Question", key)
            question["answer"] = answer
            phase.client_questions = questions

        await self._record_phase(
            project_id,
            actor,
            "phase.updated",
            target_id=str(phase.id),
            change="question_answered",
            question_id=question["id"],
        )
        return phase

    async def approve_phase(
        self,
        project_id: UUID,
        phase_id: UUID,
        actor: Actor,
        approved: bool = True,
    ) -> ProjectPhase:
        """Record client approval and auto-complete the phase when possible.

        An in-progress phase completes when approval is granted and every
        required question has an answer. A phase that has not started is
        never approved.

        Raises:
            ForbiddenError: If the caller is not the client owner or an admin.
            InvalidTransitionError: If the project is terminal, or the phase needs
                no approval or has not started.
        """
        async with self.session_factory() as session, session.begin():
            project, phase, caps = await self._load_phase(
                session, project_id, phase_id, actor, for_update=True, mutating=True
            )
            require(
                caps.is_client_owner or caps.is_admin,
                "Only the client can approve phases",
            )
            if not phase.requires_client_approval:
                raise InvalidTransitionError(
                    "This phase does not require client approval",
                    current=phase.status.value,
                )
            if phase.status is PhaseStatus.not_started:
                raise InvalidTransitionError(
                    "Phase has not started",
                    current=phase.status.value,
                )

            phase.client_approved = approved
            phase.client_approved_at = utcnow() if approved else None

            auto_completed = (
                approved
                and phase.status is PhaseStatus.in_progress
                and not unanswered_required(phase.client_questions)
            )
            if auto_completed:
                self._set_status(phase, PhaseStatus.completed)

        logger.info(
            "phase_approval_recorded",
            phase_id=str(phase.id),
            approved=approved,
            auto_completed=auto_completed,
        )
        await self._record_phase(
            project_id,
            actor,
            "phase.approved",
            target_id=str(phase.id),
            approved=approved,
            auto_completed=auto_completed,
        )
        if auto_completed:
            self._notify(
                project.team_ids,
                NotificationType.PHASE_COMPLETED,
                "Phase approved and completed",
                f"The client approved '{phase.title}' of '{project.title}'.",
                project_id=project.id,
            )
        return phase

    async def requirements(
        self,
        project_id: UUID,
        phase_id: UUID,
        actor: Actor,
    ) -> dict[str, Any]:
        """Requirement counts plus the informational advance check."""
        async with self.session_factory() as session:
            _, phase, caps = await self._load_phase(session, project_id, phase_id, actor)
        require(caps.has_project_access, "You do not have access to this project")

        check = can_advance(phase)
        return {
            **phase_requirements(phase),
            "can_proceed": check.can_proceed,
            "reasons": check.reasons,
        }

    # ------------------------------------------------------------------
    # attachments
    # ------------------------------------------------------------------

    async def add_attachment(
        self,
        project_id: UUID,
        phase_id: UUID,
        actor: Actor,
        filename: str,
        content: bytes,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        """Store an upload and attach it to the phase.

        Returns:
            The attachment record.

        Raises:
            PayloadValidationError: If the upload is empty or too large.
            InvalidTransitionError: If the project is Completed or Cancelled.
        """
        if self.file_store is None:
            raise PayloadValidationError("Attachments are not enabled")
        if not content:
            raise PayloadValidationError("No file uploaded")
        if self.max_upload_bytes is not None and len(content) > self.max_upload_bytes:
            raise PayloadValidationError(
                f"File exceeds the {self.max_upload_bytes} byte upload limit"
            )

        async with self.session_factory() as session:
            _, _, caps = await self._load_phase(
                session, project_id, phase_id, actor, mutating=True
            )
        require(caps.has_project_access, "You do not have access to this project")

        path = await self.file_store.save(filename, content)
        attachment = {
            "id": _new_id(),
            "filename": filename,
            "url": path,
            "uploaded_by": actor.id,
            "uploaded_at": utcnow().isoformat(),
            "type": _attachment_type(content_type),
        }
        try:
            async with self.session_factory() as session, session.begin():
                _, phase, _ = await self._load_phase(
                    session, project_id, phase_id, actor, for_update=True, mutating=True
                )
                phase.attachments = [*_copy_items(phase.attachments), attachment]
        except Exception:
            await self._discard_file(path)
            raise

        await self._record_phase(
            project_id,
            actor,
            "attachment.added",
            target_id=attachment["id"],
            target_type="attachment",
            phase_id=str(phase_id),
            filename=filename,
        )
        return attachment

    async def remove_attachment(
        self,
        project_id: UUID,
        phase_id: UUID,
        attachment_id: str,
        actor: Actor,
    ) -> None:
        """Remove an attachment record, then its stored file.

        The uploader, team members and admins may remove attachments. A
        failure to delete the stored file is logged only.
        """
        async with self.session_factory() as session, session.begin():
            _, phase, caps = await self._load_phase(
                session, project_id, phase_id, actor, for_update=True, mutating=True
            )
            attachments = _copy_items(phase.attachments)
            attachment = next((a for a in attachments if a.get("id") == attachment_id), None)
            if attachment is None:
                raise NotFoundError("Attachment", attachment_id)
            require(
                attachment.get("uploaded_by") == actor.id
                or caps.is_team_member
                or caps.is_admin,
                "You cannot remove this attachment",
            )
            phase.attachments = [a for a in attachments if a.get("id") != attachment_id]

        await self._discard_file(attachment.get("url"))
        await self._record_phase(
            project_id,
            actor,
            "attachment.removed",
            target_id=attachment_id,
            target_type="attachment",
            phase_id=str(phase_id),
            filename=attachment.get("filename"),
        )

    async def _discard_file(self, path: str | None) -> None:
        if not path or self.file_store is None:
            return
        try:
            await self.file_store.delete(path)
        except Exception as exc:
            logger.warning("attachment_file_delete_failed", path=path, error=str(exc))
