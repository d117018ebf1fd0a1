"""Phase endpoints for Projectdock.

Routes (all under /projects/{project_id}/phases):
    GET / - List phases in order
    GET /proposal - Propose phases (nothing is saved)
    POST /confirm - Create the phase batch, once per project
    PATCH /{phase_id} - Partial update under the caller's allow-list
    POST /{phase_id}/sub-steps - Add or update a sub-step
    POST /{phase_id}/questions/{key}/answer - Answer a client question
    POST /{phase_id}/approve - Client approval
    GET /{phase_id}/requirements - Requirement summary
    POST /{phase_id}/attachments - Upload an attachment (multipart)
    DELETE /{phase_id}/attachments/{attachment_id} - Remove an attachment
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, File, Response, UploadFile
from fastapi import status as http_status
from pydantic import BaseModel, ConfigDict, Field

from projectdock.database.models.phase import PhaseStatus
from projectdock.lifecycle.permissions import Actor
from projectdock.lifecycle.phase_machine import PhaseLifecycle, PhaseUpdate
from projectdock.lifecycle.phase_source import PhaseDraft
from projectdock.web.dependencies import get_current_actor, get_phase_lifecycle


class PhaseResponse(BaseModel):
    """Response schema for phase data."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    title: str
    description: str | None
    order: int
    status: PhaseStatus
    deliverables: list[str]
    estimated_duration_days: int | None
    actual_duration_days: int | None
    requires_client_approval: bool
    client_approved: bool
    client_approved_at: datetime | None
    client_questions: list[dict[str, Any]]
    sub_steps: list[dict[str, Any]]
    attachments: list[dict[str, Any]]
    started_at: datetime | None
    completed_at: datetime | None
    due_date: datetime | None
    notes: str
    created_at: datetime
    updated_at: datetime


class ConfirmPhasesRequest(BaseModel):
    phases: list[PhaseDraft]


class SubStepRequest(BaseModel):
    """Update the sub-step with ``id``, or append a new one when ``id`` is omitted."""

    id: str | None = None
    title: str | None = Field(default=None, max_length=255)
    completed: bool | None = None
    notes: str | None = None
    order: int | None = Field(default=None, ge=1)


class AnswerRequest(BaseModel):
    answer: str


class ApproveRequest(BaseModel):
    approved: bool = True


class RequirementCounts(BaseModel):
    total: int
    answered: int
    unanswered: int


class SubStepCounts(BaseModel):
    total: int
    completed: int
    incomplete: int


class RequirementsResponse(BaseModel):
    """What still blocks a phase. Informational only."""

    requires_approval: bool
    is_approved: bool
    required_questions: RequirementCounts
    sub_steps: SubStepCounts
    is_complete: bool
    can_proceed: bool
    reasons: list[str]


class AttachmentResponse(BaseModel):
    id: str
    filename: str
    url: str
    uploaded_by: str
    uploaded_at: datetime
    type: str


def create_phases_router() -> APIRouter:
    """Create the phases router nested under a project."""
    router = APIRouter(prefix="/projects/{project_id}/phases", tags=["phases"])

    @router.get("", response_model=list[PhaseResponse])
    async def list_phases(
        project_id: UUID,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> list[PhaseResponse]:
        phases = await lifecycle.list_phases(project_id, actor)
        return [PhaseResponse.model_validate(p) for p in phases]

    @router.get("/proposal", response_model=list[PhaseDraft])
    async def get_proposal(
        project_id: UUID,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> list[PhaseDraft]:
        return await lifecycle.get_proposal(project_id, actor)

    @router.post(
        "/confirm",
        response_model=list[PhaseResponse],
        status_code=http_status.HTTP_201_CREATED,
    )
    async def confirm_phases(
        project_id: UUID,
        payload: ConfirmPhasesRequest,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> list[PhaseResponse]:
        phases = await lifecycle.confirm_phases(project_id, actor, payload.phases)
        return [PhaseResponse.model_validate(p) for p in phases]

    @router.patch("/{phase_id}", response_model=PhaseResponse)
    async def update_phase(
        project_id: UUID,
        phase_id: UUID,
        payload: PhaseUpdate,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> PhaseResponse:
        phase = await lifecycle.update_phase(project_id, phase_id, actor, payload)
        return PhaseResponse.model_validate(phase)

    @router.post("/{phase_id}/sub-steps", response_model=PhaseResponse)
    async def update_sub_step(
        project_id: UUID,
        phase_id: UUID,
        payload: SubStepRequest,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> PhaseResponse:
        phase = await lifecycle.update_sub_step(
            project_id,
            phase_id,
            actor,
            sub_step_id=payload.id,
            title=payload.title,
            completed=payload.completed,
            notes=payload.notes,
            order=payload.order,
        )
        return PhaseResponse.model_validate(phase)

    @router.post("/{phase_id}/questions/{key}/answer", response_model=PhaseResponse)
    async def answer_question(
        project_id: UUID,
        phase_id: UUID,
        key: str,
        payload: AnswerRequest,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> PhaseResponse:
        phase = await lifecycle.answer_question(
            project_id, phase_id, actor, key=key, answer=payload.answer
        )
        return PhaseResponse.model_validate(phase)

    @router.post("/{phase_id}/approve", response_model=PhaseResponse)
    async def approve_phase(
        project_id: UUID,
        phase_id: UUID,
        payload: ApproveRequest | None = Body(default=None),  # noqa: B008
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> PhaseResponse:
        approved = payload.approved if payload else True
        phase = await lifecycle.approve_phase(project_id, phase_id, actor, approved=approved)
        return PhaseResponse.model_validate(phase)

    @router.get("/{phase_id}/requirements", response_model=RequirementsResponse)
    async def get_requirements(
        project_id: UUID,
        phase_id: UUID,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> dict[str, Any]:
        return await lifecycle.requirements(project_id, phase_id, actor)

    @router.post(
        "/{phase_id}/attachments",
        response_model=AttachmentResponse,
        status_code=http_status.HTTP_201_CREATED,
    )
    async def add_attachment(
        project_id: UUID,
        phase_id: UUID,
        file: UploadFile = File(...),  # noqa: B008
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> dict[str, Any]:
        # One byte past the limit is enough for the engine to reject it
        limit = lifecycle.max_upload_bytes
        content = await file.read(limit + 1 if limit is not None else -1)
        return await lifecycle.add_attachment(
            project_id,
            phase_id,
            actor,
            filename=file.filename or "upload",
            content=content,
            content_type=file.content_type,
        )

    @router.delete(
        "/{phase_id}/attachments/{attachment_id}",
        status_code=http_status.HTTP_204_NO_CONTENT,
    )
    async def remove_attachment(
        project_id: UUID,
        phase_id: UUID,
        attachment_id: str,
        actor: Actor = Depends(get_current_actor),  # noqa: B008
        lifecycle: PhaseLifecycle = Depends(get_phase_lifecycle),  # noqa: B008
    ) -> Response:
        await lifecycle.remove_attachment(project_id, phase_id, attachment_id, actor)
        return Response(status_code=http_status.HTTP_204_NO_CONTENT)

    return router
