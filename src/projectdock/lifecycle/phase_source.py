"""Phase definition source.

Proposes an ordered list of phase drafts for a project, from the newest
completed analysis artifact when it carries a usable timeline, otherwise
from a built-in template chosen by project type. Nothing here persists.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, field_validator

from projectdock.database.models.project import Project, ProjectType
from projectdock.logging import get_logger

if TYPE_CHECKING:
    from projectdock.integrations.analysis import AnalysisSource

logger = get_logger(__name__)

_FENCE_START = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_END = re.compile(r"\n?```\s*$")


class PhaseDraft(BaseModel):
    """A proposed phase, editable by the team before confirmation.

    Attributes:
        title: Phase title.
        description: Optional description (``"3 weeks"`` for analysis drafts).
        order: 1-based position; None lets confirmation assign one.
        deliverables: Deliverable names, turned into sub-steps on creation.
        estimated_weeks: Planning estimate from the analysis, if any.
    """

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    order: int | None = Field(default=None, ge=1)
    deliverables: list[str] = Field(default_factory=list)
    estimated_weeks: float | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Phase title must not be blank")
        return v

    @field_validator("deliverables")
    @classmethod
    def clean_deliverables(cls, v: list[str]) -> list[str]:
        return [d.strip() for d in v if d and d.strip()]


FULL_TRACK: tuple[tuple[str, str], ...] = (
    ("Discovery & Planning", "Requirements, scope, and timeline"),
    ("Design", "Wireframes, UI/UX, and design approval"),
    ("Development", "Core build and integration"),
    ("Testing & QA", "Quality assurance and fixes"),
    ("Launch & Handoff", "Deployment and delivery"),
)

SHORT_TRACK: tuple[tuple[str, str], ...] = (
    ("Planning", "Scope and approach"),
    ("Implementation", "Build and updates"),
    ("Review & Launch", "QA and delivery"),
)

DEFAULT_TRACK: tuple[tuple[str, str], ...] = (
    ("Planning", "Scope, requirements, and approach"),
    ("Design", "Wireframes, UI/UX, and design approval"),
    ("Development", "Core build and integration"),
    ("Testing", "Quality assurance and fixes"),
    ("Launch", "Deployment and delivery"),
)

PROJECT_TYPE_TRACKS: dict[ProjectType, tuple[tuple[str, str], ...]] = {
    ProjectType.new_website: FULL_TRACK,
    ProjectType.redesign: FULL_TRACK,
    ProjectType.ecommerce: FULL_TRACK,
    ProjectType.web_application: FULL_TRACK,
    ProjectType.landing_page: SHORT_TRACK,
    ProjectType.maintenance: SHORT_TRACK,
    ProjectType.other: DEFAULT_TRACK,
}


def template_phases(project_type: ProjectType | None) -> list[PhaseDraft]:
    """Static drafts for a project type (DEFAULT track when unknown)."""
    track = PROJECT_TYPE_TRACKS.get(project_type, DEFAULT_TRACK) if project_type else DEFAULT_TRACK
    return [
        PhaseDraft(title=title, description=description, order=index)
        for index, (title, description) in enumerate(track, start=1)
    ]


def parse_analysis(raw: str | None) -> Any:
    """Parse generator output, tolerating a surrounding code fence.

    Returns:
        The decoded JSON value, or None if absent or not valid JSON.
    """
    if not raw:
        return None
    text = raw.strip()
    if text.startswith("```"):
        text = _FENCE_END.sub("", _FENCE_START.sub("", text))
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def _weeks_label(weeks: float) -> str:
    shown = int(weeks) if float(weeks).is_integer() else weeks
    return f"{shown} week" if weeks == 1 else f"{shown} weeks"


def phases_from_analysis(parsed: Any) -> list[PhaseDraft]:
    """Drafts from ``timeline.phases`` of parsed analysis output.

    Returns:
        Drafts in timeline order, or an empty list if the structure is absent.
    """
    timeline = parsed.get("timeline") if isinstance(parsed, dict) else None
    entries = timeline.get("phases") if isinstance(timeline, dict) else None
    if not isinstance(entries, list):
        return []

    drafts: list[PhaseDraft] = []
    for index, entry in enumerate(entries, start=1):
        entry = entry if isinstance(entry, dict) else {}
        name = entry.get("phase")
        title = name.strip() if isinstance(name, str) else ""
        weeks = entry.get("weeks")
        if isinstance(weeks, bool) or not isinstance(weeks, (int, float)) or weeks < 0:
            weeks = None
        raw_deliverables = entry.get("deliverables")
        deliverables = (
            [d.strip() if isinstance(d, str) else str(d) for d in raw_deliverables]
            if isinstance(raw_deliverables, list)
            else []
        )
        drafts.append(
            PhaseDraft(
                title=title or f"Phase {index}",
                description=_weeks_label(weeks) if weeks is not None else None,
                order=index,
                deliverables=deliverables,
                estimated_weeks=weeks,
            )
        )
    return drafts


async def load_analysis(
    analysis_source: AnalysisSource | None,
    project: Project,
) -> Any:
    """Fetch and parse the newest completed analysis; None on any failure."""
    if analysis_source is None:
        return None
    try:
        raw = await analysis_source.latest_completed(project.id)
    except Exception as exc:
        logger.warning(
            "analysis_source_unavailable",
            project_id=str(project.id),
            error=str(exc),
        )
        return None
    return parse_analysis(raw)


async def propose_phases(
    project: Project,
    analysis_source: AnalysisSource | None = None,
) -> list[PhaseDraft]:
    """Propose phase drafts for a project.

    Args:
        project: The project to plan.
        analysis_source: Collaborator returning the newest analysis text.

    Returns:
        Drafts from the analysis timeline, or the project type's template.
    """
    parsed = await load_analysis(analysis_source, project)
    drafts = phases_from_analysis(parsed) if parsed is not None else []
    if drafts:
        logger.debug("phases_proposed", project_id=str(project.id), source="analysis")
        return drafts

    logger.debug(
        "phases_proposed",
        project_id=str(project.id),
        source="template",
        project_type=project.project_type.value if project.project_type else None,
    )
    return template_phases(project.project_type)
