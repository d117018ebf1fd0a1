"""Phase workflow rules.

Pure, table-driven functions used by the phase engine and the definition
source: approval inference, default client questions, question extraction
from analysis output, duration computation, and the informational
advance/requirements checks.

Keyword tables map a phase title to a category; categories map to rules.
The first category whose keywords appear in the lower-cased title wins.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from projectdock.database.models.base import as_utc, utcnow
from projectdock.database.models.phase import PhaseStatus, ProjectPhase

APPROVAL_KEYWORDS: tuple[str, ...] = ("design", "launch", "approval", "review", "handoff")

QUESTION_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("design", ("design",)),
    ("development", ("development", "build")),
    ("testing", ("testing", "qa")),
    ("launch", ("launch", "handoff")),
    ("planning", ("planning", "discovery")),
)

# (question, required) in display order
DEFAULT_QUESTIONS: dict[str, tuple[tuple[str, bool], ...]] = {
    "design": (
        ("Do you approve the design mockups?", True),
        ("Are there any color or style changes you would like?", False),
        ("Does the design match your brand guidelines?", False),
    ),
    "development": (
        ("Are the features working as expected?", True),
        ("Have you noticed any bugs or issues?", False),
        ("Does the functionality meet your requirements?", False),
    ),
    "testing": (
        ("Have you tested all the features?", True),
        ("Are there any issues that need to be fixed?", False),
    ),
    "launch": (
        ("Is the site ready for launch?", True),
        ("Are there any final changes needed before going live?", False),
        ("Do you have all the necessary credentials and documentation?", False),
    ),
    "planning": (
        ("Do you have any additional requirements or changes?", False),
        ("Is the project scope clear and agreed upon?", True),
    ),
}

GENERIC_QUESTION = "Do you have any feedback or questions about this phase?"

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class AdvanceCheck:
    """Result of can_advance. Informational only."""

    can_proceed: bool
    reasons: list[str] = field(default_factory=list)


def infer_approval_requirement(title: str | None) -> bool:
    """Whether a phase with this title needs client sign-off."""
    lowered = (title or "").lower()
    return any(keyword in lowered for keyword in APPROVAL_KEYWORDS)


def question_category(title: str | None) -> str | None:
    """Map a phase title to a question category, or None."""
    lowered = (title or "").lower()
    for category, keywords in QUESTION_CATEGORIES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return None


def default_questions(title: str | None) -> list[dict[str, Any]]:
    """Built-in client questions for a phase title.

    Returns:
        Ordered ``{question, required, order}`` dicts; a single optional
        generic question when no category matches.
    """
    category = question_category(title)
    if category is None:
        return [{"question": GENERIC_QUESTION, "required": False, "order": 1}]
    return [
        {"question": text, "required": required, "order": index}
        for index, (text, required) in enumerate(DEFAULT_QUESTIONS[category], start=1)
    ]


def _normalize_questions(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    questions: list[dict[str, Any]] = []
    for item in raw:
        if isinstance(item, str):
            text, required, order = item.strip(), False, None
        elif isinstance(item, dict) and isinstance(item.get("question"), str):
            text = item["question"].strip()
            required = bool(item.get("required", False))
            order = item.get("order") if isinstance(item.get("order"), int) else None
        else:
            continue
        if not text:
            continue
        questions.append(
            {
                "question": text,
                "required": required,
                "order": order if order is not None else len(questions) + 1,
            }
        )
    return questions


def _recommendation_questions(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    texts: list[str] = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("text") or item.get("recommendation")
        if isinstance(item, str) and "?" in item and item.strip():
            texts.append(item.strip())
    return [
        {"question": text, "required": False, "order": index}
        for index, text in enumerate(texts, start=1)
    ]


def extract_questions(artifact: Any, phase_title: str | None = None) -> list[dict[str, Any]]:
    """Best-effort client questions from parsed analysis output.

    Looks, in order, at the ``questions`` of the timeline phase whose name
    matches ``phase_title``, the top-level ``questions`` field, and
    ``recommendations`` entries that contain a question mark.

    Args:
        artifact: Parsed analysis JSON (any type is tolerated).
        phase_title: Title of the phase being created.

    Returns:
        Ordered ``{question, required, order}`` dicts, possibly empty.
    """
    if not isinstance(artifact, dict):
        return []

    if phase_title:
        timeline = artifact.get("timeline")
        entries = timeline.get("phases") if isinstance(timeline, dict) else None
        wanted = phase_title.strip().lower()
        for entry in entries if isinstance(entries, list) else []:
            name = entry.get("phase") if isinstance(entry, dict) else None
            if isinstance(name, str) and name.strip().lower() == wanted:
                questions = _normalize_questions(entry.get("questions"))
                if questions:
                    return questions

    questions = _normalize_questions(artifact.get("questions"))
    if questions:
        return questions
    return _recommendation_questions(artifact.get("recommendations"))


def compute_actual_duration(phase: ProjectPhase, now: datetime | None = None) -> int | None:
    """Whole days between start and completion (or now), rounded up.

    Returns None when the phase never started.
    """
    start = as_utc(phase.started_at)
    if start is None:
        return None
    end = as_utc(phase.completed_at) or as_utc(now) or utcnow()
    elapsed = abs((end - start).total_seconds())
    return math.ceil(elapsed / SECONDS_PER_DAY)


def _is_answered(question: dict[str, Any]) -> bool:
    answer = question.get("answer")
    return isinstance(answer, str) and answer.strip() != ""


def unanswered_required(questions: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Required questions lacking a non-blank answer."""
    return [q for q in questions or [] if q.get("required") and not _is_answered(q)]


def can_advance(phase: ProjectPhase) -> AdvanceCheck:
    """Report whether the next phase could start. Never enforced."""
    reasons: list[str] = []

    if phase.status is not PhaseStatus.completed:
        reasons.append("Current phase is not completed")

    if phase.requires_client_approval and not phase.client_approved:
        reasons.append("Client approval is required")

    missing = unanswered_required(phase.client_questions)
    if missing:
        reasons.append(f"{len(missing)} required question(s) not answered")

    incomplete = [s for s in phase.sub_steps or [] if not s.get("completed")]
    if incomplete:
        reasons.append(f"{len(incomplete)} sub-step(s) not completed")

    return AdvanceCheck(can_proceed=not reasons, reasons=reasons)


def phase_requirements(phase: ProjectPhase) -> dict[str, Any]:
    """Counts behind can_advance, for display."""
    required = [q for q in phase.client_questions or [] if q.get("required")]
    answered = sum(1 for q in required if _is_answered(q))
    sub_steps = phase.sub_steps or []
    done = sum(1 for s in sub_steps if s.get("completed"))

    return {
        "requires_approval": bool(phase.requires_client_approval),
        "is_approved": bool(phase.client_approved),
        "required_questions": {
            "total": len(required),
            "answered": answered,
            "unanswered": len(required) - answered,
        },
        "sub_steps": {
            "total": len(sub_steps),
            "completed": done,
            "incomplete": len(sub_steps) - done,
        },
        "is_complete": phase.status is PhaseStatus.completed,
    }
