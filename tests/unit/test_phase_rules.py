"""Unit tests for phase workflow rules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from projectdock.database.models.phase import PhaseStatus, ProjectPhase
from projectdock.lifecycle.phase_rules import (
    GENERIC_QUESTION,
    can_advance,
    compute_actual_duration,
    default_questions,
    extract_questions,
    infer_approval_requirement,
    phase_requirements,
    question_category,
    unanswered_required,
)

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def make_phase(**overrides: Any) -> ProjectPhase:
    values: dict[str, Any] = {
        "title": "Design",
        "order": 1,
        "status": PhaseStatus.not_started,
        "requires_client_approval": False,
        "client_approved": False,
        "client_questions": [],
        "sub_steps": [],
        "attachments": [],
        "deliverables": [],
    }
    values.update(overrides)
    return ProjectPhase(**values)


class TestApprovalInference:
    """Test infer_approval_requirement keyword matching."""

    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Design", True),
            ("UI Design Review", True),
            ("Launch & Handoff", True),
            ("Client Approval", True),
            ("Review & Launch", True),
            ("Planning", False),
            ("Development", False),
            ("Testing & QA", False),
            ("", False),
            (None, False),
        ],
    )
    def test_keywords(self, title: str | None, expected: bool) -> None:
        assert infer_approval_requirement(title) is expected

    def test_case_insensitive(self) -> None:
        assert infer_approval_requirement("FINAL LAUNCH")


class TestDefaultQuestions:
    """Test question categories and the built-in question sets."""

    @pytest.mark.parametrize(
        ("title", "category"),
        [
            ("Design", "design"),
            ("Core Development", "development"),
            ("Build", "development"),
            ("Testing & QA", "testing"),
            ("Launch", "launch"),
            ("Handoff", "launch"),
            ("Discovery & Planning", "planning"),
            ("Implementation", None),
        ],
    )
    def test_question_category(self, title: str, category: str | None) -> None:
        assert question_category(title) == category

    def test_design_questions(self) -> None:
        questions = default_questions("Design")
        assert [q["order"] for q in questions] == [1, 2, 3]
        assert questions[0] == {
            "question": "Do you approve the design mockups?",
            "required": True,
            "order": 1,
        }
        assert [q["required"] for q in questions] == [True, False, False]

    def test_planning_questions_have_required_second(self) -> None:
        questions = default_questions("Planning")
        assert [q["required"] for q in questions] == [False, True]

    def test_unmatched_title_gets_generic_question(self) -> None:
        assert default_questions("Implementation") == [
            {"question": GENERIC_QUESTION, "required": False, "order": 1}
        ]


class TestExtractQuestions:
    """Test best-effort question extraction from analysis output."""

    def test_phase_specific_questions_win(self) -> None:
        artifact = {
            "timeline": {
                "phases": [
                    {"phase": "Design", "questions": ["Which palette?", {"question": "Logo ready?", "required": True}]},
                ]
            },
            "questions": ["Top-level question?"],
        }
        questions = extract_questions(artifact, "design")
        assert questions == [
            {"question": "Which palette?", "required": False, "order": 1},
            {"question": "Logo ready?", "required": True, "order": 2},
        ]

    def test_top_level_questions(self) -> None:
        artifact = {"questions": [{"question": "Hosting provider?", "order": 4}, "  "]}
        assert extract_questions(artifact, "Launch") == [
            {"question": "Hosting provider?", "required": False, "order": 4}
        ]

    def test_recommendations_with_question_marks(self) -> None:
        artifact = {
            "recommendations": [
                "Use a CDN.",
                "Should we add a blog?",
                {"text": "Do you need analytics?"},
            ]
        }
        assert [q["question"] for q in extract_questions(artifact)] == [
            "Should we add a blog?",
            "Do you need analytics?",
        ]

    @pytest.mark.parametrize("artifact", [None, "text", 42, [], {"questions": "nope"}])
    def test_unusable_artifacts(self, artifact: Any) -> None:
        assert extract_questions(artifact, "Design") == []


class TestUnansweredRequired:
    def test_blank_answers_do_not_count(self) -> None:
        questions = [
            {"question": "a", "required": True, "answer": "   "},
            {"question": "b", "required": True, "answer": "yes"},
            {"question": "c", "required": False, "answer": None},
            {"question": "d", "required": True, "answer": None},
        ]
        assert [q["question"] for q in unanswered_required(questions)] == ["a", "d"]

    def test_none(self) -> None:
        assert unanswered_required(None) == []


class TestComputeActualDuration:
    """Test whole-day duration rounding."""

    def test_not_started(self) -> None:
        assert compute_actual_duration(make_phase()) is None

    def test_exact_days(self) -> None:
        phase = make_phase(started_at=START, completed_at=START + timedelta(days=2))
        assert compute_actual_duration(phase) == 2

    def test_partial_day_rounds_up(self) -> None:
        phase = make_phase(started_at=START, completed_at=START + timedelta(days=2, hours=1))
        assert compute_actual_duration(phase) == 3

    def test_uses_now_while_running(self) -> None:
        phase = make_phase(started_at=START)
        assert compute_actual_duration(phase, now=START + timedelta(hours=5)) == 1

    def test_naive_timestamps_are_treated_as_utc(self) -> None:
        phase = make_phase(
            started_at=START.replace(tzinfo=None),
            completed_at=START + timedelta(days=1),
        )
        assert compute_actual_duration(phase) == 1


class TestCanAdvance:
    """Test the informational advance check."""

    def test_all_clear(self) -> None:
        phase = make_phase(
            status=PhaseStatus.completed,
            requires_client_approval=True,
            client_approved=True,
            client_questions=[{"question": "ok?", "required": True, "answer": "yes"}],
            sub_steps=[{"title": "Mockups", "completed": True}],
        )
        check = can_advance(phase)
        assert check.can_proceed
        assert check.reasons == []

    def test_every_reason_reported(self) -> None:
        phase = make_phase(
            status=PhaseStatus.in_progress,
            requires_client_approval=True,
            client_questions=[{"question": "ok?", "required": True, "answer": None}],
            sub_steps=[{"title": "Mockups", "completed": False}],
        )
        check = can_advance(phase)
        assert not check.can_proceed
        assert check.reasons == [
            "Current phase is not completed",
            "Client approval is required",
            "1 required question(s) not answered",
            "1 sub-step(s) not completed",
        ]


class TestPhaseRequirements:
    def test_counts(self) -> None:
        phase = make_phase(
            requires_client_approval=True,
            client_questions=[
                {"question": "a", "required": True, "answer": "yes"},
                {"question": "b", "required": True, "answer": None},
                {"question": "c", "required": False, "answer": None},
            ],
            sub_steps=[
                {"title": "x", "completed": True},
                {"title": "y", "completed": False},
                {"title": "z", "completed": False},
            ],
        )
        assert phase_requirements(phase) == {
            "requires_approval": True,
            "is_approved": False,
            "required_questions": {"total": 2, "answered": 1, "unanswered": 1},
            "sub_steps": {"total": 3, "completed": 1, "incomplete": 2},
            "is_complete": False,
        }
