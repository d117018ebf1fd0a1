"""Unit tests for phase proposals from analysis output and templates."""

from __future__ import annotations

import json
from uuid import UUID, uuid4

import pytest
from pydantic import ValidationError

from projectdock.database.models.project import Project, ProjectStatus, ProjectType
from projectdock.lifecycle.phase_source import (
    PhaseDraft,
    parse_analysis,
    phases_from_analysis,
    propose_phases,
    template_phases,
)

ANALYSIS = {
    "timeline": {
        "phases": [
            {"phase": "Discovery", "weeks": 1, "deliverables": ["Brief", " Sitemap "]},
            {"phase": "Design", "weeks": 2.5, "deliverables": ["Mockups"]},
            {"weeks": 3},
        ]
    }
}


class FakeAnalysisSource:
    """Returns canned analysis text, or raises."""

    def __init__(self, result: str | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[UUID] = []

    async def latest_completed(self, project_id: UUID) -> str | None:
        self.calls.append(project_id)
        if self.error is not None:
            raise self.error
        return self.result


def make_project(project_type: ProjectType | None = None) -> Project:
    return Project(
        id=uuid4(),
        title="Shop",
        description="Sell things",
        client_id="client-1",
        project_type=project_type,
        status=ProjectStatus.open,
    )


class TestPhaseDraft:
    def test_title_is_stripped(self) -> None:
        assert PhaseDraft(title="  Design ").title == "Design"

    def test_blank_title_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PhaseDraft(title="   ")

    def test_order_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            PhaseDraft(title="Design", order=0)

    def test_blank_deliverables_dropped(self) -> None:
        assert PhaseDraft(title="Design", deliverables=["Logo", " ", ""]).deliverables == ["Logo"]


class TestParseAnalysis:
    """Test tolerant parsing of generator output."""

    def test_plain_json(self) -> None:
        assert parse_analysis('{"a": 1}') == {"a": 1}

    def test_code_fenced_json(self) -> None:
        raw = '```json\n{"timeline": {"phases": []}}\n```'
        assert parse_analysis(raw) == {"timeline": {"phases": []}}

    def test_bare_fence(self) -> None:
        assert parse_analysis('```\n[1, 2]\n```') == [1, 2]

    @pytest.mark.parametrize("raw", [None, "", "not json", "```json\n{broken\n```"])
    def test_unparseable(self, raw: str | None) -> None:
        assert parse_analysis(raw) is None


class TestPhasesFromAnalysis:
    """Test draft construction from timeline.phases."""

    def test_drafts_follow_timeline(self) -> None:
        drafts = phases_from_analysis(ANALYSIS)

        assert [d.title for d in drafts] == ["Discovery", "Design", "Phase 3"]
        assert [d.order for d in drafts] == [1, 2, 3]
        assert [d.description for d in drafts] == ["1 week", "2.5 weeks", "3 weeks"]
        assert drafts[0].deliverables == ["Brief", "Sitemap"]
        assert drafts[1].estimated_weeks == 2.5
        assert drafts[2].deliverables == []

    def test_negative_or_boolean_weeks_ignored(self) -> None:
        drafts = phases_from_analysis(
            {"timeline": {"phases": [{"phase": "A", "weeks": -1}, {"phase": "B", "weeks": True}]}}
        )
        assert [d.estimated_weeks for d in drafts] == [None, None]
        assert [d.description for d in drafts] == [None, None]

    @pytest.mark.parametrize(
        "parsed",
        [None, [], {"timeline": None}, {"timeline": {"phases": "none"}}, {"other": 1}],
    )
    def test_missing_structure(self, parsed: object) -> None:
        assert phases_from_analysis(parsed) == []


class TestTemplatePhases:
    """Test the static tracks chosen by project type."""

    @pytest.mark.parametrize(
        "project_type",
        [
            ProjectType.new_website,
            ProjectType.redesign,
            ProjectType.ecommerce,
            ProjectType.web_application,
        ],
    )
    def test_full_track(self, project_type: ProjectType) -> None:
        titles = [d.title for d in template_phases(project_type)]
        assert titles == [
            "Discovery & Planning",
            "Design",
            "Development",
            "Testing & QA",
            "Launch & Handoff",
        ]

    @pytest.mark.parametrize("project_type", [ProjectType.landing_page, ProjectType.maintenance])
    def test_short_track(self, project_type: ProjectType) -> None:
        titles = [d.title for d in template_phases(project_type)]
        assert titles == ["Planning", "Implementation", "Review & Launch"]

    @pytest.mark.parametrize("project_type", [ProjectType.other, None])
    def test_default_track(self, project_type: ProjectType | None) -> None:
        drafts = template_phases(project_type)
        assert [d.title for d in drafts] == [
            "Planning",
            "Design",
            "Development",
            "Testing",
            "Launch",
        ]
        assert [d.order for d in drafts] == [1, 2, 3, 4, 5]


class TestProposePhases:
    """Test proposal source selection."""

    @pytest.mark.asyncio
    async def test_prefers_analysis_timeline(self) -> None:
        project = make_project(ProjectType.landing_page)
        source = FakeAnalysisSource(result=json.dumps(ANALYSIS))

        drafts = await propose_phases(project, source)

        assert [d.title for d in drafts] == ["Discovery", "Design", "Phase 3"]
        assert source.calls == [project.id]

    @pytest.mark.asyncio
    async def test_falls_back_to_template_without_analysis(self) -> None:
        drafts = await propose_phases(make_project(ProjectType.landing_page), FakeAnalysisSource())
        assert [d.title for d in drafts] == ["Planning", "Implementation", "Review & Launch"]

    @pytest.mark.asyncio
    async def test_falls_back_on_empty_timeline(self) -> None:
        source = FakeAnalysisSource(result='{"timeline": {"phases": []}}')
        drafts = await propose_phases(make_project(ProjectType.maintenance), source)
        assert drafts[0].title == "Planning"

    @pytest.mark.asyncio
    async def test_source_failure_is_not_fatal(self) -> None:
        source = FakeAnalysisSource(error=ConnectionError("analysis store down"))
        drafts = await propose_phases(make_project(), source)
        assert [d.title for d in drafts][0] == "Planning"

    @pytest.mark.asyncio
    async def test_without_source(self) -> None:
        drafts = await propose_phases(make_project(ProjectType.ecommerce))
        assert drafts[0].title == "Discovery & Planning"
