"""
Tests for hive.core.artifacts
===============================

What's Being Tested:
    - parse_artifact: discriminated union on ``kind``, camelCase payloads
    - display_name / summary_lines per variant
    - artifact_kind mapping
"""

import pytest
from pydantic import ValidationError

from hive.core.artifacts import (
    PRD,
    CodeReview,
    DesignSpec,
    SecurityReview,
    TechPlan,
    TestPlan,
    artifact_kind,
    parse_artifact,
)
from hive.core.enums import ArtifactKind, ReviewVerdict


# =============================================================================
# Test: parse_artifact
# =============================================================================
class TestParseArtifact:
    """Tests for validating raw payloads into artifact variants."""

    def test_selects_variant_by_kind(self) -> None:
        plan = parse_artifact({"kind": "TechPlan", "title": "T", "overview": "O"})
        assert isinstance(plan, TechPlan)
        assert artifact_kind(plan) == ArtifactKind.TECH_PLAN

    def test_accepts_camel_case_fields(self) -> None:
        """Model output uses camelCase; both spellings validate."""
        prd = parse_artifact({
            "kind": "PRD",
            "title": "Todo",
            "goal": "Track tasks",
            "successMetrics": ["DAU"],
            "userStories": [{
                "id": "US-1",
                "title": "Add task",
                "asA": "user",
                "iWant": "to add a task",
                "soThat": "I remember it",
            }],
        })
        assert isinstance(prd, PRD)
        assert prd.success_metrics == ["DAU"]
        assert prd.user_stories[0].i_want == "to add a task"

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_artifact({"kind": "Roadmap", "title": "x"})

    def test_missing_required_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_artifact({"kind": "TechPlan", "title": "no overview"})


# =============================================================================
# Test: Summaries
# =============================================================================
class TestSummaries:
    """Headline fields used in the artifact brief."""

    def test_prd_summary(self) -> None:
        prd = PRD(title="Todo", goal="Track tasks", success_metrics=["DAU", "WAU"])
        assert prd.display_name() == "Todo"
        assert prd.summary_lines() == [
            "- Goal: Track tasks",
            "- User Stories: 0",
            "- Success Metrics: DAU, WAU",
        ]

    def test_design_spec_summary(self) -> None:
        spec = DesignSpec(
            title="UI",
            components=[{"name": "TaskList", "description": "x"}, {"name": "Header", "description": "y"}],
            user_flow=[{"step": 1, "screen": "Home", "action": "open"}],
        )
        assert spec.summary_lines() == ["- Components: TaskList, Header", "- User Flow Steps: 1"]

    def test_security_review_summary(self) -> None:
        review = SecurityReview(
            title="Review",
            threat_model=[{"threat": "XSS", "attack_vector": "input"}],
        )
        assert review.summary_lines() == ["- Threats Identified: 1", "- Vulnerabilities: 0"]

    def test_test_plan_summary(self) -> None:
        plan = TestPlan(
            title="QA",
            strategy="pyramid",
            test_cases=[{"id": "TC-1", "description": "add", "expected_result": "listed"}],
        )
        assert plan.summary_lines() == ["- Strategy: pyramid", "- Test Cases: 1"]

    def test_code_review_display(self) -> None:
        review = CodeReview(
            verdict=ReviewVerdict.REQUEST_CHANGES,
            summary="Needs work",
            must_fix=[{"location": "api.py:10", "issue": "SQL injection", "suggestion": "bind params"}],
        )
        assert review.display_name() == "Code Review (request_changes)"
        assert review.summary_lines() == ["- Verdict: request_changes", "- Must Fix: 1 issues"]
