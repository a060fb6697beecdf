"""
hive.core.artifacts - Structured Work Artifacts
=================================================

Artifacts are the typed documents agents hand to each other: the PRD the
ProductManager writes, the DesignSpec the Designer derives from it, the
TechPlan the Planner derives from both, and so on. They let a later agent
work from a compact structured brief instead of replaying the whole chat.

Closed Sum Type:
    ``Artifact`` is a pydantic discriminated union over exactly six variants,
    tagged by the ``kind`` field:

        Artifact = PRD | DesignSpec | TechPlan
                 | SecurityReview | TestPlan | CodeReview

    ``parse_artifact({"kind": "TechPlan", ...})`` validates the payload
    against the right variant in one step, and an unknown kind is a
    validation error rather than a silently accepted dict.

    Producers (agent → kind they write):
        ProductManager → PRD            Planner  → TechPlan
        Designer       → DesignSpec     Security → SecurityReview
        Tester         → TestPlan       Reviewer → CodeReview

Field Naming:
    Fields are snake_case in Python and accept camelCase aliases on input,
    so ``{"successMetrics": [...]}`` from a model response validates the
    same as ``{"success_metrics": [...]}``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from hive.core.enums import ArtifactKind, ReviewVerdict


Severity = Literal["low", "medium", "high"]
Impact = Literal["low", "medium", "high", "critical"]


class _ArtifactModel(BaseModel):
    """Shared model configuration: camelCase aliases, name population."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# PRD
# =============================================================================
class UserStory(_ArtifactModel):
    """One user story: "As a <as_a>, I want <i_want>, so that <so_that>"."""

    id: str
    title: str
    as_a: str
    i_want: str
    so_that: str
    acceptance_criteria: list[str] = Field(default_factory=list)
    priority: Literal["P0", "P1", "P2", "P3"] = "P1"


class PRD(_ArtifactModel):
    """Product Requirements Document, written by the ProductManager."""

    kind: Literal["PRD"] = "PRD"
    title: str
    goal: str
    success_metrics: list[str] = Field(default_factory=list)
    user_stories: list[UserStory] = Field(default_factory=list)
    out_of_scope: list[str] = Field(default_factory=list)
    open_questions: list[str] = Field(default_factory=list)

    def display_name(self) -> str:
        return self.title

    def summary_lines(self) -> list[str]:
        return [
            f"- Goal: {self.goal}",
            f"- User Stories: {len(self.user_stories)}",
            f"- Success Metrics: {', '.join(self.success_metrics) or 'none'}",
        ]


# =============================================================================
# DesignSpec
# =============================================================================
class UserFlowStep(_ArtifactModel):
    step: int
    screen: str
    action: str
    notes: Optional[str] = None


class ComponentSpec(_ArtifactModel):
    name: str
    description: str
    props: Optional[list[str]] = None


class DesignSpec(_ArtifactModel):
    """UI/UX design specification, written by the Designer."""

    kind: Literal["DesignSpec"] = "DesignSpec"
    title: str
    principles: list[str] = Field(default_factory=list)
    user_flow: list[UserFlowStep] = Field(default_factory=list)
    components: list[ComponentSpec] = Field(default_factory=list)
    interaction_notes: list[str] = Field(default_factory=list)
    accessibility_notes: list[str] = Field(default_factory=list)

    def display_name(self) -> str:
        return self.title

    def summary_lines(self) -> list[str]:
        names = ", ".join(component.name for component in self.components)
        return [
            f"- Components: {names or 'none'}",
            f"- User Flow Steps: {len(self.user_flow)}",
        ]


# =============================================================================
# TechPlan
# =============================================================================
class ArchitectureComponent(_ArtifactModel):
    name: str
    responsibility: str
    interfaces: list[str] = Field(default_factory=list)


class Architecture(_ArtifactModel):
    components: list[ArchitectureComponent] = Field(default_factory=list)
    data_flow: str = ""


class ImplementationStep(_ArtifactModel):
    order: int
    task: str
    files: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)


class Risk(_ArtifactModel):
    risk: str
    mitigation: str
    severity: Severity = "medium"


class TechPlan(_ArtifactModel):
    """Technical implementation plan, written by the Planner."""

    kind: Literal["TechPlan"] = "TechPlan"
    title: str
    overview: str
    architecture: Architecture = Field(default_factory=Architecture)
    implementation_steps: list[ImplementationStep] = Field(default_factory=list)
    risks: list[Risk] = Field(default_factory=list)

    def display_name(self) -> str:
        return self.title

    def summary_lines(self) -> list[str]:
        return [
            f"- Overview: {self.overview}",
            f"- Implementation Steps: {len(self.implementation_steps)}",
        ]


# =============================================================================
# SecurityReview
# =============================================================================
class Threat(_ArtifactModel):
    threat: str
    attack_vector: str
    impact: Impact = "medium"
    likelihood: Severity = "medium"


class Vulnerability(_ArtifactModel):
    id: str
    description: str
    severity: Impact = "medium"
    recommendation: str


class SecurityReview(_ArtifactModel):
    """Threat model and findings, written by the Security agent."""

    kind: Literal["SecurityReview"] = "SecurityReview"
    title: str
    threat_model: list[Threat] = Field(default_factory=list)
    vulnerabilities: list[Vulnerability] = Field(default_factory=list)
    requirements: list[str] = Field(default_factory=list)
    compliance_notes: Optional[str] = None

    def display_name(self) -> str:
        return self.title

    def summary_lines(self) -> list[str]:
        return [
            f"- Threats Identified: {len(self.threat_model)}",
            f"- Vulnerabilities: {len(self.vulnerabilities)}",
        ]


# =============================================================================
# TestPlan
# =============================================================================
class TestCase(_ArtifactModel):
    __test__ = False  # not a pytest class

    id: str
    description: str
    preconditions: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    expected_result: str
    priority: Literal["P0", "P1", "P2"] = "P1"


class TestPlan(_ArtifactModel):
    """Test strategy and cases, written by the Tester."""

    __test__ = False

    kind: Literal["TestPlan"] = "TestPlan"
    title: str
    strategy: str
    test_cases: list[TestCase] = Field(default_factory=list)
    edge_cases: list[str] = Field(default_factory=list)
    automation_plan: Optional[str] = None
    manual_testing_notes: Optional[str] = None

    def display_name(self) -> str:
        return self.title

    def summary_lines(self) -> list[str]:
        return [
            f"- Strategy: {self.strategy}",
            f"- Test Cases: {len(self.test_cases)}",
        ]


# =============================================================================
# CodeReview
# =============================================================================
class ReviewIssue(_ArtifactModel):
    location: str
    issue: str
    suggestion: str


class CodeReview(_ArtifactModel):
    """Code review outcome, written by the Reviewer."""

    kind: Literal["CodeReview"] = "CodeReview"
    verdict: ReviewVerdict
    summary: str
    must_fix: list[ReviewIssue] = Field(default_factory=list)
    should_fix: list[ReviewIssue] = Field(default_factory=list)
    nits: list[str] = Field(default_factory=list)
    praise: list[str] = Field(default_factory=list)

    def display_name(self) -> str:
        return f"Code Review ({self.verdict.value})"

    def summary_lines(self) -> list[str]:
        return [
            f"- Verdict: {self.verdict.value}",
            f"- Must Fix: {len(self.must_fix)} issues",
        ]


# =============================================================================
# The Union
# =============================================================================
Artifact = Annotated[
    Union[PRD, DesignSpec, TechPlan, SecurityReview, TestPlan, CodeReview],
    Field(discriminator="kind"),
]

ARTIFACT_MODELS: dict[ArtifactKind, type[BaseModel]] = {
    ArtifactKind.PRD: PRD,
    ArtifactKind.DESIGN_SPEC: DesignSpec,
    ArtifactKind.TECH_PLAN: TechPlan,
    ArtifactKind.SECURITY_REVIEW: SecurityReview,
    ArtifactKind.TEST_PLAN: TestPlan,
    ArtifactKind.CODE_REVIEW: CodeReview,
}

_artifact_adapter: TypeAdapter[Any] = TypeAdapter(Artifact)


def parse_artifact(data: dict[str, Any]) -> Artifact:
    """Validate a raw payload into the matching artifact variant.

    Args:
        data: A dict with a ``kind`` tag and the variant's fields.

    Returns:
        The validated artifact.

    Raises:
        pydantic.ValidationError: Unknown ``kind`` or invalid payload.

    Example:
        >>> plan = parse_artifact({"kind": "TechPlan", "title": "T", "overview": "O"})
        >>> type(plan).__name__
        'TechPlan'
    """
    return _artifact_adapter.validate_python(data)


def artifact_kind(artifact: Artifact) -> ArtifactKind:
    """Return the ``ArtifactKind`` of an artifact instance."""
    return ArtifactKind(artifact.kind)
