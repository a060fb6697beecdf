"""
hive.infrastructure.artifact_store - Typed Artifact Slots
===========================================================

This module provides the ArtifactStore: six typed slots (one per artifact
kind) that carry the structured hand-off documents between agents, plus the
static table of which agent depends on which kinds.

Architecture Context:
    The store lives inside ``WorkflowState`` and is replaced, never mutated.
    Producers write into it; consumers are briefed from it.

    ┌────────────────┐  store(PRD)          ┌──────────────────────────┐
    │ ProductManager │ ───────────────────→ │      ArtifactStore        │
    │ Designer       │ ── store(DesignSpec)→│  prd          ● PM, 12:01 │
    │ Planner        │ ── store(TechPlan) ─→│  design_spec  ● Designer  │
    └────────────────┘                      │  tech_plan    ○           │
                                            │  ...                      │
    ┌────────────────┐  check_readiness()   │                           │
    │ Builder        │ ←─ format_context() ─│  producers / timestamps   │
    └────────────────┘                      └──────────────────────────┘

Lifecycle:
    - Created empty when a conversation starts.
    - ``store()`` returns a NEW store with one slot replaced ("latest wins");
      the other slots, producers and timestamps are untouched.
    - Never cleared within a conversation; discarded with the workflow.

Readiness:
    ``check_readiness(agent)`` is advisory. The engine logs a warning when
    an agent runs without its declared inputs and lets it proceed with
    partial context.

Usage:
    >>> store = ArtifactStore()
    >>> store = store.store(prd, producer="ProductManager")
    >>> store.check_readiness("Designer").ready
    True
    >>> store.check_readiness("Planner").missing
    [<ArtifactKind.DESIGN_SPEC: 'DesignSpec'>]
"""

from __future__ import annotations

import time
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from hive.core.artifacts import (
    PRD,
    Artifact,
    CodeReview,
    DesignSpec,
    SecurityReview,
    TechPlan,
    TestPlan,
    artifact_kind,
)
from hive.core.enums import ArtifactKind


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


# =============================================================================
# Dependency Table
# =============================================================================
# Which artifact kinds each agent reads. Agents missing from the table (the
# Founder, UXResearcher, TechWriter, SRE, DataAnalyst and the ProductManager
# who originates the PRD) need nothing.
# =============================================================================
AGENT_ARTIFACT_REQUIREMENTS: dict[str, tuple[ArtifactKind, ...]] = {
    "ProductManager": (),
    "Designer": (ArtifactKind.PRD,),
    "Accessibility": (ArtifactKind.PRD, ArtifactKind.DESIGN_SPEC),
    "Planner": (ArtifactKind.PRD, ArtifactKind.DESIGN_SPEC),
    "Security": (ArtifactKind.TECH_PLAN,),
    "Builder": (ArtifactKind.TECH_PLAN, ArtifactKind.DESIGN_SPEC),
    "Reviewer": (ArtifactKind.TECH_PLAN,),
    "Tester": (ArtifactKind.PRD, ArtifactKind.DESIGN_SPEC, ArtifactKind.TECH_PLAN),
}

# Slot attribute per kind, in display order.
_SLOTS: dict[ArtifactKind, str] = {
    ArtifactKind.PRD: "prd",
    ArtifactKind.DESIGN_SPEC: "design_spec",
    ArtifactKind.TECH_PLAN: "tech_plan",
    ArtifactKind.SECURITY_REVIEW: "security_review",
    ArtifactKind.TEST_PLAN: "test_plan",
    ArtifactKind.CODE_REVIEW: "code_review",
}


def requirements(agent_name: str) -> tuple[ArtifactKind, ...]:
    """Return the artifact kinds ``agent_name`` depends on (possibly empty)."""
    return AGENT_ARTIFACT_REQUIREMENTS.get(agent_name, ())


class ReadinessReport(BaseModel):
    """Result of an artifact readiness check.

    Attributes:
        agent_name: The agent that was checked.
        ready: True when every declared dependency is present.
        missing: Declared kinds that are still empty, in table order.
    """

    agent_name: str
    ready: bool
    missing: list[ArtifactKind] = Field(default_factory=list)


# =============================================================================
# ArtifactStore
# =============================================================================
class ArtifactStore(BaseModel):
    """Six nullable artifact slots plus producer and timestamp bookkeeping.

    Immutable: every write returns a new instance.

    Attributes:
        prd / design_spec / tech_plan / security_review / test_plan /
        code_review: The current artifact of each kind, or None.
        producers: Agent that wrote each present kind.
        timestamps: Wall-clock time (epoch seconds) each kind was written.
    """

    prd: Optional[PRD] = None
    design_spec: Optional[DesignSpec] = None
    tech_plan: Optional[TechPlan] = None
    security_review: Optional[SecurityReview] = None
    test_plan: Optional[TestPlan] = None
    code_review: Optional[CodeReview] = None
    producers: dict[ArtifactKind, str] = Field(default_factory=dict)
    timestamps: dict[ArtifactKind, float] = Field(default_factory=dict)

    model_config = {"frozen": True}

    # =========================================================================
    # Writes
    # =========================================================================

    def store(
        self,
        artifact: Artifact,
        producer: str,
        now: Optional[float] = None,
    ) -> ArtifactStore:
        """Return a new store with ``artifact`` in its kind's slot.

        Never fails. A later write of the same kind overwrites the slot and
        its producer/timestamp; the other kinds are carried over unchanged.

        Args:
            artifact: Any artifact variant.
            producer: Name of the agent that produced it.
            now: Timestamp to record (defaults to ``time.time()``).

        Returns:
            The updated store.
        """
        kind = artifact_kind(artifact)
        stamp = time.time() if now is None else now
        logger.debug("artifact_stored", kind=kind.value, producer=producer)
        return self.model_copy(
            update={
                _SLOTS[kind]: artifact,
                "producers": {**self.producers, kind: producer},
                "timestamps": {**self.timestamps, kind: stamp},
            }
        )

    def merge(self, other: ArtifactStore) -> ArtifactStore:
        """Shallow merge by slot: every slot set in ``other`` wins.

        Slots that are None in ``other`` never erase a slot set here.
        """
        update: dict[str, object] = {}
        producers = dict(self.producers)
        timestamps = dict(self.timestamps)
        for kind, slot in _SLOTS.items():
            incoming = getattr(other, slot)
            if incoming is None:
                continue
            update[slot] = incoming
            if kind in other.producers:
                producers[kind] = other.producers[kind]
            if kind in other.timestamps:
                timestamps[kind] = other.timestamps[kind]
        if not update:
            return self
        update["producers"] = producers
        update["timestamps"] = timestamps
        return self.model_copy(update=update)

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, kind: ArtifactKind) -> Optional[Artifact]:
        """Return the current artifact of ``kind``, or None."""
        return getattr(self, _SLOTS[ArtifactKind(kind)])

    def has(self, kind: ArtifactKind) -> bool:
        return self.get(kind) is not None

    def available(self) -> list[ArtifactKind]:
        """Kinds currently present, in slot order."""
        return [kind for kind in _SLOTS if self.has(kind)]

    def check_readiness(self, agent_name: str) -> ReadinessReport:
        """Report whether ``agent_name``'s declared inputs are all present.

        Example:
            >>> ArtifactStore().check_readiness("ProductManager").ready
            True
        """
        missing = [kind for kind in requirements(agent_name) if not self.has(kind)]
        return ReadinessReport(agent_name=agent_name, ready=not missing, missing=missing)

    # =========================================================================
    # Prompt Context
    # =========================================================================

    def format_context(self, now: Optional[float] = None) -> str:
        """Summarize every present artifact for the next agent's prompt.

        Only kind-specific headline fields are included (PRD goal and story
        count, TechPlan overview and step count, ...), so the brief stays
        short no matter how large the artifacts are.

        Args:
            now: Reference time for the "Ns ago" ages (defaults to now).

        Returns:
            A markdown block, or "" when the store is empty.
        """
        kinds = self.available()
        if not kinds:
            return ""

        reference = time.time() if now is None else now
        lines = ["## Available Artifacts", ""]
        for kind in kinds:
            artifact = self.get(kind)
            producer = self.producers.get(kind, "unknown")
            age = max(0, round(reference - self.timestamps.get(kind, reference)))
            lines.append(f"### {kind.value} (by {producer}, {age}s ago)")
            lines.append(f"**{artifact.display_name()}**")
            lines.extend(artifact.summary_lines())
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"


def format_artifact(artifact: Artifact) -> str:
    """Render one artifact as a fenced JSON block for a prompt."""
    body = artifact.model_dump_json(indent=2, exclude_none=True)
    return f"```json\n{body}\n```"
