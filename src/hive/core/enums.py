"""
hive.core.enums - Type-Safe Enumerations
==========================================

This module defines every closed set of names used across HIVE. Using
``str`` enums instead of raw strings gives us autocomplete, typo safety,
and clean JSON serialization (``AgentName.BUILDER == "Builder"``).

Enumerations:
    - AgentName:           The thirteen specialists on the team
    - RouteTarget:         Non-agent routing sentinels (Router, FINISH)
    - ArtifactKind:        The six structured document kinds
    - ReviewVerdict:       Outcome of a CodeReview artifact
    - EventType:           Events emitted to the transport layer
    - CircuitBreakerState: Per-agent breaker states
    - RoutingLevel:        Which router tier produced a decision

Why str Enums?
    Agent names and artifact kinds travel through LLM prompts, JSON
    payloads and metric labels. A ``str`` mixin means the enum value IS the
    string, so ``json.dumps`` and f-strings work with no conversion.
"""

from __future__ import annotations

from enum import Enum


# =============================================================================
# Agent Names
# =============================================================================
# The team roster. The order below is the "natural" order of a full product
# workflow: discovery → requirements → design → planning → build → verify →
# ship. The router prompt lists agents in this order.
# =============================================================================
class AgentName(str, Enum):
    """Names of the specialist agents.

    Values are the exact strings used in routing decisions, message
    attribution (``Message.name``), metric labels and artifact producers.
    """

    FOUNDER = "Founder"
    PRODUCT_MANAGER = "ProductManager"
    UX_RESEARCHER = "UXResearcher"
    DESIGNER = "Designer"
    ACCESSIBILITY = "Accessibility"
    PLANNER = "Planner"
    SECURITY = "Security"
    BUILDER = "Builder"
    REVIEWER = "Reviewer"
    TESTER = "Tester"
    TECH_WRITER = "TechWriter"
    SRE = "SRE"
    DATA_ANALYST = "DataAnalyst"

    @classmethod
    def values(cls) -> list[str]:
        """All agent names as plain strings, in roster order."""
        return [member.value for member in cls]


class RouteTarget(str, Enum):
    """Routing sentinels that are not agents.

    ``ROUTER`` in ``WorkflowState.next`` means "ask the router who goes
    next"; ``FINISH`` is the terminal state of a conversation.
    """

    ROUTER = "Router"
    FINISH = "FINISH"


# =============================================================================
# Artifact Kinds
# =============================================================================
class ArtifactKind(str, Enum):
    """The six structured document kinds agents produce.

    The store keeps at most one current artifact per kind.
    """

    PRD = "PRD"
    DESIGN_SPEC = "DesignSpec"
    TECH_PLAN = "TechPlan"
    SECURITY_REVIEW = "SecurityReview"
    TEST_PLAN = "TestPlan"
    CODE_REVIEW = "CodeReview"


class ReviewVerdict(str, Enum):
    """Verdict carried by a CodeReview artifact."""

    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    NEEDS_DISCUSSION = "needs_discussion"


# =============================================================================
# Workflow Events
# =============================================================================
# The request-handling layer turns these into its wire format (SSE frames,
# websocket messages, ...). The core never serializes them itself.
# =============================================================================
class EventType(str, Enum):
    """Events emitted while a conversation advances."""

    AGENT_START = "agent_start"
    CHUNK = "chunk"
    HANDOFF = "handoff"
    AGENT_END = "agent_end"
    COMPLETE = "complete"
    ERROR = "error"


# =============================================================================
# Safety
# =============================================================================
class CircuitBreakerState(str, Enum):
    """States of a per-agent circuit breaker.

    State Machine:
        CLOSED ──(failures == threshold)──> OPEN
        OPEN ──(cooldown elapsed, checked on is_open)──> CLOSED

    HALF_OPEN is reported for an open breaker whose cooldown has already
    elapsed but which has not been re-checked yet. The next ``is_open()``
    call closes it.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class RoutingLevel(str, Enum):
    """Router tier that produced a decision.

    LEVEL_0: primary provider
    LEVEL_1: secondary provider
    LEVEL_2: keyword rules (or the default agent)
    LEVEL_3: forced FINISH by the turn limit
    """

    LEVEL_0 = "level0"
    LEVEL_1 = "level1"
    LEVEL_2 = "level2"
    LEVEL_3 = "level3"
