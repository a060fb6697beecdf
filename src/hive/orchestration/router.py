"""
hive.orchestration.router - Tiered Turn Router
================================================

The router decides who acts next. Its state machine is small (states are
agent names plus FINISH) but it must always answer, even when every model
provider is down, so the decision degrades through tiers:

    decide(state)
        │
        ├─ Tier 3 (checked FIRST): turn limit reached ──────────→ FINISH
        │
        ├─ Tier 0: primary provider classifies the conversation
        │            └─ error / timeout / unparseable answer ─┐
        ├─ Tier 1: secondary provider classifies  ←──────────┘
        │            └─ error / timeout / unparseable answer ─┐
        ├─ Tier 2: keyword rules on the user query ←─────────┘
        │            └─ no keyword matched → default agent
        │
        └─ chosen agent's circuit breaker open? ───────────────→ FINISH

Each tier counts its decisions (level0..level3 + total) in
``RouterMetrics`` and in ``hive_router_decisions_total{level}``.

Provider calls run through ``SafetyGuard.safe_execute`` under the breaker
names "Router:primary" and "Router:secondary", so a provider that keeps
failing is skipped without waiting for its timeout.

Output Contract:
    ``route(state)`` returns ``StateUpdate(next=<agent|FINISH>,
    turn_count=state.turn_count + 1)``.
"""

from __future__ import annotations

import json
import re
from typing import Collection, Optional, Sequence

import structlog
from pydantic import BaseModel

from hive.core.config import RouterConfig
from hive.core.enums import AgentName, RouteTarget, RoutingLevel
from hive.core.exceptions import RoutingError
from hive.core.messages import extract_user_query, format_transcript
from hive.core.state import StateUpdate, WorkflowState
from hive.infrastructure.observability import ROUTER_DECISIONS, MetricsRegistry
from hive.integrations.llm.base import BaseLLMProvider
from hive.orchestration.routing_table import ROUTER_PROMPT, match_keywords
from hive.orchestration.safety import SafetyGuard


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

PRIMARY_BREAKER = "Router:primary"
SECONDARY_BREAKER = "Router:secondary"

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


# =============================================================================
# Models
# =============================================================================
class RoutingDecision(BaseModel):
    """A router answer.

    Attributes:
        next: Agent name or "FINISH".
        reasoning: Why (from the model, or a rule description).
        level: Tier that produced the decision.
    """

    next: str
    reasoning: str
    level: RoutingLevel

    @property
    def is_finish(self) -> bool:
        return self.next == RouteTarget.FINISH.value


class RouterMetrics(BaseModel):
    """Decision counters per tier."""

    level0: int = 0
    level1: int = 0
    level2: int = 0
    level3: int = 0
    total: int = 0

    def record(self, level: RoutingLevel) -> None:
        setattr(self, level.value, getattr(self, level.value) + 1)
        self.total += 1


# =============================================================================
# Pure Helpers
# =============================================================================
def parse_routing_answer(content: str, valid_targets: Sequence[str]) -> tuple[str, str]:
    """Extract (next, reasoning) from a provider answer.

    Accepts JSON ``{"next": ..., "reasoning": ...}`` (optionally fenced) or
    a bare target name. Names are matched case-insensitively and returned
    in canonical spelling.

    Raises:
        RoutingError: The answer names no valid target.
    """
    canonical = {target.lower(): target for target in valid_targets}
    text = _FENCE.sub("", content.strip())

    reasoning = ""
    candidate = text
    try:
        payload = json.loads(text)
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        candidate = str(payload.get("next", ""))
        reasoning = str(payload.get("reasoning", ""))

    chosen = canonical.get(candidate.strip().strip("\"'.").lower())
    if chosen is None:
        raise RoutingError(
            message=f"Routing answer names no known agent: {content[:80]!r}",
            details={"answer": content[:200]},
        )
    return chosen, reasoning or "model decision"


def rule_based_route(text: str, default_agent: str) -> RoutingDecision:
    """Keyword routing (tier 2).

    Example:
        >>> rule_based_route("please build a login form", "ProductManager").next
        'Builder'
    """
    matched = match_keywords(text)
    if matched is None:
        return RoutingDecision(
            next=default_agent,
            reasoning=f"No keyword matched; routing to {default_agent} as safe default",
            level=RoutingLevel.LEVEL_2,
        )
    agent, keyword = matched
    return RoutingDecision(
        next=agent.value,
        reasoning=f"rule-based fallback: matched '{keyword.lower()}'",
        level=RoutingLevel.LEVEL_2,
    )


# =============================================================================
# Router
# =============================================================================
class Router:
    """Tiered next-agent decision function.

    Args:
        guard: Turn-limit check, breakers and timeouts.
        config: Default agent, provider timeout, forced fallback level.
        primary: Tier-0 provider (None skips the tier).
        secondary: Tier-1 provider (None skips the tier).
        metrics: Registry receiving decision counters.
        known_agents: Valid routing targets (defaults to the full roster). A
            live collection such as an ``AgentRegistry`` is read on every
            decision.
    """

    def __init__(
        self,
        guard: SafetyGuard,
        config: Optional[RouterConfig] = None,
        primary: Optional[BaseLLMProvider] = None,
        secondary: Optional[BaseLLMProvider] = None,
        metrics: Optional[MetricsRegistry] = None,
        known_agents: Optional[Collection[str]] = None,
    ) -> None:
        self._guard = guard
        self._config = config or RouterConfig()
        self._primary = primary
        self._secondary = secondary
        self._registry = metrics
        self._agents = known_agents if known_agents is not None else AgentName.values()
        self._metrics = RouterMetrics()
        self._logger = logger.bind(component="router")

    @property
    def metrics(self) -> RouterMetrics:
        return self._metrics

    @property
    def valid_targets(self) -> list[str]:
        return [*self._agents, RouteTarget.FINISH.value]

    # =========================================================================
    # Decision
    # =========================================================================

    async def decide(self, state: WorkflowState) -> RoutingDecision:
        """Pick the next agent (or FINISH) for ``state``."""
        limit = self._guard.check_turn_limit(state.turn_count)
        if not limit.safe:
            return self._record(
                state,
                RoutingDecision(
                    next=RouteTarget.FINISH.value,
                    reasoning=limit.reason or "turn limit reached",
                    level=RoutingLevel.LEVEL_3,
                ),
            )

        skip_below = self._config.force_fallback_level
        decision: Optional[RoutingDecision] = None
        if skip_below <= 0 and self._primary is not None:
            decision = await self._classify(self._primary, PRIMARY_BREAKER, state, RoutingLevel.LEVEL_0)
        if decision is None and skip_below <= 1 and self._secondary is not None:
            decision = await self._classify(
                self._secondary, SECONDARY_BREAKER, state, RoutingLevel.LEVEL_1
            )
        if decision is None:
            decision = rule_based_route(
                extract_user_query(state.messages), self._config.default_agent
            )

        if not decision.is_finish and await self._guard.is_open(decision.next):
            decision = RoutingDecision(
                next=RouteTarget.FINISH.value,
                reasoning=f"Circuit breaker open for {decision.next}",
                level=decision.level,
            )
        return self._record(state, decision)

    async def route(self, state: WorkflowState) -> StateUpdate:
        """Decide and express the decision as a state update."""
        decision = await self.decide(state)
        return self.as_update(state, decision)

    @staticmethod
    def as_update(state: WorkflowState, decision: RoutingDecision) -> StateUpdate:
        return StateUpdate(next=decision.next, turn_count=state.turn_count + 1)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _classify(
        self,
        provider: BaseLLMProvider,
        breaker_name: str,
        state: WorkflowState,
        level: RoutingLevel,
    ) -> Optional[RoutingDecision]:
        prompt = self._build_prompt(state)
        targets = self.valid_targets

        async def call() -> RoutingDecision:
            response = await provider.generate_with_system(ROUTER_PROMPT, prompt, temperature=0.0)
            chosen, reasoning = parse_routing_answer(response.content, targets)
            return RoutingDecision(next=chosen, reasoning=reasoning, level=level)

        decision = await self._guard.safe_execute(
            breaker_name,
            call,
            fallback=None,
            timeout_seconds=self._config.provider_timeout_seconds,
        )
        if decision is None:
            self._logger.warning("router_tier_failed", level=level.value, provider=breaker_name)
        return decision

    @staticmethod
    def _build_prompt(state: WorkflowState) -> str:
        available = ", ".join(kind.value for kind in state.artifact_store.available()) or "none"
        return (
            f"Conversation (turn {state.turn_count}):\n"
            f"{format_transcript(state.messages, limit=20)}\n\n"
            f"Artifacts available: {available}\n"
            f"Contributors so far: {', '.join(state.contributors) or 'none'}\n\n"
            "Who should act next?"
        )

    def _record(self, state: WorkflowState, decision: RoutingDecision) -> RoutingDecision:
        self._metrics.record(decision.level)
        if self._registry is not None:
            self._registry.inc(ROUTER_DECISIONS, level=decision.level.value)
        self._logger.info(
            "router_decision",
            conversation_id=state.conversation_id,
            turn_count=state.turn_count,
            next_agent=decision.next,
            level=decision.level.value,
            reasoning=decision.reasoning,
        )
        return decision
