"""
hive.agents.registry - Agent Registry and Default Team
========================================================

The engine looks agents up by name in an ``AgentRegistry``. Anything
awaitable as ``agent(state) -> AgentResult`` can be registered, so tests and
integrators can drop in plain coroutine functions next to the built-in
specialists.

Default Team:
    ``build_default_registry(provider)`` registers all thirteen specialists
    as ``SpecialistAgent`` instances sharing one provider. Role prompts are
    short data strings; the product-specific prompt content is expected to be
    supplied by the deployment.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Iterator, Optional

import structlog

from hive.agents.base import SpecialistAgent
from hive.core.enums import AgentName, ArtifactKind
from hive.core.models import AgentResult
from hive.core.state import WorkflowState
from hive.integrations.llm.base import BaseLLMProvider


logger = structlog.get_logger()

AgentCallable = Callable[[WorkflowState], Awaitable[AgentResult]]


PRODUCED_ARTIFACTS: dict[AgentName, ArtifactKind] = {
    AgentName.PRODUCT_MANAGER: ArtifactKind.PRD,
    AgentName.DESIGNER: ArtifactKind.DESIGN_SPEC,
    AgentName.PLANNER: ArtifactKind.TECH_PLAN,
    AgentName.SECURITY: ArtifactKind.SECURITY_REVIEW,
    AgentName.TESTER: ArtifactKind.TEST_PLAN,
    AgentName.REVIEWER: ArtifactKind.CODE_REVIEW,
}

DEFAULT_ROLE_PROMPTS: dict[AgentName, str] = {
    AgentName.FOUNDER: "Sharpen the product vision, target market and business model.",
    AgentName.PRODUCT_MANAGER: "Turn the request into a PRD with user stories and success metrics.",
    AgentName.UX_RESEARCHER: "Identify users, personas and the research questions worth answering.",
    AgentName.DESIGNER: "Design the user flow and UI components that satisfy the PRD.",
    AgentName.ACCESSIBILITY: "Review the design against WCAG 2.1 AA and list concrete fixes.",
    AgentName.PLANNER: "Produce an architecture and an ordered implementation plan.",
    AgentName.SECURITY: "Threat-model the plan and list vulnerabilities with recommendations.",
    AgentName.BUILDER: "Write the code described by the plan and design.",
    AgentName.REVIEWER: "Review the code and give a verdict with must-fix issues.",
    AgentName.TESTER: "Write a test plan with concrete test cases and edge cases.",
    AgentName.TECH_WRITER: "Write user and developer documentation for what was built.",
    AgentName.SRE: "Plan deployment, CI/CD, monitoring and incident response.",
    AgentName.DATA_ANALYST: "Define the analytics events, KPIs and dashboards to track.",
}


class AgentRegistry:
    """Name → agent callable mapping.

    Example:
        >>> registry = AgentRegistry()
        >>> registry.register("Echo", echo_agent, model="none")
        >>> "Echo" in registry
        True
    """

    def __init__(self) -> None:
        self._agents: dict[str, AgentCallable] = {}
        self._models: dict[str, Optional[str]] = {}

    def register(self, name: str, agent: AgentCallable, model: Optional[str] = None) -> None:
        """Register (or replace) an agent.

        Args:
            name: Routing name.
            agent: ``agent(state) -> AgentResult`` coroutine callable.
            model: Model identifier for cache keys. Defaults to the agent's
                ``model`` attribute when it has one.
        """
        if name in self._agents:
            logger.info("agent_replaced", agent_name=name)
        self._agents[name] = agent
        self._models[name] = model or getattr(agent, "model", None)

    def unregister(self, name: str) -> bool:
        self._models.pop(name, None)
        return self._agents.pop(name, None) is not None

    def get(self, name: str) -> Optional[AgentCallable]:
        return self._agents.get(name)

    def model_for(self, name: str) -> Optional[str]:
        return self._models.get(name)

    def names(self) -> list[str]:
        return list(self._agents)

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __iter__(self) -> Iterator[str]:
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)


def build_default_registry(provider: BaseLLMProvider) -> AgentRegistry:
    """Register the thirteen default specialists on one provider."""
    registry = AgentRegistry()
    for agent_name in AgentName:
        registry.register(
            agent_name.value,
            SpecialistAgent(
                agent_name.value,
                DEFAULT_ROLE_PROMPTS[agent_name],
                provider,
                produces=PRODUCED_ARTIFACTS.get(agent_name),
            ),
        )
    return registry
