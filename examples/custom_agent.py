"""
Custom Agent Example — Extending BaseAgent
=============================================

This example shows the two ways to add an agent to HIVE:

    1. Subclass ``BaseAgent`` and implement ``_execute(state, brief)``.
       The base class builds the artifact brief and attributes the reply.
    2. Register any coroutine ``async def agent(state) -> AgentResult``.

Registered agents become routing targets immediately. Here the keyword
router sends "write the docs" to the TechWriter, which we replace with a
custom DocumentationAgent that hands off to a plain-function Reviewer.

Usage:
    python examples/custom_agent.py
"""

from __future__ import annotations

import asyncio

from hive import Hive
from hive.agents.base import BaseAgent
from hive.agents.registry import AgentRegistry
from hive.core.config import HiveConfig, SafetyConfig
from hive.core.messages import Message, extract_user_query
from hive.core.models import AgentResult
from hive.core.state import WorkflowState
from hive.infrastructure.logging import configure_logging
from hive.integrations.llm.base import BaseLLMProvider
from hive.integrations.llm.mock import MockLLMProvider


# =============================================================================
# Custom Agent: DocumentationAgent
# =============================================================================
class DocumentationAgent(BaseAgent):
    """Writes user documentation for the current request.

    Hands off to the Reviewer when it is done.
    """

    def __init__(self, provider: BaseLLMProvider) -> None:
        super().__init__("TechWriter")
        self._provider = provider

    @property
    def model(self) -> str:
        return self._provider.model

    async def _execute(self, state: WorkflowState, brief: str) -> AgentResult:
        system_prompt = (
            "You are a technical writer. Produce clear Markdown documentation "
            "for what the team has built.\n\n" + brief
        )
        response = await self._provider.generate_with_system(
            system_prompt,
            extract_user_query(state.messages),
        )
        return AgentResult(
            messages=[Message.from_agent(self.name, response.content)],
            handoff="Reviewer",
            tokens_used=response.usage.total_tokens,
        )


async def reviewer(state: WorkflowState) -> AgentResult:
    """Plain-function agent: approves whatever the writer produced."""
    author = state.messages[-1].name or "the user"
    return AgentResult(
        messages=[Message.from_agent("Reviewer", f"Approved the docs from {author}.")],
        contributors=["Reviewer"],
    )


# =============================================================================
# Main
# =============================================================================

async def main() -> None:
    """Register the custom agents and run one request."""
    configure_logging(level="WARNING")

    provider = MockLLMProvider()
    provider.queue_response("# Fibonacci\n\n`fibonacci(n)` returns the first n numbers.")

    config = HiveConfig(safety=SafetyConfig(max_turns=3))
    async with Hive(config, provider=provider, registry=AgentRegistry()) as hive:
        hive.register_agent("TechWriter", DocumentationAgent(provider))
        hive.register_agent("Reviewer", reviewer)

        print("Custom Agents — Documentation Flow")
        print("-" * 45)
        async for event in hive.run([], "Write the docs for fibonacci"):
            if event.content:
                label = event.agent or event.type.value
                print(f"[{event.type.value:9s}] {label}: {event.content.splitlines()[0]}")


if __name__ == "__main__":
    asyncio.run(main())
