"""
hive.agents.base - Agent Base Classes
=======================================

An agent is anything the engine can call as ``await agent(state)`` to get an
``AgentResult``. Plain coroutine functions qualify; this module provides the
class-based form used by the built-in specialists.

Template Method Pattern:
    ``BaseAgent.__call__`` owns the steps every agent shares; subclasses
    implement only ``_execute``.

    ┌──────────────────────────────────────────────────────┐
    │  BaseAgent.__call__(state)          ← engine calls   │
    │  ┌───────────────────────────────────────────────┐   │
    │  │ 1. Build the artifact brief for this agent    │   │
    │  │ 2. _execute(state, brief)    ← override this  │   │
    │  │ 3. Attribute messages + contributor           │   │
    │  └───────────────────────────────────────────────┘   │
    └──────────────────────────────────────────────────────┘

    Errors raised by ``_execute`` propagate: retries, fallbacks and breaker
    bookkeeping belong to the resilient call wrapper, not to the agent.

Response Conventions (SpecialistAgent):
    A specialist's reply is markdown shown to the user, optionally carrying:

        ```json
        {"kind": "TechPlan", "title": "...", ...}      → artifact
        ```
        Handoff: Security                              → direct handoff
        Status: needs_retry                            → ask to run again
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Optional

import structlog
from pydantic import ValidationError

from hive.core.artifacts import Artifact, parse_artifact
from hive.core.enums import ArtifactKind
from hive.core.messages import Message, format_transcript
from hive.core.models import AgentResult
from hive.core.state import WorkflowState
from hive.integrations.llm.base import BaseLLMProvider


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

_JSON_BLOCK = re.compile(r"```json\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)
_HANDOFF_LINE = re.compile(r"^\s*handoff:\s*([A-Za-z]+)\s*$", re.MULTILINE | re.IGNORECASE)
_RETRY_LINE = re.compile(r"^\s*status:\s*needs_retry\s*$", re.MULTILINE | re.IGNORECASE)


class BaseAgent(ABC):
    """Abstract base class for class-based agents.

    Attributes:
        name: Agent name (routing target, message attribution).
        produces: Artifact kind this agent writes, if any.
    """

    def __init__(self, name: str, produces: Optional[ArtifactKind] = None) -> None:
        self.name = name
        self.produces = produces
        self._logger = logger.bind(component="agent", agent_name=name)

    @property
    def model(self) -> Optional[str]:
        """Model identifier used for cache keys (None when not model-backed)."""
        return None

    async def __call__(self, state: WorkflowState) -> AgentResult:
        brief = state.artifact_store.format_context()
        result = await self._execute(state, brief)

        messages = [
            message if message.name else Message.from_agent(self.name, message.content)
            for message in result.messages
        ]
        contributors = result.contributors or [self.name]
        return result.model_copy(update={"messages": messages, "contributors": contributors})

    @abstractmethod
    async def _execute(self, state: WorkflowState, brief: str) -> AgentResult:
        """Agent-specific work.

        Args:
            state: Current workflow state.
            brief: Artifact summary from ``ArtifactStore.format_context()``
                ("" when no artifacts exist yet).
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class SpecialistAgent(BaseAgent):
    """An LLM-backed specialist defined by a role prompt.

    Example:
        >>> planner = SpecialistAgent(
        ...     "Planner", "You turn PRDs and designs into plans.", provider,
        ...     produces=ArtifactKind.TECH_PLAN,
        ... )
        >>> result = await planner(state)
    """

    def __init__(
        self,
        name: str,
        role_prompt: str,
        provider: BaseLLMProvider,
        produces: Optional[ArtifactKind] = None,
        history_limit: int = 30,
    ) -> None:
        super().__init__(name, produces)
        self.role_prompt = role_prompt
        self._provider = provider
        self._history_limit = history_limit

    @property
    def model(self) -> Optional[str]:
        return self._provider.model

    async def _execute(self, state: WorkflowState, brief: str) -> AgentResult:
        response = await self._provider.generate_with_system(
            self._system_prompt(brief),
            format_transcript(state.messages, limit=self._history_limit),
        )
        content = response.content
        handoff = _HANDOFF_LINE.search(content)
        return AgentResult(
            messages=[Message.from_agent(self.name, content)],
            contributors=[self.name],
            artifact=self._extract_artifact(content),
            handoff=handoff.group(1) if handoff else None,
            needs_retry=bool(_RETRY_LINE.search(content)),
            tokens_used=response.usage.total_tokens,
        )

    def _system_prompt(self, brief: str) -> str:
        parts = [f"You are the {self.name} on the HIVE product team.", self.role_prompt]
        if self.produces is not None:
            parts.append(
                f"Include your {self.produces.value} as a ```json block with "
                f'"kind": "{self.produces.value}".'
            )
        if brief:
            parts.append(brief)
        return "\n\n".join(parts)

    def _extract_artifact(self, content: str) -> Optional[Artifact]:
        if self.produces is None:
            return None
        for block in _JSON_BLOCK.findall(content):
            try:
                payload = json.loads(block)
            except ValueError:
                continue
            if not isinstance(payload, dict):
                continue
            payload.setdefault("kind", self.produces.value)
            if payload["kind"] != self.produces.value:
                continue
            try:
                return parse_artifact(payload)
            except ValidationError as exc:
                self._logger.warning(
                    "artifact_invalid",
                    kind=self.produces.value,
                    errors=exc.error_count(),
                )
        return None
