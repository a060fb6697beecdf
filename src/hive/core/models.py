"""
hive.core.models - Agent Results and Workflow Events
======================================================

Two data contracts cross the boundary of the orchestration core:

    AgentResult    What an agent function returns for one invocation.
                   The engine converts it into a StateUpdate.

    WorkflowEvent  What the engine emits as the conversation advances.
                   The request-handling layer turns these into its own
                   wire format (SSE frames, websocket messages, ...).

    ┌───────────┐   AgentResult   ┌────────────────┐  WorkflowEvent[]  ┌───────────┐
    │   Agent   │ ──────────────→ │ WorkflowEngine │ ────────────────→ │ Transport │
    └───────────┘                 └────────────────┘                   └───────────┘
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from hive.core.artifacts import Artifact
from hive.core.enums import EventType
from hive.core.messages import Message


# =============================================================================
# AgentResult
# =============================================================================
class AgentResult(BaseModel):
    """Output of a single agent invocation.

    Attributes:
        messages: Messages to append (normally one, attributed to the agent).
        contributors: Agents to record as contributors.
        artifact: Structured document produced this turn, if any.
        handoff: Agent to run next without consulting the router.
        needs_retry: The agent wants another pass at its own output.
        error: Diagnostic when this result is a fallback for a failure.
        tokens_used: Estimated token usage (for cost metrics).
        cached: True when served from the response cache.

    Example:
        >>> AgentResult(
        ...     messages=[Message.from_agent("Planner", "Plan ready")],
        ...     contributors=["Planner"],
        ...     handoff="Security",
        ... )
    """

    messages: list[Message] = Field(default_factory=list)
    contributors: list[str] = Field(default_factory=list)
    artifact: Optional[Artifact] = None
    handoff: Optional[str] = None
    needs_retry: bool = False
    error: Optional[str] = None
    tokens_used: int = Field(default=0, ge=0)
    cached: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


# =============================================================================
# WorkflowEvent
# =============================================================================
class WorkflowEvent(BaseModel):
    """A structured event describing progress of a conversation.

    Attributes:
        type: Event kind (agent_start, chunk, handoff, agent_end,
            complete, error).
        conversation_id: Conversation the event belongs to.
        agent: Agent the event is about (start/chunk/end/error).
        from_agent: Source of a handoff.
        to_agent: Target of a handoff.
        content: Chunk text, or the error diagnostic.
        turn_count: Turn counter at the time of the event.
        data: Extra structured fields (routing level, reasoning, ...).
        timestamp: Creation time (UTC).
    """

    type: EventType
    conversation_id: str
    agent: Optional[str] = None
    from_agent: Optional[str] = None
    to_agent: Optional[str] = None
    content: Optional[str] = None
    turn_count: int = 0
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
