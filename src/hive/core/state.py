"""
hive.core.state - Workflow State and Reducers
===============================================

This module defines the single record threaded through every turn of a
conversation (``WorkflowState``), the partial update agents and the router
return (``StateUpdate``), and the pure ``merge_state`` function that folds
one into the other.

Merge Table (single source of truth):

    Field            Merge rule
    ───────────────  ─────────────────────────────────────────────────────
    messages         append
    next             last-write-wins
    contributors     union, in order of first appearance
    artifacts        append (legacy log of every artifact ever produced)
    artifact_store   shallow merge by slot
    turn_count       present with None → current + 1
                     present with a value → that value (must not decrease)
    agent_retries    per-key merge
    needs_retry      last-write-wins
    last_error       last-write-wins

    A field is "present" when it was passed to the ``StateUpdate``
    constructor, even if its value is None (pydantic's ``model_fields_set``).
    Absent fields leave the state untouched.

Invariants:
    - ``turn_count`` never decreases.
    - ``contributors`` never shrinks.
    - ``merge_state`` never mutates its inputs; replaying the same updates
      from the same state always yields an equal result.
"""

from __future__ import annotations

from typing import Optional, Sequence
from uuid import uuid4

from pydantic import BaseModel, Field

from hive.core.artifacts import Artifact
from hive.core.enums import RouteTarget
from hive.core.exceptions import StateError
from hive.core.messages import Message
from hive.infrastructure.artifact_store import ArtifactStore


def _generate_conversation_id() -> str:
    return f"conv-{uuid4()}"


# =============================================================================
# WorkflowState
# =============================================================================
class WorkflowState(BaseModel):
    """The versioned record of one conversation.

    Frozen: use ``merge_state`` (or ``model_copy``) to derive a new state.

    Attributes:
        conversation_id: Identity of the workflow instance.
        messages: Full conversation history, oldest first.
        next: Who runs next: an agent name, "Router" or "FINISH".
        contributors: Agents that have spoken, in order of first output.
        artifacts: Every artifact ever produced (append-only log).
        artifact_store: Current artifact per kind.
        turn_count: Number of turns taken (router decisions + handoffs).
        agent_retries: Consecutive failed/retried runs per agent.
        needs_retry: Set by an agent that wants to run again.
        last_error: Diagnostic of the latest failure, if any.
    """

    conversation_id: str = Field(default_factory=_generate_conversation_id)
    messages: list[Message] = Field(default_factory=list)
    next: str = Field(default=RouteTarget.ROUTER.value)
    contributors: list[str] = Field(default_factory=list)
    artifacts: list[Artifact] = Field(default_factory=list)
    artifact_store: ArtifactStore = Field(default_factory=ArtifactStore)
    turn_count: int = Field(default=0, ge=0)
    agent_retries: dict[str, int] = Field(default_factory=dict)
    needs_retry: bool = False
    last_error: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def is_finished(self) -> bool:
        return self.next == RouteTarget.FINISH.value


# =============================================================================
# StateUpdate
# =============================================================================
class StateUpdate(BaseModel):
    """A partial update to a WorkflowState.

    Only fields passed explicitly are applied; see the merge table above.

    Example:
        >>> StateUpdate(next="Planner", turn_count=None)  # route + increment
        >>> StateUpdate(messages=[msg], contributors=["Designer"])
    """

    messages: Optional[list[Message]] = None
    next: Optional[str] = None
    contributors: Optional[list[str]] = None
    artifacts: Optional[list[Artifact]] = None
    artifact_store: Optional[ArtifactStore] = None
    turn_count: Optional[int] = None
    agent_retries: Optional[dict[str, int]] = None
    needs_retry: Optional[bool] = None
    last_error: Optional[str] = None


def _ordered_union(existing: Sequence[str], incoming: Sequence[str]) -> list[str]:
    merged = list(existing)
    for name in incoming:
        if name not in merged:
            merged.append(name)
    return merged


# =============================================================================
# Reducer
# =============================================================================
def merge_state(state: WorkflowState, update: StateUpdate) -> WorkflowState:
    """Apply a partial update to a state, returning a new state.

    Pure: neither argument is modified.

    Args:
        state: The prior state.
        update: The partial update.

    Returns:
        The merged state.

    Raises:
        StateError: If the update would lower ``turn_count``.
    """
    present = update.model_fields_set
    changes: dict[str, object] = {}

    if "messages" in present and update.messages:
        changes["messages"] = [*state.messages, *update.messages]

    if "next" in present and update.next is not None:
        changes["next"] = update.next

    if "contributors" in present and update.contributors:
        changes["contributors"] = _ordered_union(state.contributors, update.contributors)

    if "artifacts" in present and update.artifacts:
        changes["artifacts"] = [*state.artifacts, *update.artifacts]

    if "artifact_store" in present and update.artifact_store is not None:
        changes["artifact_store"] = state.artifact_store.merge(update.artifact_store)

    if "turn_count" in present:
        if update.turn_count is None:
            changes["turn_count"] = state.turn_count + 1
        elif update.turn_count < state.turn_count:
            raise StateError(
                message="turn_count cannot decrease",
                error_code="TURN_COUNT_DECREASED",
                details={"current": state.turn_count, "requested": update.turn_count},
            )
        else:
            changes["turn_count"] = update.turn_count

    if "agent_retries" in present and update.agent_retries is not None:
        changes["agent_retries"] = {**state.agent_retries, **update.agent_retries}

    if "needs_retry" in present and update.needs_retry is not None:
        changes["needs_retry"] = update.needs_retry

    if "last_error" in present:
        changes["last_error"] = update.last_error

    if not changes:
        return state
    return state.model_copy(update=changes)


def initial_state(
    user_message: str,
    history: Optional[Sequence[Message]] = None,
    conversation_id: Optional[str] = None,
    entry: str = RouteTarget.ROUTER.value,
) -> WorkflowState:
    """Build the starting state for a new request.

    Args:
        user_message: The new user request.
        history: Prior messages of the conversation, oldest first.
        conversation_id: Existing id to continue; a new one is generated
            when None.
        entry: Initial ``next`` value ("Router" asks the router first).
    """
    messages = [*(history or []), Message.user(user_message)]
    fields: dict[str, object] = {"messages": messages, "next": entry}
    if conversation_id is not None:
        fields["conversation_id"] = conversation_id
    return WorkflowState(**fields)
