"""
hive.orchestration.checkpoint - Conversation Checkpoints
==========================================================

Stores the last ``WorkflowState`` of each conversation so a follow-up
request with the same ``conversation_id`` resumes with its history,
contributors and artifacts intact.

    ┌──────────────┐   save(state)    ┌──────────────────┐
    │  Hive.run    │ ───────────────→ │                  │
    │              │                  │   Checkpointer   │
    │              │ ←─────────────── │                  │
    └──────────────┘  load(conv_id)   └──────────────────┘

Key Schema:
    One entry per conversation, keyed by ``conversation_id``. Saving again
    replaces the previous checkpoint (last-write-wins).

Implementations:
    - Checkpointer (ABC):      Abstract interface
    - InMemoryCheckpointer:    Dict-based, process-local
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from hive.core.enums import RouteTarget
from hive.core.messages import Message
from hive.core.state import WorkflowState


logger = structlog.get_logger()


# =============================================================================
# Abstract Base Class: Checkpointer
# =============================================================================
class Checkpointer(ABC):
    """Contract for conversation checkpoint storage.

    Example:
        >>> await checkpointer.save(final_state)
        >>> state = await checkpointer.load(final_state.conversation_id)
    """

    @abstractmethod
    async def save(self, state: WorkflowState) -> None:
        """Save (or replace) the checkpoint for ``state.conversation_id``."""

    @abstractmethod
    async def load(self, conversation_id: str) -> Optional[WorkflowState]:
        """Return the checkpoint for a conversation, or None."""

    @abstractmethod
    async def delete(self, conversation_id: str) -> bool:
        """Delete a checkpoint.

        Returns:
            True if a checkpoint existed.
        """

    @abstractmethod
    async def list_ids(self) -> list[str]:
        """Conversation ids with a stored checkpoint."""

    async def resume(
        self,
        conversation_id: str,
        user_message: str,
        entry: str = RouteTarget.ROUTER.value,
    ) -> Optional[WorkflowState]:
        """Start a new request on top of a stored conversation.

        The new request keeps the conversation's messages, contributors and
        artifacts; the turn counter, retry counts and error start fresh.

        Returns:
            The starting state, or None when no checkpoint exists.
        """
        previous = await self.load(conversation_id)
        if previous is None:
            return None
        return previous.model_copy(
            update={
                "messages": [*previous.messages, Message.user(user_message)],
                "next": entry,
                "turn_count": 0,
                "agent_retries": {},
                "needs_retry": False,
                "last_error": None,
            }
        )


# =============================================================================
# InMemoryCheckpointer Implementation
# =============================================================================
class InMemoryCheckpointer(Checkpointer):
    """Dict-backed checkpointer. Data is lost when the process ends.

    Args:
        max_conversations: Oldest checkpoints are dropped beyond this count
            (None keeps everything).
    """

    def __init__(self, max_conversations: Optional[int] = None) -> None:
        self._states: dict[str, WorkflowState] = {}
        self._max = max_conversations
        self._lock = asyncio.Lock()

    async def save(self, state: WorkflowState) -> None:
        async with self._lock:
            self._states.pop(state.conversation_id, None)
            self._states[state.conversation_id] = state
            if self._max is not None:
                while len(self._states) > self._max:
                    dropped = next(iter(self._states))
                    del self._states[dropped]
                    logger.debug("checkpoint_dropped", conversation_id=dropped)
        logger.debug(
            "checkpoint_saved",
            conversation_id=state.conversation_id,
            turn_count=state.turn_count,
            next_agent=state.next,
        )

    async def load(self, conversation_id: str) -> Optional[WorkflowState]:
        async with self._lock:
            return self._states.get(conversation_id)

    async def delete(self, conversation_id: str) -> bool:
        async with self._lock:
            return self._states.pop(conversation_id, None) is not None

    async def list_ids(self) -> list[str]:
        async with self._lock:
            return list(self._states)

    def __len__(self) -> int:
        return len(self._states)
