"""
hive.orchestration.engine - Turn-by-Turn Workflow Engine
==========================================================

This module implements the WorkflowEngine, the loop that advances one
conversation from the user's request to FINISH, one turn at a time.

Architecture Context:

    ┌──────────────────────────────────────────────────────────────────┐
    │                         WorkflowEngine                           │
    │                                                                  │
    │   state.next == "Router"?                                        │
    │        │ yes                                                     │
    │        ▼                                                         │
    │   [Router.decide] ──FINISH──→ complete event, stop               │
    │        │ agent                                                   │
    │        ▼                                                         │
    │   readiness check (warning only)                                 │
    │        ▼                                                         │
    │   [ResilientCaller.invoke(agent)] ──→ AgentResult                │
    │        ▼                                                         │
    │   merge_state: messages, contributors, artifacts, retries        │
    │        ▼                                                         │
    │   next = self-loop | direct handoff | "Router"                   │
    └──────────────────────────────────────────────────────────────────┘

Turn Accounting:
    ``turn_count`` grows by one for every router decision, every direct
    handoff and every self-loop, so the turn limit bounds a conversation no
    matter which path it takes. When a handoff or self-loop would reach the
    limit the engine sends the conversation back to the router instead,
    which then answers FINISH.

Retry Bookkeeping:
    A failed result (fallback) or an explicit ``needs_retry`` increments
    ``agent_retries[agent]``. While ``check_agent_retries`` stays safe the
    agent runs again (self-loop); once its budget is used up the router
    takes over. A successful, non-retry result resets the agent's count.

Error Containment:
    ``advance()`` never raises for internal failures. An unexpected
    exception becomes an ``error`` event; the turn counter still advances
    and the conversation returns to the router. Only cancellation
    (``RequestCancelledError`` / ``asyncio.CancelledError``) propagates.

External Interface:
    advance(state) -> (state, events)
    is_terminal(state) -> bool
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

import structlog

from hive.agents.registry import AgentCallable, AgentRegistry
from hive.core.enums import EventType, RouteTarget
from hive.core.exceptions import AgentError, HiveError, RequestCancelledError
from hive.core.models import AgentResult, WorkflowEvent
from hive.core.state import StateUpdate, WorkflowState, merge_state
from hive.orchestration.resilient_call import ResilientCaller
from hive.orchestration.router import Router
from hive.orchestration.safety import SafetyGuard


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

ROUTER = RouteTarget.ROUTER.value
FINISH = RouteTarget.FINISH.value


class WorkflowEngine:
    """Advances conversations one turn at a time.

    The engine itself is stateless; everything about a conversation lives in
    the ``WorkflowState`` passed in and returned. One engine can serve many
    concurrent conversations.

    Args:
        router: Tiered next-agent decision.
        caller: Resilient agent invocation.
        registry: Agents by name.
        guard: Turn and retry limits.
    """

    def __init__(
        self,
        router: Router,
        caller: ResilientCaller,
        registry: AgentRegistry,
        guard: SafetyGuard,
    ) -> None:
        self._router = router
        self._caller = caller
        self._registry = registry
        self._guard = guard
        self._logger = logger.bind(component="workflow_engine")

    # =========================================================================
    # Public Interface
    # =========================================================================

    @staticmethod
    def is_terminal(state: WorkflowState) -> bool:
        """True once the conversation reached FINISH."""
        return state.next == FINISH

    async def advance(
        self,
        state: WorkflowState,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> tuple[WorkflowState, list[WorkflowEvent]]:
        """Run one turn.

        Args:
            state: Current conversation state.
            cancel_event: Set by the caller to abort the request.

        Returns:
            The new state and the events produced during the turn.

        Raises:
            RequestCancelledError: ``cancel_event`` was set mid-turn.
        """
        if self.is_terminal(state):
            return state, []

        events: list[WorkflowEvent] = []
        with structlog.contextvars.bound_contextvars(conversation_id=state.conversation_id):
            try:
                if state.next == ROUTER:
                    state = await self._route(state, events)
                    if self.is_terminal(state):
                        return state, events
                state = await self._run_agent(state, events, cancel_event)
            except (RequestCancelledError, asyncio.CancelledError):
                raise
            except Exception as exc:
                state = self._contain(state, events, exc)
        return state, events

    async def run(
        self,
        state: WorkflowState,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[tuple[WorkflowState, WorkflowEvent]]:
        """Advance until FINISH, yielding ``(state_after_turn, event)`` pairs."""
        while not self.is_terminal(state):
            state, events = await self.advance(state, cancel_event=cancel_event)
            for event in events:
                yield state, event

    async def run_to_completion(
        self,
        state: WorkflowState,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> tuple[WorkflowState, list[WorkflowEvent]]:
        """Advance until FINISH and return the final state with every event."""
        all_events: list[WorkflowEvent] = []
        while not self.is_terminal(state):
            state, events = await self.advance(state, cancel_event=cancel_event)
            all_events.extend(events)
        return state, all_events

    # =========================================================================
    # Routing
    # =========================================================================

    async def _route(self, state: WorkflowState, events: list[WorkflowEvent]) -> WorkflowState:
        decision = await self._router.decide(state)
        state = merge_state(state, Router.as_update(state, decision))
        data = {"level": decision.level.value, "reasoning": decision.reasoning}

        if decision.is_finish:
            events.append(self._event(state, EventType.COMPLETE, content=decision.reasoning, data=data))
            self._logger.info(
                "workflow_complete",
                turn_count=state.turn_count,
                contributors=state.contributors,
            )
        else:
            events.append(
                self._event(state, EventType.HANDOFF, from_agent=ROUTER, to_agent=decision.next, data=data)
            )
        return state

    # =========================================================================
    # Agent Turn
    # =========================================================================

    async def _run_agent(
        self,
        state: WorkflowState,
        events: list[WorkflowEvent],
        cancel_event: Optional[asyncio.Event],
    ) -> WorkflowState:
        agent_name = state.next
        agent: Optional[AgentCallable] = self._registry.get(agent_name)
        if agent is None:
            raise AgentError(
                f"No agent registered under {agent_name!r}",
                agent_name=agent_name,
                error_code="AGENT_NOT_FOUND",
            )

        readiness = state.artifact_store.check_readiness(agent_name)
        if not readiness.ready:
            self._logger.warning(
                "artifact_readiness_gap",
                agent_name=agent_name,
                missing=[kind.value for kind in readiness.missing],
            )

        events.append(self._event(state, EventType.AGENT_START, agent=agent_name))
        result = await self._caller.invoke(
            agent_name,
            agent,
            state,
            cancel_event=cancel_event,
            model=self._registry.model_for(agent_name),
        )
        for message in result.messages:
            events.append(self._event(state, EventType.CHUNK, agent=agent_name, content=message.content))

        state = merge_state(state, self._result_update(state, agent_name, result))

        if result.failed:
            events.append(self._event(state, EventType.ERROR, agent=agent_name, content=result.error))
        events.append(
            self._event(
                state,
                EventType.AGENT_END,
                agent=agent_name,
                data={"cached": result.cached, "failed": result.failed},
            )
        )
        if state.next not in (ROUTER, FINISH, agent_name):
            events.append(
                self._event(state, EventType.HANDOFF, from_agent=agent_name, to_agent=state.next)
            )
        return state

    def _result_update(self, state: WorkflowState, agent_name: str, result: AgentResult) -> StateUpdate:
        """Translate an AgentResult into the state update for this turn."""
        fields: dict[str, object] = {
            "messages": result.messages,
            "contributors": result.contributors or [agent_name],
        }

        if result.artifact is not None:
            fields["artifacts"] = [result.artifact]
            fields["artifact_store"] = state.artifact_store.store(result.artifact, agent_name)

        retries = state.agent_retries.get(agent_name, 0)
        if result.failed or result.needs_retry:
            retries += 1
            fields["agent_retries"] = {agent_name: retries}
            fields["needs_retry"] = result.needs_retry
            fields["last_error"] = result.error
            if self._guard.check_agent_retries(agent_name, retries).safe and self._can_take_turn(state):
                fields["next"] = agent_name
                fields["turn_count"] = None
            else:
                fields["next"] = ROUTER
            return StateUpdate(**fields)

        fields["agent_retries"] = {agent_name: 0}
        fields["needs_retry"] = False
        fields["last_error"] = None
        handoff = result.handoff
        if handoff and handoff != agent_name and handoff in self._registry and self._can_take_turn(state):
            fields["next"] = handoff
            fields["turn_count"] = None
        else:
            if handoff and handoff not in self._registry:
                self._logger.warning("unknown_handoff_target", agent_name=agent_name, handoff=handoff)
            fields["next"] = ROUTER
        return StateUpdate(**fields)

    def _can_take_turn(self, state: WorkflowState) -> bool:
        return self._guard.check_turn_limit(state.turn_count + 1).safe

    # =========================================================================
    # Error Containment
    # =========================================================================

    def _contain(
        self,
        state: WorkflowState,
        events: list[WorkflowEvent],
        exc: Exception,
    ) -> WorkflowState:
        agent_name = state.next if state.next not in (ROUTER, FINISH) else None
        self._logger.error(
            "workflow_turn_failed",
            agent_name=agent_name,
            error=str(exc),
            error_type=exc.__class__.__name__,
            exc_info=True,
        )
        error_code = exc.error_code if isinstance(exc, HiveError) else "INTERNAL_ERROR"
        events.append(
            self._event(
                state,
                EventType.ERROR,
                agent=agent_name,
                content=str(exc),
                data={"error_code": error_code, "error_type": exc.__class__.__name__},
            )
        )
        return merge_state(
            state,
            StateUpdate(next=ROUTER, turn_count=None, last_error=str(exc)),
        )

    @staticmethod
    def _event(state: WorkflowState, event_type: EventType, **fields: object) -> WorkflowEvent:
        return WorkflowEvent(
            type=event_type,
            conversation_id=state.conversation_id,
            turn_count=state.turn_count,
            **fields,
        )
