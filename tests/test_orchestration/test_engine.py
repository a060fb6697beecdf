"""
Tests for hive.orchestration.engine
=====================================

These tests drive the WorkflowEngine with scripted agents and the
keyword-only router fixture, so every decision is deterministic.

What's Being Tested:
    - Routing turn: handoff event, turn_count + 1, agent runs in the same advance
    - FINISH: complete event, terminal state, advance() is then a no-op
    - Direct handoffs between agents (counted as turns)
    - Self-loops on needs_retry, bounded by the retry budget
    - Failures: fallback text in the transcript, error event, back to router
    - Artifacts: stored in the store and appended to the log
    - Error containment: unknown agent becomes an error event
    - Cancellation propagates
    - run() / run_to_completion() terminate under the turn limit
"""

import asyncio

import pytest

from hive.core.enums import ArtifactKind, EventType
from hive.core.exceptions import RequestCancelledError
from hive.core.messages import Message
from hive.core.state import WorkflowState, initial_state
from tests.conftest import failing_agent, make_agent, sample_tech_plan


def _types(events) -> list[EventType]:
    return [event.type for event in events]


# =============================================================================
# Test: Routing Turn
# =============================================================================
class TestRoutingTurn:
    """Tests for a turn that starts at the router."""

    async def test_router_then_agent_in_one_advance(self, engine, registry) -> None:
        registry.register("Builder", make_agent("Builder", "code written"))
        state = initial_state("please build a login form")

        state, events = await engine.advance(state)

        assert _types(events) == [
            EventType.HANDOFF,
            EventType.AGENT_START,
            EventType.CHUNK,
            EventType.AGENT_END,
        ]
        assert events[0].from_agent == "Router"
        assert events[0].to_agent == "Builder"
        assert events[0].data["level"] == "level2"
        assert events[2].content == "code written"
        assert state.turn_count == 1
        assert state.next == "Router"
        assert state.contributors == ["Builder"]
        assert state.messages[-1].name == "Builder"
        assert all(event.conversation_id == state.conversation_id for event in events)

    async def test_finish_emits_complete(self, engine) -> None:
        state = WorkflowState(messages=[Message.user("build it")], turn_count=50)

        state, events = await engine.advance(state)

        assert _types(events) == [EventType.COMPLETE]
        assert events[0].data["level"] == "level3"
        assert engine.is_terminal(state)
        assert state.turn_count == 51

    async def test_advance_on_terminal_state_is_noop(self, engine) -> None:
        state = WorkflowState(messages=[Message.user("x")], next="FINISH")
        new_state, events = await engine.advance(state)
        assert new_state is state
        assert events == []

    def test_is_terminal(self, engine) -> None:
        assert engine.is_terminal(WorkflowState(next="FINISH")) is True
        assert engine.is_terminal(WorkflowState(next="Router")) is False
        assert engine.is_terminal(WorkflowState(next="Builder")) is False


# =============================================================================
# Test: Direct Handoffs
# =============================================================================
class TestHandoffs:
    """Tests for agent-to-agent handoffs."""

    async def test_handoff_skips_router_and_counts_a_turn(self, engine, registry) -> None:
        designer_calls: list[WorkflowState] = []
        registry.register("ProductManager", make_agent("ProductManager", "PRD drafted", handoff="Designer"))
        registry.register("Designer", make_agent("Designer", "mockups", calls=designer_calls))

        state, events = await engine.advance(initial_state("hello"))

        assert events[-1].type == EventType.HANDOFF
        assert events[-1].from_agent == "ProductManager"
        assert events[-1].to_agent == "Designer"
        assert state.next == "Designer"
        assert state.turn_count == 2

        state, events = await engine.advance(state)

        assert events[0].type == EventType.AGENT_START
        assert events[0].agent == "Designer"
        assert len(designer_calls) == 1
        assert state.turn_count == 2
        assert state.contributors == ["ProductManager", "Designer"]

    async def test_unknown_handoff_goes_to_router(self, engine, registry) -> None:
        registry.register("Planner", make_agent("Planner", handoff="Intern"))
        state = WorkflowState(messages=[Message.user("plan")], next="Planner")

        state, events = await engine.advance(state)

        assert state.next == "Router"
        assert EventType.HANDOFF not in _types(events)

    async def test_handoff_to_self_goes_to_router(self, engine, registry) -> None:
        registry.register("Planner", make_agent("Planner", handoff="Planner"))
        state = WorkflowState(messages=[Message.user("plan")], next="Planner")

        state, _ = await engine.advance(state)

        assert state.next == "Router"
        assert state.turn_count == 0

    async def test_handoff_at_turn_limit_goes_to_router(self, engine, registry) -> None:
        registry.register("ProductManager", make_agent("ProductManager", handoff="Designer"))
        registry.register("Designer", make_agent("Designer"))
        state = WorkflowState(messages=[Message.user("x")], next="ProductManager", turn_count=49)

        state, _ = await engine.advance(state)

        assert state.next == "Router"
        assert state.turn_count == 49


# =============================================================================
# Test: Retries and Failures
# =============================================================================
class TestRetries:
    """Tests for self-loops and failure handling."""

    async def test_builder_self_loops_until_budget_spent(self, engine, registry) -> None:
        calls: list[WorkflowState] = []
        registry.register("Builder", make_agent("Builder", "still failing", needs_retry=True, calls=calls))
        state = WorkflowState(messages=[Message.user("build")], next="Builder")

        state, _ = await engine.advance(state)
        assert (state.next, state.turn_count, state.agent_retries["Builder"]) == ("Builder", 1, 1)

        state, _ = await engine.advance(state)
        assert (state.next, state.turn_count, state.agent_retries["Builder"]) == ("Builder", 2, 2)

        state, _ = await engine.advance(state)
        assert (state.next, state.turn_count, state.agent_retries["Builder"]) == ("Router", 2, 3)
        assert state.needs_retry is True
        assert len(calls) == 3

    async def test_failed_agent_returns_to_router_with_fallback(self, engine, registry, sleeper) -> None:
        registry.register("Planner", failing_agent("provider exploded"))
        state = WorkflowState(messages=[Message.user("plan")], next="Planner")

        state, events = await engine.advance(state)

        assert _types(events) == [
            EventType.AGENT_START,
            EventType.CHUNK,
            EventType.ERROR,
            EventType.AGENT_END,
        ]
        assert events[2].content == "provider exploded"
        assert events[-1].data == {"cached": False, "failed": True}
        assert "**[Planner Error]**" in state.messages[-1].content
        assert state.contributors == ["Planner"]
        assert state.next == "Router"
        assert state.agent_retries["Planner"] == 1
        assert state.last_error == "provider exploded"
        assert sleeper.delays == [1.0]

    async def test_success_resets_retry_count(self, engine, registry) -> None:
        registry.register("Tester", make_agent("Tester", "all green"))
        state = WorkflowState(
            messages=[Message.user("test")],
            next="Tester",
            agent_retries={"Tester": 2},
            needs_retry=True,
            last_error="flaky",
        )

        state, _ = await engine.advance(state)

        assert state.agent_retries["Tester"] == 0
        assert state.needs_retry is False
        assert state.last_error is None


# =============================================================================
# Test: Artifacts and Cache
# =============================================================================
class TestArtifactsAndCache:
    """Tests for artifact storage and cached results."""

    async def test_artifact_stored_and_logged(self, engine, registry) -> None:
        registry.register("Planner", make_agent("Planner", "plan attached", artifact=sample_tech_plan()))
        state = WorkflowState(messages=[Message.user("plan the todo app")], next="Planner")

        state, _ = await engine.advance(state)

        assert state.artifact_store.tech_plan.title == "Todo Plan"
        assert state.artifact_store.producers[ArtifactKind.TECH_PLAN] == "Planner"
        assert len(state.artifacts) == 1

    async def test_cached_result_flagged_on_agent_end(self, engine, registry, caller) -> None:
        calls: list[WorkflowState] = []
        registry.register("Planner", make_agent("Planner", "plan", calls=calls))
        state = WorkflowState(messages=[Message.user("plan the todo app")], next="Planner")

        await engine.advance(state)
        await caller.drain()
        _, events = await engine.advance(state)

        assert len(calls) == 1
        assert events[-1].data["cached"] is True


# =============================================================================
# Test: Containment and Cancellation
# =============================================================================
class TestContainment:
    """Tests for internal errors and aborts."""

    async def test_unknown_agent_becomes_error_event(self, engine) -> None:
        state = WorkflowState(messages=[Message.user("x")], next="Ghost", turn_count=3)

        state, events = await engine.advance(state)

        assert _types(events) == [EventType.ERROR]
        assert events[0].agent == "Ghost"
        assert "Ghost" in events[0].content
        assert events[0].data == {"error_code": "AGENT_NOT_FOUND", "error_type": "AgentError"}
        assert state.next == "Router"
        assert state.turn_count == 4
        assert "Ghost" in state.last_error

    async def test_cancellation_propagates(self, engine, registry) -> None:
        registry.register("Planner", make_agent("Planner"))
        cancel = asyncio.Event()
        cancel.set()
        state = WorkflowState(messages=[Message.user("plan")], next="Planner")

        with pytest.raises(RequestCancelledError):
            await engine.advance(state, cancel_event=cancel)


# =============================================================================
# Test: Full Runs
# =============================================================================
class TestRuns:
    """Tests for run() and run_to_completion()."""

    async def test_run_to_completion_stops_at_turn_limit(self, engine, registry) -> None:
        """Keyword routing keeps choosing Builder; the turn limit ends the run."""
        calls: list[WorkflowState] = []
        registry.register("Builder", make_agent("Builder", calls=calls))

        state, events = await engine.run_to_completion(initial_state("please build a login form"))

        assert engine.is_terminal(state)
        assert len(calls) == 50
        assert state.turn_count == 51
        assert events[-1].type == EventType.COMPLETE
        assert events[-1].data["level"] == "level3"

    async def test_run_yields_state_with_each_event(self, engine, registry, guard) -> None:
        registry.register("Builder", make_agent("Builder"))
        for _ in range(3):
            await guard.record_failure("Builder")

        pairs = [pair async for pair in engine.run(initial_state("please build a login form"))]

        assert len(pairs) == 1
        final_state, event = pairs[0]
        assert event.type == EventType.COMPLETE
        assert "Circuit breaker open for Builder" in event.content
        assert engine.is_terminal(final_state)
