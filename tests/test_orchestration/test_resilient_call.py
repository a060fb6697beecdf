"""
Tests for hive.orchestration.resilient_call
=============================================

What's Being Tested:
    - Success path: result returned, breaker success, metrics, cache write
    - Cache: hits skip the call and are flagged ``cached``; non-cacheable
      agents and ``skip_cache`` always call through
    - Retries: linear backoff between attempts, failure recorded per attempt
    - Fallback: attributed in-band message, never raises
    - Breaker open: no call, immediate fallback; a breaker opened by one
      attempt stops the remaining attempts
    - Cancellation: cancel_event stops the retry loop
"""

import asyncio

import pytest

from hive.core.config import ResilienceConfig, SafetyConfig
from hive.core.exceptions import RequestCancelledError
from hive.core.messages import Message
from hive.core.models import AgentResult
from hive.core.state import WorkflowState
from hive.infrastructure.observability import (
    AGENT_DURATION,
    AGENT_FALLBACKS,
    AGENT_INVOCATIONS,
)
from hive.orchestration.resilient_call import ResilientCaller, build_fallback
from hive.orchestration.safety import SafetyGuard
from tests.conftest import failing_agent, make_agent


def _state(query: str = "plan a todo app") -> WorkflowState:
    return WorkflowState(messages=[Message.user(query)])


# =============================================================================
# Test: build_fallback
# =============================================================================
class TestBuildFallback:
    """Tests for the in-band fallback result."""

    def test_fallback_shape(self) -> None:
        result = build_fallback(
            "Builder",
            "Builder timed out after 60s",
            "I encountered an error processing this request.",
        )
        assert result.messages[0].content == (
            "**[Builder Error]**: I encountered an error processing this request.\n\n"
            "_Error: Builder timed out after 60s_"
        )
        assert result.messages[0].name == "Builder"
        assert result.contributors == ["Builder"]
        assert result.failed is True


# =============================================================================
# Test: Success Path
# =============================================================================
class TestSuccess:
    """Tests for calls that succeed."""

    async def test_returns_agent_result(self, caller, metrics, tracer) -> None:
        result = await caller.invoke("Planner", make_agent("Planner", "plan ready"), _state())

        assert result.messages[0].content == "plan ready"
        assert result.cached is False
        assert metrics.get(AGENT_INVOCATIONS, agent="Planner") == 1
        assert metrics.histogram_count(AGENT_DURATION, agent="Planner") == 1
        span = tracer.finished_spans[-1]
        assert span.name == "hive.agent.Planner"
        assert span.attributes["agent.name"] == "Planner"
        assert span.attributes["cache.hit"] is False

    async def test_succeeds_on_second_attempt(self, caller, guard, sleeper) -> None:
        attempts = []

        async def flaky(state: WorkflowState) -> AgentResult:
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("transient")
            return AgentResult(messages=[Message.from_agent("Planner", "ok")], contributors=["Planner"])

        result = await caller.invoke("Planner", flaky, _state())

        assert result.failed is False
        assert len(attempts) == 2
        assert sleeper.delays == [1.0]
        assert guard.breaker("Planner").failure_count == 0


# =============================================================================
# Test: Cache Integration
# =============================================================================
class TestCaching:
    """Tests for cache reads and writes around the call."""

    async def test_second_call_served_from_cache(self, caller, metrics, tracer) -> None:
        calls: list[WorkflowState] = []
        agent = make_agent("Planner", "plan ready", calls=calls)

        await caller.invoke("Planner", agent, _state())
        await caller.drain()
        second = await caller.invoke("Planner", agent, _state())

        assert len(calls) == 1
        assert second.cached is True
        assert second.messages[0].content == "plan ready"
        assert metrics.get(AGENT_INVOCATIONS, agent="Planner") == 2
        assert tracer.finished_spans[-1].attributes["cache.hit"] is True

    async def test_cache_key_uses_model(self, caller) -> None:
        calls: list[WorkflowState] = []
        agent = make_agent("Planner", "plan", calls=calls)

        await caller.invoke("Planner", agent, _state(), model="model-a")
        await caller.drain()
        await caller.invoke("Planner", agent, _state(), model="model-b")

        assert len(calls) == 2

    async def test_non_cacheable_agent_always_called(self, caller) -> None:
        calls: list[WorkflowState] = []
        agent = make_agent("Builder", "code", calls=calls)

        await caller.invoke("Builder", agent, _state())
        await caller.drain()
        await caller.invoke("Builder", agent, _state())

        assert len(calls) == 2

    async def test_skip_cache(self, caller) -> None:
        calls: list[WorkflowState] = []
        agent = make_agent("Planner", "plan", calls=calls)

        await caller.invoke("Planner", agent, _state())
        await caller.drain()
        await caller.invoke("Planner", agent, _state(), skip_cache=True)

        assert len(calls) == 2

    async def test_fallbacks_are_not_cached(self, caller, cache) -> None:
        await caller.invoke("Planner", failing_agent(), _state())
        await caller.drain()
        assert len(cache) == 0


# =============================================================================
# Test: Fallback
# =============================================================================
class TestFallback:
    """Tests for exhausted calls."""

    async def test_always_failing_agent_yields_fallback(self, caller, metrics, sleeper) -> None:
        """Two attempts, then an attributed fallback; nothing is raised."""
        calls: list[WorkflowState] = []

        result = await caller.invoke("Builder", failing_agent("compile error", calls), _state())

        assert len(calls) == 2
        assert result.contributors == ["Builder"]
        assert "[Builder Error]" in result.messages[0].content
        assert "compile error" in result.messages[0].content
        assert result.error == "compile error"
        assert sleeper.delays == [1.0]
        assert metrics.get(AGENT_FALLBACKS, agent="Builder") == 1

    async def test_failure_recorded_per_attempt(self, caller, guard) -> None:
        await caller.invoke("Planner", failing_agent(), _state())
        assert guard.breaker("Planner").failure_count == 2

    async def test_linear_backoff(self, cache, sleeper) -> None:
        caller = ResilientCaller(
            SafetyGuard(SafetyConfig(max_agent_retries=10)),
            cache=cache,
            config=ResilienceConfig(max_attempts=4, backoff_base_seconds=0.5),
            sleep=sleeper,
        )
        await caller.invoke("Builder", failing_agent(), _state())
        assert sleeper.delays == [0.5, 1.0, 1.5]

    async def test_timeout_becomes_fallback(self, caller) -> None:
        async def slow(state: WorkflowState) -> AgentResult:
            await asyncio.sleep(5)
            return AgentResult()

        result = await caller.invoke("Designer", slow, _state(), timeout_seconds=0.01)

        assert result.failed is True
        assert "Designer timed out after 0.01s" in result.messages[0].content

    async def test_open_breaker_skips_call(self, caller, guard) -> None:
        for _ in range(3):
            await guard.record_failure("Security")
        calls: list[WorkflowState] = []

        result = await caller.invoke("Security", make_agent("Security", calls=calls), _state())

        assert calls == []
        assert result.failed is True
        assert "Circuit breaker open for Security" in result.messages[0].content

    async def test_breaker_opened_by_an_attempt_stops_retries(self, caller, guard, sleeper) -> None:
        calls: list[WorkflowState] = []
        agent = failing_agent("compile error", calls)

        await caller.invoke("Builder", agent, _state())
        result = await caller.invoke("Builder", agent, _state())

        assert len(calls) == 3
        assert guard.breaker("Builder").failure_count == 3
        assert sleeper.delays == [1.0]
        assert "Circuit breaker open for Builder" in result.messages[0].content


# =============================================================================
# Test: Cancellation
# =============================================================================
class TestCancellation:
    """Tests for caller-driven aborts."""

    async def test_cancel_before_call(self, caller) -> None:
        cancel = asyncio.Event()
        cancel.set()
        calls: list[WorkflowState] = []

        with pytest.raises(RequestCancelledError):
            await caller.invoke("Planner", make_agent("Planner", calls=calls), _state(), cancel_event=cancel)
        assert calls == []

    async def test_cancel_between_attempts(self, caller, sleeper) -> None:
        cancel = asyncio.Event()

        async def fail_then_cancel(state: WorkflowState) -> AgentResult:
            cancel.set()
            raise RuntimeError("boom")

        with pytest.raises(RequestCancelledError):
            await caller.invoke("Planner", fail_then_cancel, _state(), cancel_event=cancel)
        assert sleeper.delays == []
