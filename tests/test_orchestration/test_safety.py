"""
Tests for hive.orchestration.safety
=====================================

These tests verify the SafetyGuard and its per-agent CircuitBreakers.

What's Being Tested:
    - check_turn_limit:     unsafe iff turn_count >= max_turns
    - check_agent_retries:  budget of max_agent_retries for self-loop
                            agents, 1 for everyone else
    - CircuitBreaker:       opens exactly at the threshold, auto-closes after
                            the cooldown with failure_count reset
    - with_timeout:         AgentTimeoutError naming the agent
    - safe_execute:         fallback on open breaker or failure

Architecture Context:

    CLOSED ──(failures == threshold)──> OPEN ──(cooldown, is_open)──> CLOSED
"""

import asyncio

import pytest

from hive.core.config import SafetyConfig
from hive.core.enums import CircuitBreakerState
from hive.core.exceptions import AgentTimeoutError
from hive.infrastructure.observability import CIRCUIT_BREAKER_STATE
from hive.orchestration.safety import CircuitBreaker, SafetyGuard


# =============================================================================
# Test: Turn Limit
# =============================================================================
class TestTurnLimit:
    """Tests for the global turn cap."""

    def test_below_limit_is_safe(self, guard) -> None:
        assert guard.check_turn_limit(0).safe is True
        assert guard.check_turn_limit(49).safe is True

    @pytest.mark.parametrize("turns", [50, 51, 500])
    def test_at_or_above_limit_is_unsafe(self, guard, turns) -> None:
        check = guard.check_turn_limit(turns)
        assert check.safe is False
        assert "Turn limit" in check.reason


# =============================================================================
# Test: Retry Budgets
# =============================================================================
class TestRetryBudget:
    """Tests for per-agent retry budgets."""

    def test_self_loop_agents_get_full_budget(self, guard) -> None:
        assert guard.retry_budget("Builder") == 3
        assert guard.retry_budget("Tester") == 3

    @pytest.mark.parametrize("agent", ["Planner", "Designer", "Security", "SRE"])
    def test_one_failure_exhausts_other_agents(self, guard, agent) -> None:
        assert guard.check_agent_retries(agent, 0).safe is True
        assert guard.check_agent_retries(agent, 1).safe is False

    def test_builder_exhausted_at_three(self, guard) -> None:
        assert guard.check_agent_retries("Builder", 2).safe is True
        check = guard.check_agent_retries("Builder", 3)
        assert check.safe is False
        assert "Builder" in check.reason


# =============================================================================
# Test: CircuitBreaker
# =============================================================================
class TestCircuitBreaker:
    """Tests for breaker transitions."""

    async def test_opens_exactly_at_threshold(self, clock) -> None:
        breaker = CircuitBreaker("Builder", failure_threshold=3, cooldown_seconds=300, clock=clock)
        assert await breaker.record_failure() is False
        assert await breaker.record_failure() is False
        assert await breaker.is_open() is False
        assert await breaker.record_failure() is True
        assert await breaker.is_open() is True
        assert breaker.state == CircuitBreakerState.OPEN

    async def test_auto_closes_after_cooldown(self, guard, clock) -> None:
        """Three failures open the breaker; after the cooldown it resets."""
        for _ in range(3):
            await guard.record_failure("Builder")
        assert await guard.is_open("Builder") is True

        clock.advance(299)
        assert await guard.is_open("Builder") is True

        clock.advance(2)
        assert guard.breaker("Builder").state == CircuitBreakerState.HALF_OPEN
        assert await guard.is_open("Builder") is False
        assert guard.breaker("Builder").failure_count == 0
        assert guard.breaker("Builder").state == CircuitBreakerState.CLOSED

    async def test_success_resets(self, guard) -> None:
        await guard.record_failure("Planner")
        await guard.record_failure("Planner")
        await guard.record_success("Planner")
        assert guard.breaker("Planner").failure_count == 0
        await guard.record_failure("Planner")
        assert await guard.is_open("Planner") is False

    async def test_breakers_are_per_agent(self, guard) -> None:
        for _ in range(3):
            await guard.record_failure("Builder")
        assert await guard.is_open("Builder") is True
        assert await guard.is_open("Planner") is False

    async def test_unknown_agent_is_closed(self, guard) -> None:
        assert await guard.is_open("Nobody") is False
        assert guard.breaker_states() == {}

    async def test_gauge_published(self, guard, metrics) -> None:
        for _ in range(3):
            await guard.record_failure("Builder")
        assert metrics.get(CIRCUIT_BREAKER_STATE, agent="Builder") == 1.0
        await guard.record_success("Builder")
        assert metrics.get(CIRCUIT_BREAKER_STATE, agent="Builder") == 0.0

    async def test_snapshot_and_reset(self, guard) -> None:
        await guard.record_failure("Designer")
        snapshot = guard.breaker_states()["Designer"]
        assert snapshot.failure_count == 1
        assert snapshot.state == CircuitBreakerState.CLOSED
        guard.reset()
        assert guard.breaker_states() == {}


# =============================================================================
# Test: Timeouts and safe_execute
# =============================================================================
class TestTimeouts:
    """Tests for with_timeout and safe_execute."""

    async def test_with_timeout_returns_result(self, guard) -> None:
        async def quick() -> str:
            return "ok"

        assert await guard.with_timeout(quick(), 1.0, "Planner") == "ok"

    async def test_with_timeout_raises_agent_timeout(self, guard) -> None:
        async def slow() -> str:
            await asyncio.sleep(5)
            return "late"

        with pytest.raises(AgentTimeoutError) as exc_info:
            await guard.with_timeout(slow(), 0.01, "Builder")
        assert exc_info.value.agent_name == "Builder"
        assert "Builder timed out" in str(exc_info.value)

    async def test_with_timeout_uses_configured_default(self, metrics, clock) -> None:
        guard = SafetyGuard(SafetyConfig(agent_timeout_seconds=0.01), metrics=metrics, clock=clock)

        async def slow() -> None:
            await asyncio.sleep(5)

        with pytest.raises(AgentTimeoutError):
            await guard.with_timeout(slow(), None, "Planner")

    async def test_safe_execute_returns_fallback_on_failure(self, guard) -> None:
        async def broken() -> str:
            raise RuntimeError("provider down")

        assert await guard.safe_execute("Router:primary", broken, fallback="fb") == "fb"
        assert guard.breaker("Router:primary").failure_count == 1

    async def test_safe_execute_skips_call_when_open(self, guard) -> None:
        calls = []

        async def call() -> str:
            calls.append(1)
            return "answer"

        for _ in range(3):
            await guard.record_failure("Router:primary")
        assert await guard.safe_execute("Router:primary", call, fallback=None) is None
        assert calls == []

    async def test_safe_execute_success(self, guard) -> None:
        async def call() -> str:
            return "answer"

        assert await guard.safe_execute("Router:primary", call, fallback=None) == "answer"
