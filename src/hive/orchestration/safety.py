"""
hive.orchestration.safety - Safety Guard
==========================================

This module implements the guards that keep a conversation bounded and
isolate failing agents:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                            SafetyGuard                              │
    │                                                                     │
    │  check_turn_limit(turn_count)        pure: unsafe iff ≥ max_turns   │
    │  check_agent_retries(agent, n)       pure: unsafe iff n ≥ budget    │
    │                                                                     │
    │  ┌──────────────┐ ┌──────────────┐ ┌──────────────┐                 │
    │  │ Breaker      │ │ Breaker      │ │ Breaker      │  one per agent, │
    │  │ "Builder"    │ │ "Planner"    │ │ "Router:..." │  process-wide   │
    │  └──────────────┘ └──────────────┘ └──────────────┘                 │
    │                                                                     │
    │  with_timeout(call, seconds, agent)  races the call against a timer │
    │  safe_execute(agent, call, fallback) breaker + timeout + fallback   │
    └─────────────────────────────────────────────────────────────────────┘

Retry Budget:
    Agents listed in ``SafetyConfig.self_loop_agents`` (Builder and Tester
    by default) iterate on their own output, so they get
    ``max_agent_retries`` attempts. Every other agent gets exactly one:
    after a single recorded failure it is unsafe to run it again and the
    conversation goes back to the router.

Circuit Breaker:
    CLOSED ──(failure_count reaches max_agent_retries)──> OPEN
    OPEN ──(is_open() after cooldown since last failure)──> CLOSED
    any ──(record_success)──> CLOSED, failure_count = 0

    There is no half-open trial phase: the first ``is_open()`` check after
    the cooldown resets the count and lets the next call through. If that
    call fails the count restarts from 1.

Time Source:
    Breakers read an injectable monotonic clock (``time.monotonic`` by
    default) so cooldowns are immune to wall-clock jumps and tests can
    advance time without sleeping.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel

from hive.core.config import SafetyConfig
from hive.core.enums import CircuitBreakerState
from hive.core.exceptions import AgentTimeoutError
from hive.infrastructure.observability import CIRCUIT_BREAKER_STATE, MetricsRegistry


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# Result Models
# =============================================================================
class SafetyCheck(BaseModel):
    """Outcome of a pure safety check.

    Attributes:
        safe: True when the action may proceed.
        reason: Why it may not (None when safe).
    """

    safe: bool
    reason: Optional[str] = None


class BreakerSnapshot(BaseModel):
    """Point-in-time view of one circuit breaker."""

    agent_name: str
    state: CircuitBreakerState
    failure_count: int
    last_failure_time: Optional[float] = None


# =============================================================================
# CircuitBreaker
# =============================================================================
class CircuitBreaker:
    """Failure counter and open/closed flag for one agent.

    Example:
        >>> breaker = CircuitBreaker("Builder", failure_threshold=3, cooldown_seconds=300)
        >>> for _ in range(3):
        ...     await breaker.record_failure()
        >>> await breaker.is_open()
        True
    """

    def __init__(
        self,
        agent_name: str,
        failure_threshold: int = 3,
        cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.agent_name = agent_name
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock

        self._failure_count: int = 0
        self._last_failure_time: Optional[float] = None
        self._is_open: bool = False

        # Several conversations may record against the same agent at once.
        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="circuit_breaker", agent_name=agent_name)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> Optional[float]:
        return self._last_failure_time

    @property
    def state(self) -> CircuitBreakerState:
        """Current state without triggering the cooldown reset."""
        if not self._is_open:
            return CircuitBreakerState.CLOSED
        if self._cooldown_elapsed():
            return CircuitBreakerState.HALF_OPEN
        return CircuitBreakerState.OPEN

    # =========================================================================
    # Transitions
    # =========================================================================

    async def record_failure(self) -> bool:
        """Count a failure; open the breaker when the threshold is reached.

        Returns:
            True if this failure opened the breaker.
        """
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()
            opened = not self._is_open and self._failure_count >= self.failure_threshold
            if opened:
                self._is_open = True

        if opened:
            self._logger.warning(
                "safety_trigger",
                guard="circuit_breaker",
                transition="closed_to_open",
                failure_count=self._failure_count,
                cooldown_seconds=self.cooldown_seconds,
            )
        else:
            self._logger.info("circuit_breaker_failure", failure_count=self._failure_count)
        return opened

    async def is_open(self) -> bool:
        """Report openness, auto-closing after the cooldown.

        An open breaker whose last failure is older than the cooldown is
        reset (``failure_count = 0``) and reported closed.
        """
        async with self._lock:
            if not self._is_open:
                return False
            if not self._cooldown_elapsed():
                return True
            self._is_open = False
            self._failure_count = 0

        self._logger.info("circuit_breaker_closed", reason="cooldown_elapsed")
        return False

    async def record_success(self) -> None:
        """Reset the failure count and close the breaker."""
        async with self._lock:
            was_open = self._is_open
            self._failure_count = 0
            self._is_open = False
        if was_open:
            self._logger.info("circuit_breaker_closed", reason="success")

    def snapshot(self) -> BreakerSnapshot:
        return BreakerSnapshot(
            agent_name=self.agent_name,
            state=self.state,
            failure_count=self._failure_count,
            last_failure_time=self._last_failure_time,
        )

    def _cooldown_elapsed(self) -> bool:
        if self._last_failure_time is None:
            return True
        return self._clock() - self._last_failure_time > self.cooldown_seconds

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(agent_name={self.agent_name!r}, "
            f"state={self.state.value!r}, failure_count={self._failure_count})"
        )


# =============================================================================
# SafetyGuard
# =============================================================================
class SafetyGuard:
    """Turn limits, retry budgets, per-agent breakers and call timeouts.

    One instance is shared by every conversation in the process; the
    breakers it holds are keyed by agent name only.

    Args:
        config: Limits (max turns, retry budget, timeout, cooldown,
            self-loop agents).
        metrics: Registry receiving the breaker state gauge.
        clock: Monotonic time source for breaker cooldowns.
    """

    def __init__(
        self,
        config: Optional[SafetyConfig] = None,
        metrics: Optional[MetricsRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or SafetyConfig()
        self._metrics = metrics
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._breakers_lock = threading.Lock()
        self._logger = logger.bind(component="safety_guard")

    @property
    def config(self) -> SafetyConfig:
        return self._config

    # =========================================================================
    # Pure Checks
    # =========================================================================

    def check_turn_limit(self, turn_count: int) -> SafetyCheck:
        """Unsafe iff ``turn_count >= max_turns``."""
        limit = self._config.max_turns
        if turn_count >= limit:
            self._logger.warning(
                "safety_trigger",
                guard="turn_limit",
                turn_count=turn_count,
                max_turns=limit,
            )
            return SafetyCheck(safe=False, reason=f"Turn limit reached ({turn_count}/{limit})")
        return SafetyCheck(safe=True)

    def retry_budget(self, agent_name: str) -> int:
        """``max_agent_retries`` for self-loop agents, 1 for everyone else."""
        if agent_name in self._config.self_loop_agents:
            return self._config.max_agent_retries
        return 1

    def check_agent_retries(self, agent_name: str, retries: int) -> SafetyCheck:
        """Unsafe iff ``retries`` has used up the agent's budget."""
        budget = self.retry_budget(agent_name)
        if retries >= budget:
            self._logger.warning(
                "safety_trigger",
                guard="agent_retries",
                agent_name=agent_name,
                retries=retries,
                budget=budget,
            )
            return SafetyCheck(
                safe=False,
                reason=f"{agent_name} exceeded retry limit ({retries}/{budget})",
            )
        return SafetyCheck(safe=True)

    # =========================================================================
    # Circuit Breakers
    # =========================================================================

    def breaker(self, agent_name: str) -> CircuitBreaker:
        """Get or create the breaker for ``agent_name``."""
        with self._breakers_lock:
            breaker = self._breakers.get(agent_name)
            if breaker is None:
                breaker = CircuitBreaker(
                    agent_name,
                    failure_threshold=self._config.max_agent_retries,
                    cooldown_seconds=self._config.circuit_cooldown_seconds,
                    clock=self._clock,
                )
                self._breakers[agent_name] = breaker
            return breaker

    async def record_failure(self, agent_name: str) -> bool:
        opened = await self.breaker(agent_name).record_failure()
        self._publish(agent_name)
        return opened

    async def record_success(self, agent_name: str) -> None:
        await self.breaker(agent_name).record_success()
        self._publish(agent_name)

    async def is_open(self, agent_name: str) -> bool:
        with self._breakers_lock:
            breaker = self._breakers.get(agent_name)
        if breaker is None:
            return False
        is_open = await breaker.is_open()
        self._publish(agent_name)
        return is_open

    def breaker_states(self) -> dict[str, BreakerSnapshot]:
        """Snapshot of every breaker created so far."""
        with self._breakers_lock:
            breakers = list(self._breakers.values())
        return {breaker.agent_name: breaker.snapshot() for breaker in breakers}

    def reset(self) -> None:
        """Forget every breaker (all agents back to CLOSED)."""
        with self._breakers_lock:
            names = list(self._breakers)
            self._breakers.clear()
        for name in names:
            self._publish(name)

    def _publish(self, agent_name: str) -> None:
        if self._metrics is None:
            return
        with self._breakers_lock:
            breaker = self._breakers.get(agent_name)
        value = 1.0 if breaker is not None and breaker.state != CircuitBreakerState.CLOSED else 0.0
        self._metrics.set_gauge(CIRCUIT_BREAKER_STATE, value, agent=agent_name)

    # =========================================================================
    # Timeouts
    # =========================================================================

    async def with_timeout(
        self,
        call: Awaitable[T],
        timeout_seconds: Optional[float],
        agent_name: str,
    ) -> T:
        """Await ``call``, failing if it takes longer than ``timeout_seconds``.

        The call is cancelled when the timer fires and the timer is
        discarded when the call finishes first.

        Args:
            call: The awaitable to run.
            timeout_seconds: Budget in seconds (None uses the configured
                per-agent timeout).
            agent_name: Agent to name in the timeout error.

        Returns:
            Whatever ``call`` returns.

        Raises:
            AgentTimeoutError: The budget elapsed first.
            Exception: Anything ``call`` itself raises.
        """
        budget = self._config.agent_timeout_seconds if timeout_seconds is None else timeout_seconds
        try:
            return await asyncio.wait_for(call, timeout=budget)
        except asyncio.TimeoutError:
            self._logger.warning(
                "safety_trigger",
                guard="timeout",
                agent_name=agent_name,
                timeout_seconds=budget,
            )
            raise AgentTimeoutError(agent_name=agent_name, timeout_seconds=budget) from None

    async def safe_execute(
        self,
        agent_name: str,
        call: Callable[[], Awaitable[T]],
        fallback: T,
        timeout_seconds: Optional[float] = None,
    ) -> T:
        """Run ``call`` behind the agent's breaker and timeout.

        - Breaker open: return ``fallback`` without calling.
        - Otherwise: run under ``with_timeout``; record success/failure.
        - On failure: return ``fallback`` instead of raising.

        ``call`` is a zero-argument factory so no coroutine is created when
        the breaker is open.

        Example:
            >>> answer = await guard.safe_execute(
            ...     "Router:primary", lambda: provider.generate(prompt), fallback=None
            ... )
        """
        if await self.is_open(agent_name):
            self._logger.warning(
                "safety_trigger",
                guard="circuit_breaker",
                agent_name=agent_name,
                action="skipped",
            )
            return fallback

        try:
            result = await self.with_timeout(call(), timeout_seconds, agent_name)
        except Exception as exc:
            await self.record_failure(agent_name)
            self._logger.warning("safe_execute_failed", agent_name=agent_name, error=str(exc))
            return fallback

        await self.record_success(agent_name)
        return result
