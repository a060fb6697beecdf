"""
hive.orchestration.resilient_call - Resilient Agent Invocation
================================================================

Every agent call in HIVE goes through ``ResilientCaller.invoke``. It wraps a
single invocation with caching, retries, the circuit breaker, timeouts and
observability, and it NEVER lets an agent failure escape: an exhausted call
becomes an in-band fallback message attributed to the agent.

Invocation Flow:

    invoke(agent, fn, state)
        │
        ├─ metrics: hive_agent_invocations_total{agent} += 1
        ├─ span:    hive.agent.<agent>  {agent.name}
        │
        ├─ cacheable and not skipped? ── hit ──→ span cache.hit=true → return cached
        │
        ├─ breaker open? ──────────────────────→ fallback (no call made)
        │
        ├─ attempt 1..N:
        │     with_timeout(fn(state))
        │       ├─ ok   → breaker.success → schedule cache write → return result
        │       └─ fail → breaker.failure
        │                 cancelled? → raise RequestCancelledError
        │                 sleep(attempt × backoff_base)
        │
        └─ exhausted ──────────────────────────→ fallback (span records last error)

Fallback Message:
    **[Builder Error]**: I encountered an error processing this request.

    _Error: Builder timed out after 60s_

    The fallback is an ordinary ``AgentResult`` with ``contributors=[agent]``
    and ``error`` set, so the engine can count it against the agent's retry
    budget while the conversation keeps moving.

Cancellation:
    ``cancel_event`` (an ``asyncio.Event``) is checked before every backoff
    sleep. Cancelling the awaiting task itself propagates
    ``asyncio.CancelledError`` unchanged and cancels the in-flight call.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from hive.core.config import ResilienceConfig
from hive.core.exceptions import CircuitOpenError, RequestCancelledError
from hive.core.messages import Message, extract_user_query
from hive.core.models import AgentResult
from hive.core.state import WorkflowState
from hive.infrastructure.observability import (
    AGENT_DURATION,
    AGENT_FALLBACKS,
    AGENT_INVOCATIONS,
    TOKENS_USED,
    MetricsRegistry,
    Tracer,
)
from hive.infrastructure.response_cache import ResponseCache
from hive.orchestration.safety import SafetyGuard


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

AgentFn = Callable[[WorkflowState], Awaitable[AgentResult]]
SleepFn = Callable[[float], Awaitable[None]]


def build_fallback(agent_name: str, diagnostic: str, fallback_message: str) -> AgentResult:
    """Build the in-band fallback result for a failed agent call."""
    content = f"**[{agent_name} Error]**: {fallback_message}\n\n_Error: {diagnostic}_"
    return AgentResult(
        messages=[Message.from_agent(agent_name, content)],
        contributors=[agent_name],
        error=diagnostic,
    )


class ResilientCaller:
    """Cache + retries + breaker + timeout + observability around agent calls.

    One caller is shared by every conversation; all state it touches (cache,
    breakers, metrics) is process-wide and concurrency-safe.

    Args:
        guard: Breakers and timeouts.
        cache: Response cache (None disables caching).
        metrics: Metrics registry (None disables metrics).
        tracer: Span recorder (a private one is created when None).
        config: Attempt count, backoff unit and fallback text.
        default_model: Model identifier used in cache keys when the caller
            does not pass one.
        sleep: Backoff sleep function (tests pass a recorder).
    """

    def __init__(
        self,
        guard: SafetyGuard,
        cache: Optional[ResponseCache] = None,
        metrics: Optional[MetricsRegistry] = None,
        tracer: Optional[Tracer] = None,
        config: Optional[ResilienceConfig] = None,
        default_model: str = "default",
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._guard = guard
        self._cache = cache
        self._metrics = metrics
        self._tracer = tracer or Tracer()
        self._config = config or ResilienceConfig()
        self._default_model = default_model
        self._sleep = sleep
        self._pending_writes: set[asyncio.Task[None]] = set()
        self._logger = logger.bind(component="resilient_caller")

    @property
    def tracer(self) -> Tracer:
        return self._tracer

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    # =========================================================================
    # Invocation
    # =========================================================================

    async def invoke(
        self,
        agent_name: str,
        fn: AgentFn,
        state: WorkflowState,
        *,
        skip_cache: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> AgentResult:
        """Invoke ``fn(state)`` for ``agent_name`` and always return a result.

        Args:
            agent_name: Agent being invoked (metrics label, span tag, breaker
                key, fallback attribution).
            fn: The agent coroutine function.
            state: Current workflow state passed to ``fn``.
            skip_cache: Bypass the cache for this call.
            cancel_event: Set by the caller to abort between attempts.
            model: Model identifier for the cache key.
            timeout_seconds: Per-attempt timeout (None uses the guard's).

        Returns:
            The agent's result, a cached result, or a fallback result.

        Raises:
            RequestCancelledError: ``cancel_event`` was set.
            asyncio.CancelledError: The awaiting task was cancelled.
        """
        if self._metrics is not None:
            self._metrics.inc(AGENT_INVOCATIONS, agent=agent_name)

        cache_model = model or self._default_model
        query = extract_user_query(state.messages)
        use_cache = (
            not skip_cache
            and self._cache is not None
            and self._cache.is_cacheable(agent_name)
        )

        with self._tracer.span(f"hive.agent.{agent_name}", **{"agent.name": agent_name}) as span:
            if use_cache:
                cached = await self._cache.get(cache_model, agent_name, query, agent_name=agent_name)
                span.set_attribute("cache.hit", cached is not None)
                if cached is not None:
                    return cached.model_copy(update={"cached": True})

            self._raise_if_cancelled(cancel_event, agent_name)

            if await self._guard.is_open(agent_name):
                error = CircuitOpenError(agent_name)
                span.set_attribute("circuit.open", True)
                span.record_error(error)
                return self._fallback(agent_name, error.message)

            attempts = self._config.max_attempts
            last_error = "unknown error"
            for attempt in range(1, attempts + 1):
                span.set_attribute("attempts", attempt)
                try:
                    result = await self._guard.with_timeout(fn(state), timeout_seconds, agent_name)
                except RequestCancelledError:
                    raise
                except Exception as exc:
                    last_error = str(exc) or exc.__class__.__name__
                    await self._guard.record_failure(agent_name)
                    self._logger.warning(
                        "agent_attempt_failed",
                        agent_name=agent_name,
                        attempt=attempt,
                        max_attempts=attempts,
                        error=last_error,
                    )
                    if attempt < attempts:
                        self._raise_if_cancelled(cancel_event, agent_name)
                        if await self._guard.is_open(agent_name):
                            # this attempt tripped the breaker; no further calls
                            error = CircuitOpenError(agent_name)
                            span.set_attribute("circuit.open", True)
                            span.record_error(error)
                            return self._fallback(agent_name, error.message)
                        await self._sleep(attempt * self._config.backoff_base_seconds)
                    continue

                await self._guard.record_success(agent_name)
                self._record_success(agent_name, result, span.duration_seconds)
                if use_cache and not result.failed:
                    self._schedule_cache_write(cache_model, agent_name, query, result)
                return result

            span.record_error(last_error)
            return self._fallback(agent_name, last_error)

    async def drain(self) -> None:
        """Wait for every scheduled cache write to finish."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _fallback(self, agent_name: str, diagnostic: str) -> AgentResult:
        if self._metrics is not None:
            self._metrics.inc(AGENT_FALLBACKS, agent=agent_name)
        self._logger.error("agent_fallback", agent_name=agent_name, error=diagnostic)
        return build_fallback(agent_name, diagnostic, self._config.fallback_message)

    def _record_success(self, agent_name: str, result: AgentResult, duration: float) -> None:
        if self._metrics is not None:
            self._metrics.observe(AGENT_DURATION, duration, agent=agent_name)
            if result.tokens_used:
                self._metrics.inc(TOKENS_USED, result.tokens_used, agent=agent_name)
        self._logger.info(
            "agent_call_succeeded",
            agent_name=agent_name,
            duration_seconds=round(duration, 3),
            tokens_used=result.tokens_used,
        )

    def _schedule_cache_write(
        self,
        model: str,
        agent_name: str,
        query: str,
        result: AgentResult,
    ) -> None:
        task = asyncio.create_task(self._write_cache(model, agent_name, query, result))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write_cache(
        self,
        model: str,
        agent_name: str,
        query: str,
        result: AgentResult,
    ) -> None:
        try:
            await self._cache.set(model, agent_name, query, result, cost_units=result.tokens_used)
        except Exception as exc:
            self._logger.warning("cache_write_failed", agent_name=agent_name, error=str(exc))

    @staticmethod
    def _raise_if_cancelled(cancel_event: Optional[asyncio.Event], agent_name: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelledError(agent_name=agent_name)
