"""
Shared Test Fixtures for HIVE
===============================

Reusable pytest fixtures, organized by layer:

    1. Time and sleep fakes (deterministic TTLs, cooldowns and backoff)
    2. Configuration fixtures
    3. Infrastructure fixtures (metrics, tracer, cache)
    4. Orchestration fixtures (guard, caller, router, engine)
    5. Integration fixtures (LLM providers)
    6. Helpers for building agents and artifacts
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

import pytest

from hive.agents.registry import AgentRegistry
from hive.core.artifacts import PRD, DesignSpec, TechPlan
from hive.core.config import (
    CacheConfig,
    HiveConfig,
    ResilienceConfig,
    RouterConfig,
    SafetyConfig,
)
from hive.core.messages import Message
from hive.core.models import AgentResult
from hive.core.state import WorkflowState
from hive.infrastructure.observability import MetricsRegistry, Tracer
from hive.infrastructure.response_cache import ResponseCache
from hive.integrations.llm.mock import MockLLMProvider
from hive.orchestration.engine import WorkflowEngine
from hive.orchestration.resilient_call import ResilientCaller
from hive.orchestration.router import Router
from hive.orchestration.safety import SafetyGuard


# =============================================================================
# Fakes
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def config() -> HiveConfig:
    """HIVE configuration with defaults and keyword-only routing."""
    return HiveConfig(router=RouterConfig(primary=None, secondary=None))


@pytest.fixture
def cache_config() -> CacheConfig:
    return CacheConfig()


@pytest.fixture
def safety_config() -> SafetyConfig:
    return SafetyConfig()


# =============================================================================
# Infrastructure
# =============================================================================

@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def tracer() -> Tracer:
    return Tracer()


@pytest.fixture
def cache(cache_config, metrics, clock) -> ResponseCache:
    """Empty ResponseCache on the fake clock."""
    return ResponseCache(cache_config, metrics=metrics, clock=clock)


# =============================================================================
# Orchestration
# =============================================================================

@pytest.fixture
def guard(safety_config, metrics, clock) -> SafetyGuard:
    """SafetyGuard on the fake clock."""
    return SafetyGuard(safety_config, metrics=metrics, clock=clock)


@pytest.fixture
def caller(guard, cache, metrics, tracer, sleeper) -> ResilientCaller:
    """ResilientCaller whose backoff sleeps are recorded, not awaited."""
    return ResilientCaller(
        guard,
        cache=cache,
        metrics=metrics,
        tracer=tracer,
        config=ResilienceConfig(),
        default_model="test-model",
        sleep=sleeper,
    )


@pytest.fixture
def registry() -> AgentRegistry:
    return AgentRegistry()


@pytest.fixture
def router(guard, metrics, registry) -> Router:
    """Keyword-only router over the test registry."""
    return Router(guard, RouterConfig(primary=None), metrics=metrics, known_agents=registry)


@pytest.fixture
def engine(router, caller, registry, guard) -> WorkflowEngine:
    return WorkflowEngine(router, caller, registry, guard)


# =============================================================================
# LLM Provider
# =============================================================================

@pytest.fixture
def mock_llm_provider() -> MockLLMProvider:
    """Fresh MockLLMProvider with no queued responses."""
    return MockLLMProvider()


# =============================================================================
# Helpers
# =============================================================================

AgentFn = Callable[[WorkflowState], Awaitable[AgentResult]]


def make_agent(
    name: str,
    reply: str = "done",
    *,
    handoff: Optional[str] = None,
    artifact: Any = None,
    needs_retry: bool = False,
    calls: Optional[list[WorkflowState]] = None,
) -> AgentFn:
    """Build a coroutine agent that answers with a fixed reply."""

    async def agent(state: WorkflowState) -> AgentResult:
        if calls is not None:
            calls.append(state)
        return AgentResult(
            messages=[Message.from_agent(name, reply)],
            contributors=[name],
            handoff=handoff,
            artifact=artifact,
            needs_retry=needs_retry,
        )

    return agent


def failing_agent(message: str = "boom", calls: Optional[list[WorkflowState]] = None) -> AgentFn:
    async def agent(state: WorkflowState) -> AgentResult:
        if calls is not None:
            calls.append(state)
        raise RuntimeError(message)

    return agent


def sample_prd() -> PRD:
    return PRD(
        title="Todo App",
        goal="Let people track their tasks",
        success_metrics=["DAU", "retention"],
    )


def sample_design_spec() -> DesignSpec:
    return DesignSpec(title="Todo UI", components=[{"name": "TaskList", "description": "List"}])


def sample_tech_plan() -> TechPlan:
    return TechPlan(
        title="Todo Plan",
        overview="SPA with a REST backend",
        implementation_steps=[{"order": 1, "task": "Scaffold the API"}],
    )
