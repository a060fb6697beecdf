"""
hive.facade - HIVE Top-Level Facade
=====================================

The single entry point that wires every layer together and streams
workflow events for one user request at a time.

Architecture Context:

    ┌──────────────────────────────────────────────────┐
    │                   Hive (Facade)                   │
    │                                                   │
    │  ┌─────────────────────────────────────────────┐ │
    │  │           Orchestration Layer                │ │
    │  │  WorkflowEngine, Router, ResilientCaller,    │ │
    │  │  SafetyGuard, Checkpointer                   │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │              Agent Layer                     │ │
    │  │  AgentRegistry → 13 SpecialistAgents         │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │          Infrastructure Layer                │ │
    │  │  ResponseCache, MetricsRegistry, Tracer      │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │           Integration Layer                  │ │
    │  │  LLM providers (agents, router tiers 0/1)    │ │
    │  └─────────────────────────────────────────────┘ │
    └──────────────────────────────────────────────────┘

Usage:
    >>> async with Hive() as hive:
    ...     async for event in hive.run([], "Build a todo app"):
    ...         print(event.type, event.agent, event.content)
    ...     stats = await hive.cache_stats()
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncIterator, Callable, Optional, Sequence

import structlog

from hive.agents.registry import AgentCallable, AgentRegistry, build_default_registry
from hive.core.config import HiveConfig
from hive.core.exceptions import RequestCancelledError
from hive.core.messages import Message
from hive.core.models import WorkflowEvent
from hive.core.state import WorkflowState, initial_state
from hive.infrastructure.observability import MetricsRegistry, Tracer
from hive.infrastructure.response_cache import CacheStats, ResponseCache
from hive.integrations.llm.base import BaseLLMProvider
from hive.integrations.llm.factory import create_llm_provider
from hive.orchestration.checkpoint import Checkpointer, InMemoryCheckpointer
from hive.orchestration.engine import WorkflowEngine
from hive.orchestration.resilient_call import ResilientCaller, SleepFn
from hive.orchestration.router import Router
from hive.orchestration.safety import SafetyGuard


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


class Hive:
    """Top-level facade for the HIVE multi-agent core.

    Lifecycle:
        1. ``Hive(config)``: build every component
        2. ``await initialize()``
        3. ``register_agent(name, fn)``: optional custom agents
        4. ``async for event in run(history, message)``
        5. ``await shutdown()``: flush pending cache writes

    Or use the async context manager:
        async with Hive(config) as hive:
            ...

    Args:
        config: HIVE configuration. Defaults to ``HiveConfig()`` (env vars).
        provider: LLM provider for the default specialists. Built from
            ``config.llm`` when None.
        primary: Router tier-0 provider. Built from
            ``config.router.primary`` when None and configured.
        secondary: Router tier-1 provider. Built from
            ``config.router.secondary`` when None and configured.
        registry: Agent registry. Defaults to the thirteen specialists.
        checkpointer: Conversation storage. Defaults to in-memory.
        clock: Monotonic time source shared by cache and breakers.
        sleep: Backoff sleep used between agent attempts.
    """

    def __init__(
        self,
        config: Optional[HiveConfig] = None,
        *,
        provider: Optional[BaseLLMProvider] = None,
        primary: Optional[BaseLLMProvider] = None,
        secondary: Optional[BaseLLMProvider] = None,
        registry: Optional[AgentRegistry] = None,
        checkpointer: Optional[Checkpointer] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._config = config or HiveConfig()

        # --- Infrastructure Layer ---
        self._metrics = MetricsRegistry()
        self._tracer = Tracer()
        self._cache = ResponseCache(self._config.cache, metrics=self._metrics, clock=clock)

        # --- Integration Layer ---
        self._provider = provider or create_llm_provider(self._config.llm)
        router_config = self._config.router
        if primary is None and router_config.primary is not None:
            primary = create_llm_provider(router_config.primary)
        if secondary is None and router_config.secondary is not None:
            secondary = create_llm_provider(router_config.secondary)

        # --- Agent Layer ---
        self._registry = registry if registry is not None else build_default_registry(self._provider)

        # --- Orchestration Layer ---
        self._guard = SafetyGuard(self._config.safety, metrics=self._metrics, clock=clock)
        self._router = Router(
            self._guard,
            router_config,
            primary=primary,
            secondary=secondary,
            metrics=self._metrics,
            known_agents=self._registry,
        )
        self._caller = ResilientCaller(
            self._guard,
            cache=self._cache,
            metrics=self._metrics,
            tracer=self._tracer,
            config=self._config.resilience,
            default_model=self._provider.model,
            sleep=sleep,
        )
        self._engine = WorkflowEngine(self._router, self._caller, self._registry, self._guard)
        self._checkpointer = checkpointer or InMemoryCheckpointer()

        self._initialized = False
        self._logger = logger.bind(component="hive")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> HiveConfig:
        return self._config

    @property
    def engine(self) -> WorkflowEngine:
        return self._engine

    @property
    def router(self) -> Router:
        return self._router

    @property
    def guard(self) -> SafetyGuard:
        return self._guard

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    @property
    def tracer(self) -> Tracer:
        return self._tracer

    @property
    def checkpointer(self) -> Checkpointer:
        return self._checkpointer

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def initialize(self) -> None:
        """Mark the facade ready. Idempotent."""
        if self._initialized:
            self._logger.debug("hive_already_initialized")
            return
        self._initialized = True
        self._logger.info(
            "hive_initialized",
            environment=self._config.environment,
            agents=len(self._registry),
            cache_enabled=self._cache.enabled,
        )

    async def shutdown(self) -> None:
        """Wait for scheduled cache writes and mark the facade stopped.

        Idempotent: Safe to call multiple times.
        """
        if not self._initialized:
            self._logger.debug("hive_not_initialized_skipping_shutdown")
            return
        await self._caller.drain()
        self._initialized = False
        self._logger.info("hive_shutdown_complete")

    async def __aenter__(self) -> Hive:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Agents
    # =========================================================================

    def register_agent(self, name: str, agent: AgentCallable, model: Optional[str] = None) -> None:
        """Register (or replace) an agent; it becomes a routing target at once."""
        self._registry.register(name, agent, model=model)
        self._logger.info("agent_registered", agent_name=name)

    # =========================================================================
    # Conversations
    # =========================================================================

    async def start_state(
        self,
        history: Sequence[Message],
        user_message: str,
        conversation_id: Optional[str] = None,
    ) -> WorkflowState:
        """Build the starting state for a request.

        With a ``conversation_id`` that has a checkpoint and no explicit
        history, the stored conversation is resumed; otherwise a fresh state
        is built from ``history``.
        """
        entry = self._config.router.entry_agent
        if conversation_id is not None and not history:
            resumed = await self._checkpointer.resume(conversation_id, user_message, entry=entry)
            if resumed is not None:
                self._logger.info(
                    "conversation_resumed",
                    conversation_id=conversation_id,
                    messages=len(resumed.messages),
                )
                return resumed
        return initial_state(user_message, history, conversation_id=conversation_id, entry=entry)

    async def run(
        self,
        history: Sequence[Message],
        user_message: str,
        conversation_id: Optional[str] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[WorkflowEvent]:
        """Process one user request, yielding events until FINISH.

        The state is checkpointed after every turn, so a cancelled request
        can be resumed later under the same conversation id.

        Args:
            history: Prior messages (oldest first). May be empty.
            user_message: The new request.
            conversation_id: Existing conversation to continue.
            cancel_event: Set to abort between agent attempts.

        Raises:
            RequestCancelledError: ``cancel_event`` was set.
        """
        state = await self.start_state(history, user_message, conversation_id)
        self._logger.info(
            "request_started",
            conversation_id=state.conversation_id,
            query_length=len(user_message),
        )

        while not self._engine.is_terminal(state):
            try:
                state, events = await self._engine.advance(state, cancel_event=cancel_event)
            except RequestCancelledError:
                await self._checkpointer.save(state)
                self._logger.warning(
                    "request_cancelled",
                    conversation_id=state.conversation_id,
                    turn_count=state.turn_count,
                )
                raise
            await self._checkpointer.save(state)
            for event in events:
                yield event

        self._logger.info(
            "request_finished",
            conversation_id=state.conversation_id,
            turn_count=state.turn_count,
            contributors=state.contributors,
            artifacts=[kind.value for kind in state.artifact_store.available()],
        )

    async def get_conversation(self, conversation_id: str) -> Optional[WorkflowState]:
        """Latest checkpointed state of a conversation."""
        return await self._checkpointer.load(conversation_id)

    # =========================================================================
    # Observability
    # =========================================================================

    async def cache_stats(self) -> CacheStats:
        return await self._cache.stats()

    def metrics_snapshot(self) -> dict[str, Any]:
        """Metrics registry contents plus router and breaker summaries."""
        snapshot = self._metrics.snapshot()
        snapshot["router"] = self._router.metrics.model_dump()
        snapshot["breakers"] = {
            name: breaker.model_dump(mode="json")
            for name, breaker in self._guard.breaker_states().items()
        }
        return snapshot

    def __repr__(self) -> str:
        return (
            f"Hive(environment={self._config.environment!r}, "
            f"agents={len(self._registry)}, initialized={self._initialized})"
        )
