"""
hive.orchestration - Orchestration Layer
==========================================

Components:
    - SafetyGuard:      Turn limit, retry budgets, circuit breakers, timeouts
    - ResilientCaller:  Cache + retries + breaker + fallback around agent calls
    - Router:           Tiered next-agent decision (LLM → LLM → keywords)
    - WorkflowEngine:   One-turn ``advance`` and the run loop
    - Checkpointer:     Conversation state storage for resumption
"""

from hive.orchestration.checkpoint import Checkpointer, InMemoryCheckpointer
from hive.orchestration.engine import WorkflowEngine
from hive.orchestration.resilient_call import ResilientCaller, build_fallback
from hive.orchestration.router import Router, RouterMetrics, RoutingDecision
from hive.orchestration.safety import CircuitBreaker, SafetyCheck, SafetyGuard

__all__ = [
    "Checkpointer",
    "CircuitBreaker",
    "InMemoryCheckpointer",
    "ResilientCaller",
    "Router",
    "RouterMetrics",
    "RoutingDecision",
    "SafetyCheck",
    "SafetyGuard",
    "WorkflowEngine",
    "build_fallback",
]
