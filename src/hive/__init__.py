"""
HIVE - Multi-Agent Product Team Orchestration
===============================================

HIVE runs a team of thirteen specialist agents (Founder, ProductManager,
Designer, Planner, Builder, Tester, ...) over one shared conversation. A
tiered router picks who speaks next; agents hand work to each other through
typed artifacts (PRD, DesignSpec, TechPlan, ...).

Architecture Layers (top to bottom):
    1. Orchestration Layer  - WorkflowEngine, Router, ResilientCaller, SafetyGuard
    2. Agent Layer          - SpecialistAgent, AgentRegistry
    3. Infrastructure Layer - ArtifactStore, ResponseCache, metrics, tracing, logging
    4. Integration Layer    - LLM providers

Quick Start:
    >>> from hive import Hive
    >>> async with Hive() as hive:
    ...     async for event in hive.run([], "Build a todo app"):
    ...         print(event.type, event.agent)
"""

# =============================================================================
# Package Version
# =============================================================================
__version__ = "0.1.0"

# =============================================================================
# Package-Level Exports
# =============================================================================
# The Hive facade is the main entry point. For specific components, import
# from submodules directly:
#   from hive.core.config import HiveConfig
#   from hive.core.state import WorkflowState, merge_state
#   from hive.orchestration.engine import WorkflowEngine
# =============================================================================
from hive.facade import Hive

__all__ = ["Hive", "__version__"]
