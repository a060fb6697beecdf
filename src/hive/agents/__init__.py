"""
hive.agents - Specialist Agents
=================================

    - BaseAgent / SpecialistAgent: class-based agents (template method)
    - AgentRegistry: name → agent lookup used by the engine
    - build_default_registry: the thirteen-member default team
"""

from hive.agents.base import BaseAgent, SpecialistAgent
from hive.agents.registry import (
    DEFAULT_ROLE_PROMPTS,
    PRODUCED_ARTIFACTS,
    AgentRegistry,
    build_default_registry,
)

__all__ = [
    "AgentRegistry",
    "BaseAgent",
    "DEFAULT_ROLE_PROMPTS",
    "PRODUCED_ARTIFACTS",
    "SpecialistAgent",
    "build_default_registry",
]
