"""
hive.core - Foundation Layer
==============================

The building blocks every other module depends on:

    - config:      Configuration management (HiveConfig and its sections)
    - enums:       Agent names, artifact kinds, event types, routing levels
    - exceptions:  HiveError hierarchy
    - messages:    Conversation messages and transcript helpers
    - artifacts:   Typed artifact models (PRD, DesignSpec, TechPlan, ...)
    - models:      AgentResult and WorkflowEvent
    - state:       WorkflowState, StateUpdate and merge_state

Dependency Rule:
    core/ depends on nothing else in the hive package, with one exception:
    ``core.state`` embeds ``infrastructure.artifact_store.ArtifactStore``.
    ``state`` is therefore not re-exported here; import it directly.
"""

# =============================================================================
# Re-exports for convenient importing
# =============================================================================
from hive.core.artifacts import (
    PRD,
    Artifact,
    CodeReview,
    DesignSpec,
    SecurityReview,
    TechPlan,
    TestPlan,
    parse_artifact,
)
from hive.core.config import (
    CacheConfig,
    HiveConfig,
    LLMConfig,
    ResilienceConfig,
    RouterConfig,
    SafetyConfig,
    load_config,
)
from hive.core.enums import (
    AgentName,
    ArtifactKind,
    CircuitBreakerState,
    EventType,
    ReviewVerdict,
    RouteTarget,
    RoutingLevel,
)
from hive.core.exceptions import (
    AgentError,
    AgentTimeoutError,
    CacheError,
    CircuitOpenError,
    ConfigurationError,
    HiveError,
    RequestCancelledError,
    RoutingError,
    StateError,
)
from hive.core.messages import Message, extract_user_query, format_transcript
from hive.core.models import AgentResult, WorkflowEvent

__all__ = [
    # Config
    "CacheConfig",
    "HiveConfig",
    "LLMConfig",
    "ResilienceConfig",
    "RouterConfig",
    "SafetyConfig",
    "load_config",
    # Enums
    "AgentName",
    "ArtifactKind",
    "CircuitBreakerState",
    "EventType",
    "ReviewVerdict",
    "RouteTarget",
    "RoutingLevel",
    # Exceptions
    "AgentError",
    "AgentTimeoutError",
    "CacheError",
    "CircuitOpenError",
    "ConfigurationError",
    "HiveError",
    "RequestCancelledError",
    "RoutingError",
    "StateError",
    # Messages
    "Message",
    "extract_user_query",
    "format_transcript",
    # Artifacts
    "Artifact",
    "CodeReview",
    "DesignSpec",
    "PRD",
    "SecurityReview",
    "TechPlan",
    "TestPlan",
    "parse_artifact",
    # Models
    "AgentResult",
    "WorkflowEvent",
]
