"""
hive.core.config - Configuration Management
=============================================

This module provides the configuration system for HIVE. Configuration can be
loaded from multiple sources with the following priority (highest first):

    1. Explicit constructor arguments
    2. Environment variables (prefixed with HIVE_)
    3. hive.yaml values (``load_config`` only)
    4. Default values defined in the models below

Architecture Context:
    Configuration flows DOWN through the system. The top-level HiveConfig is
    created once (usually by the ``Hive`` facade) and each section is handed
    to the component that owns it:

        HiveConfig
            ├── CacheConfig       → ResponseCache
            ├── SafetyConfig      → SafetyGuard, WorkflowEngine
            ├── ResilienceConfig  → ResilientCaller
            ├── RouterConfig      → Router (+ primary/secondary LLMConfig)
            ├── LLMConfig         → Specialist agents
            └── log_level/format  → configure_logging()

Every value has a default, so ``HiveConfig()`` runs unmodified.

Environment Variables:
    HIVE_LOG_LEVEL=DEBUG
    HIVE_CACHE__ENABLED=false
    HIVE_CACHE__TTL_SECONDS=600
    HIVE_CACHE__MAX_ENTRIES=500
    HIVE_SAFETY__MAX_TURNS=30
    HIVE_SAFETY__MAX_AGENT_RETRIES=3
    HIVE_SAFETY__AGENT_TIMEOUT_SECONDS=45
    HIVE_SAFETY__CIRCUIT_COOLDOWN_SECONDS=120
    HIVE_SAFETY__SELF_LOOP_AGENTS='["Builder","Tester"]'
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from hive.core.exceptions import ConfigurationError


# =============================================================================
# LLM Configuration
# =============================================================================
# Which completion provider a component talks to. Agents share the top-level
# ``llm`` section; the router carries its own primary/secondary pair so the
# routing classifier can run on a cheaper model than the specialists.
# =============================================================================
class LLMConfig(BaseModel):
    """Configuration for a completion provider.

    Attributes:
        provider: Which provider implementation to use. Only "mock" ships in
            this package; real backends plug in through ``BaseLLMProvider``.
        model: Model identifier within the provider. Also part of the
            response cache key.
        api_key: Authentication key (None for the mock provider).
        temperature: Sampling temperature.
        max_tokens: Maximum tokens per response.
        api_base_url: Custom endpoint for proxies or self-hosted models.
    """

    provider: str = Field(
        default="mock",
        description="LLM provider name (only 'mock' is bundled)",
    )
    model: str = Field(
        default="mock-model",
        description="Model identifier within the provider",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key for authentication (None for mock provider)",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="LLM temperature: 0.0=deterministic, 1.0=creative",
    )
    max_tokens: int = Field(
        default=4096,
        ge=1,
        le=128000,
        description="Maximum tokens per LLM response",
    )
    api_base_url: Optional[str] = Field(
        default=None,
        description="Custom API base URL (for proxies or self-hosted models)",
    )


# =============================================================================
# Response Cache Configuration
# =============================================================================
class CacheConfig(BaseModel):
    """Configuration for the process-wide response cache.

    Attributes:
        enabled: Master switch. A disabled cache misses every lookup and
            ignores every write.
        ttl_seconds: Entries older than this are swept on the next read.
        max_entries: Capacity. Oldest entries are evicted to stay within it.
        non_cacheable_agents: Agents whose output depends on more than the
            user query (they iterate on their own previous output), so a
            cached answer would be stale by construction.
    """

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Time-to-live for cached responses in seconds",
    )
    max_entries: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of cached responses",
    )
    non_cacheable_agents: list[str] = Field(
        default_factory=lambda: ["Builder", "Tester"],
        description="Agents that always bypass the cache",
    )


# =============================================================================
# Safety Configuration
# =============================================================================
class SafetyConfig(BaseModel):
    """Liveness and resource bounds enforced by the SafetyGuard.

    Attributes:
        max_turns: Hard cap on turns per conversation; the router forces
            FINISH at or beyond it.
        max_agent_retries: Retry budget for self-loop agents, and the
            failure count at which a circuit breaker opens.
        agent_timeout_seconds: Per-call timeout applied to every agent and
            provider call.
        circuit_cooldown_seconds: How long a breaker stays open after the
            last failure before auto-recovering.
        self_loop_agents: Agents allowed to re-run themselves on
            ``needs_retry``. Every other agent gets a budget of 1.
    """

    max_turns: int = Field(default=50, ge=1, description="Maximum turns per conversation")
    max_agent_retries: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Retry budget for self-loop agents / breaker threshold",
    )
    agent_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Per-call agent timeout in seconds",
    )
    circuit_cooldown_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Seconds an open breaker waits before auto-recovery",
    )
    self_loop_agents: list[str] = Field(
        default_factory=lambda: ["Builder", "Tester"],
        description="Agents allowed to iterate on their own output",
    )


# =============================================================================
# Resilient Call Configuration
# =============================================================================
class ResilienceConfig(BaseModel):
    """Retry behaviour of the resilient call wrapper.

    Delays are linear: attempt N (1-based) waits ``N * backoff_base_seconds``
    before attempt N+1.

    Attributes:
        max_attempts: Total attempts per invocation (not extra retries).
        backoff_base_seconds: Linear backoff unit.
        fallback_message: Text shown in-band when every attempt failed.
    """

    max_attempts: int = Field(default=2, ge=1, le=10, description="Attempts per agent call")
    backoff_base_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Linear backoff unit in seconds",
    )
    fallback_message: str = Field(
        default="I encountered an error processing this request.",
        description="Human-readable text of the in-band fallback response",
    )


# =============================================================================
# Router Configuration
# =============================================================================
class RouterConfig(BaseModel):
    """Configuration for the tiered router.

    Attributes:
        entry_agent: Initial value of ``WorkflowState.next``. "Router" means
            the first turn asks the router; naming an agent skips that.
        default_agent: Where rule-based routing goes when no keyword matches.
        provider_timeout_seconds: Timeout for each classification call.
        primary: Tier-0 provider. None disables tier 0, so an unconfigured
            deployment routes with keyword rules only.
        secondary: Tier-1 provider. None disables tier 1.
        force_fallback_level: Skip tiers below this level (0, 1 or 2).
            Useful for drills and for running without any provider.
    """

    entry_agent: str = Field(default="Router", description="Initial routing target")
    default_agent: str = Field(
        default="ProductManager",
        description="Agent chosen when keyword routing finds no match",
    )
    provider_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for each routing classification call",
    )
    primary: Optional[LLMConfig] = Field(
        default=None,
        description="Tier-0 routing provider (None disables the tier)",
    )
    secondary: Optional[LLMConfig] = Field(
        default=None,
        description="Tier-1 routing provider (None disables the tier)",
    )
    force_fallback_level: int = Field(
        default=0,
        ge=0,
        le=2,
        description="Start routing at this tier (2 = keyword rules only)",
    )


# =============================================================================
# Main Configuration
# =============================================================================
# Environment Variable Mapping:
#   HIVE_LOG_LEVEL              → config.log_level
#   HIVE_CACHE__TTL_SECONDS     → config.cache.ttl_seconds
#   HIVE_SAFETY__MAX_TURNS      → config.safety.max_turns
#   HIVE_ROUTER__DEFAULT_AGENT  → config.router.default_agent
# =============================================================================
class HiveConfig(BaseSettings):
    """Top-level configuration for HIVE.

    Attributes:
        environment: Deployment environment.
        log_level: Python logging level used by ``configure_logging``.
        log_format: "console" for humans, "json" for log aggregators.
        llm: Provider used by the specialist agents.
        cache: Response cache settings.
        safety: Turn/retry/breaker/timeout limits.
        resilience: Retry/backoff of each agent call.
        router: Tiered router settings.

    Example:
        >>> config = HiveConfig(safety=SafetyConfig(max_turns=10))
        >>> config.cache.ttl_seconds
        3600.0
    """

    # -------------------------------------------------------------------------
    # General Settings
    # -------------------------------------------------------------------------
    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log renderer",
    )

    # -------------------------------------------------------------------------
    # Nested Configurations
    # -------------------------------------------------------------------------
    llm: LLMConfig = Field(default_factory=LLMConfig, description="Agent LLM provider")
    cache: CacheConfig = Field(default_factory=CacheConfig, description="Response cache")
    safety: SafetyConfig = Field(default_factory=SafetyConfig, description="Safety limits")
    resilience: ResilienceConfig = Field(
        default_factory=ResilienceConfig,
        description="Agent call retries",
    )
    router: RouterConfig = Field(default_factory=RouterConfig, description="Tiered router")

    model_config = {
        "env_prefix": "HIVE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> HiveConfig:
    """Load HIVE configuration from a YAML file and/or environment variables.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            ``hive.yaml`` in the current directory and falls back to pure
            defaults + environment variables when it is absent.

    Returns:
        A fully validated HiveConfig instance.

    Raises:
        FileNotFoundError: If an explicit path is provided but doesn't exist.
        ConfigurationError: If the YAML file cannot be parsed.

    Example:
        >>> config = load_config("hive.yaml")
    """
    if path is None:
        default_path = Path("hive.yaml")
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(config_path) as f:
            try:
                raw_data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    message=f"Invalid YAML in {path}",
                    error_code="INVALID_CONFIG_FILE",
                    details={"path": path, "error": str(exc)},
                ) from exc
            if isinstance(raw_data, dict):
                yaml_data = raw_data

    # Environment variables win over the file, field by field
    env_data = HiveConfig().model_dump(exclude_unset=True)
    return HiveConfig(**_deep_merge(yaml_data, env_data))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` applied; nested dicts merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_default_config() -> HiveConfig:
    """Create a HiveConfig with all defaults (overridden by any set env vars)."""
    return HiveConfig()
