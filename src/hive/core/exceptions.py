"""
hive.core.exceptions - Custom Exception Hierarchy
===================================================

This module defines the structured exception hierarchy for HIVE. Components
raise and catch specific exception types that carry contextual information
instead of bare ``Exception`` strings.

Exception Hierarchy:
    HiveError (base)
        ├── ConfigurationError      - Invalid config, missing required values
        ├── AgentError              - Agent execution failures
        │     ├── AgentTimeoutError - Agent call exceeded its time budget
        │     └── CircuitOpenError  - Agent skipped, breaker is open
        ├── RoutingError            - Router could not parse a provider answer
        ├── CacheError              - Response cache read/write failure
        ├── StateError              - Invalid state update or checkpoint
        └── RequestCancelledError   - Caller aborted the request

How the Orchestration Core Uses Them:
    Most of these never reach the caller of ``WorkflowEngine.advance()``.
    The resilient call wrapper turns AgentError into an in-band fallback
    message, the router turns RoutingError into the next tier, and the cache
    logs and swallows CacheError. Only RequestCancelledError (and asyncio's
    own CancelledError) propagate, because the caller asked for them.

Usage:
    >>> from hive.core.exceptions import AgentTimeoutError
    >>> raise AgentTimeoutError(agent_name="Builder", timeout_seconds=60)
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
class HiveError(Exception):
    """Base exception for all HIVE errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable code in UPPER_SNAKE_CASE
            (e.g., "AGENT_TIMEOUT", "CIRCUIT_OPEN").
        details: Arbitrary dict with additional debugging context.

    Example:
        >>> try:
        ...     await guard.with_timeout(call(), 5.0, "Planner")
        ... except HiveError as e:
        ...     logger.error(e.message, **e.to_dict())
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary (for structlog and events).

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration Error
# =============================================================================
class ConfigurationError(HiveError):
    """Raised when HIVE configuration is invalid or inconsistent.

    Raised at startup so the process fails fast, e.g. when a YAML file does
    not parse or names an unknown LLM provider.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIGURATION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Agent Errors
# =============================================================================
class AgentError(HiveError):
    """Raised when an agent invocation fails.

    Attributes:
        agent_name: The agent whose call failed. Always present so the
            failure can be attributed in-band.
    """

    def __init__(
        self,
        message: str,
        agent_name: str,
        error_code: str = "AGENT_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)
        self.agent_name = agent_name
        self.details.setdefault("agent_name", agent_name)


class AgentTimeoutError(AgentError):
    """Raised when an agent call does not finish within its time budget."""

    def __init__(self, agent_name: str, timeout_seconds: float) -> None:
        super().__init__(
            message=f"{agent_name} timed out after {timeout_seconds:g}s",
            agent_name=agent_name,
            error_code="AGENT_TIMEOUT",
            details={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


class CircuitOpenError(AgentError):
    """Raised when a call is refused because the agent's breaker is open."""

    def __init__(self, agent_name: str) -> None:
        super().__init__(
            message=f"Circuit breaker open for {agent_name}",
            agent_name=agent_name,
            error_code="CIRCUIT_OPEN",
        )


# =============================================================================
# Routing Error
# =============================================================================
class RoutingError(HiveError):
    """Raised when a routing provider returns an answer that names no agent.

    The router catches this and falls through to the next tier.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "ROUTING_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Cache Error
# =============================================================================
class CacheError(HiveError):
    """Raised for response cache faults.

    Never escapes the cache's public methods: the cache logs it and
    behaves as a miss (reads) or a no-op (writes).
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CACHE_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# State Error
# =============================================================================
class StateError(HiveError):
    """Raised for invalid state updates or checkpoint failures."""

    def __init__(
        self,
        message: str,
        error_code: str = "STATE_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Cancellation
# =============================================================================
class RequestCancelledError(HiveError):
    """Raised when the caller aborts a request between retry attempts."""

    def __init__(self, agent_name: Optional[str] = None) -> None:
        super().__init__(
            message="Request cancelled by caller",
            error_code="REQUEST_CANCELLED",
            details={"agent_name": agent_name} if agent_name else None,
        )
        self.agent_name = agent_name
