"""
hive.integrations.llm.base - Abstract Completion Provider Interface
=====================================================================

This module defines the contract every completion provider implements.
Neither the router nor the specialist agents talk to a vendor SDK directly;
they call a ``BaseLLMProvider``.

    ┌──────────────┐  generate_with_system()  ┌──────────────────┐
    │ Router       │ ───────────────────────→ │ BaseLLMProvider   │
    │ (tier 0 / 1) │ ←────── LLMResponse ──── │ (abstract)        │
    ├──────────────┤                          └────────┬─────────┘
    │ Specialist   │                                   │
    │ agents       │                          ┌────────┴────────┐
    └──────────────┘                          │                 │
                                         ┌────▼───┐     ┌───────▼──────┐
                                         │  Mock  │     │ Vendor SDK   │
                                         │Provider│     │ (plug-in)    │
                                         └────────┘     └──────────────┘

The provider's ``model`` is part of the response cache key, so two
providers serving different models never share cached answers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from hive.core.config import LLMConfig


# =============================================================================
# Response Models
# =============================================================================
class LLMUsage(BaseModel):
    """Token usage of a single call.

    Attributes:
        prompt_tokens: Tokens in the input.
        completion_tokens: Tokens in the output.
        total_tokens: Sum of both; this is the "cost units" figure the
            response cache credits on every hit.
    """

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class LLMResponse(BaseModel):
    """Standardized response from any provider.

    Attributes:
        content: The generated text.
        model: Model that produced it.
        usage: Token counts.
        finish_reason: "stop", "length" or "error".
        metadata: Provider-specific extras.
        created_at: Response creation time (UTC).
    """

    content: str = Field(description="The generated text content")
    model: str = Field(description="Model identifier that produced this response")
    usage: LLMUsage = Field(default_factory=LLMUsage)
    finish_reason: str = Field(default="stop")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Abstract Base Provider
# =============================================================================
class BaseLLMProvider(ABC):
    """Abstract base class for completion providers.

    Subclasses implement ``generate`` and ``generate_with_system``. Both
    must be cancellable: when the caller's timeout fires, the awaiting task
    is cancelled and the provider should abandon the request.

    Example:
        >>> class VendorProvider(BaseLLMProvider):
        ...     async def generate(self, prompt, **kwargs):
        ...         text = await vendor_client.complete(prompt)
        ...         return LLMResponse(content=text, model=self.model)
    """

    def __init__(self, config: LLMConfig) -> None:
        self._config = config

    @property
    def provider_name(self) -> str:
        return self._config.provider

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def temperature(self) -> float:
        return self._config.temperature

    @property
    def max_tokens(self) -> int:
        return self._config.max_tokens

    @property
    def config(self) -> LLMConfig:
        return self._config

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop_sequences: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate text from a single prompt.

        Args:
            prompt: The input text.
            temperature: Override the configured temperature.
            max_tokens: Override the configured max_tokens.
            stop_sequences: Strings that stop generation.
            **kwargs: Provider-specific arguments.

        Returns:
            LLMResponse with content and usage.
        """
        ...

    @abstractmethod
    async def generate_with_system(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop_sequences: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate text with a system prompt (role, rules) and a user prompt.

        Returns:
            LLMResponse with content and usage.
        """
        ...

    async def validate(self) -> bool:
        """Check that the provider is usable. Override in real providers."""
        return True

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"provider={self.provider_name!r}, "
            f"model={self.model!r})"
        )
