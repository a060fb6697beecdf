"""
hive.integrations.llm.factory - Provider Factory
==================================================

Maps ``LLMConfig.provider`` to a concrete provider.

Usage:
    >>> provider = create_llm_provider(LLMConfig(provider="mock"))
    >>> type(provider).__name__
    'MockLLMProvider'
"""

from __future__ import annotations

from hive.core.config import LLMConfig
from hive.core.exceptions import ConfigurationError
from hive.integrations.llm.base import BaseLLMProvider


def create_llm_provider(config: LLMConfig) -> BaseLLMProvider:
    """Create a provider instance for ``config``.

    Only "mock" is bundled. Vendor providers subclass ``BaseLLMProvider``
    and are passed to the ``Hive`` facade directly.

    Raises:
        ConfigurationError: If the provider name is not recognized.
    """
    provider_name = config.provider.lower()

    if provider_name == "mock":
        from hive.integrations.llm.mock import MockLLMProvider
        return MockLLMProvider(config)

    raise ConfigurationError(
        message=f"Unknown LLM provider: '{provider_name}'",
        error_code="UNKNOWN_LLM_PROVIDER",
        details={"provider": provider_name, "available": ["mock"]},
    )
