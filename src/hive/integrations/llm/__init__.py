"""
hive.integrations.llm - Completion Providers
==============================================

    - BaseLLMProvider: abstract provider contract.
    - MockLLMProvider: scripted provider for tests and offline runs.
    - create_llm_provider: config → provider factory.
"""

from hive.integrations.llm.base import BaseLLMProvider, LLMResponse, LLMUsage
from hive.integrations.llm.factory import create_llm_provider
from hive.integrations.llm.mock import MockLLMProvider

__all__ = [
    "BaseLLMProvider",
    "LLMResponse",
    "LLMUsage",
    "MockLLMProvider",
    "create_llm_provider",
]
