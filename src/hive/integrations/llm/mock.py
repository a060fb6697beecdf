"""
hive.integrations.llm.mock - Mock Completion Provider
=======================================================

A provider that returns scripted responses without any network I/O. It is
the only provider bundled with HIVE and the one every test uses.

Features:
    - Response queue: ``queue_response()`` answers are returned FIFO.
    - Failure simulation: fail every call (``set_should_fail``) or only the
      next N calls (``fail_next``).
    - Latency simulation: ``set_latency()`` makes each call sleep, which
      lets tests exercise timeouts and cancellation.
    - Call history: every call is recorded for assertions.

Usage:
    >>> provider = MockLLMProvider()
    >>> provider.queue_response('{"next": "Planner", "reasoning": "needs a plan"}')
    >>> response = await provider.generate_with_system("route", "plan this")
    >>> response.content
    '{"next": "Planner", "reasoning": "needs a plan"}'
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Optional

import structlog

from hive.core.config import LLMConfig
from hive.integrations.llm.base import BaseLLMProvider, LLMResponse, LLMUsage


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


class MockLLMProvider(BaseLLMProvider):
    """Scripted provider for tests and offline runs.

    Response selection order for each call:
        1. Simulated failure (``set_should_fail`` or a pending ``fail_next``)
           → RuntimeError.
        2. Queued response, if any.
        3. ``default_response``.

    Args:
        config: Provider config (defaults to a mock config).
        default_response: Text returned when the queue is empty.
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        default_response: str = "Mock LLM response",
    ) -> None:
        if config is None:
            config = LLMConfig(provider="mock", model="mock-model")
        super().__init__(config)

        self._response_queue: deque[LLMResponse] = deque()
        self._call_history: list[dict[str, Any]] = []
        self._default_response = default_response

        self._should_fail: bool = False
        self._fail_remaining: int = 0
        self._failure_message: str = "Mock LLM API error"
        self._latency_seconds: float = 0.0

        self._logger = logger.bind(component="mock_llm_provider")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def call_history(self) -> list[dict[str, Any]]:
        """Recorded calls: dicts with "prompt", "system_prompt" and "kwargs"."""
        return self._call_history

    @property
    def call_count(self) -> int:
        return len(self._call_history)

    @property
    def queue_size(self) -> int:
        return len(self._response_queue)

    # =========================================================================
    # Scripting
    # =========================================================================

    def queue_response(
        self,
        content: str,
        *,
        model: Optional[str] = None,
        finish_reason: str = "stop",
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """Append a response to the FIFO queue."""
        self._response_queue.append(
            LLMResponse(
                content=content,
                model=model or self.model,
                usage=self._estimate_usage(content),
                finish_reason=finish_reason,
                metadata=metadata or {},
            )
        )

    def clear_queue(self) -> None:
        self._response_queue.clear()

    def clear_history(self) -> None:
        self._call_history.clear()

    def set_should_fail(self, should_fail: bool, message: str = "Mock LLM API error") -> None:
        """Make every call raise RuntimeError(message) while enabled."""
        self._should_fail = should_fail
        self._failure_message = message

    def fail_next(self, count: int, message: str = "Mock LLM API error") -> None:
        """Make only the next ``count`` calls raise RuntimeError(message)."""
        self._fail_remaining = count
        self._failure_message = message

    def set_latency(self, seconds: float) -> None:
        """Sleep ``seconds`` inside every call (before answering)."""
        self._latency_seconds = seconds

    # =========================================================================
    # Provider Interface
    # =========================================================================

    async def generate(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop_sequences: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        return await self._respond(None, prompt, temperature, max_tokens, kwargs)

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
        return await self._respond(system_prompt, user_prompt, temperature, max_tokens, kwargs)

    async def _respond(
        self,
        system_prompt: Optional[str],
        prompt: str,
        temperature: Optional[float],
        max_tokens: Optional[int],
        kwargs: dict[str, Any],
    ) -> LLMResponse:
        self._call_history.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "kwargs": kwargs,
        })
        self._logger.debug(
            "mock_generate_called",
            prompt_length=len(prompt),
            has_system_prompt=system_prompt is not None,
            queue_size=len(self._response_queue),
        )

        if self._latency_seconds > 0:
            await asyncio.sleep(self._latency_seconds)

        if self._should_fail:
            raise RuntimeError(self._failure_message)
        if self._fail_remaining > 0:
            self._fail_remaining -= 1
            raise RuntimeError(self._failure_message)

        if self._response_queue:
            return self._response_queue.popleft()

        return LLMResponse(
            content=self._default_response,
            model=self.model,
            usage=self._estimate_usage(self._default_response),
            metadata={"source": "default"},
        )

    def get_available_models(self) -> list[str]:
        return ["mock-model", "mock-fast", "mock-slow"]

    @staticmethod
    def _estimate_usage(text: str) -> LLMUsage:
        """Roughly 4 characters per token."""
        estimated_tokens = max(1, len(text) // 4)
        return LLMUsage(
            prompt_tokens=estimated_tokens,
            completion_tokens=estimated_tokens,
            total_tokens=estimated_tokens * 2,
        )
