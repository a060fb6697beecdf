"""
hive.infrastructure.response_cache - Exact-Match Response Cache
=================================================================

This module memoizes agent responses so identical work is not paid for
twice. It is a process-wide service: every conversation shares one
``ResponseCache`` instance, created by the facade and injected into the
resilient call wrapper.

Keying:
    key = sha256("<model>::<system prompt>::<input>".lower().strip())[:32]

    Matching is EXACT on the normalized text (case and surrounding
    whitespace are ignored). There is no similarity search: two prompts that
    mean the same thing but differ in wording are different keys.

Lifecycle of an entry:

    set() ──→ [entry: created_at, hit_count=0] ──get() hit──→ hit_count += 1
                        │
                        ├── older than TTL ─────→ swept on the next get()
                        └── oldest when full ───→ evicted on the next set()

    Entries are immutable after insertion except for ``hit_count``.

Failure Semantics:
    The cache is best-effort. Any fault while reading or writing is wrapped
    in a ``CacheError``, logged, counted in ``stats().faults`` and reported
    as a miss (reads) or ignored (writes); no public method raises to its
    caller.

Concurrency:
    Public methods are coroutines guarded by one ``asyncio.Lock``, so
    concurrent conversations never observe a half-applied sweep or eviction.

Usage:
    >>> cache = ResponseCache(CacheConfig(ttl_seconds=600))
    >>> await cache.set("gpt-4", system, "plan a todo app", result, cost_units=120)
    >>> await cache.get("gpt-4", system, "Plan a todo app  ")
    result
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, Field

from hive.core.config import CacheConfig
from hive.core.exceptions import CacheError
from hive.infrastructure.observability import CACHE_HITS, CACHE_MISSES, MetricsRegistry


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


# =============================================================================
# Key Derivation
# =============================================================================
def make_cache_key(model: str, system_prompt: str, user_input: str) -> str:
    """Derive the cache key for a (model, system prompt, input) triple.

    Example:
        >>> make_cache_key("m", "sys", "Hello ") == make_cache_key("m", "SYS", "hello")
        True
    """
    normalized = f"{model}::{system_prompt}::{user_input}".lower().strip()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:32]


# =============================================================================
# Data Models
# =============================================================================
class CacheEntry(BaseModel):
    """One cached response.

    Attributes:
        key: The derived cache key.
        value: The cached response object.
        created_at: Clock reading at insertion.
        hit_count: Times this entry has been served.
        estimated_units_saved: Cost units (tokens) one hit avoids paying.
    """

    key: str
    value: Any
    created_at: float
    hit_count: int = 0
    estimated_units_saved: int = 0


class CacheStats(BaseModel):
    """Cumulative cache statistics.

    Attributes:
        hits: Lookups served from the cache.
        misses: Lookups that found nothing (including expired entries).
        entries: Entries currently stored.
        units_saved: Σ hit_count × estimated_units_saved over current entries.
        hit_rate: hits / (hits + misses), 0.0 before any lookup.
        faults: Internal faults absorbed as misses or dropped writes.
    """

    hits: int = 0
    misses: int = 0
    entries: int = 0
    units_saved: int = 0
    hit_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    faults: int = 0


# =============================================================================
# ResponseCache
# =============================================================================
class ResponseCache:
    """TTL + capacity bounded exact-match cache.

    Args:
        config: Cache settings (enabled flag, TTL, capacity, agents that
            must never be cached).
        metrics: Registry receiving hit/miss counters.
        clock: Monotonic time source in seconds. Tests inject a fake one.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        metrics: Optional[MetricsRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CacheConfig()
        self._metrics = metrics
        self._clock = clock

        # Insertion order == creation order: overwrites are re-inserted at
        # the end, so the first key is always the oldest entry.
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._faults = 0
        self._last_error: Optional[CacheError] = None
        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="response_cache")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def is_cacheable(self, agent_name: str) -> bool:
        """True when the cache is on and ``agent_name`` may be cached."""
        return self.enabled and agent_name not in self._config.non_cacheable_agents

    def __len__(self) -> int:
        return len(self._entries)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(
        self,
        model: str,
        system_prompt: str,
        user_input: str,
        *,
        agent_name: str = "unknown",
    ) -> Optional[Any]:
        """Look up a cached response.

        Sweeps expired entries first, then looks up the key. A hit bumps
        the entry's ``hit_count``.

        Returns:
            The cached value, or None on a miss, when disabled, or on any
            internal fault.
        """
        if not self.enabled:
            return None

        try:
            key = make_cache_key(model, system_prompt, user_input)
            async with self._lock:
                self._sweep_expired()
                entry = self._entries.get(key)
                if entry is None:
                    self._misses += 1
                else:
                    entry.hit_count += 1
                    self._hits += 1
        except Exception as exc:
            self._fault("CACHE_READ_FAILED", exc, agent_name=agent_name)
            return None

        if entry is None:
            self._record(CACHE_MISSES, agent_name)
            self._logger.debug("cache_miss", agent_name=agent_name, key=key)
            return None

        self._record(CACHE_HITS, agent_name)
        self._logger.info(
            "cache_hit",
            agent_name=agent_name,
            key=key,
            hit_count=entry.hit_count,
            units_saved=entry.estimated_units_saved,
        )
        return entry.value

    # =========================================================================
    # Writes
    # =========================================================================

    async def set(
        self,
        model: str,
        system_prompt: str,
        user_input: str,
        value: Any,
        cost_units: int = 0,
    ) -> None:
        """Store a response.

        When the key is new and the cache is full, the oldest entries are
        evicted first so the size never exceeds ``max_entries``. An existing
        key is overwritten (and becomes the newest entry).
        """
        if not self.enabled:
            return

        try:
            key = make_cache_key(model, system_prompt, user_input)
            async with self._lock:
                if key in self._entries:
                    del self._entries[key]
                else:
                    self._evict_for_insert()
                self._entries[key] = CacheEntry(
                    key=key,
                    value=value,
                    created_at=self._clock(),
                    estimated_units_saved=max(0, int(cost_units)),
                )
        except Exception as exc:
            self._fault("CACHE_WRITE_FAILED", exc)
            return

        self._logger.debug("cache_set", key=key, entries=len(self._entries))

    async def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        async with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._faults = 0
            self._last_error = None
        self._logger.info("cache_cleared")

    # =========================================================================
    # Statistics
    # =========================================================================

    async def stats(self) -> CacheStats:
        """Return cumulative statistics."""
        async with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                entries=len(self._entries),
                units_saved=sum(
                    entry.hit_count * entry.estimated_units_saved
                    for entry in self._entries.values()
                ),
                hit_rate=(self._hits / total) if total else 0.0,
                faults=self._faults,
            )

    async def peek(self, model: str, system_prompt: str, user_input: str) -> Optional[CacheEntry]:
        """Return the raw entry for a key without counting a hit or miss."""
        key = make_cache_key(model, system_prompt, user_input)
        async with self._lock:
            entry = self._entries.get(key)
            return entry.model_copy() if entry else None

    @property
    def last_error(self) -> Optional[CacheError]:
        """The most recent absorbed fault, or None."""
        return self._last_error

    # =========================================================================
    # Internals (caller holds the lock)
    # =========================================================================

    def _sweep_expired(self) -> None:
        now = self._clock()
        ttl = self._config.ttl_seconds
        expired = [key for key, entry in self._entries.items() if now - entry.created_at > ttl]
        for key in expired:
            del self._entries[key]
        if expired:
            self._logger.debug("cache_expired_swept", count=len(expired))

    def _evict_for_insert(self) -> None:
        evicted = 0
        while self._entries and len(self._entries) >= self._config.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            evicted += 1
        if evicted:
            self._logger.debug("cache_evicted", count=evicted)

    def _record(self, metric: str, agent_name: str) -> None:
        if self._metrics is not None:
            self._metrics.inc(metric, agent=agent_name)

    def _fault(self, error_code: str, exc: Exception, **context: Any) -> None:
        error = CacheError(
            message=f"Response cache fault: {exc}",
            error_code=error_code,
            details={"error_type": exc.__class__.__name__, **context},
        )
        self._faults += 1
        self._last_error = error
        self._logger.warning("cache_fault", **error.to_dict())
