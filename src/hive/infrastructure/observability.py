"""
hive.infrastructure.observability - Metrics Registry and Spans
================================================================

This module provides the two observability services the orchestration core
writes to:

    MetricsRegistry   Process-wide counters, gauges and histograms keyed by
                      metric name + label set. ``snapshot()`` returns plain
                      data that an exporter (Prometheus, OTLP, a /metrics
                      route) can render in its own format.

    Tracer / Span     One span per agent invocation (and per routing call),
                      carrying attributes such as ``agent.name`` and
                      ``cache.hit``, the duration and the error, if any.
                      Finished spans are logged through structlog and kept
                      in a bounded in-memory buffer for inspection.

Process-Wide Lifecycle:
    Both services are created once (by the ``Hive`` facade) and injected
    into every component that records to them. Tests build fresh instances
    per test case instead of sharing globals.

Standard Metric Names:
    hive_agent_invocations_total{agent}       counter
    hive_agent_duration_seconds{agent}        histogram
    hive_agent_fallbacks_total{agent}         counter
    hive_cache_hits_total{agent}              counter
    hive_cache_misses_total{agent}            counter
    hive_circuit_breaker_state{agent}         gauge (0 closed, 1 open)
    hive_router_decisions_total{level}        counter
    hive_tokens_total{agent}                  counter

Thread Safety:
    Several conversations record concurrently, possibly from different
    event loops or threads, so the registry guards its maps with a
    ``threading.Lock``. Each operation holds the lock only for a dict
    update.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Union
from uuid import uuid4

import structlog


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


# =============================================================================
# Metric Names
# =============================================================================
AGENT_INVOCATIONS = "hive_agent_invocations_total"
AGENT_DURATION = "hive_agent_duration_seconds"
AGENT_FALLBACKS = "hive_agent_fallbacks_total"
CACHE_HITS = "hive_cache_hits_total"
CACHE_MISSES = "hive_cache_misses_total"
CIRCUIT_BREAKER_STATE = "hive_circuit_breaker_state"
ROUTER_DECISIONS = "hive_router_decisions_total"
TOKENS_USED = "hive_tokens_total"

DEFAULT_BUCKETS: tuple[float, ...] = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, Any]) -> LabelKey:
    return tuple(sorted((key, str(value)) for key, value in labels.items()))


class _Histogram:
    """Cumulative bucket counts plus count and sum."""

    __slots__ = ("buckets", "counts", "count", "total")

    def __init__(self, buckets: tuple[float, ...]) -> None:
        self.buckets = buckets
        self.counts = [0] * len(buckets)
        self.count = 0
        self.total = 0.0

    def observe(self, value: float) -> None:
        self.count += 1
        self.total += value
        for index, bound in enumerate(self.buckets):
            if value <= bound:
                self.counts[index] += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "sum": self.total,
            "buckets": {str(bound): n for bound, n in zip(self.buckets, self.counts)},
        }


# =============================================================================
# MetricsRegistry
# =============================================================================
class MetricsRegistry:
    """In-process counter/gauge/histogram registry.

    Example:
        >>> metrics = MetricsRegistry()
        >>> metrics.inc(AGENT_INVOCATIONS, agent="Builder")
        >>> metrics.get(AGENT_INVOCATIONS, agent="Builder")
        1.0
    """

    def __init__(self, buckets: tuple[float, ...] = DEFAULT_BUCKETS) -> None:
        self._buckets = buckets
        self._counters: dict[str, dict[LabelKey, float]] = {}
        self._gauges: dict[str, dict[LabelKey, float]] = {}
        self._histograms: dict[str, dict[LabelKey, _Histogram]] = {}
        self._lock = threading.Lock()

    def inc(self, name: str, value: float = 1.0, **labels: Any) -> None:
        """Increment a counter. Counters only go up."""
        if value < 0:
            raise ValueError(f"Counter {name} cannot be decremented")
        key = _label_key(labels)
        with self._lock:
            series = self._counters.setdefault(name, {})
            series[key] = series.get(key, 0.0) + value

    def set_gauge(self, name: str, value: float, **labels: Any) -> None:
        """Set a gauge to an absolute value."""
        key = _label_key(labels)
        with self._lock:
            self._gauges.setdefault(name, {})[key] = float(value)

    def observe(self, name: str, value: float, **labels: Any) -> None:
        """Record one observation in a histogram."""
        key = _label_key(labels)
        with self._lock:
            series = self._histograms.setdefault(name, {})
            histogram = series.get(key)
            if histogram is None:
                histogram = series[key] = _Histogram(self._buckets)
            histogram.observe(value)

    def get(self, name: str, **labels: Any) -> float:
        """Current value of a counter or gauge (0.0 when never recorded)."""
        key = _label_key(labels)
        with self._lock:
            if name in self._counters:
                return self._counters[name].get(key, 0.0)
            return self._gauges.get(name, {}).get(key, 0.0)

    def histogram_count(self, name: str, **labels: Any) -> int:
        key = _label_key(labels)
        with self._lock:
            histogram = self._histograms.get(name, {}).get(key)
            return histogram.count if histogram else 0

    def snapshot(self) -> dict[str, Any]:
        """Return every series as plain data.

        Shape::

            {
                "counters":   {name: [{"labels": {...}, "value": 3.0}, ...]},
                "gauges":     {name: [{"labels": {...}, "value": 1.0}, ...]},
                "histograms": {name: [{"labels": {...}, "count": 2,
                                       "sum": 0.8, "buckets": {...}}, ...]},
            }
        """
        with self._lock:
            return {
                "counters": {
                    name: [{"labels": dict(key), "value": value} for key, value in series.items()]
                    for name, series in self._counters.items()
                },
                "gauges": {
                    name: [{"labels": dict(key), "value": value} for key, value in series.items()]
                    for name, series in self._gauges.items()
                },
                "histograms": {
                    name: [{"labels": dict(key), **hist.to_dict()} for key, hist in series.items()]
                    for name, series in self._histograms.items()
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()


# =============================================================================
# Spans
# =============================================================================
class Span:
    """One timed, attributed unit of work.

    Attributes:
        name: Span name, e.g. ``hive.agent.Builder``.
        span_id: Random identifier.
        attributes: Key/value tags.
        status: "ok" or "error".
        error: Error description when status is "error".
    """

    def __init__(self, name: str, attributes: Optional[dict[str, Any]] = None) -> None:
        self.name = name
        self.span_id = uuid4().hex[:16]
        self.attributes: dict[str, Any] = dict(attributes or {})
        self.status = "ok"
        self.error: Optional[str] = None
        self._start = time.perf_counter()
        self._end: Optional[float] = None

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def record_error(self, error: Union[BaseException, str]) -> None:
        self.status = "error"
        self.error = str(error)

    def end(self) -> None:
        if self._end is None:
            self._end = time.perf_counter()

    @property
    def ended(self) -> bool:
        return self._end is not None

    @property
    def duration_seconds(self) -> float:
        end = self._end if self._end is not None else time.perf_counter()
        return end - self._start

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "span_id": self.span_id,
            "attributes": dict(self.attributes),
            "status": self.status,
            "error": self.error,
            "duration_seconds": round(self.duration_seconds, 6),
        }


class Tracer:
    """Creates spans and keeps the most recent finished ones.

    Example:
        >>> tracer = Tracer()
        >>> with tracer.span("hive.agent.Planner", **{"agent.name": "Planner"}) as span:
        ...     span.set_attribute("cache.hit", False)
        >>> tracer.finished_spans[-1].name
        'hive.agent.Planner'
    """

    def __init__(self, max_finished: int = 1000) -> None:
        self._finished: deque[Span] = deque(maxlen=max_finished)
        self._lock = threading.Lock()
        self._logger = logger.bind(component="tracer")

    @contextmanager
    def span(self, name: str, **attributes: Any) -> Iterator[Span]:
        """Open a span for the duration of the ``with`` block.

        An exception escaping the block marks the span as errored and is
        re-raised unchanged.
        """
        current = Span(name, attributes)
        try:
            yield current
        except BaseException as exc:
            current.record_error(exc)
            raise
        finally:
            current.end()
            with self._lock:
                self._finished.append(current)
            self._logger.debug(
                "span_finished",
                span_name=current.name,
                status=current.status,
                error=current.error,
                duration_seconds=round(current.duration_seconds, 6),
                **current.attributes,
            )

    @property
    def finished_spans(self) -> list[Span]:
        with self._lock:
            return list(self._finished)

    def clear(self) -> None:
        with self._lock:
            self._finished.clear()
