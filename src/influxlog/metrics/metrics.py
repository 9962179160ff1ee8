"""
Async-first metrics collection for influxlog.

Implements minimal Prometheus-compatible counters and histograms for the
batching pipeline: events dropped, batches flushed, points
written, write failures and flush latency.

Design goals:
- Pure async/await, no blocking I/O
- Zero global state; every collector owns an isolated registry
- Safe no-op exporters when disabled, while in-memory counters are always
  kept for tests
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class PipelineMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    events_dropped: int = 0
    batches_flushed: int = 0
    batches_failed: int = 0
    points_written: int = 0
    translation_errors: int = 0


class MetricsCollector:
    """Container-scoped async metrics collector."""

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = asyncio.Lock()
        self._state = PipelineMetrics()

        self._c_dropped: Any | None = None
        self._c_batches: Any | None = None
        self._c_points: Any | None = None
        self._c_translation_errors: Any | None = None
        self._h_batch_size: Any | None = None
        self._h_flush_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry to avoid global duplication in tests
            self._registry = CollectorRegistry()
            self._c_dropped = Counter(
                "influxlog_events_dropped_total",
                "Total number of log events dropped (shutdown, failed writes)",
                ["reason"],
                registry=self._registry,
            )
            self._c_batches = Counter(
                "influxlog_batches_total",
                "Total number of batch flushes by outcome",
                ["outcome"],
                registry=self._registry,
            )
            self._c_points = Counter(
                "influxlog_points_written_total",
                "Total number of data points written to InfluxDB",
                registry=self._registry,
            )
            self._c_translation_errors = Counter(
                "influxlog_translation_errors_total",
                "Total number of events skipped because translation failed",
                registry=self._registry,
            )
            self._h_batch_size = Histogram(
                "influxlog_batch_size",
                "Number of items per flushed batch",
                buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000),
                registry=self._registry,
            )
            self._h_flush_latency = Histogram(
                "influxlog_flush_seconds",
                "Latency of a single batch flush",
                buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    async def record_events_dropped(
        self, count: int = 1, *, reason: str = "unknown"
    ) -> None:
        async with self._lock:
            self._state.events_dropped += count
        if self._c_dropped is not None:
            self._c_dropped.labels(reason=reason).inc(count)

    async def record_batch_flush(
        self,
        *,
        batch_size: int,
        duration_seconds: float | None = None,
        success: bool = True,
    ) -> None:
        async with self._lock:
            if success:
                self._state.batches_flushed += 1
            else:
                self._state.batches_failed += 1
        if not self._enabled:
            return
        if self._c_batches is not None:
            self._c_batches.labels(outcome="success" if success else "failure").inc()
        if self._h_batch_size is not None:
            self._h_batch_size.observe(batch_size)
        if duration_seconds is not None and self._h_flush_latency is not None:
            self._h_flush_latency.observe(duration_seconds)

    async def record_points_written(self, count: int) -> None:
        async with self._lock:
            self._state.points_written += count
        if self._c_points is not None:
            self._c_points.inc(count)

    async def record_translation_error(self, count: int = 1) -> None:
        async with self._lock:
            self._state.translation_errors += count
        if self._c_translation_errors is not None:
            self._c_translation_errors.inc(count)

    async def snapshot(self) -> PipelineMetrics:
        # Lightweight copy without exposing internals
        async with self._lock:
            return PipelineMetrics(
                events_dropped=self._state.events_dropped,
                batches_flushed=self._state.batches_flushed,
                batches_failed=self._state.batches_failed,
                points_written=self._state.points_written,
                translation_errors=self._state.translation_errors,
            )


__all__ = ["MetricsCollector", "PipelineMetrics"]
