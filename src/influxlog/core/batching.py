"""
Periodic micro-batching for async sinks.

:class:`PeriodicBatcher` accumulates items in memory and hands them to an
async flush callback in batches. A flush happens when either

- ``batch_size_limit`` items are buffered (size trigger), or
- ``period`` seconds pass without a flush (time trigger).

Producers call :meth:`PeriodicBatcher.add`, which is synchronous, never
waits on I/O and may be called from any thread. A single background task
owned by the event loop that called :meth:`start` performs the flushes.

Guarantees:

- Items reach the callback in submission order within a batch and
  across the batches of one drain.
- At most one flush is in flight. A timer tick that arrives while a
  flush is outstanding is skipped.
- A failed flush is reported and its batch discarded; there is no retry.
- :meth:`stop` refuses further items, then flushes what is buffered
  within a bounded grace period. Whatever is still pending when the
  grace period expires is abandoned and reported.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Generic, TypeVar

from . import diagnostics

if TYPE_CHECKING:
    from ..metrics.metrics import MetricsCollector

T = TypeVar("T")

FlushCallback = Callable[[list[T]], Awaitable[None]]
FlushErrorHandler = Callable[[BaseException, list[T]], None]

DEFAULT_BATCH_SIZE_LIMIT = 100
DEFAULT_PERIOD_SECONDS = 30.0
DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 5.0


class BatcherState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


@dataclass
class BatcherStats:
    """Counters describing the batcher's lifetime activity."""

    flushes: int = 0
    items_flushed: int = 0
    failed_flushes: int = 0
    items_failed: int = 0
    skipped_ticks: int = 0
    rejected: int = 0
    abandoned: int = 0


def _to_seconds(value: float | timedelta) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class PeriodicBatcher(Generic[T]):
    """Buffer items and flush them by size or by time.

    Example:
        async def write(batch: list[str]) -> None:
            ...

        async with PeriodicBatcher(write, batch_size_limit=50, period=5.0) as b:
            b.add("hello")
    """

    def __init__(
        self,
        flush: FlushCallback[T],
        *,
        batch_size_limit: int = DEFAULT_BATCH_SIZE_LIMIT,
        period: float | timedelta = DEFAULT_PERIOD_SECONDS,
        name: str = "batcher",
        on_error: FlushErrorHandler[T] | None = None,
        shutdown_timeout: float | timedelta = DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if batch_size_limit < 1:
            raise ValueError("batch_size_limit must be >= 1")
        period_seconds = _to_seconds(period)
        if period_seconds <= 0:
            raise ValueError("period must be > 0")
        self._flush_callback = flush
        self._batch_size_limit = int(batch_size_limit)
        self._period = period_seconds
        self._name = name
        self._on_error = on_error
        self._shutdown_timeout = _to_seconds(shutdown_timeout)
        self._metrics = metrics

        # Guards _buffer and _closed; held only for append and drain
        self._lock = threading.Lock()
        self._buffer: list[T] = []
        self._closed = False
        self._stopped = False

        self._flush_lock = asyncio.Lock()
        self._wake = asyncio.Event()
        self._inflight = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._stats = BatcherStats()

    # ------------------------------------------------------------------
    # Introspection

    @property
    def name(self) -> str:
        return self._name

    @property
    def batch_size_limit(self) -> int:
        return self._batch_size_limit

    @property
    def period(self) -> float:
        return self._period

    @property
    def pending(self) -> int:
        """Number of buffered items not yet handed to a flush."""
        with self._lock:
            return len(self._buffer)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def state(self) -> BatcherState:
        if self._inflight:
            return BatcherState.FLUSHING
        if self.pending:
            return BatcherState.ACCUMULATING
        return BatcherState.IDLE

    @property
    def stats(self) -> BatcherStats:
        s = self._stats
        return BatcherStats(
            flushes=s.flushes,
            items_flushed=s.items_flushed,
            failed_flushes=s.failed_flushes,
            items_failed=s.items_failed,
            skipped_ticks=s.skipped_ticks,
            rejected=s.rejected,
            abandoned=s.abandoned,
        )

    # ------------------------------------------------------------------
    # Producer side

    def add(self, item: T) -> bool:
        """Buffer ``item``; returns ``False`` once the batcher is closed."""
        with self._lock:
            if self._closed:
                self._stats.rejected += 1
                return False
            self._buffer.append(item)
            full = len(self._buffer) >= self._batch_size_limit
        if full:
            self._signal()
        return True

    def _signal(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._wake.set()
            return
        try:
            loop.call_soon_threadsafe(self._wake.set)
        except RuntimeError:
            # Loop closed between the check and the call
            pass

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        """Start the background flush task on the running loop."""
        if self.is_running:
            return
        if self._stopped:
            raise RuntimeError(f"{self._name} has been stopped")
        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(
            self._run(), name=f"{self._name}-flush-loop"
        )

    async def stop(self, timeout: float | timedelta | None = None) -> None:
        """Refuse new items and flush the remainder within ``timeout``.

        ``timeout`` defaults to the ``shutdown_timeout`` given at
        construction. Items that could not be written in time are
        abandoned and reported through diagnostics.
        """
        if self._stopped:
            return
        with self._lock:
            self._closed = True
        self._stopped = True
        grace = self._shutdown_timeout if timeout is None else _to_seconds(timeout)
        try:
            await asyncio.wait_for(self._shutdown(), timeout=grace)
        except asyncio.TimeoutError:
            self._cancel_task()
            with self._lock:
                lost = len(self._buffer) + self._inflight
                self._buffer.clear()
                self._inflight = 0
            self._stats.abandoned += lost
            diagnostics.warn(
                "batcher",
                "shutdown flush timed out; pending items abandoned",
                batcher=self._name,
                timeout=grace,
                abandoned=lost,
            )
            if self._metrics is not None and lost:
                try:
                    await self._metrics.record_events_dropped(
                        lost, reason="shutdown_timeout"
                    )
                except Exception:
                    pass
        finally:
            self._task = None

    async def flush(self) -> None:
        """Flush everything buffered at the time of the call."""
        async with self._flush_lock:
            await self._drain(self.pending)

    async def __aenter__(self) -> PeriodicBatcher[T]:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _shutdown(self) -> None:
        task = self._task
        if task is not None and not task.done():
            if self._owns(task):
                self._wake.set()
                await task
            else:
                # Task belongs to another loop (e.g. atexit drain); it can
                # only be cancelled from there
                self._cancel_task()
        await self.flush()

    def _owns(self, task: asyncio.Task[None]) -> bool:
        try:
            return task.get_loop() is asyncio.get_running_loop()
        except RuntimeError:
            return False

    def _cancel_task(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        loop = task.get_loop()
        if loop.is_closed():
            return
        if self._owns(task):
            task.cancel()
        else:
            try:
                loop.call_soon_threadsafe(task.cancel)
            except RuntimeError:
                pass

    # ------------------------------------------------------------------
    # Flush loop

    async def _run(self) -> None:
        try:
            while not self._closed:
                if self.pending >= self._batch_size_limit:
                    await self._flush_full_batches()
                    continue
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=self._period)
                except asyncio.TimeoutError:
                    await self._on_tick()
                else:
                    self._wake.clear()
        except Exception as exc:  # pragma: no cover
            diagnostics.warn(
                "batcher",
                "flush loop crashed",
                batcher=self._name,
                error=str(exc),
            )

    async def _on_tick(self) -> None:
        if self._flush_lock.locked():
            self._stats.skipped_ticks += 1
            diagnostics.debug(
                "batcher",
                "timer tick skipped; flush already in progress",
                batcher=self._name,
            )
            return
        await self.flush()

    async def _flush_full_batches(self) -> None:
        async with self._flush_lock:
            while self.pending >= self._batch_size_limit:
                batch = self._take(self._batch_size_limit)
                if not batch:
                    break
                await self._emit(batch)

    async def _drain(self, count: int) -> None:
        # Bounded by ``count`` so a fast producer cannot keep one drain alive
        remaining = count
        while remaining > 0:
            batch = self._take(min(remaining, self._batch_size_limit))
            if not batch:
                break
            remaining -= len(batch)
            await self._emit(batch)

    def _take(self, count: int) -> list[T]:
        with self._lock:
            batch = self._buffer[:count]
            del self._buffer[:count]
        return batch

    async def _emit(self, batch: list[T]) -> None:
        self._inflight = len(batch)
        start = time.perf_counter()
        success = False
        try:
            await self._flush_callback(batch)
            success = True
        except Exception as exc:
            self._stats.failed_flushes += 1
            self._stats.items_failed += len(batch)
            self._report_failure(exc, batch)
        else:
            self._stats.flushes += 1
            self._stats.items_flushed += len(batch)
        # Left set when the flush is cancelled so stop() can count the loss
        self._inflight = 0
        if self._metrics is not None:
            try:
                await self._metrics.record_batch_flush(
                    batch_size=len(batch),
                    duration_seconds=time.perf_counter() - start,
                    success=success,
                )
                if not success:
                    await self._metrics.record_events_dropped(
                        len(batch), reason="write_failed"
                    )
            except Exception:
                pass

    def _report_failure(self, exc: Exception, batch: list[T]) -> None:
        diagnostics.warn(
            "batcher",
            "batch flush failed; batch dropped",
            batcher=self._name,
            batch_size=len(batch),
            error=str(exc),
            error_type=type(exc).__name__,
            _rate_limit_key=f"{self._name}-flush-error",
        )
        if self._on_error is None:
            return
        try:
            self._on_error(exc, batch)
        except Exception as handler_exc:
            diagnostics.warn(
                "batcher",
                "flush error handler raised",
                batcher=self._name,
                error=str(handler_exc),
            )


__all__ = [
    "DEFAULT_BATCH_SIZE_LIMIT",
    "DEFAULT_PERIOD_SECONDS",
    "DEFAULT_SHUTDOWN_TIMEOUT_SECONDS",
    "BatcherState",
    "BatcherStats",
    "PeriodicBatcher",
]
