"""
InfluxDB sink: buffers log events and writes them as batched data points.

The sink is a composition of three parts:

- a :class:`~influxlog.core.batching.PeriodicBatcher` holding raw events,
- an :class:`~influxlog.core.translator.EventTranslator` run over each
  flushed slice,
- a :class:`~influxlog.plugins.sinks.influxdb_client.PointWriter` doing
  the network I/O.

``emit`` never raises into the caller. Write failures are reported through
diagnostics and the optional ``error_handler``; the failed batch is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import string
from datetime import timedelta
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from ...core import diagnostics, shutdown
from ...core.batching import (
    DEFAULT_BATCH_SIZE_LIMIT,
    DEFAULT_PERIOD_SECONDS,
    DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
    PeriodicBatcher,
)
from ...core.errors import ConfigurationError
from ...core.events import LogEvent
from ...core.settings import InfluxDBConnectionInfo, Settings
from ...core.translator import DEFAULT_APP_NAME, DEFAULT_FACILITY, EventTranslator
from ...metrics.metrics import MetricsCollector
from .influxdb_client import InfluxDBWriter, PointWriter

# Public aliases for the batching defaults
DEFAULT_BATCH_POSTING_LIMIT = DEFAULT_BATCH_SIZE_LIMIT
DEFAULT_PERIOD = DEFAULT_PERIOD_SECONDS

ErrorHandler = Callable[[Exception], None]


def _coerce_connection_info(
    connection_info: InfluxDBConnectionInfo | Mapping[str, Any] | None,
) -> InfluxDBConnectionInfo:
    if connection_info is None:
        raise ConfigurationError("connection_info is required")
    if isinstance(connection_info, InfluxDBConnectionInfo):
        return connection_info
    try:
        return InfluxDBConnectionInfo.model_validate(dict(connection_info))
    except (ValidationError, TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"Invalid connection_info: {exc}",
            cause=exc,
        ) from exc


class InfluxDBSink:
    """Periodic batching sink writing log events to InfluxDB."""

    name = "influxdb"

    _logger = logging.getLogger("influxlog.sinks.influxdb")

    def __init__(
        self,
        connection_info: InfluxDBConnectionInfo | Mapping[str, Any] | None,
        source: str = "logs",
        *,
        batch_size_limit: int = DEFAULT_BATCH_POSTING_LIMIT,
        period: float | timedelta = DEFAULT_PERIOD,
        formatter: string.Formatter | None = None,
        app_name: str = DEFAULT_APP_NAME,
        facility: str = DEFAULT_FACILITY,
        writer: PointWriter | None = None,
        metrics: MetricsCollector | None = None,
        error_handler: ErrorHandler | None = None,
        shutdown_timeout: float | timedelta = DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
        ensure_database: bool = True,
        request_timeout: float = 5.0,
    ) -> None:
        self._connection_info = _coerce_connection_info(connection_info)
        if not source:
            raise ConfigurationError("source must not be empty")
        try:
            self._translator = EventTranslator(
                source,
                app_name=app_name,
                facility=facility,
                formatter=formatter,
            )
            self._batcher: PeriodicBatcher[LogEvent] = PeriodicBatcher(
                self._write_events,
                batch_size_limit=batch_size_limit,
                period=period,
                name=f"{self.name}-sink",
                on_error=self._on_flush_error,
                shutdown_timeout=shutdown_timeout,
                metrics=metrics,
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc), cause=exc) from exc
        self._writer: PointWriter = writer or InfluxDBWriter(
            self._connection_info, timeout=request_timeout
        )
        self._metrics = metrics
        self._error_handler = error_handler
        self._ensure_database = ensure_database
        self._ensure_database_task: asyncio.Task[None] | None = None
        self._last_write_ok: bool | None = None
        self._started = False
        info = self._connection_info
        if info.username and info.address.startswith("http://"):
            self._logger.warning(
                "credentials for %s will be sent over unencrypted HTTP",
                info.base_url,
            )

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, **overrides: Any
    ) -> InfluxDBSink:
        """Build a sink from :class:`Settings` (environment by default)."""
        try:
            cfg = settings or Settings()
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid settings: {exc}", cause=exc) from exc
        sink_cfg = cfg.influxdb
        kwargs: dict[str, Any] = {
            "source": sink_cfg.source,
            "batch_size_limit": sink_cfg.batch_size_limit,
            "period": sink_cfg.period_seconds,
            "app_name": sink_cfg.app_name,
            "facility": sink_cfg.facility,
            "ensure_database": sink_cfg.ensure_database,
            "request_timeout": sink_cfg.request_timeout_seconds,
            "shutdown_timeout": cfg.core.shutdown_timeout_seconds,
        }
        if cfg.core.enable_metrics and "metrics" not in overrides:
            kwargs["metrics"] = MetricsCollector(enabled=True)
        kwargs.update(overrides)
        if "connection_info" in kwargs:
            connection_info = kwargs.pop("connection_info")
        else:
            try:
                connection_info = sink_cfg.connection_info()
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Invalid connection settings: {exc}",
                    cause=exc,
                ) from exc
        return cls(connection_info, **kwargs)

    # ------------------------------------------------------------------
    # Properties

    @property
    def connection_info(self) -> InfluxDBConnectionInfo:
        return self._connection_info

    @property
    def database_name(self) -> str:
        return self._connection_info.database_name

    @property
    def batcher(self) -> PeriodicBatcher[LogEvent]:
        return self._batcher

    @property
    def translator(self) -> EventTranslator:
        return self._translator

    @property
    def ensure_database_task(self) -> asyncio.Task[None] | None:
        return self._ensure_database_task

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        await self._batcher.start()
        if self._ensure_database:
            self._ensure_database_task = asyncio.get_running_loop().create_task(
                self._ensure_database_exists(),
                name=f"{self.name}-ensure-database",
            )
        shutdown.register_sink(self)

    async def stop(self, timeout: float | timedelta | None = None) -> None:
        """Flush what is buffered (bounded by ``timeout``) and close."""
        shutdown.unregister_sink(self)
        await self._batcher.stop(timeout)
        task = self._ensure_database_task
        if task is not None and not task.done() and self._owns(task):
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        try:
            await self._writer.aclose()
        except Exception as exc:
            diagnostics.warn(
                "influxdb-sink",
                "writer close failed",
                error=str(exc),
            )

    async def __aenter__(self) -> InfluxDBSink:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Producer API

    def emit(self, event: LogEvent) -> bool:
        """Buffer ``event``; returns ``False`` if the sink has shut down.

        Never raises: a ``None`` event is reported and rejected.
        """
        if event is None:
            diagnostics.warn(
                "influxdb-sink",
                "emit called with None event; ignored",
                _rate_limit_key="influxdb-sink-none-event",
            )
            return False
        return self._batcher.add(event)

    async def flush(self) -> None:
        """Flush all buffered events now."""
        await self._batcher.flush()

    async def health_check(self) -> bool:
        if self._batcher.is_closed:
            return False
        return self._last_write_ok is not False

    # ------------------------------------------------------------------
    # Internals

    def _owns(self, task: asyncio.Task[Any]) -> bool:
        try:
            return task.get_loop() is asyncio.get_running_loop()
        except RuntimeError:
            return False

    async def _ensure_database_exists(self) -> None:
        name = self._connection_info.database_name
        try:
            created = await self._writer.ensure_database_exists(name)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            diagnostics.warn(
                "influxdb-sink",
                "database existence check failed",
                database=name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self._call_error_handler(exc)
            return
        if created:
            diagnostics.debug("influxdb-sink", "database created", database=name)

    async def _await_database_check(self) -> None:
        task = self._ensure_database_task
        if task is None or task.done() or not self._owns(task):
            return
        # The check reports its own failures; only wait for it to settle
        await asyncio.wait({task})

    async def _write_events(self, events: list[LogEvent]) -> None:
        await self._await_database_check()
        failed: list[Exception] = []
        points = self._translator.translate_batch(
            events, on_error=lambda _event, exc: failed.append(exc)
        )
        if failed:
            for exc in failed:
                self._call_error_handler(exc)
            if self._metrics is not None:
                await self._metrics.record_translation_error(len(failed))
        if not points:
            return
        try:
            await self._writer.write_batch(points, self._connection_info.database_name)
        except Exception:
            self._last_write_ok = False
            raise
        self._last_write_ok = True
        if self._metrics is not None:
            await self._metrics.record_points_written(len(points))

    def _on_flush_error(self, exc: BaseException, batch: list[LogEvent]) -> None:
        if isinstance(exc, Exception):
            self._call_error_handler(exc)

    def _call_error_handler(self, exc: Exception) -> None:
        if self._error_handler is None:
            return
        try:
            self._error_handler(exc)
        except Exception as handler_exc:
            diagnostics.warn(
                "influxdb-sink",
                "error handler raised",
                error=str(handler_exc),
            )


__all__ = [
    "DEFAULT_BATCH_POSTING_LIMIT",
    "DEFAULT_PERIOD",
    "InfluxDBSink",
]
