"""
Public entrypoints for influxlog.

Batches structured log events and writes them to InfluxDB as points::

    from influxlog import InfluxDBSink, LogEvent, LogLevel

    async with InfluxDBSink({"database_name": "logs"}) as sink:
        sink.emit(
            LogEvent.create(LogLevel.INFORMATION, "User {UserId} logged in", UserId=42)
        )
"""

from __future__ import annotations

from ._version import __version__
from .core.batching import BatcherState, BatcherStats, PeriodicBatcher
from .core.errors import (
    ConfigurationError,
    DatabaseCreationError,
    InfluxLogError,
    InvalidEventError,
    SinkWriteError,
)
from .core.events import LogEvent
from .core.levels import LogLevel
from .core.points import DataPoint
from .core.settings import InfluxDBConnectionInfo, Settings
from .core.severity import SyslogSeverity, get_syslog_severity
from .core.translator import EventTranslator
from .metrics.metrics import MetricsCollector
from .plugins.sinks.influxdb import InfluxDBSink
from .plugins.sinks.influxdb_client import InfluxDBWriter, PointWriter

VERSION = __version__

__all__ = [
    "BatcherState",
    "BatcherStats",
    "ConfigurationError",
    "DataPoint",
    "DatabaseCreationError",
    "EventTranslator",
    "InfluxDBConnectionInfo",
    "InfluxDBSink",
    "InfluxDBWriter",
    "InfluxLogError",
    "InvalidEventError",
    "LogEvent",
    "LogLevel",
    "MetricsCollector",
    "PeriodicBatcher",
    "PointWriter",
    "Settings",
    "SinkWriteError",
    "SyslogSeverity",
    "VERSION",
    "__version__",
    "get_syslog_severity",
]
