"""
Translation of log events into InfluxDB data points.

Each event becomes one point in the configured measurement (``source``).
Event properties become fields; syslog-style tags and fields are added on
top (appname, facility, host, severity, message, procid, ...).

Host name and process id are resolved once when the translator is built
and reused for every point.
"""

from __future__ import annotations

import math
import os
import socket
import string
import time
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterable

from . import diagnostics
from .errors import InvalidEventError
from .events import LogEvent
from .points import INT64_MAX, INT64_MIN, DataPoint, FieldValue
from .severity import get_syslog_severity

DEFAULT_APP_NAME = "app1"
DEFAULT_FACILITY = "MyFacility"
# syslog local0
DEFAULT_FACILITY_CODE = 16
SCHEMA_VERSION = 1

TranslationErrorHandler = Callable[[LogEvent, Exception], None]


def _wall_clock_ns() -> int:
    # Millisecond precision scaled to nanoseconds
    return time.time_ns() // 1_000_000 * 1_000_000


def coerce_field_value(value: Any) -> FieldValue | None:
    """Reduce ``value`` to a scalar InfluxDB can store.

    ``None`` has no field representation and yields ``None`` so callers
    can skip it. Integers outside the int64 range become floats, or
    strings when even a float cannot hold them.
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if INT64_MIN <= value <= INT64_MAX:
            return value
        try:
            return float(value)
        except OverflowError:
            return str(value)
    if isinstance(value, Decimal):
        value = float(value)
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, str):
        return value
    return str(value)


class EventTranslator:
    """Convert :class:`LogEvent` objects into :class:`DataPoint` objects."""

    def __init__(
        self,
        source: str,
        *,
        app_name: str = DEFAULT_APP_NAME,
        facility: str = DEFAULT_FACILITY,
        facility_code: int = DEFAULT_FACILITY_CODE,
        formatter: string.Formatter | None = None,
        host: str | None = None,
        process_id: int | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if not source:
            raise ValueError("source must not be empty")
        self._source = source
        self._app_name = app_name
        self._facility = facility
        self._facility_code = facility_code
        self._formatter = formatter
        self._host = host or socket.gethostname()
        self._procid = str(process_id if process_id is not None else os.getpid())
        self._clock = clock or _wall_clock_ns

    @property
    def source(self) -> str:
        return self._source

    @property
    def host(self) -> str:
        return self._host

    def translate(self, event: LogEvent | None) -> DataPoint:
        if event is None:
            raise InvalidEventError("event must not be None")
        severity = get_syslog_severity(event.level)

        fields: dict[str, FieldValue] = {}
        for key, raw in event.properties.items():
            if not key:
                continue
            value = coerce_field_value(raw)
            if value is not None:
                fields[str(key)] = value

        tags: dict[str, str] = {}
        if event.exception is not None:
            tags["exceptionType"] = type(event.exception).__name__
        if event.message_template:
            tags["messageTemplate"] = event.message_template
        tags["appname"] = self._app_name
        tags["facility"] = self._facility
        tags["host"] = self._host
        tags["hostname"] = self._host
        tags["severity"] = severity.name

        fields["facility_code"] = self._facility_code
        fields["message"] = event.render_message(self._formatter)
        fields["procid"] = self._procid
        fields["severity_code"] = severity.code
        fields["timestamp"] = self._clock()
        fields["version"] = SCHEMA_VERSION

        return DataPoint(
            name=self._source,
            tags={k: v for k, v in tags.items() if v},
            fields=fields,
            timestamp=event.timestamp,
        )

    def translate_batch(
        self,
        events: Iterable[LogEvent] | None,
        *,
        on_error: TranslationErrorHandler | None = None,
    ) -> list[DataPoint]:
        """Translate a flushed slice, skipping events that fail.

        Raises:
            InvalidEventError: If ``events`` itself is ``None``.
        """
        if events is None:
            raise InvalidEventError("event batch must not be None")
        points: list[DataPoint] = []
        for event in events:
            try:
                points.append(self.translate(event))
            except Exception as exc:
                diagnostics.warn(
                    "translator",
                    "event translation failed; event skipped",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    _rate_limit_key="translator-error",
                )
                if on_error is not None:
                    try:
                        on_error(event, exc)
                    except Exception:
                        pass
        return points


__all__ = [
    "DEFAULT_APP_NAME",
    "DEFAULT_FACILITY",
    "DEFAULT_FACILITY_CODE",
    "SCHEMA_VERSION",
    "EventTranslator",
    "coerce_field_value",
]
