"""
Testing utilities for influxlog.

Provides an in-memory writer, event factories and a writer protocol
validator. Pytest fixtures live in :mod:`influxlog.testing.fixtures`
and are enabled with ``pytest_plugins = ("influxlog.testing.fixtures",)``.

Example:
    from influxlog.testing import RecordingWriter, make_event

    writer = RecordingWriter()
    sink = InfluxDBSink({"database_name": "logs"}, writer=writer)
"""

from .factories import make_event, make_events
from .mocks import RecordingWriter
from .validators import ProtocolViolationError, ValidationResult, validate_writer

__all__ = [
    "ProtocolViolationError",
    "RecordingWriter",
    "ValidationResult",
    "make_event",
    "make_events",
    "validate_writer",
]
