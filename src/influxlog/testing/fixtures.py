"""Pytest fixtures for influxlog tests.

Enable with ``pytest_plugins = ("influxlog.testing.fixtures",)``.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from ..core import diagnostics
from ..core.settings import InfluxDBConnectionInfo
from .mocks import RecordingWriter


@pytest.fixture
def recording_writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def connection_info() -> InfluxDBConnectionInfo:
    return InfluxDBConnectionInfo(
        address="http://influx.test", port=8086, database_name="logs"
    )


@pytest.fixture
def captured_diagnostics(
    monkeypatch: pytest.MonkeyPatch,
) -> Any:
    """Enable internal diagnostics and collect every payload."""
    diagnostics._reset_for_tests()
    monkeypatch.setenv("INFLUXLOG_CORE__INTERNAL_LOGGING_ENABLED", "true")
    captured: list[dict[str, Any]] = []
    original: Callable[[dict[str, Any]], None] = diagnostics._writer
    diagnostics.set_writer_for_tests(captured.append)
    yield captured
    diagnostics.set_writer_for_tests(original)
    diagnostics._reset_for_tests()
