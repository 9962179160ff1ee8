from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

import pytest

from influxlog.core import shutdown
from influxlog.core.errors import ConfigurationError, DatabaseCreationError
from influxlog.core.levels import LogLevel
from influxlog.core.settings import InfluxDBConnectionInfo, Settings
from influxlog.metrics.metrics import MetricsCollector
from influxlog.plugins.sinks.influxdb import (
    DEFAULT_BATCH_POSTING_LIMIT,
    DEFAULT_PERIOD,
    InfluxDBSink,
)
from influxlog.plugins.sinks.influxdb_client import InfluxDBWriter
from influxlog.testing import RecordingWriter, make_event


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


def _sink(writer: RecordingWriter, **kwargs: Any) -> InfluxDBSink:
    kwargs.setdefault("batch_size_limit", 2)
    kwargs.setdefault("period", 10.0)
    return InfluxDBSink(
        InfluxDBConnectionInfo(address="http://influx.test", database_name="logs"),
        "logs",
        writer=writer,
        **kwargs,
    )


def test_defaults() -> None:
    assert DEFAULT_BATCH_POSTING_LIMIT == 100
    assert DEFAULT_PERIOD == 30.0
    sink = InfluxDBSink({"database_name": "logs"}, writer=RecordingWriter())
    assert sink.batcher.batch_size_limit == 100
    assert sink.batcher.period == 30.0
    assert sink.translator.source == "logs"


def test_missing_connection_info_fails_fast() -> None:
    with pytest.raises(ConfigurationError):
        InfluxDBSink(None)


@pytest.mark.parametrize(
    "info",
    [{}, {"database_name": ""}, {"database_name": "logs", "port": 0}, {"bogus": 1}],
)
def test_invalid_connection_info_is_configuration_error(info: dict) -> None:
    with pytest.raises(ConfigurationError):
        InfluxDBSink(info, writer=RecordingWriter())


@pytest.mark.parametrize(
    "kwargs", [{"batch_size_limit": 0}, {"period": -1.0}, {"source": ""}]
)
def test_invalid_batching_options_are_configuration_errors(kwargs: dict) -> None:
    source = kwargs.pop("source", "logs")
    with pytest.raises(ConfigurationError):
        InfluxDBSink({"database_name": "logs"}, source, writer=RecordingWriter(), **kwargs)


def test_default_writer_is_http_writer() -> None:
    sink = InfluxDBSink({"database_name": "logs"})
    assert isinstance(sink._writer, InfluxDBWriter)


@pytest.mark.asyncio
async def test_end_to_end_size_flush_and_stop_flush() -> None:
    writer = RecordingWriter()
    sink = _sink(writer)
    await sink.start()

    assert sink.emit(make_event("User {userId} logged in", userId=42)) is True
    try:
        raise KeyError("missing")
    except KeyError as exc:
        assert sink.emit(make_event("lookup failed", level="Error", exception=exc))
    await _wait_until(lambda: len(writer.batches) == 1)

    assert sink.emit(make_event("shutting down", level=LogLevel.FATAL))
    await asyncio.sleep(0.02)
    assert len(writer.batches) == 1
    assert sink.batcher.pending == 1
    await sink.stop()

    assert len(writer.batches) == 2
    first, db = writer.batches[0]
    assert db == "logs"
    assert [p.tags["severity"] for p in first] == ["info", "err"]
    assert [p.fields["severity_code"] for p in first] == [6, 3]
    assert first[0].fields["userId"] == 42
    assert first[0].fields["message"] == "User 42 logged in"
    assert first[1].tags["exceptionType"] == "KeyError"
    second, _ = writer.batches[1]
    assert [p.tags["severity"] for p in second] == ["crit"]
    assert second[0].fields["severity_code"] == 2
    assert writer.closed


@pytest.mark.asyncio
async def test_ensure_database_runs_once_at_start() -> None:
    writer = RecordingWriter()
    sink = _sink(writer)
    await sink.start()
    await sink.start()
    assert sink.ensure_database_task is not None
    await sink.ensure_database_task
    await sink.stop()
    assert writer.created == ["logs"]


@pytest.mark.asyncio
async def test_ensure_database_skipped_when_disabled() -> None:
    writer = RecordingWriter()
    sink = _sink(writer, ensure_database=False)
    await sink.start()
    await sink.stop()
    assert sink.ensure_database_task is None
    assert writer.created == []


@pytest.mark.asyncio
async def test_database_check_does_not_block_emit() -> None:
    writer = RecordingWriter(ensure_delay=0.2)
    sink = _sink(writer, batch_size_limit=1)
    await sink.start()

    started = time.monotonic()
    assert sink.emit(make_event("a"))
    assert time.monotonic() - started < 0.05
    assert not sink.ensure_database_task.done()
    # The first write waits for the check to settle
    await asyncio.sleep(0.05)
    assert writer.batches == []

    await _wait_until(lambda: len(writer.batches) == 1)
    assert writer.created == ["logs"]
    await sink.stop()


@pytest.mark.asyncio
async def test_database_check_failure_is_reported_not_raised(
    captured_diagnostics,
) -> None:
    errors: list[Exception] = []
    writer = RecordingWriter(ensure_error=DatabaseCreationError("no permission"))
    sink = _sink(writer, batch_size_limit=1, error_handler=errors.append)
    await sink.start()
    sink.emit(make_event("still written"))
    await _wait_until(lambda: len(writer.batches) == 1)
    await sink.stop()

    assert len(errors) == 1
    assert isinstance(errors[0], DatabaseCreationError)
    assert any(
        d["message"] == "database existence check failed" for d in captured_diagnostics
    )


@pytest.mark.asyncio
async def test_write_failure_does_not_reach_producer_and_sink_continues(
    captured_diagnostics,
) -> None:
    errors: list[Exception] = []
    writer = RecordingWriter(fail_times=1)
    sink = _sink(writer, error_handler=errors.append)
    await sink.start()

    sink.emit(make_event("lost 1"))
    sink.emit(make_event("lost 2"))
    await _wait_until(lambda: writer.attempts == 1)
    assert await sink.health_check() is False

    sink.emit(make_event("kept 1"))
    sink.emit(make_event("kept 2"))
    await _wait_until(lambda: len(writer.batches) == 1)
    assert await sink.health_check() is True
    await sink.stop()

    assert [p.fields["message"] for p in writer.points] == ["kept 1", "kept 2"]
    assert len(errors) == 1
    assert any(
        d["message"] == "batch flush failed; batch dropped" for d in captured_diagnostics
    )


@pytest.mark.asyncio
async def test_translation_failure_skips_only_that_event() -> None:
    class Unprintable:
        def __str__(self) -> str:
            raise RuntimeError("nope")

    errors: list[Exception] = []
    metrics = MetricsCollector(enabled=False)
    writer = RecordingWriter()
    sink = _sink(writer, batch_size_limit=3, error_handler=errors.append, metrics=metrics)
    sink.emit(make_event("ok 1"))
    sink.emit(make_event("{Bad}", Bad=Unprintable()))
    sink.emit(make_event("ok 2"))
    await sink.flush()

    assert [p.fields["message"] for p in writer.points] == ["ok 1", "ok 2"]
    assert len(errors) == 1
    snap = await metrics.snapshot()
    assert snap.translation_errors == 1
    assert snap.points_written == 2


@pytest.mark.asyncio
async def test_emit_after_stop_returns_false() -> None:
    sink = _sink(RecordingWriter())
    await sink.start()
    await sink.stop()
    assert sink.emit(make_event("late")) is False
    assert await sink.health_check() is False


@pytest.mark.asyncio
async def test_emit_none_is_rejected_without_raising() -> None:
    sink = _sink(RecordingWriter())
    assert sink.emit(None) is False  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_no_concurrent_writes_with_slow_destination() -> None:
    writer = RecordingWriter(delay=0.05)
    sink = _sink(writer, batch_size_limit=2, period=0.01)
    await sink.start()
    for i in range(10):
        sink.emit(make_event("e {i}", i=i))
        await asyncio.sleep(0.01)
    await sink.stop()

    assert writer.max_in_flight == 1
    assert [p.fields["i"] for p in writer.points] == list(range(10))


@pytest.mark.asyncio
async def test_context_manager_registers_for_exit_drain() -> None:
    writer = RecordingWriter()
    async with _sink(writer) as sink:
        assert sink in shutdown.registered_sinks()
        sink.emit(make_event("x"))
    assert sink not in shutdown.registered_sinks()
    assert len(writer.points) == 1


def test_from_settings_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__ADDRESS", "influx.internal")
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__PORT", "9999")
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__DATABASE_NAME", "applogs")
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__BATCH_SIZE_LIMIT", "7")
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__PERIOD_SECONDS", "1.5")
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__APP_NAME", "billing")
    monkeypatch.setenv("INFLUXLOG_CORE__ENABLE_METRICS", "true")

    sink = InfluxDBSink.from_settings(writer=RecordingWriter())

    assert sink.connection_info.base_url == "http://influx.internal:9999"
    assert sink.database_name == "applogs"
    assert sink.batcher.batch_size_limit == 7
    assert sink.batcher.period == 1.5
    assert sink._metrics is not None and sink._metrics.is_enabled


def test_from_settings_without_database_fails() -> None:
    with pytest.raises(ConfigurationError):
        InfluxDBSink.from_settings(Settings())


def test_from_settings_override_connection_info() -> None:
    sink = InfluxDBSink.from_settings(
        Settings(),
        connection_info={"database_name": "override"},
        writer=RecordingWriter(),
    )
    assert sink.database_name == "override"


def test_from_settings_override_ignores_invalid_env_connection(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__ADDRESS", "   ")
    sink = InfluxDBSink.from_settings(
        connection_info={"database_name": "override"},
        writer=RecordingWriter(),
    )
    assert sink.database_name == "override"
    assert sink.connection_info.base_url == "http://localhost:8086"


def test_from_settings_invalid_env_connection_is_configuration_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__ADDRESS", "   ")
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__DATABASE_NAME", "logs")
    with pytest.raises(ConfigurationError):
        InfluxDBSink.from_settings(writer=RecordingWriter())


def test_from_settings_invalid_env_value_is_configuration_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("INFLUXLOG_INFLUXDB__BATCH_SIZE_LIMIT", "0")
    with pytest.raises(ConfigurationError):
        InfluxDBSink.from_settings(writer=RecordingWriter())


def test_credentials_over_http_log_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING", logger="influxlog.sinks.influxdb"):
        InfluxDBSink(
            {"database_name": "logs", "username": "u", "password": "p"},
            writer=RecordingWriter(),
        )
    assert "unencrypted HTTP" in caplog.text
