from __future__ import annotations

from influxlog.core.errors import (
    ConfigurationError,
    DatabaseCreationError,
    ErrorCategory,
    ErrorSeverity,
    InfluxLogError,
    InvalidEventError,
    SinkWriteError,
    create_error_context,
)


def test_default_categories() -> None:
    assert ConfigurationError("x").category is ErrorCategory.CONFIGURATION
    assert InvalidEventError("x").category is ErrorCategory.VALIDATION
    assert SinkWriteError("x").category is ErrorCategory.NETWORK
    assert DatabaseCreationError("x").category is ErrorCategory.EXTERNAL
    assert ConfigurationError("x").context.severity is ErrorSeverity.CRITICAL


def test_all_errors_share_base() -> None:
    for cls in (ConfigurationError, InvalidEventError, SinkWriteError, DatabaseCreationError):
        assert issubclass(cls, InfluxLogError)


def test_sink_write_error_carries_status_and_cause() -> None:
    cause = ConnectionResetError("reset")
    err = SinkWriteError("write failed", sink_name="influxdb", status_code=503, cause=cause)

    assert err.status_code == 503
    assert err.sink_name == "influxdb"
    data = err.to_dict()
    assert data["error"] == "SinkWriteError"
    assert data["message"] == "write failed"
    assert data["context"]["category"] == "network"
    assert data["context"]["metadata"]["status_code"] == 503
    assert "ConnectionResetError" in data["cause"]


def test_explicit_context_is_kept() -> None:
    ctx = create_error_context(ErrorCategory.SERIALIZATION, ErrorSeverity.LOW, field="x")
    err = InfluxLogError("bad", category=ErrorCategory.SERIALIZATION, error_context=ctx)
    assert err.context is ctx
    assert err.to_dict()["context"]["metadata"] == {"field": "x"}
    assert "cause" not in err.to_dict()
