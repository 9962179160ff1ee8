"""
Configuration models for influxlog using Pydantic v2 Settings.

``Settings`` reads environment variables with the ``INFLUXLOG_`` prefix and
``__`` as the nested delimiter, e.g.::

    INFLUXLOG_INFLUXDB__ADDRESS=http://influx.internal
    INFLUXLOG_INFLUXDB__DATABASE_NAME=logs
    INFLUXLOG_CORE__INTERNAL_LOGGING_ENABLED=true
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class InfluxDBConnectionInfo(BaseModel):
    """Where and how to reach the InfluxDB server."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str = Field(
        default="http://localhost",
        description="Scheme and host of the server, e.g. http://localhost",
    )
    port: int = Field(default=8086, ge=1, le=65535)
    username: str | None = Field(default=None)
    password: SecretStr | None = Field(default=None)
    database_name: str = Field(description="Database the points are written to")

    @field_validator("address")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("address must not be empty")
        if "://" not in value:
            value = f"http://{value}"
        return value

    @field_validator("database_name")
    @classmethod
    def _ensure_database_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("database_name must not be empty")
        return value

    @property
    def base_url(self) -> str:
        return f"{self.address}:{self.port}"


class CoreSettings(BaseModel):
    """Library-wide behaviour."""

    # Structured internal diagnostics for non-fatal errors
    internal_logging_enabled: bool = Field(
        default=False, description="Emit DEBUG/WARN diagnostics for internal errors"
    )
    enable_metrics: bool = Field(
        default=False, description="Enable Prometheus-compatible metrics"
    )
    shutdown_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Grace period for the final flush when a sink stops",
    )
    atexit_drain_enabled: bool = Field(
        default=True, description="Flush registered sinks when the process exits"
    )
    atexit_drain_timeout_seconds: float = Field(
        default=2.0, gt=0.0, description="Per-sink bound for the exit-time flush"
    )


class InfluxDBSinkSettings(BaseModel):
    """Settings for :class:`~influxlog.plugins.sinks.influxdb.InfluxDBSink`."""

    address: str = Field(default="http://localhost")
    port: int = Field(default=8086, ge=1, le=65535)
    username: str | None = Field(default=None)
    password: SecretStr | None = Field(default=None)
    database_name: str | None = Field(
        default=None, description="Required before a sink can be built"
    )
    source: str = Field(default="logs", description="Measurement name")
    batch_size_limit: int = Field(default=100, ge=1)
    period_seconds: float = Field(default=30.0, gt=0.0)
    app_name: str = Field(default="app1")
    facility: str = Field(default="MyFacility")
    request_timeout_seconds: float = Field(default=5.0, gt=0.0)
    ensure_database: bool = Field(
        default=True, description="Create the database at startup when missing"
    )

    def connection_info(self) -> InfluxDBConnectionInfo | None:
        if not self.database_name:
            return None
        return InfluxDBConnectionInfo(
            address=self.address,
            port=self.port,
            username=self.username,
            password=self.password,
            database_name=self.database_name,
        )


class Settings(BaseSettings):
    """Top-level configuration model."""

    core: CoreSettings = Field(default_factory=CoreSettings)
    influxdb: InfluxDBSinkSettings = Field(default_factory=InfluxDBSinkSettings)

    model_config = SettingsConfigDict(
        env_prefix="INFLUXLOG_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    def to_dict(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True)


__all__ = [
    "CoreSettings",
    "InfluxDBConnectionInfo",
    "InfluxDBSinkSettings",
    "Settings",
]
