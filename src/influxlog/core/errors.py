"""
Error taxonomy for influxlog.

All library errors derive from :class:`InfluxLogError`, which carries a
category, a small structured context and the underlying cause. Only
configuration errors are ever raised to the code that builds a sink;
write and startup failures are reported through diagnostics instead of
reaching producers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    SERIALIZATION = "serialization"
    NETWORK = "network"
    EXTERNAL = "external"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ErrorContext:
    """Structured context attached to every :class:`InfluxLogError`."""

    category: ErrorCategory
    severity: ErrorSeverity
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }


def create_error_context(
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    **metadata: Any,
) -> ErrorContext:
    return ErrorContext(category=category, severity=severity, metadata=metadata)


class InfluxLogError(Exception):
    """Base class for influxlog errors."""

    default_category = ErrorCategory.EXTERNAL
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        error_context: ErrorContext | None = None,
        cause: BaseException | None = None,
        **metadata: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = error_context or create_error_context(
            self.category, self.default_severity, **metadata
        )
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error": type(self).__name__,
            "message": self.message,
            "context": self.context.to_dict(),
        }
        if self.cause is not None:
            data["cause"] = repr(self.cause)
        return data


class ConfigurationError(InfluxLogError):
    """Missing or invalid sink configuration; fatal to sink creation."""

    default_category = ErrorCategory.CONFIGURATION
    default_severity = ErrorSeverity.CRITICAL


class InvalidEventError(InfluxLogError):
    """Caller handed ``None`` (or a non-event) to translation."""

    default_category = ErrorCategory.VALIDATION
    default_severity = ErrorSeverity.HIGH


class SinkWriteError(InfluxLogError):
    """A batch write to the destination failed."""

    default_category = ErrorCategory.NETWORK

    def __init__(
        self,
        message: str,
        *,
        sink_name: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
        **metadata: Any,
    ) -> None:
        super().__init__(
            message,
            cause=cause,
            sink_name=sink_name,
            status_code=status_code,
            **metadata,
        )
        self.sink_name = sink_name
        self.status_code = status_code


class DatabaseCreationError(InfluxLogError):
    """The startup database-existence check or creation failed."""

    default_category = ErrorCategory.EXTERNAL


__all__ = [
    "ConfigurationError",
    "DatabaseCreationError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "InfluxLogError",
    "InvalidEventError",
    "SinkWriteError",
    "create_error_context",
]
