"""Syslog severity mapping for log levels.

Severity codes follow RFC 5424 (0 = emergency ... 7 = debug). Every
:class:`LogLevel` maps to exactly one severity; the mapping is pure.
"""

from __future__ import annotations

from typing import Final, NamedTuple

from .levels import LogLevel


class SyslogSeverity(NamedTuple):
    """Syslog keyword and numeric code."""

    name: str
    code: int


EMERGENCY: Final = SyslogSeverity("emerg", 0)
ALERT: Final = SyslogSeverity("alert", 1)
CRITICAL: Final = SyslogSeverity("crit", 2)
ERROR: Final = SyslogSeverity("err", 3)
WARNING: Final = SyslogSeverity("warning", 4)
NOTICE: Final = SyslogSeverity("notice", 5)
INFORMATIONAL: Final = SyslogSeverity("info", 6)
DEBUG: Final = SyslogSeverity("debug", 7)

ALL_SEVERITIES: Final[tuple[SyslogSeverity, ...]] = (
    EMERGENCY,
    ALERT,
    CRITICAL,
    ERROR,
    WARNING,
    NOTICE,
    INFORMATIONAL,
    DEBUG,
)

_LEVEL_MAP: Final[dict[LogLevel, SyslogSeverity]] = {
    LogLevel.VERBOSE: DEBUG,
    LogLevel.DEBUG: DEBUG,
    LogLevel.INFORMATION: INFORMATIONAL,
    LogLevel.WARNING: WARNING,
    LogLevel.ERROR: ERROR,
    LogLevel.FATAL: CRITICAL,
}


def get_syslog_severity(level: LogLevel) -> SyslogSeverity:
    """Return the syslog severity for ``level``.

    Raises:
        TypeError: If ``level`` is not a :class:`LogLevel`.
    """
    if not isinstance(level, LogLevel):
        raise TypeError(f"Expected LogLevel, got {type(level).__name__}")
    return _LEVEL_MAP[level]


__all__ = [
    "ALL_SEVERITIES",
    "SyslogSeverity",
    "get_syslog_severity",
]
