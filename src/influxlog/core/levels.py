"""Log level enumeration used by events and the severity mapper.

Levels are ordered from most verbose to most severe. Names are resolved
case-insensitively, and the common aliases used by other logging
frameworks are accepted:

    >>> LogLevel.from_name("warn")
    <LogLevel.WARNING: 3>
    >>> LogLevel.from_python_level(logging.CRITICAL)
    <LogLevel.FATAL: 5>
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Final


class LogLevel(IntEnum):
    """Ordered severity of a :class:`~influxlog.core.events.LogEvent`."""

    VERBOSE = 0
    DEBUG = 1
    INFORMATION = 2
    WARNING = 3
    ERROR = 4
    FATAL = 5

    @classmethod
    def from_name(cls, name: str) -> LogLevel:
        """Resolve ``name`` (or one of its aliases) to a level.

        Raises:
            ValueError: If the name is not a known level or alias.
        """
        normalized = name.strip().upper()
        try:
            return _ALIASES[normalized]
        except KeyError as exc:
            raise ValueError(f"Unknown log level: {name!r}") from exc

    @classmethod
    def from_python_level(cls, level: int) -> LogLevel:
        """Translate a stdlib :mod:`logging` level integer.

        Values between the stdlib constants round down to the nearest
        known level, so ``logging.INFO + 5`` is still INFORMATION.
        """
        for threshold, mapped in _PYTHON_THRESHOLDS:
            if level >= threshold:
                return mapped
        return cls.VERBOSE


_ALIASES: Final[dict[str, LogLevel]] = {
    "VERBOSE": LogLevel.VERBOSE,
    "TRACE": LogLevel.VERBOSE,  # alias
    "DEBUG": LogLevel.DEBUG,
    "INFORMATION": LogLevel.INFORMATION,
    "INFO": LogLevel.INFORMATION,  # alias
    "WARNING": LogLevel.WARNING,
    "WARN": LogLevel.WARNING,  # alias
    "ERROR": LogLevel.ERROR,
    "FATAL": LogLevel.FATAL,
    "CRITICAL": LogLevel.FATAL,  # alias
}

# Highest threshold first
_PYTHON_THRESHOLDS: Final[tuple[tuple[int, LogLevel], ...]] = (
    (logging.CRITICAL, LogLevel.FATAL),
    (logging.ERROR, LogLevel.ERROR),
    (logging.WARNING, LogLevel.WARNING),
    (logging.INFO, LogLevel.INFORMATION),
    (logging.DEBUG, LogLevel.DEBUG),
)


__all__ = ["LogLevel"]
