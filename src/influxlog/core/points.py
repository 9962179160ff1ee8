"""
Data points and InfluxDB line-protocol encoding.

A :class:`DataPoint` is one measurement record: indexed string tags,
scalar fields and a UTC timestamp. Points are validated on construction
and immutable afterwards.

Encoding follows the InfluxDB 1.x line protocol::

    <measurement>[,<tag>=<value>...] <field>=<value>[,...] <timestamp-ns>
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Mapping, Union

FieldValue = Union[bool, int, float, str]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_MEASUREMENT_ESCAPES = str.maketrans({",": r"\,", " ": r"\ "})
_KEY_ESCAPES = str.maketrans({",": r"\,", "=": r"\=", " ": r"\ "})
_STRING_ESCAPES = str.maketrans({'"': r"\"", "\\": r"\\"})

# Backslash runs that would otherwise escape a delimiter or the line end
_MEASUREMENT_BACKSLASHES = re.compile(r"(\\+)(?=[, ]|\Z)")
_KEY_BACKSLASHES = re.compile(r"(\\+)(?=[,= ]|\Z)")
_NEWLINES = re.compile(r"\r\n|[\r\n]")


def _double(match: re.Match[str]) -> str:
    return match.group(1) * 2


def _escape_measurement(value: str) -> str:
    value = _MEASUREMENT_BACKSLASHES.sub(_double, _NEWLINES.sub(" ", value))
    return value.translate(_MEASUREMENT_ESCAPES)


def _escape_key(value: str) -> str:
    """Escape a tag key, tag value or field key.

    Newlines have no escaped form outside string fields and become spaces.
    """
    value = _KEY_BACKSLASHES.sub(_double, _NEWLINES.sub(" ", value))
    return value.translate(_KEY_ESCAPES)


@dataclass(frozen=True)
class DataPoint:
    """Immutable measurement record destined for InfluxDB."""

    name: str
    tags: Mapping[str, str] = field(default_factory=dict)
    fields: Mapping[str, FieldValue] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("point name must not be empty")
        if self.timestamp.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware")
        tags = dict(self.tags)
        for key, value in tags.items():
            if not isinstance(key, str) or not key:
                raise ValueError("tag keys must be non-empty strings")
            if not isinstance(value, str):
                raise TypeError(f"tag {key!r} must be a string")
        fields = dict(self.fields)
        if not fields:
            raise ValueError("a point requires at least one field")
        for key, value in fields.items():
            if not isinstance(key, str) or not key:
                raise ValueError("field keys must be non-empty strings")
            if not isinstance(value, (bool, int, float, str)):
                raise TypeError(
                    f"field {key!r} has unsupported type {type(value).__name__}"
                )
            if isinstance(value, float) and not math.isfinite(value):
                raise ValueError(f"field {key!r} must be finite")
            if (
                isinstance(value, int)
                and not isinstance(value, bool)
                and not INT64_MIN <= value <= INT64_MAX
            ):
                raise ValueError(f"field {key!r} is outside the int64 range")
        object.__setattr__(self, "timestamp", self.timestamp.astimezone(timezone.utc))
        object.__setattr__(self, "tags", MappingProxyType(tags))
        object.__setattr__(self, "fields", MappingProxyType(fields))

    @property
    def timestamp_ns(self) -> int:
        delta = self.timestamp - _EPOCH
        micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
        return micros * 1_000

    def to_line(self) -> str:
        """Encode the point as one line of line protocol."""
        parts = [_escape_measurement(self.name)]
        for key, value in self.tags.items():
            # Empty tag values are not representable in line protocol
            if value:
                parts.append(f"{_escape_key(key)}={_escape_key(value)}")
        head = ",".join(parts)
        body = ",".join(
            f"{_escape_key(key)}={_encode_field(value)}"
            for key, value in self.fields.items()
        )
        return f"{head} {body} {self.timestamp_ns}"


def _encode_field(value: FieldValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        return repr(value)
    return f'"{value.translate(_STRING_ESCAPES)}"'


def encode_points(points: Iterable[DataPoint]) -> bytes:
    """Encode ``points`` as a newline-separated line-protocol payload."""
    return "\n".join(point.to_line() for point in points).encode("utf-8")


__all__ = ["INT64_MAX", "INT64_MIN", "DataPoint", "FieldValue", "encode_points"]
