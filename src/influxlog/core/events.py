"""
Log event model and message-template rendering.

Events carry a message *template* (``"User {UserId} logged in"``) and the
property values referenced by it. Rendering substitutes each hole with
the matching property, formatted through a :class:`string.Formatter`
so callers can plug in locale-aware formatting.

Supported hole syntax::

    {Name}            plain substitution
    {Name:spec}       format spec passed to ``formatter.format_field``
    {Name,10}         right-aligned to 10 characters (negative: left)
    {@Name} {$Name}   capturing hints, rendered like {Name}
    {{ and }}         literal braces

Holes naming a property that is not present are rendered verbatim.
"""

from __future__ import annotations

import re
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

from .levels import LogLevel

_HOLE = re.compile(
    r"\{\{|\}\}|\{(?P<hint>[@$]?)(?P<name>[A-Za-z0-9_.]+)"
    r"(?:,(?P<align>-?\d+))?(?::(?P<spec>[^{}]*))?\}"
)

_DEFAULT_FORMATTER = string.Formatter()


def _ensure_aware(ts: datetime) -> datetime:
    """Validate that ``ts`` is timezone-aware and normalise to UTC."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        raise ValueError("timestamp must be timezone-aware")
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class LogEvent:
    """Immutable log event produced upstream of the sink.

    Attributes:
        timestamp: Time of the event; normalised to UTC.
        level: Severity of the event.
        message_template: Unrendered message template.
        properties: Property values; copied into a read-only mapping.
        exception: Exception associated with the event, if any.
    """

    timestamp: datetime
    level: LogLevel
    message_template: str
    properties: Mapping[str, Any] = field(default_factory=dict)
    exception: BaseException | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", _ensure_aware(self.timestamp))
        if not isinstance(self.level, LogLevel):
            if isinstance(self.level, int):
                level = LogLevel(self.level)
            else:
                level = LogLevel.from_name(str(self.level))
            object.__setattr__(self, "level", level)
        object.__setattr__(
            self, "properties", MappingProxyType(dict(self.properties or {}))
        )

    @classmethod
    def create(
        cls,
        level: LogLevel | str,
        message_template: str,
        *,
        exception: BaseException | None = None,
        timestamp: datetime | None = None,
        **properties: Any,
    ) -> LogEvent:
        """Build an event stamped with the current UTC time."""
        if isinstance(level, str):
            level = LogLevel.from_name(level)
        return cls(
            timestamp=timestamp or datetime.now(timezone.utc),
            level=level,
            message_template=message_template,
            properties=properties,
            exception=exception,
        )

    def render_message(self, formatter: string.Formatter | None = None) -> str:
        """Render the template using ``properties``."""
        return render_template(self.message_template, self.properties, formatter)


def render_template(
    template: str,
    properties: Mapping[str, Any],
    formatter: string.Formatter | None = None,
) -> str:
    fmt = formatter or _DEFAULT_FORMATTER

    def _substitute(match: re.Match[str]) -> str:
        token = match.group(0)
        if token == "{{":
            return "{"
        if token == "}}":
            return "}"
        name = match.group("name")
        if name not in properties:
            return token
        spec = match.group("spec") or ""
        try:
            rendered = fmt.format_field(properties[name], spec)
        except (TypeError, ValueError):
            rendered = str(properties[name])
        align = match.group("align")
        if align:
            width = int(align)
            rendered = rendered.ljust(-width) if width < 0 else rendered.rjust(width)
        return rendered

    return _HOLE.sub(_substitute, template)


__all__ = ["LogEvent", "render_template"]
