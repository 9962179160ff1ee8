"""
Internal diagnostics for non-fatal errors (batcher, writer, translator).

Diagnostics are structured JSON lines written to stderr. They are off by
default and enabled with ``INFLUXLOG_CORE__INTERNAL_LOGGING_ENABLED=true``
(or ``Settings(core={"internal_logging_enabled": True})``). The setting is
read once and cached; tests reset the cache with :func:`_reset_for_tests`.

Warnings that pass ``_rate_limit_key`` are emitted at most once per
``_RATE_LIMIT_WINDOW_SECONDS`` for that key so that a flapping server
cannot flood stderr.
"""

from __future__ import annotations

import sys
import threading
import time
from typing import Any, Callable

import orjson

_RATE_LIMIT_WINDOW_SECONDS = 10.0

_internal_logging_enabled: bool | None = None
_rate_limit_lock = threading.Lock()
_last_emitted: dict[str, float] = {}


def _default_writer(payload: dict[str, Any]) -> None:
    try:
        line = orjson.dumps(payload, default=repr)
        sys.stderr.write(line.decode("utf-8") + "\n")
        sys.stderr.flush()
    except Exception:
        # Diagnostics must never break the caller
        pass


_writer: Callable[[dict[str, Any]], None] = _default_writer


def _is_enabled() -> bool:
    global _internal_logging_enabled
    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            _internal_logging_enabled = bool(Settings().core.internal_logging_enabled)
        except Exception:
            _internal_logging_enabled = False
    return _internal_logging_enabled


def _should_emit(key: str | None) -> bool:
    if key is None:
        return True
    now = time.monotonic()
    with _rate_limit_lock:
        last = _last_emitted.get(key)
        if last is not None and now - last < _RATE_LIMIT_WINDOW_SECONDS:
            return False
        _last_emitted[key] = now
    return True


def _emit(level: str, component: str, message: str, fields: dict[str, Any]) -> None:
    if not _is_enabled():
        return
    rate_limit_key = fields.pop("_rate_limit_key", None)
    if not _should_emit(rate_limit_key):
        return
    payload: dict[str, Any] = {
        "timestamp": time.time(),
        "level": level,
        "component": component,
        "message": message,
    }
    payload.update(fields)
    try:
        _writer(payload)
    except Exception:
        pass


def warn(component: str, message: str, **fields: Any) -> None:
    """Emit a WARN diagnostic for ``component``."""
    _emit("WARN", component, message, fields)


def debug(component: str, message: str, **fields: Any) -> None:
    """Emit a DEBUG diagnostic for ``component``."""
    _emit("DEBUG", component, message, fields)


def set_writer_for_tests(writer: Callable[[dict[str, Any]], None]) -> None:
    """Replace the diagnostics writer (testing only)."""
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    """Clear cached settings and rate-limit state (testing only)."""
    global _internal_logging_enabled
    _internal_logging_enabled = None
    with _rate_limit_lock:
        _last_emitted.clear()


__all__ = ["debug", "set_writer_for_tests", "warn"]
