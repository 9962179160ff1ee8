"""Process-exit draining of running sinks.

Sinks register themselves when started and unregister when stopped. On
normal interpreter exit an ``atexit`` handler flushes whatever is still
registered, bounded by ``core.atexit_drain_timeout_seconds``.

The handler is best-effort: it never raises and never blocks longer than
the configured timeout per sink.
"""

from __future__ import annotations

import asyncio
import atexit
import weakref
from typing import Any

_shutdown_in_progress: bool = False
_registered_sinks: weakref.WeakSet[Any] = weakref.WeakSet()


def _get_shutdown_settings() -> dict[str, Any]:
    """Get shutdown settings from Settings, with fallback defaults."""
    try:
        from .settings import Settings

        settings = Settings()
        return {
            "atexit_drain_enabled": settings.core.atexit_drain_enabled,
            "atexit_drain_timeout_seconds": settings.core.atexit_drain_timeout_seconds,
        }
    except Exception:  # pragma: no cover
        return {
            "atexit_drain_enabled": True,
            "atexit_drain_timeout_seconds": 2.0,
        }


def register_sink(sink: Any) -> None:
    """Register ``sink`` (anything with ``async stop(timeout=...)``)."""
    _registered_sinks.add(sink)


def unregister_sink(sink: Any) -> None:
    _registered_sinks.discard(sink)


def registered_sinks() -> list[Any]:
    try:
        return list(_registered_sinks)
    except Exception:  # pragma: no cover - rare GC race
        return []


def _drain_single_sink(sink: Any, timeout: float) -> None:
    try:
        asyncio.run(asyncio.wait_for(sink.stop(timeout=timeout), timeout=timeout))
    except asyncio.TimeoutError:
        pass  # Best effort - proceed with exit
    except Exception:
        pass


def _atexit_handler() -> None:
    """Best-effort drain of all registered sinks on normal exit."""
    global _shutdown_in_progress

    if _shutdown_in_progress:
        return

    settings = _get_shutdown_settings()
    if not settings["atexit_drain_enabled"]:
        return

    _shutdown_in_progress = True
    timeout = settings["atexit_drain_timeout_seconds"]
    for sink in registered_sinks():
        _drain_single_sink(sink, timeout)


def _reset_for_tests() -> None:
    global _shutdown_in_progress
    _shutdown_in_progress = False
    _registered_sinks.clear()


atexit.register(_atexit_handler)


__all__ = ["register_sink", "registered_sinks", "unregister_sink"]
