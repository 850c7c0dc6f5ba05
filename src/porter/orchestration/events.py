"""
porter.orchestration.events - Navigator Lifecycle Events
==========================================================

A small publish-subscribe registry for Navigator lifecycle notifications.

Events:
    cargo:loading     → a transport load is starting
    cargo:loaded      → a load completed (payload carries the LoadedCargo)
    cargo:error       → a load failed (payload carries the error)
    cache:hit         → a cached LoadedCargo was returned
    cache:miss        → no cached LoadedCargo, a load will follow
    navigator:reset   → reset() cleared caches and registries

Listeners may be plain callables or coroutine functions. A listener that
raises is logged and skipped: observers never break a load.
"""

from __future__ import annotations

import inspect
from collections import defaultdict
from typing import Any, Callable

import structlog


logger = structlog.get_logger()

CARGO_LOADING = "cargo:loading"
CARGO_LOADED = "cargo:loaded"
CARGO_ERROR = "cargo:error"
CACHE_HIT = "cache:hit"
CACHE_MISS = "cache:miss"
NAVIGATOR_RESET = "navigator:reset"

EVENTS = frozenset(
    {CARGO_LOADING, CARGO_LOADED, CARGO_ERROR, CACHE_HIT, CACHE_MISS, NAVIGATOR_RESET}
)

Listener = Callable[[dict[str, Any]], Any]


class EventEmitter:
    """Registry of event listeners keyed by event name.

    Example:
        >>> emitter = EventEmitter()
        >>> emitter.on("cargo:loaded", lambda payload: print(payload["cargo"]))
        >>> await emitter.emit("cargo:loaded", {"cargo": "./Button"})
        ./Button
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._logger = logger.bind(component="event_emitter")

    def on(self, event: str, listener: Listener) -> None:
        """Register ``listener`` for ``event``.

        Raises:
            ValueError: If ``event`` is not a known event name.
        """
        if event not in EVENTS:
            raise ValueError(
                f"Unknown event {event!r}; expected one of {sorted(EVENTS)}"
            )
        if listener not in self._listeners[event]:
            self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        """Remove ``listener`` from ``event``. Unknown listeners are ignored."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                self._logger.error(
                    "event_listener_failed",
                    event=event,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
