"""In-process event bus for model load/save lifecycle events.

Handlers run synchronously on the emitting thread:
  - subscribe(name, handler): handler(payload) for one event name
  - subscribe(ANY, handler): handler(name, payload) for every event; the
    metrics collector in `ortmodel.events` listens this way
  - each handler gets its own shallow copy of the payload

A failing handler never reaches the emitter. It is logged at debug level
and counted in handler_exceptions_total{event}. Every emit also counts
events_emitted_total{event} and records event_dispatch_ms{event}.
"""
from __future__ import annotations

from threading import RLock
from time import time
from typing import Any, Callable, Dict, List

from ortmodel import metrics
from ortmodel.logs import get_logger

ANY = "*"

Handler = Callable[..., None]

logger = get_logger("eventbus")


class EventBus:
    def __init__(self) -> None:
        self._named: Dict[str, List[Handler]] = {}
        self._any: List[Handler] = []
        self._lock = RLock()

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler``; the returned callable removes it again."""
        with self._lock:
            if event == ANY:
                bucket = self._any
            else:
                bucket = self._named.setdefault(event, [])
            bucket.append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                if handler in bucket:
                    bucket.remove(handler)

        return _unsubscribe

    def _dispatch(self, event: str, handler: Handler, *args: Any) -> None:
        try:
            handler(*args)
        except Exception:  # noqa: BLE001
            logger.debug("handler %r failed on %s", handler, event, exc_info=True)
            metrics.inc("handler_exceptions_total", {"event": event})

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        started = time()
        payload.setdefault("ts", started)
        with self._lock:
            named = list(self._named.get(event, ()))
            wildcard = list(self._any)
        metrics.inc("events_emitted_total", {"event": event})
        for h in named:
            self._dispatch(event, h, dict(payload))
        for h in wildcard:
            self._dispatch(event, h, event, dict(payload))
        metrics.observe(
            "event_dispatch_ms", (time() - started) * 1000, {"event": event}
        )

    def clear(self) -> None:
        with self._lock:
            self._named.clear()
            self._any.clear()


_BUS = EventBus()


def subscribe(event: str, handler: Handler) -> Callable[[], None]:
    return _BUS.subscribe(event, handler)


def emit(event: str, payload: Dict[str, Any]) -> None:
    _BUS.emit(event, payload)


def reset_for_tests() -> None:  # pragma: no cover
    _BUS.clear()


__all__ = ["ANY", "EventBus", "emit", "subscribe", "reset_for_tests"]
