"""Lifecycle event dataclasses and the metrics they feed.

`emit(event)` publishes on the `ortmodel.eventbus` bus under the class
name. `subscribe(handler)` is a shortcut for an ANY subscription, so
handler(name, payload) observes a whole load or save call.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from time import time
from typing import Any, Callable, Dict, Protocol

from ortmodel import metrics as _metrics
from ortmodel.eventbus import ANY
from ortmodel.eventbus import emit as _emit_bus
from ortmodel.eventbus import reset_for_tests as _reset_bus
from ortmodel.eventbus import subscribe as _subscribe_bus

EventHandler = Callable[[str, Dict[str, Any]], None]


class SupportsEvent(Protocol):  # pragma: no cover
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        ...


@dataclass(slots=True)
class BaseEvent:
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        data = asdict(self)
        data["ts"] = data.get("ts") or time()
        return data


@dataclass(slots=True)
class ModelLoaded(BaseEvent):
    source: str  # path|fd|bytes|proto
    graph_name: str
    ir_version: int | None
    opset_imports: dict
    load_ms: int


@dataclass(slots=True)
class ModelLoadFailed(BaseEvent):
    source: str
    error_type: str
    message: str | None = None
    errno: int | None = None


@dataclass(slots=True)
class ModelSaved(BaseEvent):
    target: str  # path|fd
    graph_name: str
    bytes_written: int


@dataclass(slots=True)
class ModelSaveFailed(BaseEvent):
    target: str
    error_type: str
    message: str | None = None
    errno: int | None = None


@dataclass(slots=True)
class LegacyOpsetDetected(BaseEvent):
    domain: str
    version: int
    threshold: int


@dataclass(slots=True)
class SchemaRegistryLoaded(BaseEvent):
    manifest_dir: str
    domains: list


def _metrics_collector(name: str, payload: Dict[str, Any]) -> None:
    if name == "ModelLoaded":
        _metrics.inc(
            "model_load_total", {"source": payload["source"], "status": "ok"}
        )
        _metrics.observe(
            "model_load_ms",
            payload.get("load_ms", 0),
            {"source": payload["source"]},
        )
    elif name == "ModelLoadFailed":
        _metrics.inc(
            "model_load_total",
            {"source": payload["source"], "status": payload["error_type"]},
        )
    elif name == "ModelSaved":
        _metrics.inc(
            "model_save_total", {"target": payload["target"], "status": "ok"}
        )
    elif name == "ModelSaveFailed":
        _metrics.inc(
            "model_save_total",
            {"target": payload["target"], "status": payload["error_type"]},
        )
    elif name == "LegacyOpsetDetected":
        _metrics.inc(
            "legacy_opset_models_total", {"domain": payload["domain"]}
        )


_subscribe_bus(ANY, _metrics_collector)


def emit(ev: BaseEvent | SupportsEvent) -> None:
    _emit_bus(ev.__class__.__name__, ev.to_event())


def subscribe(handler: EventHandler) -> Callable[[], None]:
    return _subscribe_bus(ANY, handler)


def reset_listeners_for_tests() -> None:  # pragma: no cover
    _reset_bus()
    _subscribe_bus(ANY, _metrics_collector)


__all__ = [
    "emit",
    "subscribe",
    "ModelLoaded",
    "ModelLoadFailed",
    "ModelSaved",
    "ModelSaveFailed",
    "LegacyOpsetDetected",
    "SchemaRegistryLoaded",
    "reset_listeners_for_tests",
]
