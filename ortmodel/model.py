"""Model: the envelope (``onnx.ModelProto``) plus its one main Graph.

Two ways in:
 - ``Model.create(...)``: a fresh model from a graph name and metadata
 - ``Model.from_proto(...)``: a previously serialized envelope

Both reconcile opset imports against the model's own schema registry
(`ortmodel.opset`), build the function-name index and only then construct
the Graph. Neither resolves the graph; the load entry points in
`ortmodel.model_io` do that.

Structural violations raise ``InvalidModelError`` (including a fresh model
whose registry offers no opset versions); ``Model.try_from_proto`` and
``Model.try_create`` return them as a tagged ``ModelResult`` instead.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

import onnx

from ortmodel.config import get_config
from ortmodel.events import LegacyOpsetDetected, emit
from ortmodel.exceptions import InvalidModelError
from ortmodel.graph import Graph
from ortmodel.logs import ensure_logging, get_logger
from ortmodel.opset import (
    LEGACY_OPSET_THRESHOLD,
    ONNX_DOMAIN,
    OpsetResolution,
    resolve_explicit,
    resolve_opset_versions,
)
from ortmodel.registry import OpSchemaRegistry, SchemaRegistryManager

logger = get_logger("model")

LocalRegistries = Optional[Iterable[OpSchemaRegistry]]


@dataclass(slots=True)
class ModelResult:
    model: Optional["Model"] = None
    error: Optional[InvalidModelError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _check_structure(model_proto: Optional[onnx.ModelProto]) -> None:
    if model_proto is None:
        raise InvalidModelError("ModelProto was null.")
    if not model_proto.HasField("graph"):
        raise InvalidModelError("ModelProto does not have a graph.")
    if len(model_proto.opset_import) == 0:
        raise InvalidModelError(
            "Missing opset in the model. All ModelProtos MUST have at least "
            "one entry that specifies which version of the ONNX OperatorSet "
            "is being imported."
        )


def _warn_legacy(resolution: OpsetResolution) -> None:
    if resolution.legacy_version is None:
        return
    logger.warning(
        "Only models stamped with opset version %d or above for opset "
        "domain 'ai.onnx' are guaranteed to be supported. Please upgrade "
        "your model to opset %d or higher. For now, this opset %d model may "
        "run depending upon legacy support of some older opset version "
        "operators.",
        LEGACY_OPSET_THRESHOLD,
        LEGACY_OPSET_THRESHOLD,
        resolution.legacy_version,
    )
    emit(
        LegacyOpsetDetected(
            domain=ONNX_DOMAIN,
            version=resolution.legacy_version,
            threshold=LEGACY_OPSET_THRESHOLD,
        )
    )


class Model:
    """Use ``Model.create`` or ``Model.from_proto``; ``__init__`` expects an
    envelope whose opset imports are already reconciled."""

    def __init__(
        self,
        model_proto: onnx.ModelProto,
        schema_registry: SchemaRegistryManager,
        resolution: OpsetResolution,
    ) -> None:
        ensure_logging()
        self._proto = model_proto
        self._schema_registry = schema_registry
        self._domain_to_version = resolution.domain_to_version
        self._metadata: Dict[str, str] = {
            prop.key: prop.value for prop in model_proto.metadata_props
        }
        for domain, version in resolution.added_imports:
            opset = self._proto.opset_import.add()
            opset.domain = domain
            opset.version = version
        _warn_legacy(resolution)
        self._function_index: Dict[str, onnx.FunctionProto] = {}
        for func in self._proto.functions:
            self._function_index[func.name] = func
        self._graph = Graph(
            self._proto.graph,
            self._domain_to_version,
            self.ir_version,
            self._schema_registry,
            self._function_index,
        )

    # --- construction ----------------------------------------------------
    @classmethod
    def create(
        cls,
        graph_name: str,
        is_onnx_domain_only: bool = False,
        metadata: Mapping[str, str] | None = None,
        local_registries: LocalRegistries = None,
        domain_to_version: Mapping[str, int] | None = None,
        functions: Iterable[onnx.FunctionProto] | None = None,
    ) -> "Model":
        defaults = get_config().model
        proto = onnx.ModelProto()
        proto.ir_version = defaults.ir_version
        if defaults.producer_name:
            proto.producer_name = defaults.producer_name
        if defaults.producer_version:
            proto.producer_version = defaults.producer_version
        proto.graph.name = graph_name
        for key, value in (metadata or {}).items():
            prop = proto.metadata_props.add()
            prop.key = key
            prop.value = value
        registry = SchemaRegistryManager.from_config(local_registries)
        if domain_to_version:
            resolution = resolve_explicit(domain_to_version)
        else:
            resolution = resolve_opset_versions(
                (),
                registry.get_latest_opset_versions(is_onnx_domain_only),
                is_onnx_domain_only,
            )
            if not resolution.domain_to_version:
                raise InvalidModelError(
                    "No opset versions available for a new model: the schema "
                    "registry is empty and no domain_to_version was given."
                )
        for func in functions or ():
            proto.functions.add().CopyFrom(func)
        return cls(proto, registry, resolution)

    @classmethod
    def from_proto(
        cls,
        model_proto: Optional[onnx.ModelProto],
        local_registries: LocalRegistries = None,
        copy: bool = True,
    ) -> "Model":
        """Build a model around a parsed envelope.

        With ``copy=False`` the model takes ownership of ``model_proto`` and
        mutates it (appended opset imports, exported graph).
        """
        _check_structure(model_proto)
        if copy:
            owned = onnx.ModelProto()
            owned.CopyFrom(model_proto)
            model_proto = owned
        registry = SchemaRegistryManager.from_config(local_registries)
        declared = [(o.domain, o.version) for o in model_proto.opset_import]
        resolution = resolve_opset_versions(
            declared, registry.get_latest_opset_versions(False)
        )
        return cls(model_proto, registry, resolution)

    @classmethod
    def try_from_proto(
        cls,
        model_proto: Optional[onnx.ModelProto],
        local_registries: LocalRegistries = None,
        copy: bool = True,
    ) -> ModelResult:
        try:
            return ModelResult(
                model=cls.from_proto(model_proto, local_registries, copy)
            )
        except InvalidModelError as e:
            return ModelResult(error=e)

    @classmethod
    def try_create(cls, graph_name: str, **kwargs) -> ModelResult:
        """``create`` with structural failures returned instead of raised."""
        try:
            return ModelResult(model=cls.create(graph_name, **kwargs))
        except InvalidModelError as e:
            return ModelResult(error=e)

    # --- envelope fields -------------------------------------------------
    @property
    def ir_version(self) -> Optional[int]:
        if self._proto.HasField("ir_version"):
            return self._proto.ir_version
        return None

    @property
    def producer_name(self) -> str:
        return self._proto.producer_name

    @producer_name.setter
    def producer_name(self, value: str) -> None:
        self._proto.producer_name = value

    @property
    def producer_version(self) -> str:
        return self._proto.producer_version

    @producer_version.setter
    def producer_version(self, value: str) -> None:
        self._proto.producer_version = value

    @property
    def domain(self) -> str:
        return self._proto.domain

    @domain.setter
    def domain(self, value: str) -> None:
        self._proto.domain = value

    @property
    def model_version(self) -> Optional[int]:
        if self._proto.HasField("model_version"):
            return self._proto.model_version
        return None

    @model_version.setter
    def model_version(self, value: int) -> None:
        self._proto.model_version = value

    @property
    def doc_string(self) -> str:
        return self._proto.doc_string

    @doc_string.setter
    def doc_string(self, value: str) -> None:
        self._proto.doc_string = value

    @property
    def metadata(self) -> Dict[str, str]:
        return self._metadata

    @property
    def opset_imports(self) -> Tuple[Tuple[str, int], ...]:
        return tuple((o.domain, o.version) for o in self._proto.opset_import)

    @property
    def domain_to_version(self) -> Mapping[str, int]:
        return self._domain_to_version

    @property
    def schema_registry(self) -> SchemaRegistryManager:
        return self._schema_registry

    # --- graph handoff ---------------------------------------------------
    @property
    def main_graph(self) -> Graph:
        return self._graph

    @property
    def functions(self) -> Tuple[onnx.FunctionProto, ...]:
        return tuple(self._proto.functions)

    @property
    def function_index(self) -> Mapping[str, onnx.FunctionProto]:
        return MappingProxyType(self._function_index)

    def add_function(self, function_proto: onnx.FunctionProto) -> None:
        """Append a function; a same-named earlier one stays but is shadowed."""
        func = self._proto.functions.add()
        func.CopyFrom(function_proto)
        self._function_index[func.name] = func
        self._graph.add_function(func)

    def to_proto(self) -> onnx.ModelProto:
        """Export the envelope with the graph field taken from the live graph."""
        self._proto.graph.CopyFrom(self._graph.to_graph_proto())
        del self._proto.metadata_props[:]
        for key, value in self._metadata.items():
            prop = self._proto.metadata_props.add()
            prop.key = key
            prop.value = value
        out = onnx.ModelProto()
        out.CopyFrom(self._proto)
        return out

    def __repr__(self) -> str:
        return (
            f"Model(graph={self._graph.name!r}, ir_version={self.ir_version}, "
            f"opsets={dict(self._domain_to_version)!r})"
        )
