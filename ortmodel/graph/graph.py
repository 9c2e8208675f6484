"""Main graph of a model: node linking and validation.

The graph works on the envelope's own ``GraphProto`` (a live reference, not a
copy). ``resolve()`` checks every node against the resolved opset versions,
the model's functions and the schema registry, then orders nodes
topologically. Shape and type inference are not performed.
"""
from __future__ import annotations

from collections import deque
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

import onnx

from ortmodel.logs import get_logger
from ortmodel.opset import canonical_domain
from ortmodel.registry import SchemaRegistryManager
from ortmodel.status import Status

logger = get_logger("graph")


class Graph:
    def __init__(
        self,
        graph_proto: onnx.GraphProto,
        domain_to_version: Mapping[str, int],
        ir_version: Optional[int],
        schema_registry: SchemaRegistryManager,
        model_functions: Mapping[str, onnx.FunctionProto],
    ) -> None:
        self._proto = graph_proto
        self._domain_to_version = domain_to_version
        self._ir_version = ir_version
        self._schema_registry = schema_registry
        self._functions: Dict[str, onnx.FunctionProto] = dict(model_functions)
        self._resolved_count: int | None = None

    @property
    def name(self) -> str:
        return self._proto.name

    @property
    def ir_version(self) -> Optional[int]:
        return self._ir_version

    @property
    def domain_to_version(self) -> Mapping[str, int]:
        return self._domain_to_version

    @property
    def functions(self) -> Mapping[str, onnx.FunctionProto]:
        return MappingProxyType(self._functions)

    @property
    def is_resolved(self) -> bool:
        return self._resolved_count == len(self._proto.node)

    @property
    def nodes(self) -> List[onnx.NodeProto]:
        return list(self._proto.node)

    def add_function(self, function_proto: onnx.FunctionProto) -> None:
        self._functions[function_proto.name] = function_proto
        self._resolved_count = None

    def _check_node(self, node: onnx.NodeProto) -> Status:
        domain = canonical_domain(node.domain)
        label = node.name or node.op_type
        if node.op_type in self._functions:
            return Status.ok()
        version = self._domain_to_version.get(domain)
        if version is None:
            return Status.error(
                "invalid-graph",
                f"Node ({label}) has domain '{node.domain}' which is not "
                "in the model's opset imports",
            )
        schema = self._schema_registry.get_schema(node.op_type, version, domain)
        if schema is None:
            return Status.error(
                "invalid-graph",
                f"Node ({label}): no schema registered for "
                f"'{node.op_type}' in domain '{domain}' at opset {version}",
            )
        if not schema.accepts_arity(len(node.input), len(node.output)):
            return Status.error(
                "invalid-graph",
                f"Node ({label}): {len(node.input)} inputs / "
                f"{len(node.output)} outputs do not match schema "
                f"{schema.name} (since {schema.since_version})",
            )
        return Status.ok()

    def resolve(self) -> Status:
        """Validate and order the graph; the result is cached until changed."""
        nodes = list(self._proto.node)
        available = {""}
        available.update(v.name for v in self._proto.input)
        available.update(t.name for t in self._proto.initializer)
        available.update(t.name for t in self._proto.sparse_initializer)

        producer: Dict[str, int] = {}
        for idx, node in enumerate(nodes):
            status = self._check_node(node)
            if not status.is_ok():
                return status
            for out in node.output:
                if not out:
                    continue
                if out in producer or out in available:
                    return Status.error(
                        "invalid-graph",
                        f"Duplicate definition of value '{out}'",
                    )
                producer[out] = idx

        pending = [0] * len(nodes)
        consumers: Dict[int, List[int]] = {}
        for idx, node in enumerate(nodes):
            deps = set()
            for name in node.input:
                if name in available:
                    continue
                if name not in producer:
                    return Status.error(
                        "invalid-graph",
                        f"Node ({node.name or node.op_type}) input '{name}' "
                        "is not a graph input, initializer, or output of "
                        "another node",
                    )
                deps.add(producer[name])
            pending[idx] = len(deps)
            for dep in deps:
                consumers.setdefault(dep, []).append(idx)

        ready = deque(i for i, n in enumerate(pending) if n == 0)
        order: List[int] = []
        while ready:
            idx = ready.popleft()
            order.append(idx)
            for nxt in consumers.get(idx, ()):
                pending[nxt] -= 1
                if pending[nxt] == 0:
                    ready.append(nxt)
        if len(order) != len(nodes):
            return Status.error(
                "invalid-graph", f"Graph '{self.name}' contains a cycle"
            )

        for out in self._proto.output:
            if out.name not in producer and out.name not in available:
                return Status.error(
                    "invalid-graph",
                    f"Graph output '{out.name}' is not produced by any node",
                )
        if order != list(range(len(nodes))):
            ordered = []
            for idx in order:
                node = onnx.NodeProto()
                node.CopyFrom(nodes[idx])
                ordered.append(node)
            del self._proto.node[:]
            self._proto.node.extend(ordered)
        self._resolved_count = len(order)
        logger.debug("Resolved graph %s (%d nodes)", self.name, len(order))
        return Status.ok()

    def to_graph_proto(self) -> onnx.GraphProto:
        """Copy of the current graph; nodes are in resolved order once resolved."""
        out = onnx.GraphProto()
        out.CopyFrom(self._proto)
        return out
