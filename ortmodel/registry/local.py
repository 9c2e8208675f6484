"""In-memory registry for custom operator sets."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ortmodel.exceptions import SchemaRegistryError
from ortmodel.opset import ONNX_DOMAIN, canonical_domain

from .base import OpSchemaRegistry, OpSchemaSpec


@dataclass
class _DomainOpset:
    baseline_opset_version: int
    opset_version: int
    # op_type -> schemas sorted by since_version
    ops: Dict[str, List[OpSchemaSpec]] = field(default_factory=dict)


class LocalSchemaRegistry(OpSchemaRegistry):
    def __init__(self, name: str = "local") -> None:
        self.name = name
        self._domains: Dict[str, _DomainOpset] = {}

    def __repr__(self) -> str:
        return f"LocalSchemaRegistry(name={self.name!r}, domains={sorted(self._domains)!r})"

    @property
    def domains(self) -> List[str]:
        return list(self._domains)

    def register_opset(
        self,
        domain: str,
        baseline_opset_version: int,
        opset_version: int,
        schemas: Iterable[OpSchemaSpec] = (),
    ) -> None:
        """Register one domain's operator set.

        ``since_version`` of every schema must lie within
        ``[baseline_opset_version, opset_version]``.
        """
        domain = canonical_domain(domain)
        if domain in self._domains:
            raise SchemaRegistryError(
                f"Domain '{domain}' already registered in {self.name}"
            )
        if baseline_opset_version > opset_version:
            raise SchemaRegistryError(
                f"Baseline opset {baseline_opset_version} above opset "
                f"{opset_version} for domain '{domain}'"
            )
        entry = _DomainOpset(baseline_opset_version, opset_version)
        for schema in schemas:
            if canonical_domain(schema.domain) != domain:
                raise SchemaRegistryError(
                    f"Schema {schema.name} has domain '{schema.domain}', "
                    f"expected '{domain}'"
                )
            if not (
                baseline_opset_version
                <= schema.since_version
                <= opset_version
            ):
                raise SchemaRegistryError(
                    f"Schema {schema.name} since_version "
                    f"{schema.since_version} outside "
                    f"[{baseline_opset_version}, {opset_version}]"
                )
            entry.ops.setdefault(schema.name, []).append(schema)
        for versions in entry.ops.values():
            versions.sort(key=lambda s: s.since_version)
        self._domains[domain] = entry

    def latest_opset_versions(self, onnx_domain_only: bool = False) -> Dict[str, int]:
        return {
            domain: entry.opset_version
            for domain, entry in self._domains.items()
            if not onnx_domain_only or domain == ONNX_DOMAIN
        }

    def get_schema(
        self, op_type: str, max_inclusive_version: int, domain: str = ""
    ) -> Optional[OpSchemaSpec]:
        entry = self._domains.get(canonical_domain(domain))
        if entry is None:
            return None
        found = None
        for schema in entry.ops.get(op_type, ()):
            if schema.since_version > max_inclusive_version:
                break
            found = schema
        return found
