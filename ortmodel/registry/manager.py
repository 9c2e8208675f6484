"""Per-model schema registry aggregation.

Responsibilities:
- Hold the schema sources a model was built with (newest registered first)
- Report the latest opset version per domain across all sources
- Look up operator schemas, local sources before the ONNX standard set

Every Model owns its own SchemaRegistryManager; two models may share the
same underlying sources but never the aggregator itself.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Dict, Iterable, List, Optional

import onnx
import onnx.defs

from ortmodel.opset import ONNX_DOMAIN

from .base import OpSchemaRegistry, OpSchemaSpec


@lru_cache(maxsize=2)
def _standard_latest_versions(onnx_domain_only: bool) -> Dict[str, int]:
    versions = {ONNX_DOMAIN: onnx.defs.onnx_opset_version()}
    if onnx_domain_only:
        return versions
    for schema in onnx.defs.get_all_schemas_with_history():
        if schema.domain == ONNX_DOMAIN:
            continue
        versions[schema.domain] = max(
            versions.get(schema.domain, 0), schema.since_version
        )
    return versions


class OnnxStandardRegistry(OpSchemaRegistry):
    """Operator sets compiled into the installed ``onnx`` package."""

    def latest_opset_versions(self, onnx_domain_only: bool = False) -> Dict[str, int]:
        return dict(_standard_latest_versions(onnx_domain_only))

    def get_schema(
        self, op_type: str, max_inclusive_version: int, domain: str = ""
    ) -> Optional[OpSchemaSpec]:
        try:
            schema = onnx.defs.get_schema(op_type, max_inclusive_version, domain)
        except onnx.defs.SchemaError:
            return None
        if schema.deprecated:
            return None
        return OpSchemaSpec(
            name=schema.name,
            domain=schema.domain,
            since_version=schema.since_version,
            min_inputs=schema.min_input,
            max_inputs=schema.max_input,
            min_outputs=schema.min_output,
            max_outputs=schema.max_output,
        )


class SchemaRegistryManager:
    def __init__(
        self,
        local_registries: Iterable[OpSchemaRegistry] | None = None,
        include_onnx_standard: bool | None = None,
    ) -> None:
        if include_onnx_standard is None:
            from ortmodel.config import get_config  # local import (cycle)

            include_onnx_standard = get_config().registry.include_onnx_standard
        self._registries: List[OpSchemaRegistry] = []
        self._standard: OnnxStandardRegistry | None = (
            OnnxStandardRegistry() if include_onnx_standard else None
        )
        for registry in local_registries or ():
            self.register_registry(registry)

    @classmethod
    def from_config(
        cls, local_registries: Iterable[OpSchemaRegistry] | None = None
    ) -> "SchemaRegistryManager":
        """Build a manager honoring the `registry` config section.

        Sources from ``registry.manifest_dir`` rank below explicitly
        supplied ones.
        """
        from ortmodel.config import get_config  # local import (cycle)
        from .loader import load_schema_manifests

        cfg = get_config().registry
        manager = cls(include_onnx_standard=cfg.include_onnx_standard)
        if cfg.manifest_dir:
            manager.register_registry(load_schema_manifests(cfg.manifest_dir))
        for registry in local_registries or ():
            manager.register_registry(registry)
        return manager

    @property
    def registries(self) -> List[OpSchemaRegistry]:
        return list(self._registries)

    @property
    def includes_onnx_standard(self) -> bool:
        return self._standard is not None

    def register_registry(self, registry: OpSchemaRegistry) -> None:
        """Add a schema source; it takes priority over earlier ones."""
        self._registries.insert(0, registry)

    def _all_sources(self) -> List[OpSchemaRegistry]:
        sources = list(self._registries)
        if self._standard is not None:
            sources.append(self._standard)
        return sources

    def get_latest_opset_versions(self, onnx_domain_only: bool = False) -> Dict[str, int]:
        merged: Dict[str, int] = {}
        for registry in self._all_sources():
            for domain, version in registry.latest_opset_versions(
                onnx_domain_only
            ).items():
                merged[domain] = max(merged.get(domain, version), version)
        return merged

    def get_schema(
        self, op_type: str, max_inclusive_version: int, domain: str = ""
    ) -> Optional[OpSchemaSpec]:
        for registry in self._all_sources():
            schema = registry.get_schema(op_type, max_inclusive_version, domain)
            if schema is not None:
                return schema
        return None
