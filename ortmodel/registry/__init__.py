"""Operator schema registries.

- `OpSchemaRegistry`: schema source interface
- `LocalSchemaRegistry`: custom operator sets registered in memory
- `OnnxStandardRegistry`: operator sets shipped with the ``onnx`` package
- `SchemaRegistryManager`: per-model aggregation of the above
- `load_schema_manifests`: YAML manifests → LocalSchemaRegistry
"""

from .base import OpSchemaRegistry, OpSchemaSpec  # noqa: F401
from .local import LocalSchemaRegistry  # noqa: F401
from .manager import OnnxStandardRegistry, SchemaRegistryManager  # noqa: F401
from .loader import load_schema_manifests, clear_manifest_cache  # noqa: F401

__all__ = [
    "OpSchemaRegistry",
    "OpSchemaSpec",
    "LocalSchemaRegistry",
    "OnnxStandardRegistry",
    "SchemaRegistryManager",
    "load_schema_manifests",
    "clear_manifest_cache",
]
