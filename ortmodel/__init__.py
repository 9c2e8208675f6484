"""ortmodel: ONNX model envelope, opset reconciliation and load/save pipeline.

Typical use::

    from ortmodel import load_path, save_path

    result = load_path("model.onnx")
    if not result.ok:
        raise SystemExit(str(result.status))
    model = result.model
    print(dict(model.domain_to_version))
    save_path(model, "copy.onnx")
"""

from .exceptions import ModelError, InvalidModelError, SchemaRegistryError  # noqa: F401
from .status import Status, LoadResult, ParseResult  # noqa: F401
from .opset import (  # noqa: F401
    ONNX_DOMAIN,
    ONNX_DOMAIN_ALIAS,
    LEGACY_OPSET_THRESHOLD,
    OpsetResolution,
    canonical_domain,
    resolve_opset_versions,
)
from .model import Model, ModelResult  # noqa: F401
from .model_io import (  # noqa: F401
    load_proto_from_stream,
    load_proto,
    load_bytes,
    load_fd,
    load_path,
    save_fd,
    save_path,
)

__all__ = [
    "ModelError",
    "InvalidModelError",
    "SchemaRegistryError",
    "Status",
    "LoadResult",
    "ParseResult",
    "ONNX_DOMAIN",
    "ONNX_DOMAIN_ALIAS",
    "LEGACY_OPSET_THRESHOLD",
    "OpsetResolution",
    "canonical_domain",
    "resolve_opset_versions",
    "Model",
    "ModelResult",
    "load_proto_from_stream",
    "load_proto",
    "load_bytes",
    "load_fd",
    "load_path",
    "save_fd",
    "save_path",
]
