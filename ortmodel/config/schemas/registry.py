"""Schema registry schema: which operator sets a new model can see."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class RegistryConfig(BaseModel):
    include_onnx_standard: bool = True
    # Directory of YAML opset manifests merged into every model's registry.
    manifest_dir: Optional[str] = None

    model_config = ConfigDict(extra="forbid")
