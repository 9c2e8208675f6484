"""Model envelope defaults applied by the construct-fresh path."""
from __future__ import annotations

import onnx
from pydantic import BaseModel, ConfigDict


class ModelDefaultsConfig(BaseModel):
    ir_version: int = onnx.IR_VERSION
    producer_name: str = ""
    producer_version: str = ""

    model_config = ConfigDict(extra="forbid")
