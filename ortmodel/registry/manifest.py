"""Custom opset manifest schema (one YAML file per domain)."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .base import OpSchemaSpec


class OperatorManifest(BaseModel):
    name: str
    since_version: int
    doc: str = ""
    min_inputs: int = 0
    max_inputs: Optional[int] = None
    min_outputs: int = 0
    max_outputs: Optional[int] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, v: str) -> str:  # noqa: D401
        if not v.strip():
            raise ValueError("operator name cannot be empty")
        return v


class OpsetManifest(BaseModel):
    domain: str
    opset_version: int
    baseline_opset_version: int = 1
    operators: List[OperatorManifest] = []

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _baseline_not_above_opset(self) -> "OpsetManifest":
        if self.baseline_opset_version > self.opset_version:
            raise ValueError(
                "baseline_opset_version cannot exceed opset_version"
            )
        return self

    def to_schemas(self) -> List[OpSchemaSpec]:
        return [
            OpSchemaSpec(
                name=op.name,
                domain=self.domain,
                since_version=op.since_version,
                min_inputs=op.min_inputs,
                max_inputs=op.max_inputs,
                min_outputs=op.min_outputs,
                max_outputs=op.max_outputs,
                doc=op.doc,
            )
            for op in self.operators
        ]
