"""Schema source interface.

A schema source answers two questions: which opset version is the newest it
knows per domain, and which operator schema applies to an op at a given
opset version. Sources must not allocate heavy resources on import.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class OpSchemaSpec:
    name: str
    domain: str
    since_version: int
    min_inputs: int = 0
    max_inputs: Optional[int] = None
    min_outputs: int = 0
    max_outputs: Optional[int] = None
    doc: str = ""

    def accepts_arity(self, n_inputs: int, n_outputs: int) -> bool:
        if n_inputs < self.min_inputs or n_outputs < self.min_outputs:
            return False
        if self.max_inputs is not None and n_inputs > self.max_inputs:
            return False
        if self.max_outputs is not None and n_outputs > self.max_outputs:
            return False
        return True


class OpSchemaRegistry(ABC):
    @abstractmethod
    def latest_opset_versions(self, onnx_domain_only: bool = False) -> Dict[str, int]:
        """Return newest known opset version per domain."""

    @abstractmethod
    def get_schema(
        self, op_type: str, max_inclusive_version: int, domain: str = ""
    ) -> Optional[OpSchemaSpec]:
        """Return the schema in effect at ``max_inclusive_version`` or None."""
