"""Status and result types returned by the load/save entry points."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import onnx

if TYPE_CHECKING:  # pragma: no cover
    from .model import Model

CATEGORY_NONE = "none"
CATEGORY_MODEL = "ortmodel"
CATEGORY_SYSTEM = "system"


@dataclass(frozen=True, slots=True)
class Status:
    category: str = CATEGORY_NONE
    code: str = "ok"
    message: str = ""
    errno: int | None = None

    def is_ok(self) -> bool:
        return self.code == "ok"

    def __str__(self) -> str:
        if self.is_ok():
            return "OK"
        prefix = f"[{self.category}:{self.code}]"
        return f"{prefix} {self.message}" if self.message else prefix

    @staticmethod
    def ok() -> "Status":
        return _OK

    @staticmethod
    def error(code: str, message: str = "") -> "Status":
        from .errors import validate_error_type  # local import (cycle)

        return Status(
            category=CATEGORY_MODEL,
            code=validate_error_type(code),
            message=message,
        )

    @staticmethod
    def system(errno: int | None, message: str = "") -> "Status":
        return Status(
            category=CATEGORY_SYSTEM, code="fail", message=message, errno=errno
        )


_OK = Status()


@dataclass(slots=True)
class ParseResult:
    status: Status
    model_proto: Optional[onnx.ModelProto] = None

    @property
    def ok(self) -> bool:
        return self.status.is_ok()


@dataclass(slots=True)
class LoadResult:
    status: Status
    model: Optional["Model"] = None

    @property
    def ok(self) -> bool:
        return self.status.is_ok()

    @staticmethod
    def failure(status: Status) -> "LoadResult":
        return LoadResult(status=status)
