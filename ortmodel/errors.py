"""Central error taxonomy for load/save statuses."""
from __future__ import annotations

import errno as _errno
import os

from .status import Status

_ALLOWED_ERROR_TYPES = {
    "ok",
    # model.load / model.save
    "invalid-argument",
    "no-such-file",
    "invalid-protobuf",
    "invalid-graph",
    "fail",
    # registry
    "schema-registry",
    # config
    "config-invalid",
    "config-out-of-range",
    # infra
    "event-handler-error",
}


def validate_error_type(code: str) -> str:
    assert (
        code in _ALLOWED_ERROR_TYPES
    ), f"Unknown error_type '{code}' (not in taxonomy)"
    return code


def map_os_error(
    e: OSError,
    path: str | bytes | os.PathLike | None = None,
    action: str = "Load model",
) -> Status:
    """Translate an OS-level open/close failure into a Status.

    Only ENOENT and EINVAL get their own codes; every other errno collapses to
    a generic failure that keeps the system error number.
    """
    shown = os.fsdecode(path) if path is not None else "<fd>"
    if e.errno == _errno.ENOENT:
        return Status.error(
            "no-such-file", f"{action} {shown} failed. File doesn't exist"
        )
    if e.errno == _errno.EINVAL:
        return Status.error("invalid-argument", f"{action} {shown} failed")
    return Status.system(e.errno, f"system error number {e.errno}")


def map_exception(e: Exception, phase: str) -> str:
    if phase == "model.load":
        if isinstance(e, FileNotFoundError):
            return "no-such-file"
        if isinstance(e, ValueError):
            return "invalid-argument"
        return "fail"
    if phase == "model.save":
        if isinstance(e, OSError):
            return "fail"
        return "invalid-protobuf"
    return "fail"


__all__ = ["validate_error_type", "map_os_error", "map_exception"]
