"""Load/save entry points.

Every input shape (stream, path, descriptor, byte buffer, parsed proto)
funnels into the same parse → construct → resolve sequence; only byte
acquisition differs. Saving always resolves first, exports the live graph
into the envelope and writes the serialized bytes.

None of the public functions raise for argument, OS, parse, structural or
resolution failures: they return a ``Status`` (or a result carrying one).
Descriptors opened here are closed on every exit path.
"""
from __future__ import annotations

import os
import time
from typing import BinaryIO, Optional, Union

import onnx
from google.protobuf.message import DecodeError

from ortmodel.errors import map_exception, map_os_error
from ortmodel.events import (
    ModelLoaded,
    ModelLoadFailed,
    ModelSaved,
    ModelSaveFailed,
    emit,
)
from ortmodel.config import ConfigError
from ortmodel.exceptions import InvalidModelError, SchemaRegistryError
from ortmodel.logs import get_logger
from ortmodel.model import LocalRegistries, Model
from ortmodel.status import LoadResult, ParseResult, Status

logger = get_logger("io")

PathType = Union[str, bytes, os.PathLike]

_READ_CHUNK = 1 << 20


def _parse(data: bytes) -> Optional[onnx.ModelProto]:
    """Parse a full envelope; None when malformed or not fully consumed."""
    proto = onnx.ModelProto()
    try:
        consumed = proto.ParseFromString(data)
    except DecodeError:
        return None
    if consumed is not None and consumed != len(data):
        return None
    return proto


def _report_load(source: str, started: float, result: LoadResult) -> LoadResult:
    if result.ok:
        model = result.model
        emit(
            ModelLoaded(
                source=source,
                graph_name=model.main_graph.name,
                ir_version=model.ir_version,
                opset_imports=dict(model.domain_to_version),
                load_ms=int((time.perf_counter() - started) * 1000),
            )
        )
    else:
        logger.error("Model load from %s failed: %s", source, result.status)
        emit(
            ModelLoadFailed(
                source=source,
                error_type=result.status.code,
                message=result.status.message,
                errno=result.status.errno,
            )
        )
    return result


def _report_save(target: str, model: Model, status: Status, size: int = 0) -> Status:
    if status.is_ok():
        emit(
            ModelSaved(
                target=target,
                graph_name=model.main_graph.name,
                bytes_written=size,
            )
        )
    else:
        logger.error("Model save to %s failed: %s", target, status)
        emit(
            ModelSaveFailed(
                target=target,
                error_type=status.code,
                message=status.message,
                errno=status.errno,
            )
        )
    return status


def _file_open(
    path: PathType, flags: int, action: str, mode: int = 0o644
) -> tuple[Status, int]:
    try:
        return Status.ok(), os.open(path, flags, mode)
    except OSError as e:
        return map_os_error(e, path, action), -1
    except (TypeError, ValueError) as e:
        return Status.error("invalid-argument", f"{action} failed: {e}"), -1


def _file_close(fd: int) -> Status:
    try:
        os.close(fd)
    except OSError as e:
        return Status.system(e.errno, f"close failed: {e.strerror}")
    return Status.ok()


# --- load ----------------------------------------------------------------
def load_proto_from_stream(stream: Optional[BinaryIO]) -> ParseResult:
    """Parse an envelope from a readable binary stream (no construction)."""
    if not hasattr(stream, "read") or getattr(stream, "closed", False):
        return ParseResult(Status.error("invalid-argument", "Invalid stream object."))
    readable = getattr(stream, "readable", None)
    if readable is not None and not readable():
        return ParseResult(Status.error("invalid-argument", "Invalid stream object."))
    try:
        data = stream.read()
    except OSError:
        data = None
    proto = _parse(bytes(data)) if isinstance(data, (bytes, bytearray)) else None
    if proto is None:
        return ParseResult(
            Status.error(
                "invalid-protobuf",
                "Failed to load model because protobuf parsing failed.",
            )
        )
    return ParseResult(Status.ok(), proto)


def _construct_and_resolve(
    model_proto: onnx.ModelProto,
    local_registries: LocalRegistries,
    copy: bool,
) -> LoadResult:
    if not isinstance(model_proto, onnx.ModelProto):
        return LoadResult.failure(
            Status.error("invalid-argument", "Null or non-ModelProto input.")
        )
    if not model_proto.HasField("graph"):
        return LoadResult.failure(
            Status.error("invalid-argument", "No graph was found in the protobuf.")
        )
    try:
        model = Model.from_proto(model_proto, local_registries, copy=copy)
        status = model.main_graph.resolve()
    except InvalidModelError as e:
        return LoadResult.failure(
            Status.error(
                "invalid-argument", f"Failed to load model with error: {e}"
            )
        )
    except SchemaRegistryError as e:
        return LoadResult.failure(Status.error("schema-registry", str(e)))
    except ConfigError as e:
        return LoadResult.failure(Status.error("config-invalid", str(e)))
    except Exception as e:  # noqa: BLE001
        logger.debug("model construction failed", exc_info=True)
        return LoadResult.failure(
            Status.error(map_exception(e, "model.load"), str(e))
        )
    if not status.is_ok():
        return LoadResult.failure(status)
    return LoadResult(Status.ok(), model)


def load_proto(
    model_proto: Optional[onnx.ModelProto],
    local_registries: LocalRegistries = None,
    copy: bool = True,
) -> LoadResult:
    """Construct and resolve a model from an already parsed envelope."""
    started = time.perf_counter()
    return _report_load(
        "proto",
        started,
        _construct_and_resolve(model_proto, local_registries, copy),
    )


def _load_bytes(data, local_registries: LocalRegistries) -> LoadResult:
    proto = _parse(bytes(data))
    if proto is None:
        return LoadResult.failure(
            Status.error("invalid-protobuf", "Protobuf parsing failed.")
        )
    return _construct_and_resolve(proto, local_registries, copy=False)


def load_bytes(
    data: Optional[Union[bytes, bytearray, memoryview]],
    local_registries: LocalRegistries = None,
) -> LoadResult:
    started = time.perf_counter()
    if not isinstance(data, (bytes, bytearray, memoryview)):
        result = LoadResult.failure(
            Status.error("invalid-argument", "Null or non-bytes model buffer.")
        )
    else:
        result = _load_bytes(data, local_registries)
    return _report_load("bytes", started, result)


def _valid_fd(fd) -> bool:
    return isinstance(fd, int) and not isinstance(fd, bool)


def _read_fd(fd: int) -> Optional[bytes]:
    chunks = []
    try:
        while True:
            chunk = os.read(fd, _READ_CHUNK)
            if not chunk:
                break
            chunks.append(chunk)
    except OSError as e:
        logger.debug("read from fd %d failed: %s", fd, e)
        return None
    return b"".join(chunks)


def _load_fd(fd: int, local_registries: LocalRegistries) -> LoadResult:
    if not _valid_fd(fd):
        return LoadResult.failure(
            Status.error("invalid-argument", "<p_fd> is not a descriptor.")
        )
    if fd < 0:
        return LoadResult.failure(
            Status.error("invalid-argument", "<p_fd> less than 0.")
        )
    data = _read_fd(fd)
    if data is None:
        return LoadResult.failure(
            Status.error("invalid-protobuf", "Protobuf parsing failed.")
        )
    return _load_bytes(data, local_registries)


def load_fd(fd: int, local_registries: LocalRegistries = None) -> LoadResult:
    """Load from an open descriptor; the caller keeps ownership of ``fd``."""
    started = time.perf_counter()
    return _report_load("fd", started, _load_fd(fd, local_registries))


def load_path(path: PathType, local_registries: LocalRegistries = None) -> LoadResult:
    started = time.perf_counter()
    status, fd = _file_open(
        path, os.O_RDONLY | getattr(os, "O_BINARY", 0), "Load model"
    )
    if not status.is_ok():
        return _report_load("path", started, LoadResult.failure(status))
    try:
        result = _load_fd(fd, local_registries)
    except Exception as e:  # noqa: BLE001
        result = LoadResult.failure(
            Status.error(map_exception(e, "model.load"), str(e))
        )
    finally:
        close_status = _file_close(fd)
    if result.ok and not close_status.is_ok():
        result = LoadResult.failure(close_status)
    return _report_load("path", started, result)


# --- save ----------------------------------------------------------------
def _save_fd(model: Model, fd: int) -> tuple[Status, int]:
    if not _valid_fd(fd) or fd < 0:
        return Status.error("invalid-argument", "<p_fd> is less than 0."), 0
    status = model.main_graph.resolve()
    if not status.is_ok():
        return status, 0
    try:
        data = model.to_proto().SerializeToString()
        view = memoryview(data)
        while view:
            written = os.write(fd, view)
            view = view[written:]
    except (OSError, ValueError) as e:
        logger.debug("serialize to fd %d failed: %s", fd, e)
        return Status.error("invalid-protobuf", "Protobuf serialization failed."), 0
    return Status.ok(), len(data)


def save_fd(model: Model, fd: int) -> Status:
    """Save to an open descriptor; the caller keeps ownership of ``fd``."""
    status, size = _save_fd(model, fd)
    return _report_save("fd", model, status, size)


def save_path(model: Model, path: PathType) -> Status:
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_BINARY", 0)
    status, fd = _file_open(path, flags, "Save model")
    if not status.is_ok():
        return _report_save("path", model, status)
    size = 0
    try:
        status, size = _save_fd(model, fd)
    except Exception as e:  # noqa: BLE001
        status = Status.error(map_exception(e, "model.save"), str(e))
    finally:
        close_status = _file_close(fd)
    if status.is_ok() and not close_status.is_ok():
        status = close_status
    return _report_save("path", model, status, size)


__all__ = [
    "load_proto_from_stream",
    "load_proto",
    "load_bytes",
    "load_fd",
    "load_path",
    "save_fd",
    "save_path",
]
