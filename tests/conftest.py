"""Pytest configuration ensuring project root is importable.

Adds repository root to sys.path explicitly to avoid interpreter/path quirks.
"""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import onnx  # noqa: E402
from onnx import TensorProto, helper  # noqa: E402


def _drop_package_handlers() -> None:
    root = logging.getLogger("ortmodel")
    for h in list(root.handlers):
        if getattr(h, "_ortmodel_handler", False):
            root.removeHandler(h)
    root.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _isolate_config_env():  # noqa: D401
    """Ensure global config/env side effects do not leak between tests.

    - Point ORTMODEL_CONFIG_DIR at the repository configs
    - Clear config and manifest caches between tests
    - Drop the package log handler installed on first model construction
    """
    from ortmodel.config import clear_config_cache  # local import
    from ortmodel.registry import clear_manifest_cache

    prev = os.environ.get("ORTMODEL_CONFIG_DIR")
    os.environ["ORTMODEL_CONFIG_DIR"] = str(ROOT / "configs")
    clear_config_cache()
    clear_manifest_cache()
    try:
        yield
    finally:
        clear_config_cache()
        clear_manifest_cache()
        _drop_package_handlers()
        if prev is None:
            os.environ.pop("ORTMODEL_CONFIG_DIR", None)
        else:
            os.environ["ORTMODEL_CONFIG_DIR"] = prev


@pytest.fixture
def local_only(monkeypatch):
    """Models see only the registries passed to them (no onnx.defs)."""
    from ortmodel.config import clear_config_cache

    monkeypatch.setenv("ORTMODEL__REGISTRY__INCLUDE_ONNX_STANDARD", "false")
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def default_registry():
    """Default domain at opset 12 with a handful of operators."""
    from ortmodel.registry import LocalSchemaRegistry, OpSchemaSpec

    reg = LocalSchemaRegistry("test-default")
    reg.register_opset(
        "",
        1,
        12,
        [
            OpSchemaSpec("Identity", "", 1, 1, 1, 1, 1),
            OpSchemaSpec("Relu", "", 6, 1, 1, 1, 1),
            OpSchemaSpec("Add", "", 7, 2, 2, 1, 1),
        ],
    )
    return reg


def make_relu_model(
    opsets=(("", 13),), graph_name: str = "relu_graph", **kwargs
) -> onnx.ModelProto:
    node = helper.make_node("Relu", ["X"], ["Y"], name="relu")
    graph = helper.make_graph(
        [node],
        graph_name,
        [helper.make_tensor_value_info("X", TensorProto.FLOAT, [1, 4])],
        [helper.make_tensor_value_info("Y", TensorProto.FLOAT, [1, 4])],
    )
    return helper.make_model(
        graph,
        opset_imports=[helper.make_opsetid(d, v) for d, v in opsets],
        **kwargs,
    )


@pytest.fixture
def relu_model():
    return make_relu_model
