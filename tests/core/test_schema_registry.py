from pathlib import Path
import textwrap

import onnx
import pytest

from ortmodel.exceptions import SchemaRegistryError
from ortmodel.registry import (
    LocalSchemaRegistry,
    OnnxStandardRegistry,
    OpSchemaSpec,
    SchemaRegistryManager,
    load_schema_manifests,
)


def _write(file: Path, content: str):
    file.write_text(textwrap.dedent(content), encoding="utf-8")


def test_local_registry_rejects_bad_registrations():
    reg = LocalSchemaRegistry()
    reg.register_opset("com.example", 1, 3, [OpSchemaSpec("Scale", "com.example", 2)])
    with pytest.raises(SchemaRegistryError):
        reg.register_opset("com.example", 1, 4)
    with pytest.raises(SchemaRegistryError):
        reg.register_opset("com.other", 5, 4)
    with pytest.raises(SchemaRegistryError):
        reg.register_opset("com.other", 1, 4, [OpSchemaSpec("X", "com.other", 9)])
    with pytest.raises(SchemaRegistryError):
        reg.register_opset("com.third", 1, 4, [OpSchemaSpec("X", "com.other", 2)])


def test_local_registry_picks_newest_schema_not_above_version():
    reg = LocalSchemaRegistry()
    reg.register_opset(
        "com.example",
        1,
        5,
        [OpSchemaSpec("Scale", "com.example", 1), OpSchemaSpec("Scale", "com.example", 4)],
    )
    assert reg.get_schema("Scale", 3, "com.example").since_version == 1
    assert reg.get_schema("Scale", 5, "com.example").since_version == 4
    assert reg.get_schema("Scale", 5, "com.missing") is None
    assert reg.latest_opset_versions() == {"com.example": 5}
    assert reg.latest_opset_versions(onnx_domain_only=True) == {}


def test_manager_merges_max_version_and_prefers_newest_registry():
    a = LocalSchemaRegistry("a")
    a.register_opset("", 1, 12, [OpSchemaSpec("Relu", "", 6, doc="from a")])
    b = LocalSchemaRegistry("b")
    b.register_opset("", 1, 10, [OpSchemaSpec("Relu", "", 6, doc="from b")])
    b.register_opset("com.example", 1, 2)
    mgr = SchemaRegistryManager([a, b], include_onnx_standard=False)
    assert mgr.get_latest_opset_versions() == {"": 12, "com.example": 2}
    assert mgr.get_latest_opset_versions(onnx_domain_only=True) == {"": 12}
    assert mgr.get_schema("Relu", 12, "").doc == "from b"


def test_managers_are_independent():
    a = SchemaRegistryManager(include_onnx_standard=False)
    b = SchemaRegistryManager(include_onnx_standard=False)
    reg = LocalSchemaRegistry()
    reg.register_opset("com.example", 1, 1)
    a.register_registry(reg)
    assert a.get_latest_opset_versions() == {"com.example": 1}
    assert b.get_latest_opset_versions() == {}


def test_standard_registry_uses_onnx_defs():
    std = OnnxStandardRegistry()
    latest = std.latest_opset_versions(onnx_domain_only=True)
    assert latest == {"": onnx.defs.onnx_opset_version()}
    relu = std.get_schema("Relu", 13, "")
    assert relu is not None and relu.since_version <= 13
    assert relu.accepts_arity(1, 1)
    assert std.get_schema("DefinitelyNotAnOp", 13, "") is None


def test_load_schema_manifests(tmp_path: Path):
    _write(
        tmp_path / "example.yaml",
        """
        domain: com.example
        baseline_opset_version: 1
        opset_version: 3
        operators:
          - name: Scale
            since_version: 2
            min_inputs: 1
            max_inputs: 1
            min_outputs: 1
            max_outputs: 1
        """,
    )
    reg = load_schema_manifests(tmp_path)
    assert reg.latest_opset_versions() == {"com.example": 3}
    assert reg.get_schema("Scale", 3, "com.example").max_inputs == 1
    assert load_schema_manifests(tmp_path) is reg


def test_invalid_manifest_rejected(tmp_path: Path):
    _write(
        tmp_path / "bad.yaml",
        """
        domain: com.example
        opset_version: 3
        unexpected: 1
        """,
    )
    with pytest.raises(SchemaRegistryError):
        load_schema_manifests(tmp_path)


def test_manifest_dir_from_config(tmp_path: Path, monkeypatch):
    from ortmodel.config import clear_config_cache

    _write(
        tmp_path / "example.yaml",
        """
        domain: com.example
        opset_version: 4
        """,
    )
    monkeypatch.setenv("ORTMODEL__REGISTRY__MANIFEST_DIR", str(tmp_path))
    monkeypatch.setenv("ORTMODEL__REGISTRY__INCLUDE_ONNX_STANDARD", "false")
    clear_config_cache()
    mgr = SchemaRegistryManager.from_config()
    assert mgr.get_latest_opset_versions() == {"com.example": 4}
    assert not mgr.includes_onnx_standard
