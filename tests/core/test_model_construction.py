import logging

import onnx
import pytest
from onnx import helper

from ortmodel.events import subscribe
from ortmodel.exceptions import InvalidModelError
from ortmodel.model import Model
from ortmodel.registry import LocalSchemaRegistry


def _relu_function(name="MyRelu", domain="custom"):
    return helper.make_function(
        domain,
        name,
        ["x"],
        ["y"],
        [helper.make_node("Relu", ["x"], ["y"])],
        [helper.make_opsetid("", 12)],
    )


def test_fresh_model_onnx_domain_only(local_only, default_registry):
    extra = LocalSchemaRegistry("extra")
    extra.register_opset("com.example", 1, 2)
    model = Model.create(
        "fresh",
        is_onnx_domain_only=True,
        local_registries=[default_registry, extra],
    )
    assert model.opset_imports == (("", 12),)
    assert dict(model.domain_to_version) == {"": 12}
    assert model.main_graph.name == "fresh"
    assert model.ir_version == onnx.IR_VERSION


def test_fresh_model_all_domains_metadata_and_functions(local_only, default_registry):
    extra = LocalSchemaRegistry("extra")
    extra.register_opset("com.example", 1, 2)
    model = Model.create(
        "fresh",
        metadata={"author": "tests", "purpose": "unit"},
        local_registries=[default_registry, extra],
        functions=[_relu_function()],
    )
    assert set(model.opset_imports) == {("", 12), ("com.example", 2)}
    assert model.metadata == {"author": "tests", "purpose": "unit"}
    assert [f.name for f in model.functions] == ["MyRelu"]
    assert "MyRelu" in model.function_index
    assert "MyRelu" in model.main_graph.functions


def test_fresh_model_explicit_versions_skip_registry(local_only, default_registry):
    model = Model.create(
        "fresh",
        local_registries=[default_registry],
        domain_to_version={"ai.onnx": 9, "com.example": 1},
    )
    assert dict(model.domain_to_version) == {"": 9, "com.example": 1}
    assert set(model.opset_imports) == {("", 9), ("com.example", 1)}


def test_fresh_model_uses_config_defaults(local_only, monkeypatch):
    from ortmodel.config import clear_config_cache

    monkeypatch.setenv("ORTMODEL__MODEL__IR_VERSION", "7")
    monkeypatch.setenv("ORTMODEL__MODEL__PRODUCER_NAME", "ortmodel-tests")
    clear_config_cache()
    model = Model.create("fresh", domain_to_version={"": 13})
    assert model.ir_version == 7
    assert model.producer_name == "ortmodel-tests"


def test_from_proto_appends_registry_domains(local_only, default_registry, relu_model):
    extra = LocalSchemaRegistry("extra")
    extra.register_opset("com.example", 1, 2)
    proto = relu_model(opsets=(("", 11),))
    model = Model.from_proto(proto, [default_registry, extra])
    assert dict(model.domain_to_version) == {"": 11, "com.example": 2}
    assert model.opset_imports == (("", 11), ("com.example", 2))
    # caller's proto untouched when copied
    assert len(proto.opset_import) == 1


def test_from_proto_alias_legacy_advisory(local_only, relu_model, caplog):
    reg = LocalSchemaRegistry("r15")
    reg.register_opset("", 1, 15)
    seen = []
    unsubscribe = subscribe(lambda name, payload: seen.append((name, payload)))
    try:
        with caplog.at_level(logging.WARNING, logger="ortmodel"):
            model = Model.from_proto(relu_model(opsets=(("ai.onnx", 6),)), [reg])
    finally:
        unsubscribe()
    assert dict(model.domain_to_version) == {"": 6}
    assert model.opset_imports == (("ai.onnx", 6),)
    assert any("opset 6" in r.getMessage() for r in caplog.records)
    legacy = [p for n, p in seen if n == "LegacyOpsetDetected"]
    assert legacy and legacy[0]["version"] == 6


def test_from_proto_structural_violations_raise(relu_model):
    with pytest.raises(InvalidModelError):
        Model.from_proto(None)

    no_graph = onnx.ModelProto()
    no_graph.opset_import.add(domain="", version=13)
    with pytest.raises(InvalidModelError, match="graph"):
        Model.from_proto(no_graph)

    no_opset = relu_model()
    del no_opset.opset_import[:]
    with pytest.raises(InvalidModelError, match="Missing opset"):
        Model.from_proto(no_opset)


def test_try_from_proto_returns_tagged_result(relu_model):
    bad = relu_model()
    del bad.opset_import[:]
    result = Model.try_from_proto(bad)
    assert not result.ok and result.model is None
    assert isinstance(result.error, InvalidModelError)

    good = Model.try_from_proto(relu_model())
    assert good.ok and good.model is not None


def test_envelope_fields_and_absent_versions(relu_model):
    proto = relu_model()
    proto.ClearField("ir_version")
    model = Model.from_proto(proto)
    assert model.ir_version is None
    assert model.model_version is None
    model.producer_name = "p"
    model.producer_version = "1.2"
    model.domain = "com.example.models"
    model.doc_string = "doc"
    model.model_version = 3
    exported = model.to_proto()
    assert exported.producer_name == "p"
    assert exported.producer_version == "1.2"
    assert exported.domain == "com.example.models"
    assert exported.doc_string == "doc"
    assert exported.model_version == 3
    assert not exported.HasField("ir_version")


def test_metadata_mutations_exported(relu_model):
    proto = relu_model()
    helper.set_model_props(proto, {"a": "1"})
    model = Model.from_proto(proto)
    assert model.metadata == {"a": "1"}
    model.metadata["b"] = "2"
    exported = model.to_proto()
    assert {p.key: p.value for p in exported.metadata_props} == {"a": "1", "b": "2"}


def test_duplicate_function_names_shadow(relu_model):
    model = Model.from_proto(relu_model())
    first = _relu_function()
    second = _relu_function()
    second.doc_string = "second"
    model.add_function(first)
    model.add_function(second)
    assert [f.name for f in model.functions] == ["MyRelu", "MyRelu"]
    assert model.function_index["MyRelu"].doc_string == "second"
    assert model.main_graph.functions["MyRelu"].doc_string == "second"


def test_add_function_does_not_change_resolved_map(relu_model):
    model = Model.from_proto(relu_model())
    before = dict(model.domain_to_version)
    model.add_function(_relu_function(domain="brand.new"))
    assert dict(model.domain_to_version) == before


def test_fresh_model_needs_some_opset(local_only):
    with pytest.raises(InvalidModelError, match="No opset versions"):
        Model.create("fresh")
    result = Model.try_create("fresh")
    assert not result.ok
    assert result.model is None

    explicit = Model.try_create("fresh", domain_to_version={"": 13})
    assert explicit.ok
    assert explicit.model.opset_imports == (("", 13),)


def test_fresh_onnx_only_without_default_domain_rejected(local_only):
    extra = LocalSchemaRegistry("extra")
    extra.register_opset("com.example", 1, 2)
    with pytest.raises(InvalidModelError):
        Model.create("fresh", is_onnx_domain_only=True, local_registries=[extra])
