from onnx import TensorProto, helper

from ortmodel.model import Model


def _vi(name):
    return helper.make_tensor_value_info(name, TensorProto.FLOAT, [2])


def _model(nodes, inputs=("X",), outputs=("Y",), opsets=(("", 13),), functions=()):
    graph = helper.make_graph(
        nodes, "g", [_vi(n) for n in inputs], [_vi(n) for n in outputs]
    )
    proto = helper.make_model(
        graph,
        opset_imports=[helper.make_opsetid(d, v) for d, v in opsets],
    )
    proto.functions.extend(functions)
    return Model.from_proto(proto)


def test_resolve_orders_nodes_topologically():
    model = _model(
        [
            helper.make_node("Relu", ["T"], ["Y"], name="second"),
            helper.make_node("Relu", ["X"], ["T"], name="first"),
        ]
    )
    graph = model.main_graph
    assert not graph.is_resolved
    status = graph.resolve()
    assert status.is_ok(), str(status)
    assert graph.is_resolved
    assert [n.name for n in graph.nodes] == ["first", "second"]
    assert [n.name for n in model.to_proto().graph.node] == ["first", "second"]


def test_resolve_rejects_dangling_input():
    model = _model([helper.make_node("Relu", ["missing"], ["Y"])])
    status = model.main_graph.resolve()
    assert status.code == "invalid-graph"
    assert "missing" in status.message


def test_resolve_rejects_cycle():
    model = _model(
        [
            helper.make_node("Add", ["X", "B"], ["A"], name="a"),
            helper.make_node("Relu", ["A"], ["B"], name="b"),
            helper.make_node("Identity", ["A"], ["Y"], name="c"),
        ]
    )
    status = model.main_graph.resolve()
    assert status.code == "invalid-graph"
    assert "cycle" in status.message


def test_resolve_rejects_unknown_op_and_unimported_domain():
    unknown = _model([helper.make_node("NotAnOp", ["X"], ["Y"])])
    assert unknown.main_graph.resolve().code == "invalid-graph"

    foreign = _model([helper.make_node("Scale", ["X"], ["Y"], domain="com.unknown")])
    status = foreign.main_graph.resolve()
    assert status.code == "invalid-graph"
    assert "com.unknown" in status.message


def test_resolve_rejects_wrong_arity_and_duplicate_outputs():
    arity = _model([helper.make_node("Relu", ["X", "X"], ["Y"])])
    assert arity.main_graph.resolve().code == "invalid-graph"

    dup = _model(
        [
            helper.make_node("Relu", ["X"], ["Y"], name="a"),
            helper.make_node("Relu", ["X"], ["Y"], name="b"),
        ]
    )
    status = dup.main_graph.resolve()
    assert status.code == "invalid-graph"
    assert "Duplicate" in status.message


def test_resolve_rejects_unproduced_graph_output():
    model = _model([helper.make_node("Relu", ["X"], ["T"])], outputs=("Y",))
    assert model.main_graph.resolve().code == "invalid-graph"


def test_alias_domain_node_resolves_against_default_opset():
    model = _model(
        [helper.make_node("Relu", ["X"], ["Y"], domain="ai.onnx")],
        opsets=(("ai.onnx", 13),),
    )
    assert model.main_graph.resolve().is_ok()


def test_added_function_visible_to_next_resolution():
    node = helper.make_node("MyRelu", ["X"], ["Y"], domain="custom")
    model = _model([node])
    assert not model.main_graph.resolve().is_ok()
    model.add_function(
        helper.make_function(
            "custom",
            "MyRelu",
            ["x"],
            ["y"],
            [helper.make_node("Relu", ["x"], ["y"])],
            [helper.make_opsetid("", 13)],
        )
    )
    assert model.main_graph.resolve().is_ok()


def test_envelope_functions_indexed_at_construction():
    func = helper.make_function(
        "custom",
        "MyRelu",
        ["x"],
        ["y"],
        [helper.make_node("Relu", ["x"], ["y"])],
        [helper.make_opsetid("", 13)],
    )
    model = _model(
        [helper.make_node("MyRelu", ["X"], ["Y"], domain="custom")],
        functions=[func],
    )
    assert model.main_graph.resolve().is_ok()
