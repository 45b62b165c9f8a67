import pytest

from patchremap import (
    Graph,
    GraphShapeError,
    Node,
    ReconcileOptions,
    Reference,
    graph_from_mapping,
    reconcile,
)


def graph(*nodes: Node) -> Graph:
    return Graph(nodes=list(nodes))


def sine(node_id: str, freq: float = 440.0, **extra) -> Node:
    return Node(id=node_id, type="sine", params={"freq": freq, **extra})


def test_no_current_graph_means_no_remap() -> None:
    desired = graph(sine("sine-1"))
    result = reconcile(desired, None)
    assert result.id_remap == {}
    assert result.applied_graph is desired


def test_applied_graph_is_always_desired() -> None:
    desired = graph(sine("b"))
    result = reconcile(desired, graph(sine("a")))
    assert result.applied_graph is desired
    assert [node.id for node in result.applied_graph] == ["b"]


def test_matches_by_params_when_ids_differ() -> None:
    current = graph(Node(id="a", type="sine", params={"freq": 440, "phase": 0}))
    desired = graph(Node(id="b", type="sine", params={"freq": 440, "phase": 0}))
    result = reconcile(desired, current, ReconcileOptions(match_threshold=0.9, ambiguity_margin=0.05))
    assert result.id_remap == {"a": "b"}


def test_does_not_match_across_types() -> None:
    current = graph(Node(id="a", type="sine", params={"freq": 440}))
    desired = graph(Node(id="b", type="noise", params={"freq": 440}))
    result = reconcile(desired, current, ReconcileOptions(match_threshold=0.1))
    assert result.id_remap == {}


def test_ambiguity_guard_rejects_ties() -> None:
    current = graph(sine("a"), sine("b"))
    desired = graph(sine("x"))
    result = reconcile(desired, current, ReconcileOptions(match_threshold=0.5, ambiguity_margin=0.01))
    assert result.id_remap == {}


def test_multiple_confident_remaps() -> None:
    current = graph(sine("a", 110), sine("b", 220))
    desired = graph(sine("x", 110), sine("y", 220))
    result = reconcile(desired, current, ReconcileOptions(match_threshold=0.9))
    assert result.id_remap == {"a": "x", "b": "y"}


def test_downstream_usage_disambiguates_identical_params() -> None:
    current = graph(
        sine("a"),
        sine("b"),
        Node(id="filter-1", type="filter", params={"input": Reference("a", "output")}),
    )
    desired = graph(
        sine("x"),
        sine("y"),
        Node(id="filter-1", type="filter", params={"input": Reference("x", "output")}),
    )
    result = reconcile(desired, current, ReconcileOptions(match_threshold=0.8, ambiguity_margin=0.05))
    assert result.id_remap == {"a": "x", "b": "y"}


def test_downstream_usage_follows_the_consumer_when_swapped() -> None:
    current = graph(
        sine("sine-1"),
        sine("sine-2"),
        Node(id="lpf", type="filter", params={"input": Reference("sine-2", "output")}, id_is_explicit=True),
    )
    desired = graph(
        sine("sine-1"),
        sine("sine-2"),
        Node(id="lpf", type="filter", params={"input": Reference("sine-1", "output")}, id_is_explicit=True),
    )
    result = reconcile(desired, current)
    assert result.id_remap == {"sine-2": "sine-1", "sine-1": "sine-2"}


def test_renamed_producer_keeps_consumer_matchable() -> None:
    current = graph(
        Node(id="sine-1", type="sine", params={"freq": 220}),
        Node(id="gain-1", type="gain", params={"input": Reference("sine-1", "output"), "level": 0.5}),
    )
    desired = graph(
        Node(id="sine-9", type="sine", params={"freq": 220}),
        Node(id="gain-4", type="gain", params={"input": Reference("sine-9", "output"), "level": 0.5}),
    )
    result = reconcile(desired, current)
    assert result.id_remap == {"sine-1": "sine-9", "gain-1": "gain-4"}


def test_reserved_ids_stay_put() -> None:
    current = graph(
        Node(id="root", type="signal", params={"source": Reference("sine-1", "output")}),
        sine("sine-1"),
    )
    desired = graph(
        Node(id="root", type="signal", params={"source": Reference("sine-3", "output")}),
        Node(id="signal-1", type="signal", params={"source": Reference("sine-3", "output")}),
        sine("sine-3"),
    )
    result = reconcile(desired, current)
    assert "root" not in result.id_remap
    assert "root" not in result.id_remap.values()
    assert result.id_remap == {"sine-1": "sine-3"}


def test_explicit_names_are_anchored_not_optimised() -> None:
    current = graph(
        Node(id="lead", type="sine", params={"freq": 110}, id_is_explicit=True),
        Node(id="pad", type="sine", params={"freq": 880}, id_is_explicit=True),
    )
    # Parameters swapped: fuzzy matching alone would cross the names over.
    desired = graph(
        Node(id="lead", type="sine", params={"freq": 880}, id_is_explicit=True),
        Node(id="pad", type="sine", params={"freq": 110}, id_is_explicit=True),
    )
    result = reconcile(desired, current)
    assert result.id_remap == {}


def test_never_pairs_different_types() -> None:
    current = graph(
        sine("a", 100),
        Node(id="b", type="saw", params={"freq": 200}),
        Node(id="c", type="noise", params={"seed": 1}),
    )
    desired = graph(
        Node(id="x", type="saw", params={"freq": 100}),
        sine("y", 200),
        Node(id="z", type="noise", params={"seed": 1}),
    )
    types_current = {node.id: node.type for node in current}
    types_desired = {node.id: node.type for node in desired}
    result = reconcile(desired, current, ReconcileOptions(match_threshold=0.0, ambiguity_margin=0.0))
    for old, new in result.id_remap.items():
        assert types_current[old] == types_desired[new]
    assert result.id_remap["c"] == "z"


def test_identical_graph_yields_empty_remap() -> None:
    wire = {
        "nodes": [
            {"id": "sine-1", "type": "sine", "params": {"freq": 220}},
            {"id": "sine-2", "type": "sine", "params": {"freq": 330}},
            {
                "id": "mix-1",
                "type": "mix",
                "params": {
                    "inputs": [
                        {"kind": "reference", "targetNodeId": "sine-1", "port": "output"},
                        {"kind": "reference", "targetNodeId": "sine-2", "port": "output"},
                    ]
                },
            },
            {"id": "lead", "type": "sine", "idIsExplicit": True, "params": {"freq": 440}},
        ]
    }
    current = graph_from_mapping(wire)
    desired = graph_from_mapping(wire)
    messages = []
    result = reconcile(desired, current, ReconcileOptions(debug_sink=messages.append))
    assert result.id_remap == {}
    assert messages[-1] == "[patch-remap] done remapped=0"


def test_new_nodes_without_predecessor_stay_unmapped() -> None:
    current = graph(sine("sine-1", 110))
    desired = graph(sine("sine-1", 110), sine("sine-2", 5000, shape="square"))
    result = reconcile(desired, current)
    assert result.id_remap == {}


def test_debug_sink_reports_acceptance() -> None:
    messages = []
    reconcile(graph(sine("b")), graph(sine("a")), ReconcileOptions(debug_sink=messages.append))
    assert "[patch-remap] accept type=sine a -> b score=1.0000" in messages
    assert messages[-1] == "[patch-remap] remaps a->b"


def test_debug_sink_reports_elapsed_time_before_summary() -> None:
    messages = []
    reconcile(graph(sine("b")), graph(sine("a")), ReconcileOptions(debug_sink=messages.append))
    elapsed = [message for message in messages if message.startswith("[patch-remap] elapsed=")]
    assert len(elapsed) == 1
    assert elapsed[0].endswith("ms")
    assert float(elapsed[0][len("[patch-remap] elapsed=") : -len("ms")]) >= 0.0
    assert messages.index(elapsed[0]) == messages.index("[patch-remap] done remapped=1") - 1


def test_empty_graphs() -> None:
    assert reconcile(Graph(), Graph()).id_remap == {}
    assert reconcile(Graph(), graph(sine("a"))).id_remap == {}
    assert reconcile(graph(sine("a")), Graph()).id_remap == {}


def test_bad_input_shape_fails_loudly() -> None:
    with pytest.raises(GraphShapeError):
        reconcile({"nodes": []}, None)
    with pytest.raises(GraphShapeError):
        reconcile(Graph(), {"nodes": []})
    with pytest.raises(GraphShapeError):
        reconcile(graph(sine("a"), sine("a")), graph(sine("b")))


def test_permutation_recovery_at_scale() -> None:
    count = 150

    def perm(i: int) -> int:
        return (i * 73) % count

    desired_nodes = [
        Node(id=f"s{i}", type="sine", params={"freq": (i + 1) * 1000, "tag": f"sine-{i}"})
        for i in range(count)
    ]
    desired_nodes += [
        Node(
            id=f"g{i}",
            type="gain",
            params={"input": Reference(f"s{i}", "output"), "gain": i, "tag": f"gain-{i}"},
        )
        for i in range(count)
    ]
    current_nodes = [
        Node(id=f"a{i}", type="sine", params={"freq": (perm(i) + 1) * 1000, "tag": f"sine-{perm(i)}"})
        for i in range(count)
    ]
    current_nodes += [
        Node(
            id=f"ga{i}",
            type="gain",
            params={"input": Reference(f"a{i}", "output"), "gain": perm(i), "tag": f"gain-{perm(i)}"},
        )
        for i in range(count)
    ]

    result = reconcile(
        graph(*desired_nodes),
        graph(*current_nodes),
        ReconcileOptions(match_threshold=0.95, ambiguity_margin=0.1),
    )

    assert len(result.id_remap) == 2 * count
    for i in range(count):
        assert result.id_remap[f"a{i}"] == f"s{perm(i)}"
        assert result.id_remap[f"ga{i}"] == f"g{perm(i)}"
