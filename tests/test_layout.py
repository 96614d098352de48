"""Tests for layout.py — layering graph, cycle removal, layer assignment, crossing minimization.

Covers:
  - build_layering_graph (scope-child lifting, self-loops, unknown nodes)
  - remove_cycles / greedy_fas_ordering (greedy-FAS)
  - LayerAssignment.assign (Start first, Exit last, isolated nodes in layer 1)
  - minimise_crossings (barycenter heuristic)
  - count_crossings (inversion count)
  - layout_workflow (full pipeline, determinism)
"""

from __future__ import annotations

import networkx as nx

from flow_diagram.layout import (
    LayerAssignment,
    build_layering_graph,
    count_crossings,
    greedy_fas_ordering,
    layout_workflow,
    minimise_crossings,
    remove_cycles,
)
from flow_diagram.types import Connection, PortRef

# ─── Helpers ──────────────────────────────────────────────────────────────────


def make_graph(*edges: tuple[str, str]) -> nx.DiGraph:
    """Build a DiGraph from a list of (src, tgt) string pairs."""
    g: nx.DiGraph = nx.DiGraph()
    for src, tgt in edges:
        g.add_edge(src, tgt)
    return g


def make_graph_nodes(*nodes: str) -> nx.DiGraph:
    """Build a DiGraph with only nodes (no edges)."""
    g: nx.DiGraph = nx.DiGraph()
    for node in nodes:
        g.add_node(node)
    return g


def conn(src: str, tgt: str, src_port: str = "onSuccess", tgt_port: str = "execute") -> Connection:
    return Connection(PortRef(src, src_port), PortRef(tgt, tgt_port))


def make_layering(nodes: list[str], *edges: tuple[str, str], owners: dict[str, str] | None = None) -> nx.DiGraph:
    return build_layering_graph(nodes, [conn(s, t) for s, t in edges], owners)


# ─── Layering Graph Tests ─────────────────────────────────────────────────────


class TestBuildLayeringGraph:
    def test_nodes_keep_declaration_index(self):
        """Nodes are added in order with their index as an attribute."""
        g = make_layering(["Start", "A", "Exit"])
        assert list(g.nodes) == ["Start", "A", "Exit"]
        assert g.nodes["A"]["index"] == 1

    def test_self_loop_skipped(self):
        """A connection from a node to itself adds no edge."""
        g = make_layering(["A"], ("A", "A"))
        assert g.number_of_edges() == 0

    def test_unknown_node_skipped(self):
        """Connections touching a node outside the graph are ignored."""
        g = make_layering(["A", "B"], ("A", "Ghost"), ("A", "B"))
        assert list(g.edges) == [("A", "B")]

    def test_scope_child_lifted_to_owner(self):
        """An edge from a scope child counts as an edge from its parent."""
        g = make_layering(["Start", "loop", "Exit"], ("child", "Exit"), owners={"child": "loop"})
        assert g.has_edge("loop", "Exit")

    def test_edge_inside_owner_dropped(self):
        """Parent → own child becomes a self-loop after lifting and is dropped."""
        g = make_layering(["loop"], ("loop", "child"), owners={"child": "loop"})
        assert g.number_of_edges() == 0


# ─── Cycle Removal Tests ──────────────────────────────────────────────────────


class TestCycleRemoval:
    def test_dag_has_no_reversed_edges(self):
        """A → B → C (simple DAG, no cycles) — should have zero reversed edges."""
        g = make_graph(("A", "B"), ("B", "C"))
        dag, reversed_edges = remove_cycles(g)
        assert len(reversed_edges) == 0, f"DAG should have no reversed edges, got: {reversed_edges}"
        assert nx.is_directed_acyclic_graph(dag)

    def test_single_cycle_reversed(self):
        """A → B → A (2-cycle) — should reverse exactly one edge, result is a DAG."""
        g = make_graph(("A", "B"), ("B", "A"))
        dag, reversed_edges = remove_cycles(g)
        assert len(reversed_edges) == 1, f"Should reverse exactly one edge, got: {reversed_edges}"
        assert nx.is_directed_acyclic_graph(dag), "Result should be a DAG"

    def test_self_loop_reversed(self):
        """A → A (self-loop) — counted as reversed, removed from the result DAG."""
        g = make_graph(("A", "A"))
        dag, reversed_edges = remove_cycles(g)
        assert len(reversed_edges) == 1
        assert dag.number_of_edges() == 0, "Self-loop should be removed from the DAG"

    def test_complex_cycle(self):
        """A → B → C → A (3-cycle) plus D → B — result must be a DAG."""
        g = make_graph(("A", "B"), ("B", "C"), ("C", "A"), ("D", "B"))
        dag, reversed_edges = remove_cycles(g)
        assert nx.is_directed_acyclic_graph(dag), "Result should be a DAG"
        assert len(reversed_edges) >= 1

    def test_empty_graph(self):
        """Empty graph — should return empty graph with no reversed edges."""
        g: nx.DiGraph = nx.DiGraph()
        dag, reversed_edges = remove_cycles(g)
        assert dag.number_of_nodes() == 0
        assert len(reversed_edges) == 0

    def test_node_attributes_preserved(self):
        """The cycle-free copy keeps node attributes (the declaration index)."""
        g = make_layering(["A", "B"], ("A", "B"), ("B", "A"))
        dag, _ = remove_cycles(g)
        assert dag.nodes["B"]["index"] == 1


class TestGreedyFasOrdering:
    def test_chain_ordering(self):
        """A → B → C — ordering puts A before B before C."""
        g = make_graph(("A", "B"), ("B", "C"))
        assert greedy_fas_ordering(g) == ["A", "B", "C"]

    def test_single_node(self):
        g = make_graph_nodes("A")
        assert greedy_fas_ordering(g) == ["A"]

    def test_empty_graph(self):
        g: nx.DiGraph = nx.DiGraph()
        assert greedy_fas_ordering(g) == []

    def test_all_nodes_present(self):
        """Ordering must contain all nodes exactly once."""
        g = make_graph(("A", "B"), ("B", "C"), ("C", "A"))
        ordering = greedy_fas_ordering(g)
        assert sorted(ordering) == ["A", "B", "C"]

    def test_deterministic(self):
        """Same graph built twice → same ordering."""
        edges = [("A", "B"), ("B", "C"), ("C", "A"), ("C", "D"), ("D", "B")]
        assert greedy_fas_ordering(make_graph(*edges)) == greedy_fas_ordering(make_graph(*edges))


# ─── Layer Assignment Tests ───────────────────────────────────────────────────


class TestLayerAssignment:
    def test_linear_chain(self):
        """Start → A → Exit gets layers 0, 1, 2."""
        g = make_layering(["Start", "A", "Exit"], ("Start", "A"), ("A", "Exit"))
        la = LayerAssignment.assign(g)
        assert la.layers == {"Start": 0, "A": 1, "Exit": 2}
        assert la.layer_count == 3

    def test_longest_path(self):
        """A node takes one past its deepest predecessor."""
        g = make_layering(
            ["Start", "A", "B", "C", "Exit"],
            ("Start", "A"),
            ("A", "B"),
            ("B", "C"),
            ("Start", "C"),
            ("C", "Exit"),
        )
        la = LayerAssignment.assign(g)
        assert la.layers["C"] == 3

    def test_exit_always_last(self):
        """Exit goes one past every other node, even when connected early."""
        g = make_layering(["Start", "A", "B", "Exit"], ("Start", "Exit"), ("Start", "A"), ("A", "B"))
        la = LayerAssignment.assign(g)
        assert la.layers["Exit"] == 3

    def test_start_pinned_to_zero(self):
        """Start is layer 0 even with an incoming back edge."""
        g = make_layering(["Start", "A", "Exit"], ("Start", "A"), ("A", "Start"), ("A", "Exit"))
        la = LayerAssignment.assign(g)
        assert la.layers["Start"] == 0

    def test_isolated_node_in_layer_one(self):
        """A node without any connection sits in layer 1."""
        g = make_layering(["Start", "A", "Lonely", "Exit"], ("Start", "A"), ("A", "Exit"))
        la = LayerAssignment.assign(g)
        assert la.layers["Lonely"] == 1

    def test_cycle_records_reversed_edge(self):
        g = make_layering(["Start", "A", "B", "Exit"], ("Start", "A"), ("A", "B"), ("B", "A"), ("B", "Exit"))
        la = LayerAssignment.assign(g)
        assert len(la.reversed_edges) == 1
        assert la.layers["Exit"] > max(la.layers["A"], la.layers["B"])

    def test_ordering_groups_by_layer(self):
        g = make_layering(["Start", "A", "B", "Exit"], ("Start", "A"), ("Start", "B"))
        la = LayerAssignment.assign(g)
        assert la.ordering(g.nodes) == [["Start"], ["A", "B"], ["Exit"]]


# ─── Crossing Tests ───────────────────────────────────────────────────────────


class TestCountCrossings:
    def test_no_crossings_simple_chain(self):
        g = make_graph(("A", "B"))
        assert count_crossings([["A"], ["B"]], g) == 0

    def test_no_crossings_parallel(self):
        """Two parallel edges (A→C, B→D) with natural ordering — zero crossings."""
        g = make_graph(("A", "C"), ("B", "D"))
        assert count_crossings([["A", "B"], ["C", "D"]], g) == 0

    def test_one_crossing(self):
        """A→D and B→C with A before B in layer 0 — one crossing because D after C."""
        g = make_graph(("A", "D"), ("B", "C"))
        assert count_crossings([["A", "B"], ["C", "D"]], g) == 1

    def test_crossing_reduces_with_swap(self):
        g = make_graph(("A", "D"), ("B", "C"))
        assert count_crossings([["A", "B"], ["C", "D"]], g) == 1
        assert count_crossings([["A", "B"], ["D", "C"]], g) == 0

    def test_empty_graph_no_crossings(self):
        g: nx.DiGraph = nx.DiGraph()
        assert count_crossings([], g) == 0


class TestMinimiseCrossings:
    def test_removes_simple_crossing(self):
        """S fans out to A, B; A→D, B→C — barycenter puts D before C."""
        g = make_graph(("S", "A"), ("S", "B"), ("A", "D"), ("B", "C"))
        ordering = minimise_crossings([["S"], ["A", "B"], ["C", "D"]], g)
        assert count_crossings(ordering, g) == 0
        assert ordering[2] == ["D", "C"]

    def test_input_not_mutated(self):
        g = make_graph(("A", "D"), ("B", "C"))
        original = [["A", "B"], ["C", "D"]]
        minimise_crossings(original, g)
        assert original == [["A", "B"], ["C", "D"]]

    def test_node_without_neighbours_sorts_last(self):
        """A node with no predecessor in the previous layer keeps its place at the end."""
        g = make_graph(("A", "C"))
        g.add_node("B")
        ordering = minimise_crossings([["A"], ["B", "C"]], g)
        assert ordering[1] == ["C", "B"]

    def test_preserves_layer_membership(self):
        g = make_graph(("A", "C"), ("A", "D"), ("B", "C"))
        ordering = minimise_crossings([["A", "B"], ["C", "D"]], g)
        assert sorted(ordering[0]) == ["A", "B"]
        assert sorted(ordering[1]) == ["C", "D"]


# ─── Full Pipeline ────────────────────────────────────────────────────────────


class TestLayoutWorkflow:
    def test_fan_out_layers(self):
        g = make_layering(
            ["Start", "A", "B", "Exit"],
            ("Start", "A"),
            ("Start", "B"),
            ("A", "Exit"),
            ("B", "Exit"),
        )
        assert layout_workflow(g) == [["Start"], ["A", "B"], ["Exit"]]

    def test_deterministic(self):
        nodes = ["Start", "A", "B", "C", "D", "Exit"]
        edges = [("Start", "A"), ("Start", "B"), ("A", "D"), ("B", "C"), ("C", "Exit"), ("D", "Exit")]
        assert layout_workflow(make_layering(nodes, *edges)) == layout_workflow(make_layering(nodes, *edges))

    def test_empty_graph(self):
        assert layout_workflow(nx.DiGraph()) == []
