"""Tests for graph.py — the full Workflow → DiagramGraph pipeline.

Covers:
  - scope resolution (explicit and inferred from scope-qualified connections)
  - positioning modes (layered, fully persisted with overlap resolution)
  - curve vs orthogonal choice, forced-curve groups, routing order
  - scope children drawn inside their parent, boundary-crossing connections
  - normalization, bounds, determinism and graceful degradation
"""

from __future__ import annotations

import logging

import pytest

from flow_diagram import DiagramOptions, build_diagram_graph
from flow_diagram.constants import LABEL_CLEARANCE, MIN_EDGE_GAP, NODE_GAP_Y, NODE_MIN_HEIGHT
from flow_diagram.graph import (
    PendingConnection,
    _routing_order,
    content_extent,
    forced_curves,
    resolve_scopes,
    split_scope_key,
)
from flow_diagram.metrics import max_port_label_extent
from flow_diagram.types import (
    Connection,
    DiagramGraph,
    DiagramPort,
    NodeInstance,
    NodeType,
    PortDefinition,
    PortRef,
    Position,
    Workflow,
)

# ─── Helpers ──────────────────────────────────────────────────────────────────

STEP_TYPE = NodeType(
    name="step",
    inputs={"value": PortDefinition("STRING")},
    outputs={"result": PortDefinition("STRING")},
    has_success_port=True,
    has_failure_port=True,
)
FOR_EACH_TYPE = NodeType(
    name="forEach",
    inputs={"items": PortDefinition("ARRAY")},
    outputs={"item": PortDefinition("ANY", scope="iteration")},
    has_success_port=True,
    has_failure_port=True,
)


def c(src: str, src_port: str, tgt: str, tgt_port: str, src_scope: str | None = None) -> Connection:
    return Connection(PortRef(src, src_port, src_scope), PortRef(tgt, tgt_port))


def make_workflow(instances: list[NodeInstance], connections: list[Connection], **kwargs) -> Workflow:
    return Workflow(
        name="wf",
        instances=instances,
        node_types=[STEP_TYPE, FOR_EACH_TYPE],
        connections=connections,
        **kwargs,
    )


def chain_workflow() -> Workflow:
    """Start → a → Exit."""
    return make_workflow(
        [NodeInstance("a", "step")],
        [c("Start", "execute", "a", "execute"), c("a", "onSuccess", "Exit", "onSuccess")],
    )


def fan_workflow() -> Workflow:
    """Start → a, Start → b, a/b → Exit."""
    return make_workflow(
        [NodeInstance("a", "step"), NodeInstance("b", "step")],
        [
            c("Start", "execute", "a", "execute"),
            c("Start", "execute", "b", "execute"),
            c("a", "onSuccess", "Exit", "onSuccess"),
            c("b", "onSuccess", "Exit", "onSuccess"),
        ],
    )


def scope_workflow() -> Workflow:
    """A forEach "loop" whose iteration scope holds "proc"; proc also reports to Exit."""
    return make_workflow(
        [NodeInstance("loop", "forEach"), NodeInstance("proc", "step")],
        [
            c("Start", "execute", "loop", "execute"),
            c("loop", "start", "proc", "execute", src_scope="iteration"),
            c("loop", "onSuccess", "Exit", "onSuccess"),
            c("proc", "result", "Exit", "result"),
        ],
        scopes={"loop.iteration": ["proc"]},
        exit_ports={"result": PortDefinition("STRING")},
    )


def port(name: str, cx: float, cy: float, direction: str = "OUTPUT") -> DiagramPort:
    return DiagramPort(name=name, label=name, data_type="STEP", direction=direction, cx=cx, cy=cy)


def pending(from_node: str, to_node: str, sx: float, tx: float, sy: float = 0, ty: float = 0, src_port: str = "out"):
    return PendingConnection(
        from_node=from_node,
        to_node=to_node,
        source=port(src_port, sx, sy),
        target=port("in", tx, ty, "INPUT"),
        from_port_index=0,
        to_port_index=0,
    )


def snapshot(graph: DiagramGraph):
    return (
        [(n.id, n.x, n.y, n.width, n.height) for n in graph.nodes],
        [c.path.to_svg() for c in graph.all_connections()],
        graph.bounds,
    )


# ─── Scope Resolution ─────────────────────────────────────────────────────────


class TestResolveScopes:
    def test_split_at_first_dot(self):
        assert split_scope_key("loop.iteration") == ("loop", "iteration")
        assert split_scope_key("loop.a.b") == ("loop", "a.b")

    def test_inferred_from_scoped_connection(self):
        wf = make_workflow(
            [NodeInstance("loop", "forEach"), NodeInstance("proc", "step")],
            [c("loop", "start", "proc", "execute", src_scope="iteration")],
        )
        assert resolve_scopes(wf) == {"loop.iteration": ["proc"]}

    def test_explicit_scope_wins(self):
        wf = scope_workflow()
        wf.connections.append(c("loop", "item", "other", "value", src_scope="iteration"))
        assert resolve_scopes(wf)["loop.iteration"] == ["proc"]

    def test_inferred_children_deduplicated(self):
        wf = make_workflow(
            [NodeInstance("loop", "forEach"), NodeInstance("proc", "step")],
            [
                c("loop", "start", "proc", "execute", src_scope="iteration"),
                c("loop", "item", "proc", "value", src_scope="iteration"),
            ],
        )
        assert resolve_scopes(wf) == {"loop.iteration": ["proc"]}


# ─── Connection Ordering & Curve Groups ───────────────────────────────────────


class TestForcedCurves:
    def test_fan_out_with_short_member_forced(self):
        conns = [pending("s", "a", 0, 100), pending("s", "b", 0, 1000), pending("x", "y", 0, 1000, src_port="other")]
        assert forced_curves(conns) == {0, 1}

    def test_all_long_group_not_forced(self):
        conns = [pending("s", "a", 0, 1000), pending("s", "b", 0, 1200)]
        assert forced_curves(conns) == set()

    def test_shared_target_node(self):
        conns = [pending("a", "t", 0, 100), pending("b", "t", 0, 1000, src_port="o2")]
        assert forced_curves(conns) == {0, 1}

    def test_single_connection_never_forced(self):
        assert forced_curves([pending("s", "a", 0, 100)]) == set()


class TestRoutingOrder:
    def test_short_spans_first(self):
        long, short = pending("s", "a", 0, 1000), pending("s", "b", 0, 100)
        assert _routing_order([long, short]) == [short, long]

    def test_ties_by_source_x_then_y(self):
        a = pending("a", "t", 50, 150, sy=10)
        b = pending("b", "t", 0, 100.5, sy=20)
        d = pending("d", "t", 0, 100, sy=5)
        assert _routing_order([a, b, d]) == [d, b, a]


# ─── Pipeline ─────────────────────────────────────────────────────────────────


class TestBuildDiagramGraph:
    def test_chain(self):
        graph = build_diagram_graph(chain_workflow())
        assert [n.id for n in graph.nodes] == ["Start", "Exit", "a"]
        assert len(graph.connections) == 2
        start, a, exit_node = graph.node("Start"), graph.node("a"), graph.node("Exit")
        assert start.x < a.x < exit_node.x
        assert graph.connections[0].path.is_curve

    def test_same_layer_nodes_stacked(self):
        graph = build_diagram_graph(fan_workflow())
        a, b = graph.node("a"), graph.node("b")
        assert a.x == b.x
        assert abs(a.y - b.y) >= NODE_MIN_HEIGHT + NODE_GAP_Y

    def test_fan_in_group_all_curves(self):
        graph = build_diagram_graph(fan_workflow())
        assert all(conn.path.is_curve for conn in graph.connections)

    def test_long_connection_orthogonal(self):
        wf = chain_workflow()
        wf.start_position = Position(0, 0)
        wf.exit_position = Position(2000, 300)
        wf.instances[0].x, wf.instances[0].y = 1000, 300
        graph = build_diagram_graph(wf)
        first = next(conn for conn in graph.connections if conn.from_node == "Start")
        assert not first.path.is_curve
        points = first.path.points
        assert all(p[0] == q[0] or p[1] == q[1] for p, q in zip(points, points[1:]))

    def test_persisted_positions_pushed_apart(self):
        wf = chain_workflow()
        wf.start_position = Position(0, 0)
        wf.exit_position = Position(2000, 0)
        wf.instances[0].x, wf.instances[0].y = 50, 0
        graph = build_diagram_graph(wf)
        start, a = graph.node("Start"), graph.node("a")
        expected = max(
            max_port_label_extent(start.outputs) + LABEL_CLEARANCE + max_port_label_extent(a.inputs),
            MIN_EDGE_GAP,
        )
        assert a.x - (start.x + start.width) == pytest.approx(expected)

    def test_persisted_positions_keep_relative_layout(self):
        wf = chain_workflow()
        wf.start_position = Position(0, 0)
        wf.exit_position = Position(2000, 500)
        wf.instances[0].x, wf.instances[0].y = 1000, 250
        graph = build_diagram_graph(wf)
        start, a, exit_node = graph.node("Start"), graph.node("a"), graph.node("Exit")
        assert a.x - start.x == pytest.approx(1000)
        assert exit_node.y - start.y == pytest.approx(500)


class TestScopes:
    def test_child_drawn_inside_parent(self):
        graph = build_diagram_graph(scope_workflow())
        assert graph.node("proc") is None
        loop = graph.node("loop")
        assert loop.width > 90
        assert [child.id for child in loop.scope_children] == ["proc"]
        child = loop.scope_children[0]
        assert loop.x < child.x and child.x + child.width < loop.x + loop.width
        assert loop.y < child.y and child.y + child.height < loop.y + loop.height

    def test_scope_connection_inside_parent(self):
        graph = build_diagram_graph(scope_workflow())
        loop = graph.node("loop")
        pairs = [(conn.from_node, conn.from_port, conn.to_node, conn.to_port) for conn in loop.scope_connections]
        assert ("loop", "start", "proc", "execute") in pairs
        assert all(conn.path.is_curve for conn in loop.scope_connections)

    def test_connection_leaving_scope_drawn_at_top_level(self):
        graph = build_diagram_graph(scope_workflow())
        assert any(conn.from_node == "proc" and conn.to_node == "Exit" for conn in graph.connections)

    def test_inferred_scope(self):
        wf = scope_workflow()
        wf.scopes = {}
        graph = build_diagram_graph(wf)
        assert graph.node("proc") is None
        assert [child.id for child in graph.node("loop").scope_children] == ["proc"]

    def test_unknown_scope_parent_skipped(self, caplog):
        wf = scope_workflow()
        wf.scopes = {"ghost.iteration": ["proc"]}
        wf.connections = [conn for conn in wf.connections if not conn.source.scope]
        with caplog.at_level(logging.WARNING, logger="flow_diagram.graph"):
            graph = build_diagram_graph(wf)
        assert "ghost" in caplog.text
        assert graph.node("loop").scopes == []
        # the would-be child is drawn as an ordinary node
        assert graph.node("proc") is not None
        assert any(conn.from_node == "proc" for conn in graph.connections)


class TestNormalization:
    @pytest.mark.parametrize("make", [chain_workflow, fan_workflow, scope_workflow])
    def test_content_inside_bounds(self, make):
        graph = build_diagram_graph(make())
        min_x, min_y, max_x, max_y = content_extent(graph.nodes, graph.all_connections())
        assert min_x == pytest.approx(40)
        assert min_y == pytest.approx(40)
        assert max_x == pytest.approx(graph.bounds.width - 40)
        assert max_y == pytest.approx(graph.bounds.height - 40)
        for node in graph.nodes:
            assert node.x >= 0 and node.y >= 0

    def test_custom_padding(self):
        graph = build_diagram_graph(chain_workflow(), DiagramOptions(padding=10))
        min_x, min_y, _, _ = content_extent(graph.nodes, graph.all_connections())
        assert (min_x, min_y) == (pytest.approx(10), pytest.approx(10))

    def test_empty_workflow(self):
        graph = build_diagram_graph(make_workflow([], []))
        assert [n.id for n in graph.nodes] == ["Start", "Exit"]
        assert graph.connections == []
        assert graph.bounds.width > 0 and graph.bounds.height > 0


class TestDeterminismAndDegradation:
    def test_deterministic(self):
        for make in (chain_workflow, fan_workflow, scope_workflow):
            assert snapshot(build_diagram_graph(make())) == snapshot(build_diagram_graph(make()))

    def test_theme_does_not_change_geometry(self):
        dark = build_diagram_graph(scope_workflow(), DiagramOptions(theme="dark"))
        light = build_diagram_graph(scope_workflow(), DiagramOptions(theme="light"))
        assert snapshot(dark) == snapshot(light)

    def test_missing_port_dropped(self):
        wf = chain_workflow()
        wf.connections.append(c("a", "nope", "Exit", "onSuccess"))
        graph = build_diagram_graph(wf)
        assert len(graph.connections) == 2

    def test_unknown_node_dropped(self):
        wf = chain_workflow()
        wf.connections.append(c("ghost", "onSuccess", "Exit", "onSuccess"))
        assert len(build_diagram_graph(wf).connections) == 2

    def test_unknown_type_logged(self, caplog):
        wf = make_workflow([NodeInstance("a", "mystery")], [])
        with caplog.at_level(logging.WARNING):
            graph = build_diagram_graph(wf)
        assert "mystery" in caplog.text
        assert graph.node("a").inputs == []

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            DiagramOptions(theme="neon")
        with pytest.raises(ValueError):
            DiagramOptions(padding=-1)
