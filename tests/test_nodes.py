"""Tests for nodes.py — node construction, attribute resolution, sizing and port placement."""

from __future__ import annotations

import logging

from flow_diagram.constants import NODE_MIN_HEIGHT, NODE_MIN_WIDTH, PORT_GAP, PORT_PADDING_Y, PORT_SIZE
from flow_diagram.nodes import (
    build_connection,
    build_exit_node,
    build_instance_node,
    build_start_node,
    compute_node_dimensions,
    compute_port_positions,
    ports_column_height,
    resolve_icon,
    resolve_label,
)
from flow_diagram.types import NodeInstance, NodeType, PortDefinition

# ─── Helpers ──────────────────────────────────────────────────────────────────


def make_node_type(name: str = "step", **kwargs) -> NodeType:
    kwargs.setdefault("has_success_port", True)
    kwargs.setdefault("has_failure_port", True)
    return NodeType(name=name, **kwargs)


def make_instance(node_id: str = "a", node_type: str = "step", **kwargs) -> NodeInstance:
    return NodeInstance(id=node_id, node_type=node_type, **kwargs)


def names(ports) -> list[str]:
    return [p.name for p in ports]


# ─── Builders ─────────────────────────────────────────────────────────────────


class TestBuildInstanceNode:
    def test_control_flow_ports_synthesised(self):
        nt = make_node_type(outputs={"result": PortDefinition("STRING")})
        node = build_instance_node(make_instance(), {"step": nt})
        assert names(node.inputs) == ["execute"]
        assert names(node.outputs) == ["onSuccess", "onFailure", "result"]
        on_failure = node.output("onFailure")
        assert on_failure is not None and on_failure.is_failure

    def test_expression_node_has_no_execute(self):
        nt = make_node_type(expression=True, has_success_port=False, has_failure_port=False)
        node = build_instance_node(make_instance(), {"step": nt})
        assert node.inputs == []
        assert node.outputs == []

    def test_declared_control_port_not_duplicated(self):
        nt = make_node_type(outputs={"onSuccess": PortDefinition("STEP", label="Done")})
        node = build_instance_node(make_instance(), {"step": nt})
        assert names(node.outputs).count("onSuccess") == 1
        assert node.output("onSuccess").label == "Done"

    def test_scoped_ports_excluded(self):
        nt = make_node_type(outputs={"item": PortDefinition("ANY", scope="iteration")})
        node = build_instance_node(make_instance(), {"step": nt})
        assert "item" not in names(node.outputs)

    def test_unknown_type_degrades_to_empty_box(self, caplog):
        with caplog.at_level(logging.WARNING, logger="flow_diagram.nodes"):
            node = build_instance_node(make_instance(node_type="missing"), {})
        assert node.inputs == [] and node.outputs == []
        assert node.label == "a"
        assert "missing" in caplog.text

    def test_not_virtual(self):
        node = build_instance_node(make_instance(), {"step": make_node_type()})
        assert not node.is_virtual


class TestStartExitNodes:
    def test_start_has_execute_output_only(self):
        node = build_start_node({"orderId": PortDefinition("STRING")})
        assert node.is_virtual
        assert node.inputs == []
        assert names(node.outputs) == ["execute", "orderId"]
        assert node.icon == "startNode"

    def test_exit_has_control_inputs_only(self):
        node = build_exit_node({"result": PortDefinition("NUMBER")})
        assert node.outputs == []
        assert names(node.inputs) == ["onSuccess", "onFailure", "result"]

    def test_exit_declared_failure_marked(self):
        """A declared onFailure is forced to be a failure port."""
        node = build_exit_node({"onFailure": PortDefinition("STEP")})
        assert node.input("onFailure").is_failure

    def test_exit_does_not_mutate_definitions(self):
        failure = PortDefinition("STEP")
        build_exit_node({"onFailure": failure})
        assert not failure.failure


# ─── Resolvers ────────────────────────────────────────────────────────────────


class TestResolvers:
    def test_label_fallback_chain(self):
        nt = make_node_type(label="Type Label")
        assert resolve_label(make_instance(label="Mine"), nt) == "Mine"
        assert resolve_label(make_instance(), nt) == "Type Label"
        assert resolve_label(make_instance(), make_node_type()) == "a"
        assert resolve_label(make_instance(), None) == "a"

    def test_icon_fallback_chain(self):
        assert resolve_icon(make_instance(icon="star"), make_node_type(icon="x")) == "star"
        assert resolve_icon(make_instance(), make_node_type(icon="x")) == "x"
        assert resolve_icon(make_instance(), make_node_type(variant="WORKFLOW")) == "flow"
        assert resolve_icon(make_instance(), make_node_type()) == "code"
        assert resolve_icon(make_instance(), None) == "code"

    def test_color_variant_resolved_per_theme(self):
        nt = make_node_type(color="blue")
        dark = build_instance_node(make_instance(), {"step": nt}, theme="dark")
        light = build_instance_node(make_instance(), {"step": nt}, theme="light")
        assert dark.color == "#60a5fa"
        assert light.color == "#2563eb"

    def test_literal_color_kept(self):
        node = build_instance_node(make_instance(color="#123456"), {"step": make_node_type(color="blue")})
        assert node.color == "#123456"


# ─── Dimensions & Port Positions ──────────────────────────────────────────────


class TestDimensions:
    def test_ports_column_height(self):
        assert ports_column_height(0) == 0
        assert ports_column_height(1) == PORT_PADDING_Y * 2 + PORT_SIZE
        assert ports_column_height(3) == PORT_PADDING_Y * 2 + 3 * PORT_SIZE + 2 * PORT_GAP

    def test_minimum_size(self):
        node = build_instance_node(make_instance(), {"step": make_node_type()})
        compute_node_dimensions(node)
        assert node.width == NODE_MIN_WIDTH
        assert node.height == NODE_MIN_HEIGHT

    def test_many_ports_grow_height(self):
        outputs = {f"out{i}": PortDefinition() for i in range(6)}
        node = build_instance_node(make_instance(), {"step": make_node_type(outputs=outputs)})
        compute_node_dimensions(node)
        assert node.width == NODE_MIN_WIDTH
        assert node.height == ports_column_height(8)

    def test_port_positions(self):
        node = build_instance_node(make_instance(), {"step": make_node_type()})
        compute_node_dimensions(node)
        node.x, node.y = 100, 200
        compute_port_positions(node)
        execute = node.input("execute")
        assert (execute.cx, execute.cy) == (100, 200 + PORT_PADDING_Y + PORT_SIZE / 2)
        on_failure = node.output("onFailure")
        assert on_failure.cx == 100 + NODE_MIN_WIDTH
        assert on_failure.cy == 200 + PORT_PADDING_Y + (PORT_SIZE + PORT_GAP) + PORT_SIZE / 2


class TestBuildConnection:
    def test_colors_and_step_flag(self):
        nt = make_node_type(outputs={"value": PortDefinition("NUMBER")})
        node = build_instance_node(make_instance(), {"step": nt})
        compute_port_positions(node)
        exit_node = build_exit_node({})
        conn = build_connection("a", node.output("onFailure"), "Exit", exit_node.input("onFailure"))
        assert conn.is_step_connection
        assert conn.source_color == "#f87171"
        assert conn.path.is_curve

        data = build_connection("a", node.output("value"), "Exit", exit_node.input("onSuccess"))
        assert not data.is_step_connection
