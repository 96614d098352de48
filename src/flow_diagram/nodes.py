"""Node construction and sizing.

build_instance_node turns a (node type, instance) pair into a DiagramNode,
synthesizing the control-flow ports the node type implies. Labels, colours
and icons each go through one resolver with a fixed fallback order:

    label:  instance → node type → instance id
    colour: instance → node type → default (through the theme variant table)
    icon:   instance → node type → "flow" for workflow variants, else "code"
"""

from __future__ import annotations

import logging
from dataclasses import replace

from flow_diagram.constants import (
    EXECUTE,
    EXIT_NODE,
    NODE_MIN_HEIGHT,
    NODE_MIN_WIDTH,
    ON_FAILURE,
    ON_SUCCESS,
    PORT_GAP,
    PORT_PADDING_Y,
    PORT_SIZE,
    START_NODE,
    STEP,
)
from flow_diagram.paths import ConnectionPath, curved_path
from flow_diagram.ports import ordered_ports
from flow_diagram.theme import get_port_color, resolve_node_color
from flow_diagram.types import (
    DiagramConnection,
    DiagramNode,
    DiagramPort,
    NodeInstance,
    NodeType,
    PortDefinition,
)

logger = logging.getLogger(__name__)

WORKFLOW_VARIANTS = frozenset({"WORKFLOW", "IMPORTED_WORKFLOW"})

# ─── Attribute Resolution ─────────────────────────────────────────────────────


def resolve_label(instance: NodeInstance, node_type: NodeType | None) -> str:
    if instance.label:
        return instance.label
    if node_type is not None and node_type.label:
        return node_type.label
    return instance.id


def resolve_color(instance: NodeInstance, node_type: NodeType | None, theme: str = "dark") -> str:
    color = instance.color or (node_type.color if node_type is not None else None)
    return resolve_node_color(color, theme)


def resolve_icon(instance: NodeInstance, node_type: NodeType | None) -> str:
    if instance.icon:
        return instance.icon
    if node_type is None:
        return "code"
    if node_type.icon:
        return node_type.icon
    return "flow" if node_type.variant in WORKFLOW_VARIANTS else "code"


# ─── Builders ─────────────────────────────────────────────────────────────────


def external_ports(ports: dict[str, PortDefinition]) -> dict[str, PortDefinition]:
    """Drop scope-tagged ports; those belong on a scope's inner edges."""
    return {name: definition for name, definition in ports.items() if not definition.scope}


def build_instance_node(
    instance: NodeInstance,
    node_types: dict[str, NodeType],
    theme: str = "dark",
) -> DiagramNode:
    """Build the DiagramNode for one instance.

    An unknown node type degrades to an empty box labelled with the instance id.
    """
    nt = node_types.get(instance.node_type)
    if nt is None:
        logger.warning("Unknown node type %r for node %r, drawing an empty box", instance.node_type, instance.id)

    inputs = external_ports(nt.inputs) if nt is not None else {}
    outputs = external_ports(nt.outputs) if nt is not None else {}

    if nt is not None and not nt.expression and EXECUTE not in inputs:
        inputs[EXECUTE] = PortDefinition(data_type=STEP)
    if nt is not None and nt.has_success_port and ON_SUCCESS not in outputs:
        outputs[ON_SUCCESS] = PortDefinition(data_type=STEP, is_control_flow=True)
    if nt is not None and nt.has_failure_port and ON_FAILURE not in outputs:
        outputs[ON_FAILURE] = PortDefinition(data_type=STEP, is_control_flow=True, failure=True)

    return DiagramNode(
        id=instance.id,
        label=resolve_label(instance, nt),
        color=resolve_color(instance, nt, theme),
        icon=resolve_icon(instance, nt),
        inputs=ordered_ports(inputs, "INPUT"),
        outputs=ordered_ports(outputs, "OUTPUT"),
        width=NODE_MIN_WIDTH,
        height=NODE_MIN_HEIGHT,
    )


def build_start_node(start_ports: dict[str, PortDefinition]) -> DiagramNode:
    """Start exposes the workflow's inputs as outputs, led by execute."""
    ports = dict(start_ports)
    if EXECUTE not in ports:
        ports[EXECUTE] = PortDefinition(data_type=STEP)
    return DiagramNode(
        id=START_NODE,
        label=START_NODE,
        color=resolve_node_color(None),
        icon="startNode",
        is_virtual=True,
        outputs=ordered_ports(ports, "OUTPUT"),
        width=NODE_MIN_WIDTH,
        height=NODE_MIN_HEIGHT,
    )


def build_exit_node(exit_ports: dict[str, PortDefinition]) -> DiagramNode:
    """Exit collects the workflow's results as inputs, led by onSuccess/onFailure."""
    ports = dict(exit_ports)
    if ON_SUCCESS not in ports:
        ports[ON_SUCCESS] = PortDefinition(data_type=STEP, is_control_flow=True)
    failure = ports.get(ON_FAILURE)
    if failure is None:
        ports[ON_FAILURE] = PortDefinition(data_type=STEP, is_control_flow=True, failure=True)
    else:
        ports[ON_FAILURE] = replace(failure, failure=True)
    return DiagramNode(
        id=EXIT_NODE,
        label=EXIT_NODE,
        color=resolve_node_color(None),
        icon="exitNode",
        is_virtual=True,
        inputs=ordered_ports(ports, "INPUT"),
        width=NODE_MIN_WIDTH,
        height=NODE_MIN_HEIGHT,
    )


# ─── Dimensions & Port Positions ──────────────────────────────────────────────


def ports_column_height(count: int) -> float:
    """Height of a column of `count` port dots including top and bottom padding."""
    if count == 0:
        return 0.0
    return PORT_PADDING_Y + count * PORT_SIZE + (count - 1) * PORT_GAP + PORT_PADDING_Y


def compute_node_dimensions(node: DiagramNode) -> None:
    """Size a node from its port count. Width is fixed; only scopes widen a node."""
    node.width = NODE_MIN_WIDTH
    node.height = max(NODE_MIN_HEIGHT, ports_column_height(max(len(node.inputs), len(node.outputs))))


def position_port_list(ports: list[DiagramPort], cx: float, top: float) -> None:
    for i, port in enumerate(ports):
        port.cx = cx
        port.cy = top + PORT_PADDING_Y + i * (PORT_SIZE + PORT_GAP) + PORT_SIZE / 2


def compute_port_positions(node: DiagramNode) -> None:
    """Inputs sit on the left edge, outputs on the right edge."""
    position_port_list(node.inputs, node.x, node.y)
    position_port_list(node.outputs, node.x + node.width, node.y)


# ─── Connections ──────────────────────────────────────────────────────────────


def build_connection(
    from_node: str,
    source: DiagramPort,
    to_node: str,
    target: DiagramPort,
    theme: str = "dark",
    path: ConnectionPath | None = None,
) -> DiagramConnection:
    """Build a connection between two placed ports; without a path it gets the S-curve."""
    if path is None:
        path = curved_path(source.cx, source.cy, target.cx, target.cy)
    return DiagramConnection(
        from_node=from_node,
        from_port=source.name,
        to_node=to_node,
        to_port=target.name,
        source_color=get_port_color(source.data_type, source.is_failure, theme),
        target_color=get_port_color(target.data_type, target.is_failure, theme),
        is_step_connection=source.data_type == STEP,
        path=path,
    )
