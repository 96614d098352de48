"""Scope expansion — nested sub-graphs drawn inside their parent node.

A scope is a named region of a parent node (e.g. the "iteration" of a
forEach) holding child nodes. The parent exposes the region through boundary
ports: scope outputs on the inner left edge feed the children, scope inputs
on the inner right edge collect their results.

Expansion runs in two passes:

  build_scope     — before layout: collect boundary ports, build and size the
                    children in local coordinates, grow the parent.
  finalize_scope  — after the parent has its final position: move children
                    and boundary ports to absolute coordinates and connect
                    them.

Several scopes on one parent stack vertically, one region each.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from flow_diagram.constants import (
    ANY,
    EXECUTE,
    LABEL_BAND,
    LABEL_CLEARANCE,
    ON_FAILURE,
    ON_SUCCESS,
    SCOPE_INNER_GAP_X,
    SCOPE_PADDING_X,
    SCOPE_PADDING_Y,
    SCOPE_PORT_COLUMN,
    SCOPED_FAILURE,
    SCOPED_START,
    SCOPED_SUCCESS,
    STEP,
)
from flow_diagram.metrics import max_port_label_extent
from flow_diagram.nodes import (
    build_connection,
    build_instance_node,
    compute_node_dimensions,
    compute_port_positions,
    ports_column_height,
    position_port_list,
)
from flow_diagram.ports import ordered_ports
from flow_diagram.types import (
    DiagramConnection,
    DiagramNode,
    DiagramPort,
    NodeType,
    PortDefinition,
    ScopePorts,
    ScopeRegion,
    Workflow,
)

logger = logging.getLogger(__name__)


# ─── Build Pass ───────────────────────────────────────────────────────────────


def _inferred_port(
    workflow: Workflow,
    node_types: dict[str, NodeType],
    child_id: str,
    child_port: str,
    child_side: str,
    scope_name: str,
) -> PortDefinition:
    """Boundary port for an untagged connection, borrowing type and label from the child's port."""
    inst = workflow.instance(child_id)
    nt = node_types.get(inst.node_type) if inst is not None else None
    child_defs = (nt.inputs if child_side == "INPUT" else nt.outputs) if nt is not None else {}
    child_def = child_defs.get(child_port)
    return PortDefinition(
        data_type=child_def.data_type if child_def is not None else ANY,
        scope=scope_name,
        label=(child_def.label if child_def is not None else None) or child_port,
    )


def collect_scope_port_definitions(
    parent_id: str,
    parent_type: NodeType,
    scope_name: str,
    child_ids: set[str],
    workflow: Workflow,
    node_types: dict[str, NodeType],
) -> tuple[dict[str, PortDefinition], dict[str, PortDefinition]]:
    """Return (scope outputs, scope inputs) definitions for one scope."""
    outputs = {name: d for name, d in parent_type.outputs.items() if d.scope == scope_name}
    inputs = {name: d for name, d in parent_type.inputs.items() if d.scope == scope_name}

    # Mandatory ports stay STEP-typed even when a connection wires them explicitly.
    if not parent_type.expression:
        if SCOPED_START not in outputs:
            outputs[SCOPED_START] = PortDefinition(data_type=STEP, scope=scope_name, label="Execute")
        if SCOPED_SUCCESS not in inputs:
            inputs[SCOPED_SUCCESS] = PortDefinition(
                data_type=STEP, is_control_flow=True, scope=scope_name, label="On Success"
            )
        if SCOPED_FAILURE not in inputs:
            inputs[SCOPED_FAILURE] = PortDefinition(
                data_type=STEP, is_control_flow=True, scope=scope_name, failure=True, label="On Failure"
            )

    for conn in workflow.connections:
        # parent → child: the parent port becomes a scope output
        if conn.source.node == parent_id and conn.target.node in child_ids:
            name = conn.source.port
            if name not in outputs:
                parent_def = parent_type.outputs.get(name)
                if parent_def is not None:
                    outputs[name] = replace(parent_def, scope=scope_name)
                else:
                    outputs[name] = _inferred_port(
                        workflow, node_types, conn.target.node, conn.target.port, "INPUT", scope_name
                    )

        # child → parent: the parent port becomes a scope input
        if conn.target.node == parent_id and conn.source.node in child_ids:
            name = conn.target.port
            if name not in inputs:
                parent_def = parent_type.inputs.get(name)
                if parent_def is not None:
                    inputs[name] = replace(parent_def, scope=scope_name)
                else:
                    inputs[name] = _inferred_port(
                        workflow, node_types, conn.source.node, conn.source.port, "OUTPUT", scope_name
                    )

    return outputs, inputs


def build_scope(
    parent: DiagramNode,
    parent_type: NodeType,
    scope_name: str,
    child_ids: list[str],
    workflow: Workflow,
    node_types: dict[str, NodeType],
    theme: str = "dark",
) -> ScopeRegion | None:
    """Build one scope region of `parent` in local coordinates.

    Returns None, leaving the parent untouched, when none of the child ids
    resolve to an instance.
    """
    children: list[DiagramNode] = []
    for child_id in child_ids:
        inst = workflow.instance(child_id)
        if inst is None:
            logger.debug("Scope %s.%s: skipping unknown child %r", parent.id, scope_name, child_id)
            continue
        child = build_instance_node(inst, node_types, theme)
        compute_node_dimensions(child)
        children.append(child)

    if not children:
        logger.debug("Scope %s.%s has no resolvable children, skipping", parent.id, scope_name)
        return None

    output_defs, input_defs = collect_scope_port_definitions(
        parent.id, parent_type, scope_name, {c.id for c in children}, workflow, node_types
    )

    # Boundary ports live on the inner edges only.
    parent.outputs = [p for p in parent.outputs if p.name not in output_defs]
    parent.inputs = [p for p in parent.inputs if p.name not in input_defs]

    ports = ScopePorts(
        inputs=ordered_ports(input_defs, "INPUT"),
        outputs=ordered_ports(output_defs, "OUTPUT"),
    )

    # Children left to right, vertically centred under their label bands.
    children_height = max(c.height + LABEL_BAND for c in children)
    child_x = 0.0
    for child in children:
        child.x = child_x
        child.y = LABEL_BAND + (children_height - LABEL_BAND - child.height) / 2
        child_x += child.width + SCOPE_INNER_GAP_X
    children_width = child_x - SCOPE_INNER_GAP_X

    # Opposing boundary port labels face each other across the content area.
    min_inner_width = max_port_label_extent(ports.outputs) + LABEL_CLEARANCE + max_port_label_extent(ports.inputs)
    content_width = max(children_width, min_inner_width)

    return ScopeRegion(
        name=scope_name,
        children=children,
        ports=ports,
        children_width=children_width,
        children_height=children_height,
        width=2 * SCOPE_PORT_COLUMN + 2 * SCOPE_PADDING_X + content_width,
        height=2 * SCOPE_PADDING_Y
        + max(children_height, ports_column_height(len(ports.outputs)), ports_column_height(len(ports.inputs))),
    )


def expand_scopes(
    parent: DiagramNode,
    parent_type: NodeType,
    scopes: list[tuple[str, list[str]]],
    workflow: Workflow,
    node_types: dict[str, NodeType],
    theme: str = "dark",
) -> None:
    """Build every scope of `parent` and grow the parent to hold them.

    A caller-persisted size (instance width/height) is preferred but never
    shrinks the parent below what its regions need.
    """
    for scope_name, child_ids in scopes:
        region = build_scope(parent, parent_type, scope_name, child_ids, workflow, node_types, theme)
        if region is not None:
            parent.scopes.append(region)

    if not parent.scopes:
        return

    computed_width = max(r.width for r in parent.scopes)
    computed_height = sum(r.height for r in parent.scopes)

    inst = workflow.instance(parent.id)
    persisted_width = inst.width if inst is not None and inst.width is not None else 0.0
    persisted_height = inst.height if inst is not None and inst.height is not None else 0.0

    parent.width = max(parent.width, computed_width, persisted_width)
    parent.height = max(parent.height, computed_height, persisted_height)


# ─── Finalize Pass ────────────────────────────────────────────────────────────


def _scope_connections(
    parent: DiagramNode,
    region: ScopeRegion,
    workflow: Workflow,
    theme: str,
) -> list[DiagramConnection]:
    children = {c.id: c for c in region.children}
    result: list[DiagramConnection] = []

    for conn in workflow.connections:
        src, tgt = conn.source, conn.target
        from_child = children.get(src.node)
        to_child = children.get(tgt.node)
        if from_child is None and to_child is None:
            continue

        source: DiagramPort | None = None
        target: DiagramPort | None = None
        if src.node == parent.id and to_child is not None:
            source = next((p for p in region.ports.outputs if p.name == src.port), None)
            target = to_child.input(tgt.port)
        elif from_child is not None and tgt.node == parent.id:
            source = from_child.output(src.port)
            target = next((p for p in region.ports.inputs if p.name == tgt.port), None)
        elif from_child is not None and to_child is not None:
            source = from_child.output(src.port)
            target = to_child.input(tgt.port)
        else:
            # child ↔ outside the scope: routed at the top level
            continue

        if source is None or target is None:
            logger.debug("Scope %s.%s: dropping connection with missing port %s", parent.id, region.name, conn)
            continue
        result.append(build_connection(src.node, source, tgt.node, target, theme))

    _auto_wire(parent, region, result, theme)
    return result


def _auto_wire(parent: DiagramNode, region: ScopeRegion, conns: list[DiagramConnection], theme: str) -> None:
    """Connect mandatory boundary ports nobody wired explicitly.

    start → first child's execute; last child's onSuccess/onFailure → success/failure.
    """
    wired_outputs = {c.from_port for c in conns if c.from_node == parent.id}
    wired_inputs = {c.to_port for c in conns if c.to_node == parent.id}
    first, last = region.children[0], region.children[-1]
    scope_out = {p.name: p for p in region.ports.outputs}
    scope_in = {p.name: p for p in region.ports.inputs}

    start = scope_out.get(SCOPED_START)
    execute = first.input(EXECUTE)
    if start is not None and execute is not None and SCOPED_START not in wired_outputs:
        conns.append(build_connection(parent.id, start, first.id, execute, theme))

    for scope_port, child_port in ((SCOPED_SUCCESS, ON_SUCCESS), (SCOPED_FAILURE, ON_FAILURE)):
        boundary = scope_in.get(scope_port)
        child = last.output(child_port)
        if boundary is not None and child is not None and scope_port not in wired_inputs:
            conns.append(build_connection(last.id, child, parent.id, boundary, theme))


def finalize_scope(parent: DiagramNode, workflow: Workflow, theme: str = "dark") -> None:
    """Place every region of `parent` at absolute coordinates and build its connections.

    Must run exactly once, after the parent's own position is final.
    """
    if not parent.scopes:
        return

    # Extra height from a persisted size is shared evenly between regions.
    spare = max(0.0, parent.height - sum(r.height for r in parent.scopes)) / len(parent.scopes)
    inner_left = parent.x + SCOPE_PORT_COLUMN + SCOPE_PADDING_X
    inner_width = parent.width - 2 * (SCOPE_PORT_COLUMN + SCOPE_PADDING_X)

    top = parent.y
    for region in parent.scopes:
        region_height = region.height + spare
        region.offset_y = top - parent.y

        origin_x = inner_left + (inner_width - region.children_width) / 2
        origin_y = top + SCOPE_PADDING_Y + (region_height - 2 * SCOPE_PADDING_Y - region.children_height) / 2
        for child in region.children:
            child.x += origin_x
            child.y += origin_y
            compute_port_positions(child)

        position_port_list(region.ports.outputs, parent.x + SCOPE_PORT_COLUMN, top)
        position_port_list(region.ports.inputs, parent.x + parent.width - SCOPE_PORT_COLUMN, top)

        region.connections = _scope_connections(parent, region, workflow, theme)
        top += region_height


def refresh_scope_paths(parent: DiagramNode, theme: str = "dark") -> None:
    """Rebuild every scope connection's curve from the current port positions."""
    for region in parent.scopes:
        children = {c.id: c for c in region.children}
        refreshed: list[DiagramConnection] = []
        for conn in region.connections:
            if conn.from_node == parent.id:
                source = next((p for p in region.ports.outputs if p.name == conn.from_port), None)
            else:
                source = children[conn.from_node].output(conn.from_port)
            if conn.to_node == parent.id:
                target = next((p for p in region.ports.inputs if p.name == conn.to_port), None)
            else:
                target = children[conn.to_node].input(conn.to_port)
            if source is None or target is None:
                refreshed.append(conn)
                continue
            refreshed.append(build_connection(conn.from_node, source, conn.to_node, target, theme))
        region.connections = refreshed
