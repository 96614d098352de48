"""Graph assembly — Workflow in, fully placed DiagramGraph out.

Pipeline:
  1. Scope membership (explicit map + scope-qualified connections)
  2. Node construction and base dimensions
  3. Scope expansion (parents grow to hold their children)
  4. Coordinates (persisted, layered, or both)
  5. Port placement and scope finalization
  6. Connection routing (orthogonal with curve fallback)
  7. Normalization so the content starts at (padding, padding)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import cmp_to_key

from flow_diagram.config import DiagramOptions
from flow_diagram.constants import EXIT_NODE, LABEL_GAP, LABEL_HEIGHT, ORTHOGONAL_DISTANCE_THRESHOLD, START_NODE
from flow_diagram.coordinates import (
    apply_explicit_positions,
    assign_layer_coordinates,
    assign_unpositioned_nodes,
    resolve_horizontal_overlaps,
)
from flow_diagram.layout import build_layering_graph, layout_workflow
from flow_diagram.metrics import max_port_label_extent
from flow_diagram.nodes import (
    build_connection,
    build_exit_node,
    build_instance_node,
    build_start_node,
    compute_node_dimensions,
    compute_port_positions,
)
from flow_diagram.routing import TrackAllocator, route_orthogonal
from flow_diagram.scope import expand_scopes, finalize_scope, refresh_scope_paths
from flow_diagram.types import (
    Bounds,
    DiagramConnection,
    DiagramGraph,
    DiagramNode,
    DiagramPort,
    Position,
    Workflow,
)

logger = logging.getLogger(__name__)

# ─── Scope Membership ─────────────────────────────────────────────────────────


def split_scope_key(key: str) -> tuple[str, str]:
    """Split "parent.scope" at the first dot."""
    parent_id, _, scope_name = key.partition(".")
    return parent_id, scope_name


def resolve_scopes(workflow: Workflow) -> dict[str, list[str]]:
    """All scopes of the workflow, keyed "parentId.scopeName".

    Explicit scopes come first; a scope-qualified connection adds the node on
    its other end to that scope unless the scope is declared explicitly.
    """
    scopes: dict[str, list[str]] = {key: list(children) for key, children in workflow.scopes.items()}

    inferred: dict[str, list[str]] = {}
    for conn in workflow.connections:
        if conn.source.scope:
            inferred.setdefault(f"{conn.source.node}.{conn.source.scope}", []).append(conn.target.node)
        if conn.target.scope:
            inferred.setdefault(f"{conn.target.node}.{conn.target.scope}", []).append(conn.source.node)

    for key, children in inferred.items():
        if key not in scopes:
            scopes[key] = list(dict.fromkeys(children))
    return scopes


# ─── Positions ────────────────────────────────────────────────────────────────


def explicit_positions(workflow: Workflow) -> dict[str, Position]:
    positions: dict[str, Position] = {}
    if workflow.start_position is not None:
        positions[START_NODE] = workflow.start_position
    if workflow.exit_position is not None:
        positions[EXIT_NODE] = workflow.exit_position
    for inst in workflow.instances:
        if inst.position is not None:
            positions[inst.id] = inst.position
    return positions


def place_nodes(
    nodes: dict[str, DiagramNode],
    workflow: Workflow,
    owners: dict[str, str],
) -> None:
    """Pick the positioning mode from how many nodes carry a persisted position."""
    positions = {node_id: pos for node_id, pos in explicit_positions(workflow).items() if node_id in nodes}

    if nodes and len(positions) == len(nodes):
        apply_explicit_positions(nodes, positions)
        resolve_horizontal_overlaps(list(nodes.values()))
        return

    layers = layout_workflow(build_layering_graph(nodes, workflow.connections, owners))
    if positions:
        assign_unpositioned_nodes(layers, nodes, positions)
    else:
        assign_layer_coordinates(layers, nodes)


# ─── Connections ──────────────────────────────────────────────────────────────


@dataclass
class PendingConnection:
    from_node: str
    to_node: str
    source: DiagramPort
    target: DiagramPort
    from_port_index: int
    to_port_index: int

    @property
    def span(self) -> float:
        return abs(self.target.cx - self.source.cx)

    @property
    def distance(self) -> float:
        return math.hypot(self.target.cx - self.source.cx, self.target.cy - self.source.cy)

    def group_keys(self) -> tuple[str, str, str]:
        return (
            f"src:{self.from_node}.{self.source.name}",
            f"tgt:{self.to_node}.{self.target.name}",
            f"node:{self.to_node}",
        )


def collect_pending_connections(
    workflow: Workflow,
    nodes: dict[str, DiagramNode],
    owners: dict[str, str],
) -> list[PendingConnection]:
    """Top-level connections, including those crossing a scope boundary.

    Scope-qualified, child↔child and parent↔own-child connections are drawn
    inside the scope and skipped here.
    """
    children: dict[str, DiagramNode] = {
        child.id: child for node in nodes.values() for child in node.scope_children
    }

    pending: list[PendingConnection] = []
    for conn in workflow.connections:
        src, tgt = conn.source, conn.target
        if src.scope or tgt.scope:
            continue
        from_node = nodes.get(src.node) or children.get(src.node)
        to_node = nodes.get(tgt.node) or children.get(tgt.node)
        if from_node is None or to_node is None:
            logger.debug("Dropping connection with unknown node: %s", conn)
            continue

        from_child, to_child = src.node in owners, tgt.node in owners
        if from_child and to_child:
            continue
        if from_child and owners[src.node] == tgt.node:
            continue
        if to_child and owners[tgt.node] == src.node:
            continue

        source = from_node.output(src.port)
        target = to_node.input(tgt.port)
        if source is None or target is None:
            logger.debug("Dropping connection with missing port: %s", conn)
            continue

        pending.append(
            PendingConnection(
                from_node=src.node,
                to_node=tgt.node,
                source=source,
                target=target,
                from_port_index=from_node.outputs.index(source),
                to_port_index=to_node.inputs.index(target),
            )
        )
    return pending


def _routing_order(pending: list[PendingConnection]) -> list[PendingConnection]:
    """Short spans first, then by source x, then by source y (1 px tolerance)."""

    def compare(a: PendingConnection, b: PendingConnection) -> float:
        if abs(a.span - b.span) > 1:
            return a.span - b.span
        if abs(a.source.cx - b.source.cx) > 1:
            return a.source.cx - b.source.cx
        return a.source.cy - b.source.cy

    return sorted(pending, key=cmp_to_key(compare))


def forced_curves(pending: list[PendingConnection]) -> set[int]:
    """Indexes of connections that must be curves for fan-in/fan-out consistency.

    Connections sharing a source port, a target port or a target node form a
    group; a group of two or more with any short member is drawn all-curves.
    """
    groups: dict[str, list[int]] = {}
    for i, pc in enumerate(pending):
        for key in pc.group_keys():
            groups.setdefault(key, []).append(i)

    forced_keys = {
        key
        for key, members in groups.items()
        if len(members) >= 2 and any(pending[i].distance <= ORTHOGONAL_DISTANCE_THRESHOLD for i in members)
    }
    return {i for i, pc in enumerate(pending) if any(key in forced_keys for key in pc.group_keys())}


def route_connections(
    pending: list[PendingConnection],
    nodes: dict[str, DiagramNode],
    owners: dict[str, str],
    theme: str,
) -> list[DiagramConnection]:
    ordered = _routing_order(pending)
    forced = forced_curves(ordered)
    boxes = [node.box() for node in nodes.values()]
    allocator = TrackAllocator()

    connections: list[DiagramConnection] = []
    for i, pc in enumerate(ordered):
        path = None
        if i not in forced and pc.distance > ORTHOGONAL_DISTANCE_THRESHOLD:
            path = route_orthogonal(
                (pc.source.cx, pc.source.cy),
                (pc.target.cx, pc.target.cy),
                boxes,
                owners.get(pc.from_node, pc.from_node),
                owners.get(pc.to_node, pc.to_node),
                allocator,
                from_port_index=pc.from_port_index,
                to_port_index=pc.to_port_index,
            )
        connections.append(build_connection(pc.from_node, pc.source, pc.to_node, pc.target, theme, path))
    return connections


# ─── Normalization ────────────────────────────────────────────────────────────


def content_extent(
    nodes: list[DiagramNode],
    connections: list[DiagramConnection],
) -> tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) over boxes, labels, port badges and paths."""
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for node in nodes:
        min_x = min(min_x, node.x - max_port_label_extent(node.inputs))
        min_y = min(min_y, node.y - LABEL_HEIGHT - LABEL_GAP)
        max_x = max(max_x, node.x + node.width + max_port_label_extent(node.outputs))
        max_y = max(max_y, node.y + node.height)

    for conn in connections:
        x0, y0, x1, y1 = conn.path.extent()
        min_x, min_y = min(min_x, x0), min(min_y, y0)
        max_x, max_y = max(max_x, x1), max(max_y, y1)

    if min_x == math.inf:
        return (0.0, 0.0, 0.0, 0.0)
    return (min_x, min_y, max_x, max_y)


# ─── Public API ───────────────────────────────────────────────────────────────


def build_diagram_graph(workflow: Workflow, options: DiagramOptions | None = None) -> DiagramGraph:
    """Lay out `workflow` and route its connections.

    Never raises for inconsistent input: unknown node types become empty
    boxes, unknown scope parents and children are skipped and connections to
    missing ports are dropped.
    """
    options = options or DiagramOptions()
    theme = options.theme
    node_types = workflow.node_type_map()

    scopes: dict[str, list[str]] = {}
    for key, children in resolve_scopes(workflow).items():
        parent_id, _ = split_scope_key(key)
        inst = workflow.instance(parent_id)
        if inst is None or inst.node_type not in node_types:
            # its children stay top-level nodes
            logger.warning("Scope parent %r not found, skipping its scopes", parent_id)
            continue
        scopes[key] = children
    scoped_children = {child for children in scopes.values() for child in children}

    nodes: dict[str, DiagramNode] = {
        START_NODE: build_start_node(workflow.start_ports),
        EXIT_NODE: build_exit_node(workflow.exit_ports),
    }
    for inst in workflow.instances:
        if inst.id not in scoped_children:
            nodes[inst.id] = build_instance_node(inst, node_types, theme)

    for node in nodes.values():
        compute_node_dimensions(node)

    by_parent: dict[str, list[tuple[str, list[str]]]] = {}
    for key, children in scopes.items():
        parent_id, scope_name = split_scope_key(key)
        by_parent.setdefault(parent_id, []).append((scope_name, children))

    for parent_id, parent_scopes in by_parent.items():
        parent = nodes.get(parent_id)
        if parent is None:
            # a parent that is itself a scope child: one nesting level only
            logger.warning("Scope parent %r is nested in another scope, skipping its scopes", parent_id)
            continue
        parent_type = node_types[workflow.instance(parent_id).node_type]
        expand_scopes(parent, parent_type, parent_scopes, workflow, node_types, theme)

    owners = {child.id: node.id for node in nodes.values() for child in node.scope_children}

    place_nodes(nodes, workflow, owners)

    for node in nodes.values():
        compute_port_positions(node)
        finalize_scope(node, workflow, theme)

    pending = collect_pending_connections(workflow, nodes, owners)
    connections = route_connections(pending, nodes, owners, theme)

    for node in nodes.values():
        refresh_scope_paths(node, theme)

    node_list = list(nodes.values())
    all_connections = connections + [conn for node in node_list for conn in node.scope_connections]
    min_x, min_y, max_x, max_y = content_extent(node_list, all_connections)

    dx, dy = options.padding - min_x, options.padding - min_y
    for node in node_list:
        node.translate(dx, dy)
    connections = [_translated(conn, dx, dy) for conn in connections]

    return DiagramGraph(
        nodes=node_list,
        connections=connections,
        workflow_name=workflow.name,
        bounds=Bounds(
            width=max_x - min_x + 2 * options.padding,
            height=max_y - min_y + 2 * options.padding,
        ),
    )


def _translated(conn: DiagramConnection, dx: float, dy: float) -> DiagramConnection:
    conn.path = conn.path.translated(dx, dy)
    return conn
