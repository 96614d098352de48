"""Coordinate assignment — turns layers (or persisted positions) into x/y.

Three modes, picked by the assembler:
  * every node has a persisted position → apply them, then push apart
    nodes whose port labels would collide (resolve_horizontal_overlaps);
  * no node has one → full layer-based placement (assign_layer_coordinates);
  * mixed → persisted nodes stay put, the rest are placed per layer around
    them (assign_unpositioned_nodes).

Layer columns run left to right; nodes in a column are centred on y = 0,
each preceded by the band its name label occupies above the box.
"""

from __future__ import annotations

from flow_diagram.constants import (
    LABEL_BAND,
    LABEL_CLEARANCE,
    LAYER_GAP_X,
    MIN_EDGE_GAP,
    MIN_NODE_GAP_Y,
    NODE_GAP_Y,
)
from flow_diagram.metrics import max_port_label_extent
from flow_diagram.types import DiagramNode, Position


def adaptive_gap_y(layer_size: int) -> float:
    """Vertical gap between nodes of one layer; shrinks as the layer fills up."""
    if layer_size <= 2:
        return NODE_GAP_Y
    return max(MIN_NODE_GAP_Y, round(NODE_GAP_Y * 2 / layer_size))


def _output_overhang(layer: list[DiagramNode]) -> float:
    """Widest output label overhang of a layer (scope boundary labels face inward)."""
    return max((max_port_label_extent(n.outputs) for n in layer), default=0.0)


def _input_overhang(layer: list[DiagramNode]) -> float:
    return max((max_port_label_extent(n.inputs) for n in layer), default=0.0)


def _layer_advance(layer: list[DiagramNode], next_layer: list[DiagramNode], max_width: float) -> float:
    """Distance from this column's left edge to the next column's left edge."""
    if not next_layer:
        return max_width + LAYER_GAP_X
    label_min_gap = _output_overhang(layer) + LABEL_CLEARANCE + _input_overhang(next_layer)
    return max_width + max(label_min_gap, LAYER_GAP_X - max_width, MIN_EDGE_GAP)


def _stack_height(nodes: list[DiagramNode], gap_y: float) -> float:
    return sum(n.height + LABEL_BAND for n in nodes) + (len(nodes) - 1) * gap_y


def _resolve_layers(layers: list[list[str]], nodes: dict[str, DiagramNode]) -> list[list[DiagramNode]]:
    return [[nodes[node_id] for node_id in layer if node_id in nodes] for layer in layers]


def assign_layer_coordinates(layers: list[list[str]], nodes: dict[str, DiagramNode]) -> None:
    """Place every node of `layers` column by column."""
    resolved = _resolve_layers(layers, nodes)

    current_x = 0.0
    for i, layer in enumerate(resolved):
        if not layer:
            current_x += LAYER_GAP_X
            continue

        max_width = max(n.width for n in layer)
        gap_y = adaptive_gap_y(len(layer))
        current_y = -_stack_height(layer, gap_y) / 2
        for node in layer:
            current_y += LABEL_BAND
            node.x = current_x + (max_width - node.width) / 2
            node.y = current_y
            current_y += node.height + gap_y

        next_layer = resolved[i + 1] if i + 1 < len(resolved) else []
        current_x += _layer_advance(layer, next_layer, max_width)


def apply_explicit_positions(nodes: dict[str, DiagramNode], positions: dict[str, Position]) -> None:
    for node_id, pos in positions.items():
        node = nodes.get(node_id)
        if node is not None:
            node.x = pos.x
            node.y = pos.y


def _first_free_y(
    node: DiagramNode,
    y: float,
    fixed: list[DiagramNode],
    gap_y: float,
) -> float:
    """Lowest y ≥ the candidate at which `node` (with its label band) clears every fixed node."""
    blocked = sorted(
        (f.y - LABEL_BAND - gap_y, f.y + f.height + gap_y)
        for f in fixed
        if f.x < node.x + node.width and f.x + f.width > node.x
    )
    # Blocks are sorted by top edge and y only grows, so one pass clears them all.
    for start, end in blocked:
        if y - LABEL_BAND < end and y + node.height > start:
            y = end + LABEL_BAND
    return y


def assign_unpositioned_nodes(
    layers: list[list[str]],
    nodes: dict[str, DiagramNode],
    positions: dict[str, Position],
) -> None:
    """Hybrid placement: persisted nodes stay fixed, the rest fill their layer columns around them."""
    apply_explicit_positions(nodes, positions)
    fixed = [n for node_id, n in nodes.items() if node_id in positions]
    resolved = _resolve_layers(layers, nodes)

    current_x = 0.0
    for i, layer in enumerate(resolved):
        if not layer:
            current_x += LAYER_GAP_X
            continue

        max_width = max(n.width for n in layer)
        unpositioned = [n for n in layer if n.id not in positions]
        if unpositioned:
            gap_y = adaptive_gap_y(len(unpositioned))
            current_y = -_stack_height(unpositioned, gap_y) / 2
            for node in unpositioned:
                node.x = current_x + (max_width - node.width) / 2
                node.y = _first_free_y(node, current_y + LABEL_BAND, fixed, gap_y)
                current_y = node.y + node.height + gap_y

        next_layer = resolved[i + 1] if i + 1 < len(resolved) else []
        current_x += _layer_advance(layer, next_layer, max_width)


def resolve_horizontal_overlaps(nodes: list[DiagramNode]) -> None:
    """Push nodes right until neighbouring port labels cannot collide.

    Nodes are visited in x order (ties keep list order). A node whose gap to
    its predecessor is below max(predecessor output labels + clearance +
    own input labels, MIN_EDGE_GAP) moves right to exactly that gap.
    """
    ordered = sorted(nodes, key=lambda n: n.x)
    for prev, curr in zip(ordered, ordered[1:]):
        min_gap = max(
            max_port_label_extent(prev.outputs) + LABEL_CLEARANCE + max_port_label_extent(curr.inputs),
            MIN_EDGE_GAP,
        )
        if curr.x - (prev.x + prev.width) < min_gap:
            curr.x = prev.x + prev.width + min_gap
