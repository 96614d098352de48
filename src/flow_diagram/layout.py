"""Layout module — layered (Sugiyama-style) ordering of the top-level nodes.

Phases:
  1. Cycle removal   (greedy-FAS: back-edges are reversed on a copy)
  2. Layer assignment (longest path from the sources; Start first, Exit last)
  3. Crossing minimization (4 alternating barycenter sweeps)

Coordinates are assigned separately, in coordinates.py.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import networkx as nx

from flow_diagram.constants import EXIT_NODE, START_NODE
from flow_diagram.types import Connection

logger = logging.getLogger(__name__)

CROSSING_SWEEPS = 4

# ─── Layering Graph ───────────────────────────────────────────────────────────


def build_layering_graph(
    node_ids: Iterable[str],
    connections: Iterable[Connection],
    owners: dict[str, str] | None = None,
) -> nx.DiGraph:
    """Build the DiGraph the layering runs on.

    Nodes are added in the given order, which later serves as the tie-break
    for every ordering decision. `owners` maps scope children to their
    top-level parent; a connection touching a child counts as touching the
    parent. Connections to unknown nodes and self-loops are left out.
    """
    owners = owners or {}
    graph: nx.DiGraph = nx.DiGraph()
    for index, node_id in enumerate(node_ids):
        graph.add_node(node_id, index=index)

    for conn in connections:
        src = owners.get(conn.source.node, conn.source.node)
        tgt = owners.get(conn.target.node, conn.target.node)
        if src == tgt or src not in graph or tgt not in graph:
            continue
        graph.add_edge(src, tgt)
    return graph


# ─── Cycle Removal (Greedy-FAS) ───────────────────────────────────────────────


def greedy_fas_ordering(graph: nx.DiGraph) -> list[str]:
    """Compute a node ordering using the greedy-FAS heuristic.

    Returns a list of node ids in an ordering that minimizes back-edges.
    Nodes earlier in the ordering should have outgoing edges going forward.

    Algorithm (Eades, Lin, Smyth 1993):
    - Maintain dynamic in/out degree counters updated as nodes are removed.
    - Repeatedly:
        1. Move all sinks (out_deg == 0) to s2.
        2. Move all sources (in_deg == 0) to s1.
        3. Of remaining nodes in cycles, pick max (out - in) and add to s1.
    - Final ordering: s1 + reversed(s2).

    Candidates are always scanned in graph insertion order, so the result
    does not depend on set iteration order.
    """
    order: list[str] = list(graph.nodes)
    active: set[str] = set(order)

    # Dynamic degree counters (count edges among active nodes only).
    out_deg: dict[str, int] = {node: graph.out_degree(node) for node in order}
    in_deg: dict[str, int] = {node: graph.in_degree(node) for node in order}

    def remaining() -> list[str]:
        return [n for n in order if n in active]

    s1: list[str] = []
    s2: list[str] = []

    while active:
        # Step 1: Pull all sinks (out_deg == 0) into s2.
        changed = True
        while changed:
            sinks = [n for n in remaining() if out_deg[n] == 0]
            changed = bool(sinks)
            for sink in sinks:
                active.remove(sink)
                s2.append(sink)
                for pred in graph.predecessors(sink):
                    if pred in active:
                        out_deg[pred] -= 1

        # Step 2: Pull all sources (in_deg == 0) into s1.
        changed = True
        while changed:
            sources = [n for n in remaining() if in_deg[n] == 0]
            changed = bool(sources)
            for source in sources:
                active.remove(source)
                s1.append(source)
                for succ in graph.successors(source):
                    if succ in active:
                        in_deg[succ] -= 1

        # Step 3: If nodes remain (in cycles), pick max (out - in) node; first wins ties.
        if active:
            best = max(remaining(), key=lambda n: out_deg[n] - in_deg[n])
            active.remove(best)
            s1.append(best)
            for succ in graph.successors(best):
                if succ in active:
                    in_deg[succ] -= 1
            for pred in graph.predecessors(best):
                if pred in active:
                    out_deg[pred] -= 1

    s2.reverse()
    s1.extend(s2)
    return s1


def remove_cycles(graph: nx.DiGraph) -> tuple[nx.DiGraph, set[tuple[str, str]]]:
    """Remove cycles from a copy of the DiGraph using the greedy-FAS heuristic.

    Returns a tuple of:
    - new_graph: copy of graph with back-edges reversed (self-loops removed)
    - reversed_edges: set of (src_id, tgt_id) tuples that were reversed
      (identified relative to the ORIGINAL graph's edge directions)
    """
    if graph.number_of_nodes() == 0:
        return graph.copy(), set()

    position: dict[str, int] = {node: pos for pos, node in enumerate(greedy_fas_ordering(graph))}

    reversed_edges: set[tuple[str, str]] = set()
    for src, tgt in graph.edges():
        if src == tgt or position[src] > position[tgt]:
            reversed_edges.add((src, tgt))

    new_graph: nx.DiGraph = nx.DiGraph()
    for node_id in graph.nodes:
        new_graph.add_node(node_id, **graph.nodes[node_id])

    for src, tgt, edge_attrs in graph.edges(data=True):
        if src == tgt:
            continue
        if (src, tgt) in reversed_edges:
            new_graph.add_edge(tgt, src, **edge_attrs)
        else:
            new_graph.add_edge(src, tgt, **edge_attrs)

    return new_graph, reversed_edges


# ─── Layer Assignment ─────────────────────────────────────────────────────────


@dataclass
class LayerAssignment:
    """Result of layer assignment: each node is assigned a layer (column).

    Attributes:
        layers: Maps node id → layer index.
        layer_count: Total number of layers.
        reversed_edges: Edges reversed during cycle removal (as (src, tgt) pairs).
    """

    layers: dict[str, int]
    layer_count: int
    reversed_edges: set[tuple[str, str]] = field(default_factory=set)

    @classmethod
    def assign(cls, graph: nx.DiGraph) -> LayerAssignment:
        """Assign longest-path layers on the cycle-free copy of `graph`.

        layer(n) = 1 + max(layer of predecessors); nodes without predecessors
        start at 0. Start is pinned to layer 0 and Exit to one past every
        other node. Nodes with no connections at all go to layer 1.
        """
        dag, reversed_edges = remove_cycles(graph)
        index: dict[str, int] = {node: i for i, node in enumerate(graph.nodes)}

        layers: dict[str, int] = {}
        for node in nx.lexicographical_topological_sort(dag, key=index.__getitem__):
            if node == START_NODE:
                layers[node] = 0
            elif graph.degree(node) == 0 and node != EXIT_NODE:
                layers[node] = 1
            else:
                preds = [layers[p] for p in dag.predecessors(node)]
                layers[node] = max(preds) + 1 if preds else 0

        if EXIT_NODE in layers:
            others = [layer for node, layer in layers.items() if node != EXIT_NODE]
            layers[EXIT_NODE] = max(others, default=-1) + 1

        layer_count = (max(layers.values()) + 1) if layers else 0
        return cls(layers=layers, layer_count=layer_count, reversed_edges=reversed_edges)

    def ordering(self, node_order: Iterable[str]) -> list[list[str]]:
        """Group node ids by layer, keeping `node_order` within each layer."""
        result: list[list[str]] = [[] for _ in range(self.layer_count)]
        for node_id in node_order:
            if node_id in self.layers:
                result[self.layers[node_id]].append(node_id)
        return result


# ─── Crossing Minimization (Barycenter) ───────────────────────────────────────


def minimise_crossings(ordering: list[list[str]], graph: nx.DiGraph) -> list[list[str]]:
    """Reorder each layer with the barycenter heuristic.

    Runs exactly CROSSING_SWEEPS sweeps, alternating forward (weights from
    predecessors in the previous layer) and backward (successors in the next
    layer). Sorting is stable; nodes with no neighbour in the reference layer
    sort last.
    """
    ordering = [list(layer) for layer in ordering]
    layer_count = len(ordering)

    for sweep in range(CROSSING_SWEEPS):
        if sweep % 2 == 0:
            for layer_idx in range(1, layer_count):
                prev: dict[str, float] = {nid: float(i) for i, nid in enumerate(ordering[layer_idx - 1])}
                ordering[layer_idx].sort(key=lambda a, p=prev: _barycenter(a, graph, p, "incoming"))
        else:
            for layer_idx in range(layer_count - 2, -1, -1):
                nxt: dict[str, float] = {nid: float(i) for i, nid in enumerate(ordering[layer_idx + 1])}
                ordering[layer_idx].sort(key=lambda a, n=nxt: _barycenter(a, graph, n, "outgoing"))

    return ordering


def _barycenter(
    node_id: str,
    graph: nx.DiGraph,
    neighbor_pos: dict[str, float],
    direction: str,
) -> float:
    """Average position of a node's neighbours in the adjacent layer (barycenter weight).

    direction: "incoming" to look at predecessors, "outgoing" for successors.
    Returns float('inf') if the node has no neighbours in the adjacent layer.
    """
    if node_id not in graph:
        return float("inf")

    neighbors = graph.predecessors(node_id) if direction == "incoming" else graph.successors(node_id)
    positions = [neighbor_pos[nb] for nb in neighbors if nb in neighbor_pos]
    if not positions:
        return float("inf")
    return sum(positions) / len(positions)


def count_crossings(ordering: list[list[str]], graph: nx.DiGraph) -> int:
    """Count edge crossings between consecutive layers (inversion count heuristic)."""
    total = 0
    for l_idx in range(len(ordering) - 1):
        tgt_pos: dict[str, int] = {nid: i for i, nid in enumerate(ordering[l_idx + 1])}
        edges: list[tuple[int, int]] = []
        for sp, src_id in enumerate(ordering[l_idx]):
            if src_id in graph:
                for nb in graph.successors(src_id):
                    if nb in tgt_pos:
                        edges.append((sp, tgt_pos[nb]))
        for i in range(len(edges)):
            for j in range(i + 1, len(edges)):
                ei, ej = edges[i], edges[j]
                if (ei[0] < ej[0] and ei[1] > ej[1]) or (ei[0] > ej[0] and ei[1] < ej[1]):
                    total += 1
    return total


# ─── Full Pipeline ────────────────────────────────────────────────────────────


def layout_workflow(graph: nx.DiGraph) -> list[list[str]]:
    """Layer and order the nodes of a layering graph; returns one id list per layer."""
    la = LayerAssignment.assign(graph)
    dag, _ = remove_cycles(graph)
    initial = la.ordering(graph.nodes)
    ordering = minimise_crossings(initial, dag)
    logger.debug(
        "Layered %d nodes into %d layers, crossings %d -> %d",
        graph.number_of_nodes(),
        la.layer_count,
        count_crossings(initial, dag),
        count_crossings(ordering, dag),
    )
    return ordering
