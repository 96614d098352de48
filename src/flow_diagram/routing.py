"""Orthogonal connection routing.

Routes run from an output port (right edge of its node) to an input port
(left edge of another node) with horizontal stubs at both ends:

  * forward connections try a single-bend "center corner" route, else an
    S-route through a horizontal channel clear of nodes and earlier routes;
  * backward and self connections escape above or below the node cluster
    and come back through the same channel shape.

A TrackAllocator shared across one batch remembers every claimed segment so
parallel connections keep TRACK_SPACING apart, and free-position searches
prefer positions that cross fewer already-claimed segments.

route_orthogonal returns None when a curve is the better choice (nearly
aligned ports) or no clear route exists; the caller then draws an S-curve.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flow_diagram.config import RouteOptions
from flow_diagram.paths import ConnectionPath, Point, rounded_polyline
from flow_diagram.types import NodeBox

logger = logging.getLogger(__name__)

TRACK_SPACING = 15  # minimum distance between parallel segments
EDGE_OFFSET = 5  # clearance from an inflated box edge when stepping around it
MAX_CANDIDATES = 5  # free positions evaluated per direction
SCAN_RANGE = 800
MIN_SEGMENT_LENGTH = 3
JOG_THRESHOLD = 10
ESCAPE_MARGIN = 50  # minimum vertical escape for backward routes

# ─── Boxes ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class InflatedBox:
    left: float
    right: float
    top: float
    bottom: float


def inflate_box(box: NodeBox, padding: float) -> InflatedBox:
    return InflatedBox(
        left=box.x - padding,
        right=box.x + box.width + padding,
        top=box.y - padding,
        bottom=box.y + box.height + padding,
    )


def horizontal_blocked(x_min: float, x_max: float, y: float, box: InflatedBox) -> bool:
    """True if a horizontal segment at y over [x_min, x_max] passes through the box."""
    return x_min < box.right and x_max > box.left and box.top <= y <= box.bottom


def vertical_blocked(y_min: float, y_max: float, x: float, box: InflatedBox) -> bool:
    """True if a vertical segment at x over [y_min, y_max] passes through the box."""
    return box.left <= x <= box.right and y_min < box.bottom and y_max > box.top


def vertical_segment_clear(x: float, y_min: float, y_max: float, boxes: list[InflatedBox]) -> bool:
    return not any(vertical_blocked(y_min, y_max, x, box) for box in boxes)


def segment_blocked(a: Point, b: Point, boxes: list[InflatedBox]) -> bool:
    """True if the segment a→b passes through any box (non-axis segments use their bounding box)."""
    x_min, x_max = min(a[0], b[0]), max(a[0], b[0])
    y_min, y_max = min(a[1], b[1]), max(a[1], b[1])
    for box in boxes:
        if y_min == y_max:
            if horizontal_blocked(x_min, x_max, a[1], box):
                return True
        elif x_min == x_max:
            if vertical_blocked(y_min, y_max, a[0], box):
                return True
        elif x_min < box.right and x_max > box.left and y_min < box.bottom and y_max > box.top:
            return True
    return False


# ─── Track Allocator ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class _HorizontalClaim:
    x_min: float
    x_max: float
    y: float


@dataclass(frozen=True)
class _VerticalClaim:
    y_min: float
    y_max: float
    x: float


class TrackAllocator:
    """Claimed routing tracks for one batch of connections.

    Create one per diagram and pass it to every route_orthogonal call of that
    diagram; the order connections are routed in decides who gets the ideal
    track.
    """

    def __init__(self) -> None:
        self.claims: list[_HorizontalClaim] = []
        self.vertical_claims: list[_VerticalClaim] = []

    def is_occupied(self, x_min: float, x_max: float, y: float) -> bool:
        return any(
            c.x_min < x_max and c.x_max > x_min and abs(c.y - y) < TRACK_SPACING for c in self.claims
        )

    def is_occupied_vertical(self, y_min: float, y_max: float, x: float) -> bool:
        return any(
            c.y_min < y_max and c.y_max > y_min and abs(c.x - x) < TRACK_SPACING for c in self.vertical_claims
        )

    def count_horizontal_crossings(self, x_min: float, x_max: float, y: float) -> int:
        """Claimed vertical segments a horizontal segment at y would cross."""
        return sum(1 for c in self.vertical_claims if x_min < c.x < x_max and c.y_min <= y <= c.y_max)

    def count_vertical_crossings(self, y_min: float, y_max: float, x: float) -> int:
        """Claimed horizontal segments a vertical segment at x would cross."""
        return sum(1 for c in self.claims if y_min < c.y < y_max and c.x_min <= x <= c.x_max)

    def find_free_y(
        self,
        x_min: float,
        x_max: float,
        candidate: float,
        boxes: list[InflatedBox] | None = None,
    ) -> float:
        """Nearest free y to `candidate` for a horizontal segment over [x_min, x_max].

        Positions inside an inflated box are never returned. Among free
        positions, fewer crossings win, then smaller distance.
        """

        def is_free(y: float) -> bool:
            if self.is_occupied(x_min, x_max, y):
                return False
            return not boxes or not any(horizontal_blocked(x_min, x_max, y, box) for box in boxes)

        return self._search(
            candidate, is_free, lambda y: self.count_horizontal_crossings(x_min, x_max, y)
        )

    def find_free_x(
        self,
        y_min: float,
        y_max: float,
        candidate: float,
        boxes: list[InflatedBox] | None = None,
    ) -> float:
        """Nearest free x to `candidate` for a vertical segment over [y_min, y_max]."""

        def is_free(x: float) -> bool:
            if self.is_occupied_vertical(y_min, y_max, x):
                return False
            return not boxes or not any(vertical_blocked(y_min, y_max, x, box) for box in boxes)

        return self._search(
            candidate, is_free, lambda x: self.count_vertical_crossings(y_min, y_max, x)
        )

    @staticmethod
    def _search(candidate: float, is_free, crossings) -> float:
        if is_free(candidate):
            return candidate

        found: list[tuple[float, float]] = []  # (value, distance)
        offset = TRACK_SPACING
        while offset < SCAN_RANGE and len(found) < MAX_CANDIDATES * 2:
            for value in (candidate - offset, candidate + offset):
                if is_free(value):
                    found.append((value, offset))
            offset += TRACK_SPACING

        if not found:
            return candidate

        best_value, best_dist = found[0]
        best_crossings = crossings(best_value)
        for value, dist in found[1:]:
            count = crossings(value)
            if count < best_crossings or (count == best_crossings and dist < best_dist):
                best_value, best_dist, best_crossings = value, dist, count
        return best_value

    def checkpoint(self) -> tuple[int, int]:
        return len(self.claims), len(self.vertical_claims)

    def rollback(self, mark: tuple[int, int]) -> None:
        """Drop every claim made since `mark` was taken."""
        del self.claims[mark[0] :]
        del self.vertical_claims[mark[1] :]

    def claim(self, x_min: float, x_max: float, y: float) -> None:
        self.claims.append(_HorizontalClaim(x_min, x_max, y))

    def claim_vertical(self, y_min: float, y_max: float, x: float) -> None:
        self.vertical_claims.append(_VerticalClaim(y_min, y_max, x))


# ─── Clearance Search ─────────────────────────────────────────────────────────


def _step_off_edges(candidate: float, edges: list[float], is_blocked) -> float:
    """Nearest position just outside one of the box edges; falls back to beyond all of them."""
    if not edges:
        return candidate
    edges = sorted(edges)

    best, best_dist = candidate, float("inf")
    for edge in edges:
        for value in (edge - EDGE_OFFSET, edge + EDGE_OFFSET):
            if not is_blocked(value) and abs(value - candidate) < best_dist:
                best, best_dist = value, abs(value - candidate)
    if best_dist != float("inf"):
        return best

    low, high = edges[0] - EDGE_OFFSET * 2, edges[-1] + EDGE_OFFSET * 2
    best = low if abs(low - candidate) <= abs(high - candidate) else high
    if is_blocked(best):
        offset = TRACK_SPACING
        while offset < SCAN_RANGE:
            if not is_blocked(best - offset):
                return best - offset
            if not is_blocked(best + offset):
                return best + offset
            offset += TRACK_SPACING
    return best


def find_clear_y(x_min: float, x_max: float, candidate: float, boxes: list[InflatedBox]) -> float:
    """A y for a horizontal segment over [x_min, x_max] that avoids every box."""

    def is_blocked(y: float) -> bool:
        return any(horizontal_blocked(x_min, x_max, y, box) for box in boxes)

    if not is_blocked(candidate):
        return candidate
    edges = [edge for box in boxes if x_min < box.right and x_max > box.left for edge in (box.top, box.bottom)]
    return _step_off_edges(candidate, edges, is_blocked)


def find_clear_x(y_min: float, y_max: float, candidate: float, boxes: list[InflatedBox]) -> float:
    """An x for a vertical segment over [y_min, y_max] that avoids every box."""

    def is_blocked(x: float) -> bool:
        return any(vertical_blocked(y_min, y_max, x, box) for box in boxes)

    if not is_blocked(candidate):
        return candidate
    edges = [edge for box in boxes if y_min < box.bottom and y_max > box.top for edge in (box.left, box.right)]
    return _step_off_edges(candidate, edges, is_blocked)


# ─── Waypoint Simplification ──────────────────────────────────────────────────


def _collapse_jog(pts: list[Point]) -> bool:
    """Flatten the first rectangular jog smaller than JOG_THRESHOLD, in place."""
    for i in range(len(pts) - 3):
        a, b, c, d = pts[i], pts[i + 1], pts[i + 2], pts[i + 3]

        jog_h = abs(b[1] - c[1])
        if abs(a[1] - b[1]) < 0.5 and abs(b[0] - c[0]) < 0.5 and abs(c[1] - d[1]) < 0.5 and 0.5 < jog_h < JOG_THRESHOLD:
            mid = (b[1] + c[1]) / 2
            snap = a[1] if abs(a[1] - mid) <= abs(d[1] - mid) else d[1]
            pts[i + 1] = (b[0], snap)
            pts[i + 2] = (c[0], snap)
            return True

        jog_w = abs(b[0] - c[0])
        if abs(a[0] - b[0]) < 0.5 and abs(b[1] - c[1]) < 0.5 and abs(c[0] - d[0]) < 0.5 and 0.5 < jog_w < JOG_THRESHOLD:
            mid = (b[0] + c[0]) / 2
            snap = a[0] if abs(a[0] - mid) <= abs(d[0] - mid) else d[0]
            pts[i + 1] = (snap, b[1])
            pts[i + 2] = (snap, c[1])
            return True
    return False


def simplify_waypoints(waypoints: list[Point]) -> list[Point]:
    """Collapse small jogs, then drop duplicate, collinear and too-short intermediate points."""
    if len(waypoints) <= 2:
        return list(waypoints)

    pts = list(waypoints)
    while _collapse_jog(pts):
        pass

    result: list[Point] = [pts[0]]
    for i in range(1, len(pts) - 1):
        prev, curr, nxt = result[-1], pts[i], pts[i + 1]
        if abs(prev[0] - curr[0]) + abs(prev[1] - curr[1]) < MIN_SEGMENT_LENGTH:
            continue
        same_x = abs(prev[0] - curr[0]) < 0.01 and abs(curr[0] - nxt[0]) < 0.01
        same_y = abs(prev[1] - curr[1]) < 0.01 and abs(curr[1] - nxt[1]) < 0.01
        if not same_x and not same_y:
            result.append(curr)
    result.append(pts[-1])
    return result


# ─── Waypoint Computation ─────────────────────────────────────────────────────


def _forward_waypoints(
    source: Point,
    target: Point,
    stub_exit: Point,
    stub_entry: Point,
    boxes: list[InflatedBox],
    padding: float,
    allocator: TrackAllocator,
) -> list[Point] | None:
    x_min, x_max = min(stub_exit[0], stub_entry[0]), max(stub_exit[0], stub_entry[0])

    # Keep the channel out of a cluster of nodes between the ports.
    candidate_y = (source[1] + target[1]) / 2
    between = [box for box in boxes if box.left < x_max and box.right > x_min]
    if len(between) >= 2:
        cluster_top = min(box.top for box in between)
        cluster_bottom = max(box.bottom for box in between)
        if cluster_top < candidate_y < cluster_bottom:
            if candidate_y - cluster_top <= cluster_bottom - candidate_y:
                candidate_y = cluster_top - padding
            else:
                candidate_y = cluster_bottom + padding
    clear_y = find_clear_y(x_min, x_max, candidate_y, boxes)

    if abs(source[1] - target[1]) < JOG_THRESHOLD and abs(clear_y - source[1]) < JOG_THRESHOLD:
        return None

    # Center corner: one vertical jog between the stubs.
    y_min, y_max = min(source[1], target[1]), max(source[1], target[1])
    mid_x = (stub_exit[0] + stub_entry[0]) / 2
    free_mid_x = allocator.find_free_x(y_min, y_max, find_clear_x(y_min, y_max, mid_x, boxes), boxes)
    if (
        y_max - y_min >= JOG_THRESHOLD
        and stub_exit[0] < free_mid_x < stub_entry[0]
        and vertical_segment_clear(free_mid_x, y_min, y_max, boxes)
        and allocator.find_free_y(source[0], free_mid_x, source[1], boxes) == source[1]
        and allocator.find_free_y(free_mid_x, target[0], target[1], boxes) == target[1]
    ):
        allocator.claim(source[0], free_mid_x, source[1])
        allocator.claim(free_mid_x, target[0], target[1])
        allocator.claim_vertical(y_min, y_max, free_mid_x)
        return simplify_waypoints([source, (free_mid_x, source[1]), (free_mid_x, target[1]), target])

    # S-route through a horizontal channel.
    clear_y = allocator.find_free_y(x_min, x_max, clear_y, boxes)
    if abs(clear_y - source[1]) < JOG_THRESHOLD and not any(
        horizontal_blocked(x_min, x_max, source[1], box) for box in boxes
    ):
        clear_y = source[1]
    elif abs(clear_y - target[1]) < JOG_THRESHOLD and not any(
        horizontal_blocked(x_min, x_max, target[1], box) for box in boxes
    ):
        clear_y = target[1]
    allocator.claim(x_min, x_max, clear_y)

    exit_lo, exit_hi = min(source[1], clear_y), max(source[1], clear_y)
    exit_x = allocator.find_free_x(exit_lo, exit_hi, find_clear_x(exit_lo, exit_hi, stub_exit[0], boxes), boxes)
    if exit_x < source[0]:
        exit_x = stub_exit[0]
        if not vertical_segment_clear(exit_x, exit_lo, exit_hi, boxes):
            exit_x = find_clear_x(exit_lo, exit_hi, stub_exit[0] + TRACK_SPACING, boxes)
            exit_x = allocator.find_free_x(exit_lo, exit_hi, exit_x, boxes)
    allocator.claim_vertical(exit_lo, exit_hi, exit_x)

    entry_lo, entry_hi = min(target[1], clear_y), max(target[1], clear_y)
    entry_x = allocator.find_free_x(
        entry_lo, entry_hi, find_clear_x(entry_lo, entry_hi, stub_entry[0], boxes), boxes
    )
    if entry_x > target[0]:
        entry_x = stub_entry[0]
        if not vertical_segment_clear(entry_x, entry_lo, entry_hi, boxes):
            entry_x = find_clear_x(entry_lo, entry_hi, stub_entry[0] - TRACK_SPACING, boxes)
            entry_x = allocator.find_free_x(entry_lo, entry_hi, entry_x, boxes)
    allocator.claim_vertical(entry_lo, entry_hi, entry_x)

    return simplify_waypoints(
        [
            source,
            (exit_x, source[1]),
            (exit_x, clear_y),
            (entry_x, clear_y),
            (entry_x, target[1]),
            target,
        ]
    )


def _escape_waypoints(
    source: Point,
    target: Point,
    stub_exit: Point,
    stub_entry: Point,
    endpoint_boxes: list[NodeBox],
    boxes: list[InflatedBox],
    padding: float,
    allocator: TrackAllocator,
) -> list[Point]:
    """Backward or self connection: leave right, loop above or below, enter from the left."""
    x_min, x_max = min(stub_exit[0], stub_entry[0]), max(stub_exit[0], stub_entry[0])

    corridor = [box for box in boxes if box.left < x_max and box.right > x_min]
    bottoms = [box.bottom for box in corridor] + [b.y + b.height + padding for b in endpoint_boxes]
    tops = [box.top for box in corridor] + [b.y - padding for b in endpoint_boxes]
    max_bottom = max(bottoms + [source[1] + ESCAPE_MARGIN, target[1] + ESCAPE_MARGIN])
    min_top = min(tops + [source[1] - ESCAPE_MARGIN, target[1] - ESCAPE_MARGIN])

    mid_y = (source[1] + target[1]) / 2
    above, below = min_top - padding, max_bottom + padding
    escape_y = above if abs(above - mid_y) <= abs(below - mid_y) else below

    escape_y = allocator.find_free_y(x_min, x_max, find_clear_y(x_min, x_max, escape_y, boxes), boxes)
    allocator.claim(x_min, x_max, escape_y)

    exit_lo, exit_hi = min(source[1], escape_y), max(source[1], escape_y)
    exit_x = allocator.find_free_x(exit_lo, exit_hi, find_clear_x(exit_lo, exit_hi, stub_exit[0], boxes), boxes)
    allocator.claim_vertical(exit_lo, exit_hi, exit_x)

    entry_lo, entry_hi = min(target[1], escape_y), max(target[1], escape_y)
    entry_x = allocator.find_free_x(
        entry_lo, entry_hi, find_clear_x(entry_lo, entry_hi, stub_entry[0], boxes), boxes
    )
    allocator.claim_vertical(entry_lo, entry_hi, entry_x)

    return simplify_waypoints(
        [
            source,
            (exit_x, source[1]),
            (exit_x, escape_y),
            (entry_x, escape_y),
            (entry_x, target[1]),
            target,
        ]
    )


# ─── Public API ───────────────────────────────────────────────────────────────


def route_orthogonal(
    source: Point,
    target: Point,
    node_boxes: list[NodeBox],
    source_id: str,
    target_id: str,
    allocator: TrackAllocator,
    options: RouteOptions | None = None,
    from_port_index: int = 0,
    to_port_index: int = 0,
) -> ConnectionPath | None:
    """Route one connection between two port centres.

    node_boxes are all top-level nodes; the endpoint nodes are ignored as
    obstacles except for self connections. Returns None when the caller
    should draw a curve instead.
    """
    options = options or RouteOptions()
    is_self = source_id == target_id
    obstacles = [
        inflate_box(box, options.padding)
        for box in node_boxes
        if is_self or box.id not in (source_id, target_id)
    ]

    stub_exit = (source[0] + options.stub_for(from_port_index), source[1])
    stub_entry = (target[0] - options.stub_for(to_port_index), target[1])
    # A rejected route gives back every track it claimed.
    mark = allocator.checkpoint()

    if not is_self and target[0] > source[0]:
        waypoints = _forward_waypoints(source, target, stub_exit, stub_entry, obstacles, options.padding, allocator)
    else:
        endpoints = [box for box in node_boxes if box.id in (source_id, target_id)]
        waypoints = _escape_waypoints(
            source, target, stub_exit, stub_entry, endpoints, obstacles, options.padding, allocator
        )

    if waypoints is None or len(waypoints) < 2:
        allocator.rollback(mark)
        return None

    # Endpoint nodes never count as obstacles for the finished route.
    others = [inflate_box(box, options.padding) for box in node_boxes if box.id not in (source_id, target_id)]
    if any(segment_blocked(a, b, others) for a, b in zip(waypoints, waypoints[1:])):
        logger.debug("No clear orthogonal route %s -> %s, falling back to a curve", source_id, target_id)
        allocator.rollback(mark)
        return None

    return rounded_polyline(waypoints, options.corner_radius)
