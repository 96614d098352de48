"""ASCII renderers — box-drawing diagrams on a character grid.

AsciiRenderer draws every node as a box listing its ports and wires the
ports together; connections that skip a column travel along "highway" rows
above or below the boxes. CompactAsciiRenderer prints the main chain on one
row and lists everything else underneath.

Only the column order of the laid-out graph is used; pixel geometry is not.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flow_diagram.types import DiagramConnection, DiagramGraph, DiagramNode, DiagramPort

# ─── Characters ─────────────────────────────────────────────────────────────

CONNECTED = "●"
UNCONNECTED = "○"
ARROW = "▶"
CROSS = "┼"

H_THIN, H_THICK = "─", "═"
V_THIN, V_THICK = "│", "║"
H_CHARS = frozenset({H_THIN, H_THICK})
V_CHARS = frozenset({V_THIN, V_THICK})

# (horizontal side, vertical side) -> (step, data)
_CORNERS: dict[tuple[str, str], tuple[str, str]] = {
    ("right", "down"): ("╔", "┌"),
    ("left", "down"): ("╗", "┐"),
    ("right", "up"): ("╚", "└"),
    ("left", "up"): ("╝", "┘"),
}

COLUMN_TOLERANCE = 10  # px; nodes closer than this in x share a column
WIRE_GAP = 14  # characters between columns
NODE_GAP_ROWS = 2
HEADER_ROWS = 3
MIN_INNER_WIDTH = 10
SPAN_LANE_WIDTH = 10

LEGEND = f" {CONNECTED} connected  {UNCONNECTED} not connected  {H_THICK * 2}{ARROW} STEP  {H_THIN * 2}{ARROW} DATA"


# ─── Helpers ────────────────────────────────────────────────────────────────


def group_by_column(nodes: list[DiagramNode]) -> list[list[DiagramNode]]:
    """Group nodes into columns by x; a node joins the current column within COLUMN_TOLERANCE of its first node."""
    if not nodes:
        return []
    ordered = sorted(nodes, key=lambda n: n.x)
    columns: list[list[DiagramNode]] = [[]]
    column_x = ordered[0].x
    for node in ordered:
        if abs(node.x - column_x) > COLUMN_TOLERANCE:
            columns.append([])
            column_x = node.x
        columns[-1].append(node)
    return columns


def connected_ports(connections: list[DiagramConnection]) -> set[str]:
    result: set[str] = set()
    for conn in connections:
        result.add(f"{conn.from_node}.{conn.from_port}")
        result.add(f"{conn.to_node}.{conn.to_port}")
    return result


def port_symbol(node_id: str, port: DiagramPort, connected: set[str]) -> str:
    return CONNECTED if f"{node_id}.{port.name}" in connected else UNCONNECTED


def corner_char(is_step: bool, h_side: str, v_side: str) -> str:
    """Corner joining a horizontal run on `h_side` with a vertical run on `v_side`."""
    pair = _CORNERS.get((h_side, v_side))
    if pair is None:
        return CROSS
    return pair[0] if is_step else pair[1]


# ─── Character Grid ─────────────────────────────────────────────────────────


class CharGrid:
    """Fixed-size character canvas; writes outside it are ignored."""

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.cells = [[" "] * width for _ in range(height)]

    def _inside(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def set(self, x: int, y: int, ch: str) -> None:
        """Draw a wire character, merging with what is already there.

        A horizontal meeting a vertical becomes a crossing; a wire running
        over a parallel one keeps the existing character.
        """
        if not self._inside(x, y):
            return
        existing = self.cells[y][x]
        if existing != " ":
            if (ch in H_CHARS and existing in V_CHARS) or (ch in V_CHARS and existing in H_CHARS):
                self.cells[y][x] = CROSS
                return
            if (ch in H_CHARS and existing in H_CHARS) or (ch in V_CHARS and existing in V_CHARS):
                return
        self.cells[y][x] = ch

    def get(self, x: int, y: int) -> str:
        return self.cells[y][x] if self._inside(x, y) else " "

    def force_set(self, x: int, y: int, ch: str) -> None:
        if self._inside(x, y):
            self.cells[y][x] = ch

    def write(self, x: int, y: int, text: str) -> None:
        for i, ch in enumerate(text):
            self.force_set(x + i, y, ch)

    def lines(self) -> list[str]:
        result = ["".join(row).rstrip() for row in self.cells]
        while result and result[-1] == "":
            result.pop()
        return result


# ─── Boxes ──────────────────────────────────────────────────────────────────


@dataclass
class Box:
    node: DiagramNode
    rows: list[tuple[DiagramPort | None, DiagramPort | None]]
    inner_width: int
    row_offsets: dict[str, int] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return self.inner_width + 2

    @property
    def height(self) -> int:
        return HEADER_ROWS + max(len(self.rows), 1) + 1


def measure_box(node: DiagramNode) -> Box:
    """Size a box: title row, separator, then one row per input/output pair."""
    count = max(len(node.inputs), len(node.outputs))
    rows = [
        (node.inputs[i] if i < len(node.inputs) else None, node.outputs[i] if i < len(node.outputs) else None)
        for i in range(count)
    ]
    max_in = max((len(p.name) for p in node.inputs), default=0)
    max_out = max((len(p.name) for p in node.outputs), default=0)
    ports_width = (max_in + 2 if max_in else 0) + 2 + (max_out + 2 if max_out else 0)

    box = Box(node=node, rows=rows, inner_width=max(len(node.label) + 2, ports_width, MIN_INNER_WIDTH))
    # Inputs and outputs may share a name; input and output rows are looked up separately.
    for i, (inp, out) in enumerate(rows):
        if inp is not None:
            box.row_offsets[f"in:{inp.name}"] = HEADER_ROWS + i
        if out is not None:
            box.row_offsets[f"out:{out.name}"] = HEADER_ROWS + i
    return box


def draw_box(grid: CharGrid, box: Box, bx: int, by: int, connected: set[str]) -> None:
    node, inner = box.node, box.inner_width
    right = bx + inner + 1

    grid.write(bx, by, "┌" + "─" * inner + "┐")
    grid.force_set(bx, by + 1, "│")
    grid.write(bx + 1 + (inner - len(node.label)) // 2, by + 1, node.label)
    grid.force_set(right, by + 1, "│")
    grid.write(bx, by + 2, "├" + "─" * inner + "┤")

    for i in range(max(len(box.rows), 1)):
        ry = by + HEADER_ROWS + i
        grid.force_set(bx, ry, "│")
        grid.force_set(right, ry, "│")
        if i >= len(box.rows):
            continue
        inp, out = box.rows[i]
        if inp is not None:
            grid.write(bx + 1, ry, f"{port_symbol(node.id, inp, connected)} {inp.name}")
        if out is not None:
            text = f"{out.name} {port_symbol(node.id, out, connected)}"
            grid.write(right - len(text), ry, text)

    grid.write(bx, by + box.height - 1, "└" + "─" * inner + "┘")


@dataclass
class Placement:
    column: int
    x: int
    y: int
    box: Box

    def output_row(self, port: str) -> int | None:
        offset = self.box.row_offsets.get(f"out:{port}")
        return None if offset is None else self.y + offset

    def input_row(self, port: str) -> int | None:
        offset = self.box.row_offsets.get(f"in:{port}")
        return None if offset is None else self.y + offset


# ─── Wire Tracks ────────────────────────────────────────────────────────────


class TrackMap:
    """Rows occupied by vertical wires, per grid column."""

    def __init__(self) -> None:
        self.used: dict[int, set[int]] = {}

    def find(self, gap_start: int, gap_end: int, y1: int, y2: int) -> int:
        """Column nearest the middle of the gap whose rows y1..y2 are free."""
        lo, hi = min(gap_start, gap_end), max(gap_start, gap_end)
        y_lo, y_hi = min(y1, y2), max(y1, y2)
        mid = (lo + hi) // 2
        for offset in range(hi - lo + 1):
            for candidate in (mid + offset, mid - offset):
                if candidate < lo or candidate > hi:
                    continue
                rows = self.used.get(candidate)
                if not rows or not any(y in rows for y in range(y_lo, y_hi + 1)):
                    return candidate
        return mid

    def mark(self, x: int, y1: int, y2: int) -> None:
        self.used.setdefault(x, set()).update(range(min(y1, y2), max(y1, y2) + 1))


def _vertical(grid: CharGrid, x: int, y1: int, y2: int, ch: str) -> None:
    """Vertical wire strictly between y1 and y2."""
    for y in range(min(y1, y2) + 1, max(y1, y2)):
        grid.set(x, y, ch)


def _horizontal(grid: CharGrid, x1: int, x2: int, y: int, ch: str) -> None:
    """Horizontal wire over [x1, x2)."""
    for x in range(x1, x2):
        grid.set(x, y, ch)


# ─── Full Renderer ──────────────────────────────────────────────────────────


class AsciiRenderer:
    """Port-level box-drawing diagram."""

    def render(self, graph: DiagramGraph) -> str:
        columns = group_by_column(graph.nodes)
        if not columns:
            return f"{graph.workflow_name}\n(empty workflow)"

        boxes = [[measure_box(node) for node in column] for column in columns]
        column_x: list[int] = []
        x = 1
        for column in boxes:
            column_x.append(x)
            x += max(b.width for b in column) + WIRE_GAP
        grid_width = x + 1

        node_column = {box.node.id: c for c, column in enumerate(boxes) for box in column}
        span_count = sum(
            1
            for conn in graph.connections
            if conn.from_node in node_column
            and conn.to_node in node_column
            and node_column[conn.to_node] != node_column[conn.from_node] + 1
        )
        highway_margin = span_count + 1 if span_count else 0

        box_top = 3 + highway_margin
        placements: dict[str, Placement] = {}
        grid_height = 0
        for c, column in enumerate(boxes):
            y = box_top
            for box in column:
                placements[box.node.id] = Placement(column=c, x=column_x[c], y=y, box=box)
                y += box.height + NODE_GAP_ROWS
            grid_height = max(grid_height, y)
        grid_height += highway_margin + 3

        connected = connected_ports(graph.connections)
        grid = CharGrid(grid_width, grid_height)
        grid.write(max(0, (grid_width - len(graph.workflow_name)) // 2), 1, graph.workflow_name)

        for placement in placements.values():
            draw_box(grid, placement.box, placement.x, placement.y, connected)
        self._draw_connections(grid, graph.connections, placements)

        lines = grid.lines()
        for node in graph.nodes:
            if not node.scope_children:
                continue
            lines.append("")
            lines.append(f" Scope [{node.label}]:")
            for conn in node.scope_connections:
                arrow = f"{H_THICK * 2}{ARROW}" if conn.is_step_connection else f"{H_THIN * 2}{ARROW}"
                suffix = "  STEP" if conn.is_step_connection else ""
                lines.append(f"   {conn.from_node}.{conn.from_port} {arrow} {conn.to_node}.{conn.to_port}{suffix}")
        lines.append("")
        lines.append(LEGEND)
        return "\n".join(lines)

    def _draw_connections(
        self,
        grid: CharGrid,
        connections: list[DiagramConnection],
        placements: dict[str, Placement],
    ) -> None:
        top = min(p.y for p in placements.values())
        bottom = max(p.y + p.box.height for p in placements.values())

        def order(conn: DiagramConnection) -> tuple[int, int]:
            src, dst = placements.get(conn.from_node), placements.get(conn.to_node)
            if src is None or dst is None:
                return (0, 0)
            return (abs(dst.column - src.column), src.output_row(conn.from_port) or 0)

        tracks = TrackMap()
        next_above, next_below = top - 2, bottom + 1

        for conn in sorted(connections, key=order):
            src, dst = placements.get(conn.from_node), placements.get(conn.to_node)
            if src is None or dst is None:
                continue
            y1, y2 = src.output_row(conn.from_port), dst.input_row(conn.to_port)
            if y1 is None or y2 is None:
                continue

            x1 = src.x + src.box.width  # first cell right of the source box
            x2 = dst.x - 1  # arrowhead cell left of the target box
            step = conn.is_step_connection
            h_ch = H_THICK if step else H_THIN
            v_ch = V_THICK if step else V_THIN

            if dst.column == src.column + 1:
                self._adjacent(grid, tracks, src, dst, x1, y1, x2, y2, h_ch, v_ch, step)
                continue

            if (y1 + y2) / 2 <= (top + bottom) / 2:
                highway, next_above = next_above, next_above - 1
            else:
                highway, next_below = next_below, next_below + 1
            self._spanning(grid, tracks, src, dst, x1, y1, x2, y2, highway, h_ch, v_ch, step)

    @staticmethod
    def _adjacent(grid, tracks, src, dst, x1, y1, x2, y2, h_ch, v_ch, step) -> None:
        if y1 == y2:
            _horizontal(grid, x1, x2, y1, h_ch)
            grid.set(x2, y1, ARROW)
            return

        mid_x = tracks.find(src.x + src.box.width + 1, dst.x - 2, y1, y2)
        tracks.mark(mid_x, y1, y2)
        down = y2 > y1

        _horizontal(grid, x1, mid_x, y1, h_ch)
        grid.set(mid_x, y1, corner_char(step, "left", "down" if down else "up"))
        _vertical(grid, mid_x, y1, y2, v_ch)
        grid.set(mid_x, y2, corner_char(step, "right", "up" if down else "down"))
        _horizontal(grid, mid_x + 1, x2, y2, h_ch)
        grid.set(x2, y2, ARROW)

    @staticmethod
    def _spanning(grid, tracks, src, dst, x1, y1, x2, y2, highway, h_ch, v_ch, step) -> None:
        """out → down/up to the highway row → across → back to the target row → in."""
        src_gap = src.x + src.box.width + 1
        src_x = tracks.find(src_gap, src_gap + SPAN_LANE_WIDTH, y1, highway)
        tracks.mark(src_x, y1, highway)

        dst_gap = dst.x - 2
        dst_x = tracks.find(dst_gap - SPAN_LANE_WIDTH, dst_gap, highway, y2)
        tracks.mark(dst_x, highway, y2)

        going_down = highway > y1
        going_up = y2 < highway

        _horizontal(grid, x1, src_x, y1, h_ch)
        grid.set(src_x, y1, corner_char(step, "left", "down" if going_down else "up"))
        _vertical(grid, src_x, y1, highway, v_ch)
        grid.set(src_x, highway, corner_char(step, "right", "up" if going_down else "down"))
        _horizontal(grid, src_x + 1, dst_x, highway, h_ch)
        grid.set(dst_x, highway, corner_char(step, "left", "up" if going_up else "down"))
        _vertical(grid, dst_x, highway, y2, v_ch)
        grid.set(dst_x, y2, corner_char(step, "right", "down" if going_up else "up"))
        _horizontal(grid, dst_x + 1, x2, y2, h_ch)
        grid.set(x2, y2, ARROW)


# ─── Compact Renderer ───────────────────────────────────────────────────────


class CompactAsciiRenderer:
    """One row of boxes for the main chain; parallel nodes and scopes listed below."""

    def render(self, graph: DiagramGraph) -> str:
        columns = group_by_column(graph.nodes)
        if not columns:
            return f"{graph.workflow_name}\n(empty workflow)"

        chain = [column[0] for column in columns]
        parallel = [node for column in columns for node in column[1:]]

        top: list[str] = []
        mid: list[str] = []
        bottom: list[str] = []
        for i, node in enumerate(chain):
            inner = max(len(node.label) + 2, 5)
            pad_left = (inner - len(node.label)) // 2
            pad_right = inner - len(node.label) - pad_left
            top.append("┌" + "─" * inner + "┐")
            mid.append("│" + " " * pad_left + node.label + " " * pad_right + "│")
            bottom.append("└" + "─" * inner + "┘")
            if i < len(chain) - 1:
                top.append("    ")
                mid.append("━━━" + ARROW)
                bottom.append("    ")

        lines = [graph.workflow_name, "", " " + "".join(top), " " + "".join(mid), " " + "".join(bottom)]
        if parallel:
            lines.append("")
            lines.append(" Parallel: " + ", ".join(n.label for n in parallel))
        for node in graph.nodes:
            if node.scope_children:
                lines.append("")
                lines.append(f" Scope [{node.label}]: " + f" ━{ARROW} ".join(c.label for c in node.scope_children))
        return "\n".join(lines)
