"""SVG renderer — renders a DiagramGraph to an SVG string."""

from __future__ import annotations

from flow_diagram.constants import (
    BORDER_RADIUS,
    DEFAULT_NODE_COLOR,
    LABEL_GAP,
    LABEL_HEIGHT,
    PORT_RADIUS,
    SCOPE_PORT_COLUMN,
)
from flow_diagram.metrics import BADGE_DIVIDER_GAP, BADGE_GAP, BADGE_HEIGHT, BADGE_PAD, measure_text
from flow_diagram.paths import fmt
from flow_diagram.theme import (
    NODE_ICON_PATHS,
    ThemePalette,
    get_port_color,
    get_port_ring_color,
    get_theme,
    type_abbreviation,
)
from flow_diagram.types import DiagramConnection, DiagramGraph, DiagramNode, DiagramPort

# ─── Constants ──────────────────────────────────────────────────────────────

MIN_WIDTH = 200
MIN_HEIGHT = 100
ICON_SIZE = 40
DOT_GRID = 20
FONT_FAMILY = "Montserrat, 'Segoe UI', Roboto, sans-serif"
LABEL_CHAR_WIDTH = 7


def _escape(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def _port_id(node_id: str, port: DiagramPort) -> str:
    direction = "input" if port.direction == "INPUT" else "output"
    return f"{_escape(node_id)}.{_escape(port.name)}:{direction}"


def _stroke_color(node: DiagramNode, theme: ThemePalette) -> str:
    return node.color if node.color != DEFAULT_NODE_COLOR else theme.node_icon_color


class SvgRenderer:
    """Render a DiagramGraph as a standalone SVG document.

    Connections are drawn first, node bodies and port dots above them, and
    every label (node names, port badges) in a final pass on top.
    """

    def __init__(self, theme: str = "dark", show_port_labels: bool = True) -> None:
        self.theme_name = theme
        self.theme = get_theme(theme)
        self.show_port_labels = show_port_labels

    def render(self, graph: DiagramGraph) -> str:
        width = max(graph.bounds.width, MIN_WIDTH)
        height = max(graph.bounds.height, MIN_HEIGHT)
        all_connections = graph.all_connections()
        gradient_index = {id(conn): i for i, conn in enumerate(all_connections)}
        theme = self.theme

        parts: list[str] = [
            f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {fmt(width)} {fmt(height)}" '
            f'width="{fmt(width)}" height="{fmt(height)}">',
            "<style>",
            f"  text {{ font-family: {FONT_FAMILY}; }}",
            f"  .node-label {{ font-size: 13px; font-weight: 700; fill: {theme.label_color}; }}",
            f"  .port-label {{ font-size: 10px; font-weight: 600; fill: {theme.label_color}; }}",
            "  .port-type-label { font-size: 10px; font-weight: 600; }",
            "</style>",
            "<defs>",
            f'  <pattern id="dot-grid" width="{DOT_GRID}" height="{DOT_GRID}" patternUnits="userSpaceOnUse">',
            f'    <circle cx="10" cy="10" r="1.5" fill="{theme.dot_color}" opacity="0.6"/>',
            "  </pattern>",
        ]
        for i, conn in enumerate(all_connections):
            parts.append(f'  <linearGradient id="conn-grad-{i}" x1="0%" y1="0%" x2="100%" y2="0%">')
            parts.append(f'    <stop offset="0%" stop-color="{conn.source_color}"/>')
            parts.append(f'    <stop offset="100%" stop-color="{conn.target_color}"/>')
            parts.append("  </linearGradient>")
        parts.append("</defs>")

        parts.append(f'<rect width="{fmt(width)}" height="{fmt(height)}" fill="{theme.background}"/>')
        parts.append(f'<rect width="{fmt(width)}" height="{fmt(height)}" fill="url(#dot-grid)"/>')

        parts.append('<g class="connections">')
        for conn in graph.connections:
            parts.append("  " + self._connection(conn, gradient_index[id(conn)]))
        parts.append("</g>")

        parts.append('<g class="nodes">')
        for node in graph.nodes:
            self._node(parts, node, gradient_index)
        parts.append("</g>")

        parts.append('<g class="labels">')
        for node in graph.nodes:
            self._node_label(parts, node)
            if self.show_port_labels:
                self._port_labels(parts, node.id, node.inputs + node.outputs)
            for child in node.scope_children:
                self._node_label(parts, child)
            if self.show_port_labels:
                for region in node.scopes:
                    self._port_labels(parts, node.id, region.ports.inputs + region.ports.outputs)
                for child in node.scope_children:
                    self._port_labels(parts, child.id, child.inputs + child.outputs)
        parts.append("</g>")

        parts.append("</svg>")
        return "\n".join(parts)

    # ─── Connections ────────────────────────────────────────────────────────

    def _connection(self, conn: DiagramConnection, gradient: int, scope: str | None = None) -> str:
        dash = "" if conn.is_step_connection else ' stroke-dasharray="8 4"'
        stroke_width = "2.5" if scope is not None else "3"
        scope_attr = f' data-scope="{_escape(scope)}"' if scope is not None else ""
        return (
            f'<path d="{conn.path.to_svg()}" fill="none" stroke="url(#conn-grad-{gradient})" '
            f'stroke-width="{stroke_width}"{dash} stroke-linecap="round" '
            f'data-source="{_escape(conn.from_node)}.{_escape(conn.from_port)}:output" '
            f'data-target="{_escape(conn.to_node)}.{_escape(conn.to_port)}:input"{scope_attr}/>'
        )

    # ─── Nodes ──────────────────────────────────────────────────────────────

    def _body(self, parts: list[str], node: DiagramNode, indent: str, icon: bool = True) -> None:
        theme = self.theme
        parts.append(
            f'{indent}<rect x="{fmt(node.x)}" y="{fmt(node.y)}" width="{fmt(node.width)}" '
            f'height="{fmt(node.height)}" rx="{BORDER_RADIUS}" fill="{theme.node_fill}" '
            f'stroke="{_stroke_color(node, theme)}" stroke-width="2"/>'
        )
        if not icon:
            return
        icon_path = NODE_ICON_PATHS.get(node.icon, NODE_ICON_PATHS["code"])
        icon_x = node.x + (node.width - ICON_SIZE) / 2
        icon_y = node.y + (node.height - ICON_SIZE) / 2
        parts.append(
            f'{indent}<svg x="{fmt(icon_x)}" y="{fmt(icon_y)}" width="{ICON_SIZE}" height="{ICON_SIZE}" '
            f'viewBox="0 -960 960 960"><path d="{icon_path}" fill="{_stroke_color(node, theme)}"/></svg>'
        )

    def _node(self, parts: list[str], node: DiagramNode, gradient_index: dict[int, int]) -> None:
        parts.append(f'  <g data-node-id="{_escape(node.id)}">')
        if node.scope_children:
            self._body(parts, node, "    ", icon=False)
            self._scoped_content(parts, node, gradient_index)
        else:
            self._body(parts, node, "    ")
        self._port_dots(parts, node.id, node.inputs + node.outputs)
        parts.append("  </g>")

    def _scoped_content(self, parts: list[str], node: DiagramNode, gradient_index: dict[int, int]) -> None:
        theme = self.theme
        for i, region in enumerate(node.scopes):
            top = node.y + region.offset_y
            bottom = node.y + node.scopes[i + 1].offset_y if i + 1 < len(node.scopes) else node.y + node.height
            parts.append(
                f'    <rect x="{fmt(node.x + SCOPE_PORT_COLUMN)}" y="{fmt(top + 4)}" '
                f'width="{fmt(node.width - 2 * SCOPE_PORT_COLUMN)}" height="{fmt(bottom - top - 8)}" rx="4" '
                f'fill="none" stroke="{theme.scope_area_stroke}" stroke-width="1" stroke-dasharray="4 2" '
                f'opacity="0.5" data-scope-name="{_escape(region.name)}"/>'
            )

        for conn in node.scope_connections:
            parts.append("    " + self._connection(conn, gradient_index[id(conn)], scope=node.id))

        for region in node.scopes:
            self._port_dots(parts, node.id, region.ports.inputs + region.ports.outputs)

        for child in node.scope_children:
            parts.append(f'    <g data-node-id="{_escape(child.id)}">')
            self._body(parts, child, "      ")
            self._port_dots(parts, child.id, child.inputs + child.outputs, indent="      ")
            parts.append("    </g>")

    def _port_dots(self, parts: list[str], node_id: str, ports: list[DiagramPort], indent: str = "    ") -> None:
        for port in ports:
            color = get_port_color(port.data_type, port.is_failure, self.theme_name)
            ring = get_port_ring_color(self.theme_name)
            direction = "input" if port.direction == "INPUT" else "output"
            parts.append(
                f'{indent}<circle cx="{fmt(port.cx)}" cy="{fmt(port.cy)}" r="{PORT_RADIUS}" fill="{color}" '
                f'stroke="{ring}" stroke-width="2" data-port-id="{_port_id(node_id, port)}" '
                f'data-direction="{direction}"/>'
            )

    # ─── Labels ─────────────────────────────────────────────────────────────

    def _node_label(self, parts: list[str], node: DiagramNode) -> None:
        theme = self.theme
        scoped = bool(node.scope_children)
        text = _escape(node.label)
        badge_width = len(node.label) * LABEL_CHAR_WIDTH + 16
        badge_x = node.x if scoped else node.x + node.width / 2 - badge_width / 2
        badge_y = node.y - LABEL_GAP - LABEL_HEIGHT
        text_x = node.x + 8 if scoped else node.x + node.width / 2
        anchor = "start" if scoped else "middle"
        fill = node.color if node.color != DEFAULT_NODE_COLOR else theme.label_color

        parts.append(f'    <g data-label-for="{_escape(node.id)}">')
        parts.append(
            f'      <rect x="{fmt(badge_x)}" y="{fmt(badge_y)}" width="{fmt(badge_width)}" '
            f'height="{LABEL_HEIGHT}" rx="6" fill="{theme.label_badge_fill}" opacity="0.8"/>'
        )
        parts.append(
            f'      <text class="node-label" x="{fmt(text_x)}" y="{fmt(badge_y + LABEL_HEIGHT / 2 + 6)}" '
            f'text-anchor="{anchor}" fill="{fill}">{text}</text>'
        )
        parts.append("    </g>")

    def _port_labels(self, parts: list[str], node_id: str, ports: list[DiagramPort]) -> None:
        theme = self.theme
        for port in ports:
            color = get_port_color(port.data_type, port.is_failure, self.theme_name)
            is_input = port.direction == "INPUT"
            abbrev = type_abbreviation(port.data_type)
            type_width = measure_text(abbrev)
            label_width = measure_text(port.label)
            badge_width = BADGE_PAD + type_width + BADGE_DIVIDER_GAP + 1 + BADGE_DIVIDER_GAP + label_width + BADGE_PAD
            badge_x = (
                port.cx - PORT_RADIUS - BADGE_GAP - badge_width if is_input else port.cx + PORT_RADIUS + BADGE_GAP
            )
            badge_y = port.cy - BADGE_HEIGHT / 2
            text_y = fmt(port.cy + 3.5)

            if is_input:
                type_x = badge_x + badge_width - BADGE_PAD - type_width / 2
                div_x = type_x - type_width / 2 - BADGE_DIVIDER_GAP
                name_x, name_anchor = div_x - BADGE_DIVIDER_GAP, "end"
            else:
                type_x = badge_x + BADGE_PAD + type_width / 2
                div_x = badge_x + BADGE_PAD + type_width + BADGE_DIVIDER_GAP
                name_x, name_anchor = div_x + 1 + BADGE_DIVIDER_GAP, "start"

            type_text = (
                f'      <text class="port-type-label" x="{fmt(type_x)}" y="{text_y}" text-anchor="middle" '
                f'fill="{color}">{_escape(abbrev)}</text>'
            )
            name_text = (
                f'      <text class="port-label" x="{fmt(name_x)}" y="{text_y}" '
                f'text-anchor="{name_anchor}">{_escape(port.label)}</text>'
            )

            parts.append(f'    <g data-port-label="{_port_id(node_id, port)}">')
            parts.append(
                f'      <rect x="{fmt(badge_x)}" y="{fmt(badge_y)}" width="{fmt(badge_width)}" '
                f'height="{BADGE_HEIGHT}" rx="{fmt(BADGE_HEIGHT / 2)}" fill="{theme.node_fill}" '
                f'stroke="{theme.label_badge_border}" stroke-width="1"/>'
            )
            parts.append(
                f'      <line x1="{fmt(div_x)}" y1="{fmt(badge_y + 3)}" x2="{fmt(div_x)}" '
                f'y2="{fmt(badge_y + BADGE_HEIGHT - 3)}" stroke="{theme.label_badge_border}" stroke-width="1"/>'
            )
            parts.extend([name_text, type_text] if is_input else [type_text, name_text])
            parts.append("    </g>")
