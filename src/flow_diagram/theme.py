"""Colour and icon tables for the dark and light themes.

Layout code only ever calls the lookup functions here; geometry never depends
on the theme.
"""

from __future__ import annotations

from dataclasses import dataclass

from flow_diagram.constants import DEFAULT_NODE_COLOR


@dataclass(frozen=True)
class ThemePalette:
    background: str
    dot_color: str
    node_fill: str
    node_icon_color: str
    label_color: str
    label_badge_fill: str
    label_badge_border: str
    scope_area_stroke: str


DARK = ThemePalette(
    background="#0f172a",
    dot_color="#1e293b",
    node_fill="#1e293b",
    node_icon_color="#94a3b8",
    label_color="#e2e8f0",
    label_badge_fill="#0f172a",
    label_badge_border="#475569",
    scope_area_stroke="#64748b",
)

LIGHT = ThemePalette(
    background="#f8fafc",
    dot_color="#cbd5e1",
    node_fill="#ffffff",
    node_icon_color="#475569",
    label_color="#1e293b",
    label_badge_fill="#ffffff",
    label_badge_border="#cbd5e1",
    scope_area_stroke="#94a3b8",
)

TYPE_ABBREVIATIONS: dict[str, str] = {
    "STEP": "STEP",
    "STRING": "STR",
    "NUMBER": "NUM",
    "BOOLEAN": "BOOL",
    "OBJECT": "OBJ",
    "ARRAY": "ARR",
    "FUNCTION": "FN",
    "ANY": "ANY",
}

# data type -> (dark, light)
_PORT_COLORS: dict[str, tuple[str, str]] = {
    "STEP": ("#8e9eff", "#5468ff"),
    "STRING": ("#fbbf24", "#d97706"),
    "NUMBER": ("#34d399", "#059669"),
    "BOOLEAN": ("#f472b6", "#db2777"),
    "OBJECT": ("#60a5fa", "#2563eb"),
    "ARRAY": ("#a78bfa", "#7c3aed"),
    "FUNCTION": ("#2dd4bf", "#0d9488"),
    "ANY": ("#94a3b8", "#64748b"),
}
_FAILURE_COLORS: tuple[str, str] = ("#f87171", "#dc2626")
_RING_COLORS: tuple[str, str] = ("#0f172a", "#ffffff")


@dataclass(frozen=True)
class VariantColor:
    border: str
    dark_border: str


NODE_VARIANT_COLORS: dict[str, VariantColor] = {
    "blue": VariantColor(border="#2563eb", dark_border="#60a5fa"),
    "purple": VariantColor(border="#7c3aed", dark_border="#a78bfa"),
    "green": VariantColor(border="#059669", dark_border="#34d399"),
    "orange": VariantColor(border="#ea580c", dark_border="#fb923c"),
    "pink": VariantColor(border="#db2777", dark_border="#f472b6"),
    "red": VariantColor(border="#dc2626", dark_border="#f87171"),
    "teal": VariantColor(border="#0d9488", dark_border="#2dd4bf"),
    "yellow": VariantColor(border="#ca8a04", dark_border="#facc15"),
}

# Icon outlines in a 960 x 960 box with the origin at the bottom-left (viewBox "0 -960 960 960").
NODE_ICON_PATHS: dict[str, str] = {
    "code": "M320-240 80-480l240-240 57 57-184 184 183 183-56 56Zm320 0-57-57 184-184-183-183 56-56 240 240-240 240Z",
    "flow": "M160-120v-240h120v-80H160v-240h280v240H320v80h320v-80H520v-240h280v240H680v80h120v240H520v-240h120v-80H320v80h120v240H160Z",
    "startNode": "M320-200v-560l440 280-440 280Z",
    "exitNode": "M240-240v-480h480v480H240Z",
}


def get_theme(theme: str) -> ThemePalette:
    return LIGHT if theme == "light" else DARK


def get_port_color(data_type: str, is_failure: bool = False, theme: str = "dark") -> str:
    """Colour of a port dot and of connections leaving/entering it."""
    idx = 1 if theme == "light" else 0
    if is_failure:
        return _FAILURE_COLORS[idx]
    return _PORT_COLORS.get(data_type, _PORT_COLORS["ANY"])[idx]


def get_port_ring_color(theme: str = "dark") -> str:
    """Ring drawn around every port dot; only the theme changes it."""
    return _RING_COLORS[1 if theme == "light" else 0]


def type_abbreviation(data_type: str) -> str:
    return TYPE_ABBREVIATIONS.get(data_type, data_type)


def resolve_node_color(color: str | None, theme: str = "dark") -> str:
    """Map a colour token to a border colour.

    Variant names ("blue", "purple", ...) resolve through the variant table;
    anything else is taken as a literal colour.
    """
    if not color:
        return DEFAULT_NODE_COLOR
    variant = NODE_VARIANT_COLORS.get(color)
    if variant is not None:
        return variant.dark_border if theme == "dark" else variant.border
    return color
