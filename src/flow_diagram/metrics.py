"""Text measurement for port label badges.

Widths are per-character advances of the 10 px, 600-weight label font, so
layout can reserve room for labels without a font engine.
"""

from __future__ import annotations

from collections.abc import Iterable

from flow_diagram.constants import PORT_RADIUS
from flow_diagram.theme import type_abbreviation
from flow_diagram.types import DiagramPort

CHAR_WIDTHS: dict[str, float] = {
    " ": 2.78, "!": 3.34, '"': 4.74, "#": 5.56, "$": 5.56, "%": 8.9, "&": 7.23,
    "'": 2.38, "(": 3.34, ")": 3.34, "*": 3.9, "+": 5.84, ",": 2.78, "-": 3.34,
    ".": 2.78, "/": 3.95, "0": 5.56, "1": 5.56, "2": 5.56, "3": 5.56, "4": 5.56,
    "5": 5.56, "6": 5.56, "7": 5.56, "8": 5.56, "9": 5.56, ":": 3.34, ";": 3.34,
    "<": 5.86, "=": 5.84, ">": 5.86, "?": 6.11, "@": 9.76,
    "A": 7.23, "B": 7.23, "C": 7.23, "D": 7.23, "E": 6.67, "F": 6.11, "G": 7.78, "H": 7.23,
    "I": 2.78, "J": 5.56, "K": 7.23, "L": 6.11, "M": 8.34, "N": 7.23, "O": 7.78, "P": 6.67,
    "Q": 7.78, "R": 7.23, "S": 6.67, "T": 6.11, "U": 7.23, "V": 6.67, "W": 9.45, "X": 6.67,
    "Y": 6.67, "Z": 6.11, "[": 3.34, "\\": 3.95, "]": 3.34, "^": 5.84, "_": 5.56, "`": 3.58,
    "a": 5.56, "b": 6.11, "c": 5.56, "d": 6.11, "e": 5.56, "f": 3.34, "g": 6.11, "h": 6.11,
    "i": 2.78, "j": 2.78, "k": 5.56, "l": 2.78, "m": 8.9, "n": 6.11, "o": 6.11, "p": 6.11,
    "q": 6.11, "r": 3.9, "s": 5.56, "t": 3.34, "u": 6.11, "v": 5.56, "w": 7.78, "x": 5.56,
    "y": 5.56, "z": 5.0, "{": 3.9, "|": 2.8, "}": 3.9, "~": 5.96,
}  # fmt: skip
DEFAULT_CHAR_WIDTH = 5.56

# Badge layout: pad | type | gap | divider | gap | label | pad
BADGE_PAD = 7
BADGE_DIVIDER_GAP = 4
BADGE_HEIGHT = 16
BADGE_GAP = 5  # between the port dot edge and the badge


def measure_text(text: str) -> float:
    return sum(CHAR_WIDTHS.get(ch, DEFAULT_CHAR_WIDTH) for ch in text)


def port_badge_width(port: DiagramPort) -> float:
    type_width = measure_text(type_abbreviation(port.data_type))
    label_width = measure_text(port.label)
    return BADGE_PAD + type_width + BADGE_DIVIDER_GAP + 1 + BADGE_DIVIDER_GAP + label_width + BADGE_PAD


def port_label_extent(port: DiagramPort) -> float:
    """Distance from the port dot centre to the far end of its label badge."""
    return PORT_RADIUS + BADGE_GAP + port_badge_width(port)


def max_port_label_extent(ports: Iterable[DiagramPort]) -> float:
    return max((port_label_extent(p) for p in ports), default=0.0)
