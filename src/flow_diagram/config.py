"""Configuration for diagram assembly and connection routing."""

from __future__ import annotations

from dataclasses import dataclass

THEMES: tuple[str, ...] = ("dark", "light")


@dataclass(frozen=True)
class DiagramOptions:
    """Options for build_diagram_graph.

    theme only affects colour resolution, never geometry. padding is the
    empty margin kept around the content after normalization.
    """

    theme: str = "dark"
    padding: float = 40.0

    def __post_init__(self) -> None:
        if self.theme not in THEMES:
            raise ValueError(f"Unknown theme {self.theme!r}, expected one of {', '.join(THEMES)}")
        if self.padding < 0:
            raise ValueError(f"padding must be non-negative, got {self.padding}")


@dataclass(frozen=True)
class RouteOptions:
    """Tuning for the orthogonal router.

    Attributes:
        corner_radius: Radius of rounded bends.
        padding: Clearance kept around node boxes.
        stub_length: Straight run leaving a source port / entering a target port.
        stub_spacing: Extra stub length per port index, so fans at one node separate.
        max_stub_length: Cap on the stub length.
    """

    corner_radius: float = 10.0
    padding: float = 15.0
    stub_length: float = 20.0
    stub_spacing: float = 12.0
    max_stub_length: float = 80.0

    def stub_for(self, port_index: int) -> float:
        return min(self.stub_length + port_index * self.stub_spacing, self.max_stub_length)
