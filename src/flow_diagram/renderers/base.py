"""Base renderer protocol."""

from __future__ import annotations

from typing import Protocol

from flow_diagram.types import DiagramGraph


class Renderer(Protocol):
    """Protocol that all renderers must implement."""

    def render(self, graph: DiagramGraph) -> str:
        """Render a laid-out diagram to an output string."""
        ...
