"""Renderers: DiagramGraph → SVG, ASCII or text."""

from __future__ import annotations

from typing import Any

from flow_diagram.renderers.ascii import AsciiRenderer, CompactAsciiRenderer
from flow_diagram.renderers.base import Renderer
from flow_diagram.renderers.svg import SvgRenderer
from flow_diagram.renderers.text import TextRenderer
from flow_diagram.types import DiagramGraph

RENDERERS: dict[str, type] = {
    "svg": SvgRenderer,
    "ascii": AsciiRenderer,
    "ascii-compact": CompactAsciiRenderer,
    "text": TextRenderer,
}


def render(graph: DiagramGraph, fmt: str = "svg", **kwargs: Any) -> str:
    """Render `graph` in the named format; keyword arguments go to the renderer."""
    renderer_cls = RENDERERS.get(fmt)
    if renderer_cls is None:
        raise ValueError(f"Unknown render format {fmt!r}, expected one of {', '.join(RENDERERS)}")
    renderer: Renderer = renderer_cls(**kwargs)
    return renderer.render(graph)


__all__ = [
    "RENDERERS",
    "AsciiRenderer",
    "CompactAsciiRenderer",
    "Renderer",
    "SvgRenderer",
    "TextRenderer",
    "render",
]
