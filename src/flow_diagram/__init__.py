"""flow_diagram — layered layout and orthogonal routing for port-based workflow diagrams."""

from flow_diagram.config import DiagramOptions, RouteOptions
from flow_diagram.graph import build_diagram_graph
from flow_diagram.loader import workflow_from_dict
from flow_diagram.renderers import render
from flow_diagram.types import (
    Bounds,
    Connection,
    DiagramConnection,
    DiagramGraph,
    DiagramNode,
    DiagramPort,
    NodeInstance,
    NodeType,
    PortDefinition,
    PortRef,
    Position,
    Workflow,
)

__version__ = "0.1.0"

__all__ = [
    "Bounds",
    "Connection",
    "DiagramConnection",
    "DiagramGraph",
    "DiagramNode",
    "DiagramOptions",
    "DiagramPort",
    "NodeInstance",
    "NodeType",
    "PortDefinition",
    "PortRef",
    "Position",
    "RouteOptions",
    "Workflow",
    "build_diagram_graph",
    "render",
    "workflow_from_dict",
]
