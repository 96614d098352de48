"""Types for the diagram pipeline.

Two halves:
  * the input description handed over by the graph parser (Workflow and the
    node types, instances and connections it references);
  * the output model (DiagramGraph) that every renderer consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from flow_diagram.paths import ConnectionPath

Direction = Literal["INPUT", "OUTPUT"]

# ─── Input Description ────────────────────────────────────────────────────────


@dataclass
class PortDefinition:
    """Declared metadata of one port on a node type (or on Start/Exit)."""

    data_type: str = "ANY"
    label: str | None = None
    optional: bool = False
    order: int | None = None
    scope: str | None = None
    is_control_flow: bool = False
    failure: bool = False


@dataclass
class NodeType:
    """A reusable node definition: its ports, capabilities and visual defaults."""

    name: str
    inputs: dict[str, PortDefinition] = field(default_factory=dict)
    outputs: dict[str, PortDefinition] = field(default_factory=dict)
    function_name: str | None = None
    label: str | None = None
    color: str | None = None
    icon: str | None = None
    variant: str | None = None
    has_success_port: bool = False
    has_failure_port: bool = False
    # Expression nodes are pure data transforms with no control-flow ports.
    expression: bool = False


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass
class NodeInstance:
    """One use of a node type in a workflow, with optional visual overrides.

    x/y are a caller-persisted position (both are needed to count as one);
    width/height a persisted size for scope-expanded parents.
    """

    id: str
    node_type: str
    label: str | None = None
    color: str | None = None
    icon: str | None = None
    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None

    @property
    def position(self) -> Position | None:
        if self.x is None or self.y is None:
            return None
        return Position(self.x, self.y)


@dataclass(frozen=True)
class PortRef:
    """One endpoint of a connection; scope qualifies a port facing into a scope."""

    node: str
    port: str
    scope: str | None = None


@dataclass(frozen=True)
class Connection:
    source: PortRef
    target: PortRef


@dataclass
class Workflow:
    """The graph description to lay out.

    scopes maps "parentId.scopeName" to the ordered ids of that scope's children.
    """

    name: str
    start_ports: dict[str, PortDefinition] = field(default_factory=dict)
    exit_ports: dict[str, PortDefinition] = field(default_factory=dict)
    instances: list[NodeInstance] = field(default_factory=list)
    node_types: list[NodeType] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    scopes: dict[str, list[str]] = field(default_factory=dict)
    start_position: Position | None = None
    exit_position: Position | None = None

    def instance(self, node_id: str) -> NodeInstance | None:
        for inst in self.instances:
            if inst.id == node_id:
                return inst
        return None

    def node_type_map(self) -> dict[str, NodeType]:
        """Index node types by name, and by function name where that differs."""
        result: dict[str, NodeType] = {}
        for nt in self.node_types:
            result[nt.name] = nt
            if nt.function_name and nt.function_name != nt.name:
                result.setdefault(nt.function_name, nt)
        return result


# ─── Output Model ─────────────────────────────────────────────────────────────


@dataclass
class DiagramPort:
    """A placed port. (cx, cy) is the centre of its dot."""

    name: str
    label: str
    data_type: str
    direction: Direction
    is_control_flow: bool = False
    is_failure: bool = False
    scope: str | None = None
    cx: float = 0.0
    cy: float = 0.0

    def translate(self, dx: float, dy: float) -> None:
        self.cx += dx
        self.cy += dy


@dataclass
class ScopePorts:
    """Boundary ports of a scope: outputs sit on the inner left edge, inputs on the inner right."""

    inputs: list[DiagramPort] = field(default_factory=list)
    outputs: list[DiagramPort] = field(default_factory=list)


@dataclass
class DiagramConnection:
    from_node: str
    from_port: str
    to_node: str
    to_port: str
    source_color: str
    target_color: str
    is_step_connection: bool
    path: ConnectionPath


@dataclass
class ScopeRegion:
    """One named scope of a parent node.

    Child positions are local to the region until the scope is finalized;
    offset_y is the region's distance from the top of the parent box.
    """

    name: str
    children: list[DiagramNode] = field(default_factory=list)
    ports: ScopePorts = field(default_factory=ScopePorts)
    connections: list[DiagramConnection] = field(default_factory=list)
    children_width: float = 0.0
    children_height: float = 0.0
    width: float = 0.0
    height: float = 0.0
    offset_y: float = 0.0


@dataclass
class DiagramNode:
    id: str
    label: str
    color: str
    icon: str
    is_virtual: bool = False
    inputs: list[DiagramPort] = field(default_factory=list)
    outputs: list[DiagramPort] = field(default_factory=list)
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    scopes: list[ScopeRegion] = field(default_factory=list)

    @property
    def scope_children(self) -> list[DiagramNode]:
        return [child for region in self.scopes for child in region.children]

    @property
    def scope_ports(self) -> ScopePorts | None:
        if not self.scopes:
            return None
        return ScopePorts(
            inputs=[p for region in self.scopes for p in region.ports.inputs],
            outputs=[p for region in self.scopes for p in region.ports.outputs],
        )

    @property
    def scope_connections(self) -> list[DiagramConnection]:
        return [conn for region in self.scopes for conn in region.connections]

    def input(self, name: str) -> DiagramPort | None:
        return next((p for p in self.inputs if p.name == name), None)

    def output(self, name: str) -> DiagramPort | None:
        return next((p for p in self.outputs if p.name == name), None)

    def box(self) -> NodeBox:
        return NodeBox(id=self.id, x=self.x, y=self.y, width=self.width, height=self.height)

    def translate(self, dx: float, dy: float) -> None:
        """Move the node, its ports and all scope content by (dx, dy)."""
        self.x += dx
        self.y += dy
        for port in self.inputs + self.outputs:
            port.translate(dx, dy)
        for region in self.scopes:
            for child in region.children:
                child.translate(dx, dy)
            for port in region.ports.inputs + region.ports.outputs:
                port.translate(dx, dy)
            for conn in region.connections:
                conn.path = conn.path.translated(dx, dy)


@dataclass(frozen=True)
class NodeBox:
    """Axis-aligned node rectangle used as a routing obstacle."""

    id: str
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Bounds:
    """Canvas size. Content starts at the origin, so (0, 0) is the top-left corner."""

    width: float
    height: float


@dataclass
class DiagramGraph:
    nodes: list[DiagramNode]
    connections: list[DiagramConnection]
    workflow_name: str
    bounds: Bounds

    def node(self, node_id: str) -> DiagramNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def all_connections(self) -> list[DiagramConnection]:
        """Top-level connections followed by every node's scope connections."""
        result = list(self.connections)
        for node in self.nodes:
            result.extend(node.scope_connections)
        return result
