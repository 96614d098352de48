"""Structured text renderer — a plain listing of nodes, ports and connections."""

from __future__ import annotations

from flow_diagram.renderers.ascii import connected_ports, port_symbol
from flow_diagram.types import DiagramGraph, DiagramNode

STEP_ARROW = "━━▶"
DATA_ARROW = "──▶"


def _port_list(node: DiagramNode, ports, connected: set[str]) -> str:
    if not ports:
        return ""
    return "[" + ", ".join(f"{p.name}{port_symbol(node.id, p, connected)}" for p in ports) + "]"


class TextRenderer:
    """Render the graph as `Nodes:` and `Connections:` sections."""

    def render(self, graph: DiagramGraph) -> str:
        connected = connected_ports(graph.connections)
        lines = [graph.workflow_name, "═" * len(graph.workflow_name), "", "Nodes:"]

        width = max([len(n.label) for n in graph.nodes] + [5])
        for node in graph.nodes:
            label = node.label.ljust(width)
            inputs = _port_list(node, node.inputs, connected)
            outputs = _port_list(node, node.outputs, connected)
            if inputs and outputs:
                lines.append(f"  {label}  {inputs} → {outputs}")
            elif inputs or outputs:
                lines.append(f"  {label}  {inputs or outputs}")
            else:
                lines.append(f"  {label}")
            if node.scope_children:
                lines.append(f"  {' ' * width}    scope: {', '.join(c.label for c in node.scope_children)}")

        if graph.connections:
            lines.append("")
            lines.append("Connections:")
            from_width = max(len(f"{c.from_node}.{c.from_port}") for c in graph.connections)
            for conn in graph.connections:
                source = f"{conn.from_node}.{conn.from_port}".ljust(from_width)
                arrow = STEP_ARROW if conn.is_step_connection else DATA_ARROW
                suffix = "  STEP" if conn.is_step_connection else ""
                lines.append(f"  {source}  {arrow} {conn.to_node}.{conn.to_port}{suffix}")

        return "\n".join(lines)
