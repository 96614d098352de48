"""Build a Workflow from the plain-dict (JSON) form the graph parser emits.

Keys are camelCase, as in the parser output:

    {
      "name": "checkout",
      "startPorts": {"orderId": {"dataType": "STRING"}},
      "exitPorts": {...},
      "nodeTypes": [{"name": "charge", "inputs": {...}, "outputs": {...},
                     "hasSuccessPort": true, "visuals": {"color": "blue"}}],
      "instances": [{"id": "c1", "nodeType": "charge",
                     "config": {"label": "Charge", "x": 0, "y": 0}}],
      "connections": [{"from": {"node": "Start", "port": "execute"},
                       "to": {"node": "c1", "port": "execute"}}],
      "scopes": {"loop.iteration": ["c1"]},
      "ui": {"startNode": {"x": 0, "y": 0}}
    }

Everything except instance ids, node type names, instance node types and
connection endpoints is optional. A missing required key raises ValueError.
"""

from __future__ import annotations

from typing import Any

from flow_diagram.types import (
    Connection,
    NodeInstance,
    NodeType,
    PortDefinition,
    PortRef,
    Position,
    Workflow,
)


def _require(data: dict[str, Any], key: str, what: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise ValueError(f"{what} is missing required key {key!r}: {data!r}")
    return value


def port_from_dict(data: dict[str, Any]) -> PortDefinition:
    metadata = data.get("metadata") or {}
    order = data.get("order", metadata.get("order"))
    return PortDefinition(
        data_type=data.get("dataType", "ANY"),
        label=data.get("label"),
        optional=bool(data.get("optional", False)),
        order=int(order) if order is not None else None,
        scope=data.get("scope"),
        is_control_flow=bool(data.get("isControlFlow", False)),
        failure=bool(data.get("failure", False)),
    )


def ports_from_dict(data: dict[str, Any] | None) -> dict[str, PortDefinition]:
    return {name: port_from_dict(definition or {}) for name, definition in (data or {}).items()}


def node_type_from_dict(data: dict[str, Any]) -> NodeType:
    visuals = data.get("visuals") or {}
    return NodeType(
        name=_require(data, "name", "node type"),
        inputs=ports_from_dict(data.get("inputs")),
        outputs=ports_from_dict(data.get("outputs")),
        function_name=data.get("functionName"),
        label=data.get("label"),
        color=visuals.get("color", data.get("color")),
        icon=visuals.get("icon", data.get("icon")),
        variant=data.get("variant"),
        has_success_port=bool(data.get("hasSuccessPort", False)),
        has_failure_port=bool(data.get("hasFailurePort", False)),
        expression=bool(data.get("expression", False)),
    )


def instance_from_dict(data: dict[str, Any]) -> NodeInstance:
    config = data.get("config") or {}
    return NodeInstance(
        id=_require(data, "id", "instance"),
        node_type=_require(data, "nodeType", "instance"),
        label=config.get("label"),
        color=config.get("color"),
        icon=config.get("icon"),
        x=config.get("x"),
        y=config.get("y"),
        width=config.get("width"),
        height=config.get("height"),
    )


def _port_ref(data: dict[str, Any] | None, what: str) -> PortRef:
    if not data:
        raise ValueError(f"connection is missing its {what!r} endpoint")
    return PortRef(
        node=_require(data, "node", f"connection {what}"),
        port=_require(data, "port", f"connection {what}"),
        scope=data.get("scope"),
    )


def connection_from_dict(data: dict[str, Any]) -> Connection:
    return Connection(source=_port_ref(data.get("from"), "from"), target=_port_ref(data.get("to"), "to"))


def _position(data: dict[str, Any] | None) -> Position | None:
    if not data or data.get("x") is None or data.get("y") is None:
        return None
    return Position(float(data["x"]), float(data["y"]))


def workflow_from_dict(data: dict[str, Any]) -> Workflow:
    """Build a Workflow from parser output; see the module docstring for the shape."""
    if not isinstance(data, dict):
        raise ValueError(f"expected a workflow dict, got {type(data).__name__}")
    ui = data.get("ui") or {}
    return Workflow(
        name=data.get("name", ""),
        start_ports=ports_from_dict(data.get("startPorts")),
        exit_ports=ports_from_dict(data.get("exitPorts")),
        instances=[instance_from_dict(inst) for inst in data.get("instances") or []],
        node_types=[node_type_from_dict(nt) for nt in data.get("nodeTypes") or []],
        connections=[connection_from_dict(conn) for conn in data.get("connections") or []],
        scopes={key: list(children) for key, children in (data.get("scopes") or {}).items()},
        start_position=_position(ui.get("startNode")),
        exit_position=_position(ui.get("exitNode")),
    )
