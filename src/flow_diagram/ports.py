"""Port ordering — turns declared port metadata into a stable, ordered port list.

Explicit orders win. Mandatory control-flow ports without one get negative
orders so they always lead (execute, then onSuccess, then onFailure; inside a
scope: start, success, failure). Every other port gets the next free
non-negative order in declaration order.
"""

from __future__ import annotations

import copy
import math

from flow_diagram.constants import MANDATORY_PORTS, MANDATORY_SCOPED_PORTS, STEP
from flow_diagram.types import DiagramPort, Direction, PortDefinition


def is_mandatory_port(name: str, scoped: bool) -> bool:
    """True for the control-flow ports every node (or scope) carries."""
    return name in (MANDATORY_SCOPED_PORTS if scoped else MANDATORY_PORTS)


def _mandatory_rank(name: str, scoped: bool) -> int:
    names = MANDATORY_SCOPED_PORTS if scoped else MANDATORY_PORTS
    return names.index(name)


def _free_orders(count: int, used: set[int], start: int, step: int) -> list[int]:
    """Take `count` integers not in `used`, walking from `start` by `step`."""
    result: list[int] = []
    value = start
    while len(result) < count:
        if value not in used:
            result.append(value)
        value += step
    return result


def assign_implicit_port_orders(ports: dict[str, PortDefinition]) -> None:
    """Fill in `order` for every port that lacks one, in place.

    Ports are grouped by scope (external ports form their own group) and
    each group is numbered independently.
    """
    groups: dict[str | None, list[str]] = {}
    for name, definition in ports.items():
        groups.setdefault(definition.scope, []).append(name)

    for scope, names in groups.items():
        scoped = scope is not None
        used = {ports[n].order for n in names if ports[n].order is not None}

        mandatory = [n for n in names if ports[n].order is None and is_mandatory_port(n, scoped)]
        mandatory.sort(key=lambda n: _mandatory_rank(n, scoped))
        # Count down from -1, then hand out ascending so the first mandatory port gets the lowest.
        negatives = sorted(_free_orders(len(mandatory), used, -1, -1))
        for name, order in zip(mandatory, negatives):
            ports[name].order = order
        used.update(negatives)

        regular = [n for n in names if ports[n].order is None]
        for name, order in zip(regular, _free_orders(len(regular), used, 0, 1)):
            ports[name].order = order
            used.add(order)


def ordered_ports(ports: dict[str, PortDefinition], direction: Direction) -> list[DiagramPort]:
    """Build DiagramPort stubs sorted by resolved order.

    The caller's definitions are never modified; ordering runs on a deep copy.
    Sorting is stable, so equal orders keep declaration order.
    """
    cloned = copy.deepcopy(ports)
    assign_implicit_port_orders(cloned)

    entries = sorted(cloned.items(), key=lambda item: item[1].order if item[1].order is not None else math.inf)
    return [
        DiagramPort(
            name=name,
            label=definition.label or name,
            data_type=definition.data_type,
            direction=direction,
            is_control_flow=definition.data_type == STEP,
            is_failure=definition.failure,
            scope=definition.scope,
        )
        for name, definition in entries
    ]
