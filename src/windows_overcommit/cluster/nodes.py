"""Node capacity discovery.

Only nodes carrying the configured image label count toward the capacity
available to Windows guests.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from kubernetes.utils import parse_quantity

from windows_overcommit.common.config import NodeFilterConfig


@dataclass(frozen=True)
class Node:
    """A cluster compute host."""
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    cpu_capacity: int = 0


def parse_cpu_capacity(quantity: Any) -> int:
    """Convert a CPU quantity such as ``"8"`` or ``"7500m"`` to whole CPUs.

    Fractional values round up.
    """
    if quantity is None or quantity == "":
        return 0
    return int(math.ceil(parse_quantity(quantity)))


def node_from_api(obj: Any) -> Node:
    """Convert a ``V1Node`` from the kubernetes client into a Node."""
    metadata = obj.metadata
    capacity = (obj.status.capacity if obj.status else None) or {}
    return Node(
        name=metadata.name or "",
        labels=dict(metadata.labels or {}),
        cpu_capacity=parse_cpu_capacity(capacity.get("cpu")),
    )


def node_from_dict(obj: Dict[str, Any]) -> Node:
    """Build a Node from a plain manifest dictionary."""
    metadata = obj.get("metadata") or {}
    capacity = (obj.get("status") or {}).get("capacity") or {}
    return Node(
        name=metadata.get("name", ""),
        labels={str(k): str(v) for k, v in (metadata.get("labels") or {}).items()},
        cpu_capacity=parse_cpu_capacity(capacity.get("cpu")),
    )


def filter_nodes(nodes: Iterable[Node], node_filter: NodeFilterConfig) -> List[Node]:
    """Return the nodes whose filter label holds one of the accepted values.

    The input is left untouched and input order is preserved.
    """
    accepted = set(node_filter.label_values)
    filtered = []
    for node in nodes:
        value = node.labels.get(node_filter.label_key, "")
        if not value:
            continue
        if value in accepted:
            filtered.append(node)
    return filtered


def total_capacity(nodes: Iterable[Node]) -> int:
    return sum(node.cpu_capacity for node in nodes)
