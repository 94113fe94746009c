"""Circuit tree — arena-backed nodes and electrical propagation.

Nodes live in a ``NodeArena`` keyed by integer handles. A node owns its
children through the arena; ``parent`` is a plain handle used for upward
walks. Both propagation passes are iterative so long chains never run
into the recursion limit.

Propagation model (DC, round trip):
  drop = 2 × I × R/1000 × d
where I is the current through the segment (the node's accumulated
load), R is ohms per 1000 ft of one conductor and d is the segment
length in feet.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from firewire.schemas.circuit import CircuitParameters, DeviceRecord


class NodeType(str, Enum):
    ROOT = "Root"
    DEVICE = "Device"


@dataclass
class CircuitNode:
    handle: int
    node_type: NodeType
    identifier: str | None = None
    device: DeviceRecord | None = None
    parent: int | None = None
    children: list[int] = field(default_factory=list)
    is_branch_device: bool = False
    distance_from_parent: float = 0.0
    sequence_number: int = 0

    # Derived; valid only right after a recompute
    accumulated_load: float = 0.0
    voltage: float = 0.0
    voltage_drop: float = 0.0

    @property
    def is_root(self) -> bool:
        return self.node_type == NodeType.ROOT

    @property
    def own_current(self) -> float:
        if self.device is None:
            return 0.0
        return self.device.alarm_current

    @property
    def name(self) -> str:
        if self.is_root:
            return "Supply Panel"
        if self.device is not None:
            return self.device.name
        return f"Device_{self.identifier}"


def segment_voltage_drop(load: float, distance: float, resistance: float) -> float:
    """Round-trip drop across one cable run."""
    if distance <= 0 or load <= 0:
        return 0.0
    return 2.0 * load * resistance / 1000.0 * distance


class NodeArena:
    """Indexed node storage with parent/child links as handles."""

    def __init__(self) -> None:
        self._nodes: dict[int, CircuitNode] = {}
        self._next_handle = 0

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, handle: object) -> bool:
        return handle in self._nodes

    def __getitem__(self, handle: int) -> CircuitNode:
        return self._nodes[handle]

    def __iter__(self) -> Iterator[CircuitNode]:
        return iter(self._nodes.values())

    # ─── Construction ───

    def create(self, node_type: NodeType, **attrs) -> CircuitNode:
        node = CircuitNode(handle=self._next_handle, node_type=node_type, **attrs)
        self._nodes[node.handle] = node
        self._next_handle += 1
        return node

    def attach(self, parent: CircuitNode, child: CircuitNode) -> None:
        """Append ``child`` as the last child of ``parent``."""
        if child.parent is not None:
            raise ValueError(f"Node {child.handle} already has a parent")
        child.parent = parent.handle
        parent.children.append(child.handle)

    def detach_subtree(self, node: CircuitNode) -> list[CircuitNode]:
        """Unlink ``node`` from its parent and drop it and every descendant.

        Returns the removed nodes in pre-order.
        """
        removed = list(self.walk_preorder(node))
        if node.parent is not None:
            self._nodes[node.parent].children.remove(node.handle)
        for n in removed:
            del self._nodes[n.handle]
        node.parent = None
        return removed

    # ─── Navigation ───

    def parent_of(self, node: CircuitNode) -> CircuitNode | None:
        if node.parent is None:
            return None
        return self._nodes[node.parent]

    def children_of(self, node: CircuitNode) -> list[CircuitNode]:
        return [self._nodes[h] for h in node.children]

    def walk_preorder(self, start: CircuitNode) -> Iterator[CircuitNode]:
        """Parents before children, siblings in wiring order."""
        stack = [start.handle]
        while stack:
            node = self._nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def walk_postorder(self, start: CircuitNode) -> Iterator[CircuitNode]:
        """Children before parents."""
        order = list(self.walk_preorder(start))
        return reversed(order)

    def path_to_root(self, node: CircuitNode) -> list[CircuitNode]:
        path = [node]
        while path[-1].parent is not None:
            path.append(self._nodes[path[-1].parent])
        path.reverse()
        return path

    def depth(self, node: CircuitNode) -> int:
        return len(self.path_to_root(node)) - 1

    def leaves(self, start: CircuitNode) -> list[CircuitNode]:
        return [n for n in self.walk_preorder(start) if not n.children]


# ═══════════════════════════════════════════════════════════
# Propagation passes
# ═══════════════════════════════════════════════════════════


def accumulate_loads(arena: NodeArena, root: CircuitNode) -> None:
    """Post-order: each node carries its own draw plus everything downstream."""
    for node in arena.walk_postorder(root):
        node.accumulated_load = node.own_current + sum(
            arena[h].accumulated_load for h in node.children
        )


def propagate_voltages(
    arena: NodeArena, root: CircuitNode, parameters: CircuitParameters
) -> None:
    """Pre-order: subtract each segment's drop from the upstream voltage.

    Loads must already be accumulated.
    """
    resistance = parameters.resistance
    for node in arena.walk_preorder(root):
        if node is root or node.parent is None:
            upstream = parameters.system_voltage
            distance = parameters.supply_distance
        else:
            upstream = arena[node.parent].voltage
            distance = node.distance_from_parent
        node.voltage_drop = segment_voltage_drop(
            node.accumulated_load, distance, resistance
        )
        node.voltage = upstream - node.voltage_drop


def recompute(
    arena: NodeArena, root: CircuitNode, parameters: CircuitParameters
) -> None:
    accumulate_loads(arena, root)
    propagate_voltages(arena, root, parameters)
