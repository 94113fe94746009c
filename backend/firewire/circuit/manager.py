"""Circuit Manager — topology and electrical state of one notification circuit.

Owns the node arena, the flattened main-circuit sequence, the T-tap
registry and the device registry, and keeps the three views consistent
across every mutation.

Mutations never recompute on their own. Callers batch edits and then run
``recalculate()`` before reading ``accumulated_load``/``voltage``.

Failures are expected user-editing mistakes, so mutations report them as
a False/None return and leave the reason on ``last_error``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Iterator

from firewire.circuit.devices import estimate_segment_length
from firewire.circuit.errors import (
    E_CIRCUIT_FULL,
    E_DUPLICATE_DEVICE,
    E_NO_ACTIVE_TAP,
    E_NOT_ON_MAIN,
    E_UNKNOWN_DEVICE,
    E_WRONG_MODE,
    StructuralError,
)
from firewire.circuit.tree import (
    CircuitNode,
    NodeArena,
    NodeType,
    recompute,
    segment_voltage_drop,
)
from firewire.schemas.circuit import CircuitParameters, DeviceRecord
from firewire.schemas.report import CircuitStatistics

if TYPE_CHECKING:
    from firewire.schemas.configuration import CircuitConfiguration

logger = logging.getLogger(__name__)

ConnectionResolver = Callable[[str], object | None]


def next_branch_name(taken: Iterable[str], start: int) -> str:
    """First "T-Tap {n}" from ``start`` upward that is not already taken."""
    taken = set(taken)
    n = start
    while f"T-Tap {n}" in taken:
        n += 1
    return f"T-Tap {n}"


class CircuitMode(str, Enum):
    MAIN = "main"
    BRANCH = "branch"


@dataclass
class RemovalResult:
    """Where a removed device used to sit, for restoring external state."""

    identifier: str
    location: str  # "main" or the T-Tap name
    position: int  # 1-based within its chain
    tap_point: str | None = None
    removed: list[str] = field(default_factory=list)


class CircuitManager:
    def __init__(
        self,
        parameters: CircuitParameters | None = None,
        max_devices: int | None = None,
    ):
        self.parameters = parameters or CircuitParameters()
        self.max_devices = max_devices
        self.last_error: StructuralError | None = None
        self._reset()

    def _reset(self) -> None:
        self._arena = NodeArena()
        self.root: CircuitNode = self._arena.create(NodeType.ROOT)
        self._handles: dict[str, int] = {}
        self.mode = CircuitMode.MAIN
        self.main_circuit: list[str] = []
        self.branches: dict[str, list[str]] = {}
        self.branch_names: dict[str, str] = {}
        self.device_data: dict[str, DeviceRecord] = {}
        self.active_tap_point: str | None = None
        self._stale = True

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._handles

    def __repr__(self) -> str:
        return (
            f"<CircuitManager main={len(self.main_circuit)} "
            f"branches={len(self.branches)} mode={self.mode.value}>"
        )

    # ─── Error reporting ───

    def _fail(self, code: str, message: str, identifier: str | None = None) -> None:
        self.last_error = StructuralError(code, message, identifier)
        logger.warning("Circuit edit rejected [%s]: %s", code, message)

    def _check_insertable(self, identifier: str, expected: CircuitMode) -> bool:
        if self.mode != expected:
            self._fail(
                E_WRONG_MODE,
                f"Cannot add {identifier} to {expected.value} circuit "
                f"while in {self.mode.value} mode",
                identifier,
            )
            return False
        if identifier in self._handles:
            self._fail(
                E_DUPLICATE_DEVICE,
                f"Device {identifier} is already in the circuit",
                identifier,
            )
            return False
        if self.max_devices is not None and len(self._handles) >= self.max_devices:
            self._fail(
                E_CIRCUIT_FULL,
                f"Circuit already holds the maximum of {self.max_devices} devices",
                identifier,
            )
            return False
        return True

    # ─── Node access ───

    @property
    def arena(self) -> NodeArena:
        return self._arena

    @property
    def is_stale(self) -> bool:
        return self._stale

    def find_node(self, identifier: str) -> CircuitNode | None:
        handle = self._handles.get(identifier)
        if handle is None:
            return None
        return self._arena[handle]

    def parent_of(self, node: CircuitNode) -> CircuitNode | None:
        return self._arena.parent_of(node)

    def children_of(self, node: CircuitNode) -> list[CircuitNode]:
        return self._arena.children_of(node)

    def iter_nodes(self) -> Iterator[CircuitNode]:
        """Every node, Root first, in wiring order."""
        return self._arena.walk_preorder(self.root)

    def device_nodes(self) -> list[CircuitNode]:
        return [n for n in self.iter_nodes() if not n.is_root]

    def leaf_nodes(self) -> list[CircuitNode]:
        return [n for n in self._arena.leaves(self.root) if not n.is_root]

    def member_identifiers(self) -> set[str]:
        """Identifiers currently wired into the circuit (for highlighting)."""
        return set(self._handles)

    def get_branch_devices(self, tap_point: str) -> list[str]:
        return list(self.branches.get(tap_point, []))

    def branch_of(self, identifier: str) -> str | None:
        """Tap point whose branch list holds ``identifier``."""
        for tap, members in self.branches.items():
            if identifier in members:
                return tap
        return None

    def tree_main_sequence(self) -> list[str]:
        """Main-chain identifiers as the tree holds them, in wiring order."""
        return [
            n.identifier
            for n in self.iter_nodes()
            if not n.is_root and not n.is_branch_device and n.identifier is not None
        ]

    def tree_branch_sequence(self, tap_point: str) -> list[str]:
        """Branch identifiers hanging off ``tap_point`` as the tree holds them."""
        tap = self.find_node(tap_point)
        if tap is None:
            return []
        members: list[str] = []
        for child in self.children_of(tap):
            if not child.is_branch_device:
                continue
            for node in self._arena.walk_preorder(child):
                if node.is_branch_device and node.identifier is not None:
                    members.append(node.identifier)
        return members

    def forked_nodes(self) -> list[CircuitNode]:
        """Nodes where a chain splits.

        A main node (or the panel) feeds at most one main device and one
        T-tap. A branch device feeds at most one branch device. The panel
        never feeds a branch directly.
        """
        forks: list[CircuitNode] = []
        for node in self.iter_nodes():
            children = self.children_of(node)
            if node.is_branch_device:
                forked = len(children) > 1
            else:
                branch = sum(1 for c in children if c.is_branch_device)
                main = len(children) - branch
                forked = main > 1 or branch > 1 or (node.is_root and branch > 0)
            if forked:
                forks.append(node)
        return forks

    def _main_tail(self) -> CircuitNode:
        if not self.main_circuit:
            return self.root
        return self._arena[self._handles[self.main_circuit[-1]]]

    def _branch_tail(self, tap_point: str) -> CircuitNode:
        members = self.branches[tap_point]
        last = members[-1] if members else tap_point
        return self._arena[self._handles[last]]

    def _insert(
        self,
        parent: CircuitNode,
        identifier: str,
        device: DeviceRecord,
        distance: float | None,
        is_branch: bool,
        sequence_number: int,
    ) -> CircuitNode:
        if device.identifier != identifier:
            device = device.model_copy(update={"identifier": identifier})
        if distance is None:
            distance = self._estimate_distance(parent, device)
        node = self._arena.create(
            NodeType.DEVICE,
            identifier=identifier,
            device=device,
            is_branch_device=is_branch,
            distance_from_parent=max(0.0, float(distance)),
            sequence_number=sequence_number,
        )
        self._arena.attach(parent, node)
        self._handles[identifier] = node.handle
        self.device_data[identifier] = device
        self._stale = True
        return node

    def _estimate_distance(self, parent: CircuitNode, device: DeviceRecord) -> float:
        upstream = parent.device.location if parent.device is not None else None
        if upstream is None or device.location is None:
            return 0.0
        return estimate_segment_length(
            upstream, device.location, self.parameters.routing_overhead
        )

    # ═══════════════════════════════════════════════════════════
    # Mutations
    # ═══════════════════════════════════════════════════════════

    def add_device_to_main(
        self, identifier: str, device: DeviceRecord, distance: float | None = None
    ) -> bool:
        """Append a device to the end of the main chain.

        ``distance`` is the cable run from the previous main device (or
        the panel). When omitted it is estimated from device locations,
        or left at 0 until the caller supplies it.
        """
        if not self._check_insertable(identifier, CircuitMode.MAIN):
            return False

        parent = self._main_tail()
        self.main_circuit.append(identifier)
        self._insert(
            parent,
            identifier,
            device,
            distance,
            is_branch=False,
            sequence_number=len(self.main_circuit),
        )
        logger.debug("Added %s to main circuit at %d", identifier, len(self.main_circuit))
        return True

    def add_device_to_branch(
        self, identifier: str, device: DeviceRecord, distance: float | None = None
    ) -> bool:
        """Append a device to the end of the active T-tap chain."""
        if not self._check_insertable(identifier, CircuitMode.BRANCH):
            return False
        tap = self.active_tap_point
        if tap is None or tap not in self.branches or tap not in self._handles:
            self._fail(E_NO_ACTIVE_TAP, "No active T-tap to add devices to", identifier)
            return False

        parent = self._branch_tail(tap)
        self.branches[tap].append(identifier)
        self._insert(
            parent,
            identifier,
            device,
            distance,
            is_branch=True,
            sequence_number=len(self.branches[tap]),
        )
        logger.debug(
            "Added %s to %s at %d", identifier, self.branch_names[tap], len(self.branches[tap])
        )
        return True

    def _next_branch_name(self) -> str:
        return next_branch_name(self.branch_names.values(), len(self.branches) + 1)

    def start_branch_from_device(self, identifier: str) -> bool:
        """Open a T-tap on a main-circuit device and switch to branch mode.

        Starting on a device that already owns a tap resumes that tap.
        """
        if self.mode != CircuitMode.MAIN:
            self._fail(
                E_WRONG_MODE, "Finish the current T-tap before starting another", identifier
            )
            return False
        if identifier not in self.main_circuit:
            self._fail(
                E_NOT_ON_MAIN,
                f"T-taps can only start from a main-circuit device; {identifier} is not one",
                identifier,
            )
            return False

        if identifier not in self.branches:
            self.branch_names[identifier] = self._next_branch_name()
            self.branches[identifier] = []
            logger.info(
                "Started %s from %s", self.branch_names[identifier], identifier
            )
        self.active_tap_point = identifier
        self.mode = CircuitMode.BRANCH
        return True

    def end_branch(self) -> None:
        """Return to main mode. The active tap point is kept for ``resume_branch``."""
        self.mode = CircuitMode.MAIN

    def resume_branch(self) -> bool:
        """Re-enter branch mode on the tap that was last active."""
        tap = self.active_tap_point
        if tap is None or tap not in self.branches:
            self._fail(E_NO_ACTIVE_TAP, "There is no T-tap to resume")
            return False
        self.mode = CircuitMode.BRANCH
        return True

    def remove_device(self, identifier: str) -> RemovalResult | None:
        """Remove a device together with everything wired downstream of it.

        Chains are strictly linear, so removing a mid-chain device drops the
        rest of that chain. Removing a tap point drops its whole branch.
        """
        node = self.find_node(identifier)
        if node is None:
            self._fail(E_UNKNOWN_DEVICE, f"Device {identifier} is not in the circuit", identifier)
            return None

        tap_point: str | None = None
        if identifier in self.main_circuit:
            location = "main"
            position = self.main_circuit.index(identifier) + 1
        else:
            tap_point = self.branch_of(identifier)
            members = self.branches.get(tap_point, []) if tap_point else []
            location = self.branch_names.get(tap_point, "T-Tap") if tap_point else "T-Tap"
            position = members.index(identifier) + 1 if identifier in members else 0

        removed_nodes = self._arena.detach_subtree(node)
        removed = [n.identifier for n in removed_nodes if n.identifier is not None]
        gone = set(removed)

        self.main_circuit = [i for i in self.main_circuit if i not in gone]
        for tap in list(self.branches):
            if tap in gone:
                del self.branches[tap]
                self.branch_names.pop(tap, None)
            else:
                self.branches[tap] = [i for i in self.branches[tap] if i not in gone]
        for ident in removed:
            self.device_data.pop(ident, None)
            self._handles.pop(ident, None)

        if self.active_tap_point in gone:
            self.active_tap_point = None
            self.mode = CircuitMode.MAIN

        self._stale = True
        logger.info(
            "Removed %s from %s position %d (%d device(s))",
            identifier,
            location,
            position,
            len(removed),
        )
        return RemovalResult(
            identifier=identifier,
            location=location,
            position=position,
            tap_point=tap_point,
            removed=removed,
        )

    def prune_empty_branches(self) -> list[str]:
        """Drop T-taps whose branch has no devices left. Returns their tap points."""
        empty = [tap for tap, members in self.branches.items() if not members]
        for tap in empty:
            del self.branches[tap]
            self.branch_names.pop(tap, None)
            if self.active_tap_point == tap:
                self.active_tap_point = None
                self.mode = CircuitMode.MAIN
        return empty

    def set_distance(self, identifier: str, distance: float) -> bool:
        """Set the cable run between a device and its upstream neighbour."""
        node = self.find_node(identifier)
        if node is None:
            self._fail(E_UNKNOWN_DEVICE, f"Device {identifier} is not in the circuit", identifier)
            return False
        node.distance_from_parent = max(0.0, float(distance))
        self._stale = True
        return True

    def update_parameters(self, parameters: CircuitParameters) -> None:
        self.parameters = parameters
        self._stale = True

    def clear(self) -> None:
        self._reset()
        self.last_error = None

    # ═══════════════════════════════════════════════════════════
    # Calculations
    # ═══════════════════════════════════════════════════════════

    def recalculate(self) -> None:
        """Run load accumulation then voltage propagation over the whole tree."""
        recompute(self._arena, self.root, self.parameters)
        self._stale = False

    def ensure_calculated(self) -> None:
        if self._stale:
            self.recalculate()

    def get_total_system_load(self) -> float:
        return sum(d.alarm_current for d in self.device_data.values())

    def get_total_standby_load(self) -> float:
        return sum(d.standby_current for d in self.device_data.values())

    def calculate_total_wire_length(self) -> float:
        return sum(n.distance_from_parent for n in self.iter_nodes() if not n.is_root)

    def calculate_voltage_drop(self, total_load: float, total_length: float) -> float:
        """Coarse system-wide drop estimate for status displays."""
        return segment_voltage_drop(total_load, total_length, self.parameters.resistance)

    def calculate_max_distance(self, current_load: float) -> float:
        """Longest run past the supply segment that keeps the far end above minimum."""
        params = self.parameters
        if current_load <= 0 or params.resistance <= 0:
            return math.inf
        allowed_drop = params.system_voltage - params.min_voltage
        max_length = allowed_drop / current_load * 1000.0 / (2.0 * params.resistance)
        return max(0.0, max_length - params.supply_distance)

    def statistics(self) -> CircuitStatistics:
        return CircuitStatistics(
            total_devices=len(self.device_data),
            main_circuit_devices=len(self.main_circuit),
            branch_devices=sum(len(m) for m in self.branches.values()),
            total_branches=len(self.branches),
            total_load=self.get_total_system_load(),
            total_standby_load=self.get_total_standby_load(),
            last_updated=datetime.now(timezone.utc),
        )

    # ═══════════════════════════════════════════════════════════
    # Persistence
    # ═══════════════════════════════════════════════════════════

    def save(
        self,
        name: str,
        description: str | None = None,
        project_name: str | None = None,
        project_path: str | None = None,
        created_by: str | None = None,
    ) -> CircuitConfiguration:
        from firewire.circuit.persistence import save_configuration

        return save_configuration(
            self,
            name,
            description,
            project_name=project_name,
            project_path=project_path,
            created_by=created_by,
        )

    @classmethod
    def from_configuration(
        cls,
        config: CircuitConfiguration,
        resolver: ConnectionResolver | None = None,
        max_devices: int | None = None,
    ) -> CircuitManager:
        from firewire.circuit.persistence import load_configuration

        return load_configuration(config, resolver=resolver, max_devices=max_devices)

    def load(
        self, config: CircuitConfiguration, resolver: ConnectionResolver | None = None
    ) -> None:
        """Replace this manager's state with a saved configuration.

        The replacement is built first; on failure this manager is untouched.
        """
        loaded = self.from_configuration(config, resolver=resolver, max_devices=self.max_devices)
        self.parameters = loaded.parameters
        self._arena = loaded._arena
        self.root = loaded.root
        self._handles = loaded._handles
        self.mode = loaded.mode
        self.main_circuit = loaded.main_circuit
        self.branches = loaded.branches
        self.branch_names = loaded.branch_names
        self.device_data = loaded.device_data
        self.active_tap_point = loaded.active_tap_point
        self._stale = loaded._stale
        self.last_error = None
