"""Save and restore a CircuitManager as a CircuitConfiguration.

The serialized tree is authoritative for structure; the flattened
registries stored next to it are cross-checked against the tree on load
and a mismatch rejects the whole configuration.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError

from firewire.circuit.errors import SerializationError
from firewire.circuit.manager import (
    CircuitManager,
    CircuitMode,
    ConnectionResolver,
    next_branch_name,
)
from firewire.circuit.tree import NodeType
from firewire.schemas.configuration import (
    CONFIGURATION_SCHEMA_VERSION,
    CircuitConfiguration,
    SerializedNode,
)

logger = logging.getLogger(__name__)


# ─── Save ───


def serialize_nodes(manager: CircuitManager) -> list[SerializedNode]:
    """Flatten the tree to device nodes in pre-order, preserving child order."""
    serialized: list[SerializedNode] = []
    for node in manager.device_nodes():
        parent = manager.parent_of(node)
        serialized.append(
            SerializedNode(
                node_type=node.node_type.value,
                identifier=node.identifier,
                parent=None if parent is None or parent.is_root else parent.identifier,
                is_branch_device=node.is_branch_device,
                distance_from_parent=node.distance_from_parent,
                sequence_number=node.sequence_number,
            )
        )
    return serialized


def save_configuration(
    manager: CircuitManager,
    name: str,
    description: str | None = None,
    project_name: str | None = None,
    project_path: str | None = None,
    created_by: str | None = None,
) -> CircuitConfiguration:
    stats = manager.statistics()
    return CircuitConfiguration(
        name=name,
        description=description,
        created_by=created_by,
        project_name=project_name,
        project_path=project_path,
        nodes=serialize_nodes(manager),
        main_circuit=list(manager.main_circuit),
        branches={tap: list(members) for tap, members in manager.branches.items()},
        branch_names=dict(manager.branch_names),
        device_data={k: v.model_copy() for k, v in manager.device_data.items()},
        mode=manager.mode.value,
        active_tap_point=manager.active_tap_point,
        parameters=manager.parameters,
        statistics=stats,
        metadata={
            "TotalDevices": stats.total_devices,
            "MainCircuitDevices": stats.main_circuit_devices,
            "TotalBranches": stats.total_branches,
            "ProjectName": project_name,
        },
    )


# ─── Load ───


def parse_configuration(raw: str | bytes | dict) -> CircuitConfiguration:
    """Parse stored JSON (or an already-decoded dict) into a configuration."""
    try:
        if isinstance(raw, dict):
            return CircuitConfiguration.model_validate(raw)
        return CircuitConfiguration.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise SerializationError(f"Malformed circuit configuration: {exc}") from exc


def load_configuration(
    config: CircuitConfiguration,
    resolver: ConnectionResolver | None = None,
    max_devices: int | None = None,
) -> CircuitManager:
    """Build a fresh manager from ``config``.

    ``resolver`` maps identifiers back to live connection references; a
    None result keeps the device with no reference instead of failing.
    """
    if config.schema_version != CONFIGURATION_SCHEMA_VERSION:
        raise SerializationError(
            f"Unsupported configuration version {config.schema_version} "
            f"(expected {CONFIGURATION_SCHEMA_VERSION})"
        )
    if max_devices is not None and len(config.nodes) > max_devices:
        raise SerializationError(
            f"Configuration holds {len(config.nodes)} devices; "
            f"the limit is {max_devices}"
        )

    manager = CircuitManager(config.parameters, max_devices=max_devices)
    arena = manager.arena

    # Pre-order guarantees every parent is built before its children
    for snode in config.nodes:
        ident = snode.identifier
        if snode.node_type != NodeType.DEVICE.value:
            raise SerializationError(f"Unexpected {snode.node_type} node {ident}")
        if ident in manager:
            raise SerializationError(f"Device {ident} appears more than once")
        if snode.parent is None:
            parent = manager.root
        else:
            parent = manager.find_node(snode.parent)
            if parent is None:
                raise SerializationError(
                    f"Device {ident} is listed before its upstream device {snode.parent}"
                )
        if not snode.is_branch_device and parent.is_branch_device:
            raise SerializationError(f"Main-circuit device {ident} hangs off a branch")

        device = config.device_data.get(ident)
        if device is not None:
            ref = resolver(ident) if resolver is not None else None
            if resolver is not None and ref is None:
                logger.warning("Device %s no longer resolves; keeping it unlinked", ident)
            device = device.model_copy(update={"identifier": ident, "connection_ref": ref})
            manager.device_data[ident] = device

        node = arena.create(
            NodeType.DEVICE,
            identifier=ident,
            device=device,
            is_branch_device=snode.is_branch_device,
            distance_from_parent=snode.distance_from_parent,
            sequence_number=snode.sequence_number,
        )
        arena.attach(parent, node)
        manager._handles[ident] = node.handle

    forks = manager.forked_nodes()
    if forks:
        names = ", ".join(n.name for n in forks)
        raise SerializationError(f"Saved tree splits a chain at: {names}")

    if manager.tree_main_sequence() != list(config.main_circuit):
        raise SerializationError("Main circuit list does not match the saved tree")

    for tap, members in config.branches.items():
        if tap not in manager:
            raise SerializationError(f"T-tap {tap} is not a device in the saved tree")
        if manager.tree_branch_sequence(tap) != list(members):
            raise SerializationError(f"Branch list for T-tap {tap} does not match the saved tree")
    in_branches = {i for members in config.branches.values() for i in members}
    strays = [
        n.identifier
        for n in manager.device_nodes()
        if n.is_branch_device and n.identifier not in in_branches
    ]
    if strays:
        raise SerializationError(f"Branch devices without a T-tap: {', '.join(strays)}")

    manager.main_circuit = list(config.main_circuit)
    manager.branches = {tap: list(members) for tap, members in config.branches.items()}
    manager.branch_names = {}
    for i, tap in enumerate(manager.branches, start=1):
        stored = config.branch_names.get(tap)
        if not stored or stored in manager.branch_names.values():
            taken = set(config.branch_names.values()) | set(manager.branch_names.values())
            stored = next_branch_name(taken, i)
        manager.branch_names[tap] = stored

    try:
        manager.mode = CircuitMode(config.mode)
    except ValueError as exc:
        raise SerializationError(f"Unknown circuit mode {config.mode!r}") from exc
    tap = config.active_tap_point
    manager.active_tap_point = tap if tap in manager.branches else None
    if manager.active_tap_point is None:
        manager.mode = CircuitMode.MAIN

    manager.recalculate()
    logger.info(
        "Loaded configuration %s (%d devices, %d T-taps)",
        config.configuration_id,
        len(manager),
        len(manager.branches),
    )
    return manager
