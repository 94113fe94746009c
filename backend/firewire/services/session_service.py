"""Session service — interactive editing of in-memory circuits.

Each session owns one CircuitManager. The engine has no locking of its
own, so every operation on a session runs under that session's
``asyncio.Lock`` and ends with a full recompute before the next read.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from dataclasses import dataclass, field
from functools import lru_cache

from fastapi import HTTPException, status

from firewire.circuit.devices import device_abbreviation
from firewire.circuit.manager import CircuitManager, RemovalResult
from firewire.config import Settings, get_settings
from firewire.report.generator import generate_report
from firewire.schemas.configuration import CircuitConfiguration
from firewire.schemas.report import CircuitReport
from firewire.schemas.session import (
    CircuitTotals,
    DeviceAddRequest,
    NodeView,
    ParameterOverrides,
    SessionResponse,
)
from firewire.schemas.validation import ValidationResult
from firewire.validation.engine import validate_circuit

logger = logging.getLogger(__name__)


# ─── Session ───


@dataclass
class EditingSession:
    session_id: str
    manager: CircuitManager
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    configuration_id: str | None = None
    created_at: float = field(default_factory=time.time)


# ─── Registry ───


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, EditingSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, manager: CircuitManager) -> EditingSession:
        session = EditingSession(session_id=str(uuid.uuid4()), manager=manager)
        self._sessions[session.session_id] = session
        logger.info("Opened editing session %s", session.session_id)
        return session

    def get(self, session_id: str) -> EditingSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Session {session_id} not found",
            )
        return session

    def close(self, session_id: str) -> None:
        self.get(session_id)
        del self._sessions[session_id]
        logger.info("Closed editing session %s", session_id)


@lru_cache()
def get_registry() -> SessionRegistry:
    return SessionRegistry()


# ─── Views ───


def node_views(manager: CircuitManager) -> list[NodeView]:
    """The whole tree in wiring order, each node naming its upstream device."""
    depths: dict[int, int] = {}
    views: list[NodeView] = []
    for node in manager.iter_nodes():
        parent = manager.parent_of(node)
        depths[node.handle] = 0 if parent is None else depths[parent.handle] + 1
        device = node.device
        views.append(
            NodeView(
                node_type=node.node_type.value,
                identifier=node.identifier,
                parent=None if parent is None or parent.is_root else parent.identifier,
                depth=depths[node.handle],
                name=node.name,
                abbreviation=(
                    None
                    if node.is_root
                    else device_abbreviation(
                        node.name, device.device_type if device else None
                    )
                ),
                is_branch_device=node.is_branch_device,
                sequence_number=node.sequence_number,
                distance_from_parent=node.distance_from_parent,
                accumulated_load=node.accumulated_load,
                voltage_drop=node.voltage_drop,
                voltage=node.voltage,
            )
        )
    return views


def circuit_totals(manager: CircuitManager) -> CircuitTotals:
    total_load = manager.get_total_system_load()
    total_length = manager.calculate_total_wire_length()
    max_distance = manager.calculate_max_distance(total_load)
    return CircuitTotals(
        total_load=total_load,
        total_standby_load=manager.get_total_standby_load(),
        total_wire_length=total_length,
        estimated_voltage_drop=manager.calculate_voltage_drop(total_load, total_length),
        usable_load=manager.parameters.usable_load,
        max_distance=None if math.isinf(max_distance) else max_distance,
    )


def session_view(session: EditingSession) -> SessionResponse:
    manager = session.manager
    manager.ensure_calculated()
    return SessionResponse(
        session_id=session.session_id,
        mode=manager.mode.value,
        active_tap_point=manager.active_tap_point,
        configuration_id=session.configuration_id,
        main_circuit=list(manager.main_circuit),
        branches={k: list(v) for k, v in manager.branches.items()},
        branch_names=dict(manager.branch_names),
        parameters=manager.parameters,
        totals=circuit_totals(manager),
        nodes=node_views(manager),
    )


# ─── Service ───


class SessionService:
    def __init__(self, registry: SessionRegistry, settings: Settings | None = None):
        self.registry = registry
        self.settings = settings or get_settings()

    def _raise_last_error(self, manager: CircuitManager) -> None:
        # Mutations report failure through last_error; surface it to the API
        raise manager.last_error

    def create(self, overrides: ParameterOverrides | None = None) -> EditingSession:
        params = self.settings.circuit_parameters()
        if overrides is not None:
            params = overrides.apply(params)
        manager = CircuitManager(params, max_devices=self.settings.max_devices_per_circuit)
        manager.recalculate()
        return self.registry.create(manager)

    async def add_device(
        self, session_id: str, data: DeviceAddRequest, branch: bool = False
    ) -> EditingSession:
        session = self.registry.get(session_id)
        async with session.lock:
            manager = session.manager
            add = manager.add_device_to_branch if branch else manager.add_device_to_main
            if not add(data.identifier, data.to_record(), data.distance):
                self._raise_last_error(manager)
            manager.recalculate()
        return session

    async def remove_device(self, session_id: str, identifier: str) -> RemovalResult:
        session = self.registry.get(session_id)
        async with session.lock:
            manager = session.manager
            result = manager.remove_device(identifier)
            if result is None:
                self._raise_last_error(manager)
            manager.recalculate()
        return result

    async def set_distance(
        self, session_id: str, identifier: str, distance: float
    ) -> EditingSession:
        session = self.registry.get(session_id)
        async with session.lock:
            manager = session.manager
            if not manager.set_distance(identifier, distance):
                self._raise_last_error(manager)
            manager.recalculate()
        return session

    async def start_branch(self, session_id: str, identifier: str) -> EditingSession:
        session = self.registry.get(session_id)
        async with session.lock:
            if not session.manager.start_branch_from_device(identifier):
                self._raise_last_error(session.manager)
        return session

    async def end_branch(self, session_id: str) -> EditingSession:
        session = self.registry.get(session_id)
        async with session.lock:
            session.manager.end_branch()
        return session

    async def resume_branch(self, session_id: str) -> EditingSession:
        session = self.registry.get(session_id)
        async with session.lock:
            if not session.manager.resume_branch():
                self._raise_last_error(session.manager)
        return session

    async def clear(self, session_id: str) -> EditingSession:
        session = self.registry.get(session_id)
        async with session.lock:
            session.manager.clear()
            session.manager.recalculate()
        return session

    async def validate(self, session_id: str) -> ValidationResult:
        session = self.registry.get(session_id)
        async with session.lock:
            return validate_circuit(
                session.manager,
                max_voltage_drop_percent=self.settings.max_voltage_drop_percent,
            )

    async def report(self, session_id: str) -> CircuitReport:
        session = self.registry.get(session_id)
        async with session.lock:
            return generate_report(
                session.manager,
                max_voltage_drop_percent=self.settings.max_voltage_drop_percent,
            )

    async def snapshot(
        self, session_id: str, name: str, description: str | None = None, **meta
    ) -> CircuitConfiguration:
        session = self.registry.get(session_id)
        async with session.lock:
            config = session.manager.save(name, description, **meta)
            if session.configuration_id is not None:
                # Saving again overwrites the configuration this session came from
                config.configuration_id = session.configuration_id
            session.configuration_id = config.configuration_id
        return config

    async def restore(
        self, session_id: str, config: CircuitConfiguration
    ) -> EditingSession:
        """Replace the session's circuit; a SerializationError leaves it as it was."""
        session = self.registry.get(session_id)
        async with session.lock:
            session.manager.load(config)
            session.configuration_id = config.configuration_id
        return session
