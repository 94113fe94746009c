"""Circuit Report Generator — calculation summary for export collaborators.

Reads a CircuitManager, runs the propagation passes if needed and the
validator, and produces a structured CircuitReport: totals, per-device
voltages in wiring order and the worst-case device.

Formatting (CSV, Excel, PDF) belongs to the consumer of the report.
"""

from __future__ import annotations

from datetime import datetime, timezone

from firewire.circuit.devices import device_abbreviation
from firewire.circuit.manager import CircuitManager
from firewire.circuit.tree import CircuitNode
from firewire.schemas.report import CircuitReport, DeviceVoltageRow
from firewire.validation.engine import validate_circuit


def _device_row(manager: CircuitManager, node: CircuitNode) -> DeviceVoltageRow:
    ident = node.identifier or ""
    if node.is_branch_device:
        tap = manager.branch_of(ident)
        location = manager.branch_names.get(tap, "T-Tap") if tap else "T-Tap"
        members = manager.branches.get(tap, []) if tap else []
        position = members.index(ident) + 1 if ident in members else 0
    else:
        location = "main"
        position = (
            manager.main_circuit.index(ident) + 1 if ident in manager.main_circuit else 0
        )

    device = node.device
    return DeviceVoltageRow(
        identifier=ident,
        name=node.name,
        location=location,
        position=position,
        alarm_current=device.alarm_current if device else 0.0,
        standby_current=device.standby_current if device else 0.0,
        distance_from_parent=node.distance_from_parent,
        accumulated_load=node.accumulated_load,
        voltage_drop=node.voltage_drop,
        voltage=node.voltage,
        abbreviation=device_abbreviation(node.name, device.device_type if device else None),
    )


def generate_report(
    manager: CircuitManager, max_voltage_drop_percent: float | None = None
) -> CircuitReport:
    """Build the calculation report for the current circuit state."""
    manager.ensure_calculated()
    params = manager.parameters
    stats = manager.statistics()

    rows = [_device_row(manager, n) for n in manager.device_nodes()]

    worst = min(rows, key=lambda r: r.voltage) if rows else None
    max_drop = params.system_voltage - worst.voltage if worst else 0.0

    validation = validate_circuit(
        manager, max_voltage_drop_percent=max_voltage_drop_percent
    )

    return CircuitReport(
        generated_at=datetime.now(timezone.utc),
        parameters=params,
        total_devices=stats.total_devices,
        main_circuit_devices=stats.main_circuit_devices,
        branch_devices=stats.branch_devices,
        total_load=stats.total_load,
        total_standby_load=stats.total_standby_load,
        total_wire_length=manager.calculate_total_wire_length(),
        max_voltage_drop=max_drop,
        max_voltage_drop_percent=max_drop / params.system_voltage * 100,
        worst_case_device=worst.name if worst else None,
        worst_case_voltage=worst.voltage if worst else None,
        devices=rows,
        validation_errors=validation.messages,
        validation_warnings=[w.message for w in validation.warnings],
        is_valid=validation.is_valid,
    )
