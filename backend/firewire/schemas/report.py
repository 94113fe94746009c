from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from firewire.schemas.circuit import CircuitParameters


class CircuitStatistics(BaseModel):
    total_devices: int = 0
    main_circuit_devices: int = 0
    branch_devices: int = 0
    total_branches: int = 0
    total_load: float = 0.0
    total_standby_load: float = 0.0
    last_updated: datetime | None = None


class DeviceVoltageRow(BaseModel):
    identifier: str
    name: str
    location: str  # "main" or the T-Tap name
    position: int
    alarm_current: float
    standby_current: float
    distance_from_parent: float
    accumulated_load: float
    voltage_drop: float
    voltage: float
    abbreviation: str = "DEV"


class CircuitReport(BaseModel):
    generated_at: datetime
    parameters: CircuitParameters
    total_devices: int = 0
    main_circuit_devices: int = 0
    branch_devices: int = 0
    total_load: float = 0.0
    total_standby_load: float = 0.0
    total_wire_length: float = 0.0
    max_voltage_drop: float = 0.0
    max_voltage_drop_percent: float = 0.0
    worst_case_device: str | None = None
    worst_case_voltage: float | None = None
    devices: list[DeviceVoltageRow] = Field(default_factory=list)
    validation_errors: list[str] = Field(default_factory=list)
    validation_warnings: list[str] = Field(default_factory=list)
    is_valid: bool = True
