"""Pydantic schemas for interactive circuit editing sessions."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from firewire.circuit.devices import parse_current_value
from firewire.schemas.circuit import CircuitParameters, DeviceLocation, DeviceRecord


# ─── Request Schemas ───


class ParameterOverrides(BaseModel):
    """Per-session changes to the configured circuit defaults."""

    system_voltage: float | None = Field(None, gt=0)
    min_voltage: float | None = Field(None, ge=0)
    max_load: float | None = Field(None, ge=0)
    safety_percent: float | None = Field(None, ge=0, lt=1)
    wire_gauge: str | None = None
    supply_distance: float | None = Field(None, ge=0)
    routing_overhead: float | None = Field(None, gt=0)

    def apply(self, base: CircuitParameters) -> CircuitParameters:
        changes = self.model_dump(exclude_none=True)
        gauge = changes.pop("wire_gauge", None)
        if gauge is not None:
            merged = base.model_dump(exclude={"usable_load", "wire_gauge", "resistance"})
            merged.update(changes)
            return CircuitParameters.for_gauge(gauge, **merged)
        return base.model_copy(update=changes)


class SessionCreate(BaseModel):
    parameters: ParameterOverrides = Field(default_factory=ParameterOverrides)


class DeviceAddRequest(BaseModel):
    identifier: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    alarm_current: float = Field(0.0, ge=0)  # amps
    standby_current: float = Field(0.0, ge=0)  # amps
    device_type: str = ""
    manufacturer: str | None = None
    model: str | None = None
    location: DeviceLocation | None = None
    distance: float | None = Field(
        None, ge=0, description="Cable run from the upstream device, in feet"
    )

    @field_validator("alarm_current", "standby_current", mode="before")
    @classmethod
    def _parse_current(cls, value):
        # Accepts host-model strings such as "75 mA"
        if isinstance(value, str):
            return parse_current_value(value)
        return value

    def to_record(self) -> DeviceRecord:
        return DeviceRecord(
            identifier=self.identifier,
            name=self.name,
            alarm_current=self.alarm_current,
            standby_current=self.standby_current,
            device_type=self.device_type,
            manufacturer=self.manufacturer,
            model=self.model,
            location=self.location,
        )


class BranchStartRequest(BaseModel):
    identifier: str = Field(..., min_length=1)


class DistanceUpdate(BaseModel):
    distance: float = Field(..., ge=0)


class SessionSaveRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    project_name: str | None = None
    project_path: str | None = None
    created_by: str | None = None


class SessionLoadRequest(BaseModel):
    configuration_id: str = Field(..., min_length=1)


# ─── Response Schemas ───


class NodeView(BaseModel):
    """One node of the circuit tree. Trees are returned flat, in wiring order."""

    node_type: str
    identifier: str | None = None
    parent: str | None = None  # upstream device; None below the supply panel
    depth: int = 0
    name: str
    abbreviation: str | None = None
    is_branch_device: bool = False
    sequence_number: int = 0
    distance_from_parent: float = 0.0
    accumulated_load: float = 0.0
    voltage_drop: float = 0.0
    voltage: float = 0.0


class CircuitTotals(BaseModel):
    total_load: float
    total_standby_load: float
    total_wire_length: float
    estimated_voltage_drop: float
    usable_load: float
    max_distance: float | None = None  # None when unbounded


class SessionResponse(BaseModel):
    session_id: str
    mode: str
    active_tap_point: str | None = None
    configuration_id: str | None = None
    main_circuit: list[str] = Field(default_factory=list)
    branches: dict[str, list[str]] = Field(default_factory=dict)
    branch_names: dict[str, str] = Field(default_factory=dict)
    parameters: CircuitParameters
    totals: CircuitTotals
    nodes: list[NodeView] = Field(default_factory=list)  # pre-order, panel first


class RemovalResponse(BaseModel):
    identifier: str
    location: str
    position: int
    tap_point: str | None = None
    removed: list[str] = Field(default_factory=list)
