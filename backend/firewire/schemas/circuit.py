from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from firewire.circuit.resistance import DEFAULT_WIRE_GAUGE, normalize_gauge, resistance_for


class DeviceLocation(BaseModel):
    """Insertion point of a device in model space (feet)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def distance_to(self, other: DeviceLocation) -> float:
        return (
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        ) ** 0.5


class DeviceRecord(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    identifier: str = Field(..., min_length=1)
    name: str
    alarm_current: float = Field(0.0, ge=0)  # amps
    standby_current: float = Field(0.0, ge=0)  # amps
    device_type: str = ""  # free text: "Horn Strobe", "Smoke Detector", ...
    manufacturer: str | None = None
    model: str | None = None
    current_found: bool = True
    current_source: str | None = None  # instance, type
    location: DeviceLocation | None = None

    # Borrowed handle from the host CAD session. Never serialized.
    connection_ref: Any = Field(default=None, exclude=True, repr=False)

    @classmethod
    def placeholder(cls, identifier: str, alarm_current: float = 0.0) -> DeviceRecord:
        """Stand-in for a device the host model can no longer resolve."""
        return cls(
            identifier=identifier,
            name=f"Device_{identifier}",
            alarm_current=alarm_current,
            current_found=False,
        )


class CircuitParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    system_voltage: float = Field(29.0, gt=0)
    min_voltage: float = Field(16.0, ge=0)
    max_load: float = Field(3.0, ge=0)
    safety_percent: float = Field(0.20, ge=0, lt=1)
    wire_gauge: str = DEFAULT_WIRE_GAUGE
    resistance: float = Field(4.016, ge=0)  # ohms per 1000 ft, single conductor
    supply_distance: float = Field(50.0, ge=0)
    routing_overhead: float = Field(1.15, gt=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def usable_load(self) -> float:
        return self.max_load * (1 - self.safety_percent)

    @classmethod
    def for_gauge(cls, wire_gauge: str, **overrides: Any) -> CircuitParameters:
        """Build parameters with resistance taken from the gauge table."""
        gauge = normalize_gauge(wire_gauge)
        return cls(wire_gauge=gauge, resistance=resistance_for(gauge), **overrides)
