from firewire.schemas.circuit import CircuitParameters, DeviceLocation, DeviceRecord
from firewire.schemas.configuration import CircuitConfiguration, SerializedNode
from firewire.schemas.report import CircuitReport, CircuitStatistics
from firewire.schemas.validation import ValidationResult

__all__ = [
    "CircuitParameters",
    "DeviceLocation",
    "DeviceRecord",
    "CircuitConfiguration",
    "SerializedNode",
    "CircuitReport",
    "CircuitStatistics",
    "ValidationResult",
]
