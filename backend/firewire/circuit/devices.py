"""Device acquisition helpers.

Used by collaborators that turn host-model elements into DeviceRecords:
reading current draw out of loosely formatted parameter values and
classifying devices for schematic labels.
"""

from __future__ import annotations

import re

from firewire.schemas.circuit import DeviceLocation

# Typical notification appliance draw when the model carries no value
DEFAULT_ALARM_CURRENT = 0.030

DEFAULT_SEGMENT_LENGTH = 25.0
MIN_SEGMENT_LENGTH = 1.0
MAX_SEGMENT_LENGTH = 1000.0

_NUMBER_RE = re.compile(r"-?[\d.]+")


def parse_current_value(raw: str | float | int | None) -> float:
    """Convert a parameter value like ``"75 mA"`` or ``0.075`` to amps.

    Unparseable or non-positive values yield 0.0.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        return float(raw) if raw > 0 else 0.0

    text = raw.strip().upper()
    match = _NUMBER_RE.search(text)
    if not match:
        return 0.0
    try:
        value = float(match.group())
    except ValueError:
        return 0.0
    if "MA" in text or "MILLIAMP" in text:
        value /= 1000.0
    return value if value > 0 else 0.0


def device_abbreviation(name: str | None, device_type: str | None = None) -> str:
    """Short schematic label derived from the device name and type tag."""
    name = (name or "").upper()
    kind = (device_type or "").upper()

    if "SMOKE" in name or "SMOKE" in kind:
        return "SMK"
    if "HEAT" in name or "HEAT" in kind or "THERMAL" in name:
        return "HT"
    if "PULL" in name or "MANUAL" in name or "PULL" in kind:
        return "PUL"
    if "HORN" in name or "STROBE" in name or "SIGNAL" in kind:
        if "HORN" in name and "STROBE" in name:
            return "H/S"
        if "HORN" in name:
            return "HRN"
        if "STROBE" in name:
            return "STB"
        return "SIG"
    if "MONITOR" in name or "MONITOR" in kind:
        return "MON"
    if "RELAY" in name or "RELAY" in kind:
        return "RLY"
    return "DEV"


def estimate_segment_length(
    start: DeviceLocation | None,
    end: DeviceLocation | None,
    routing_overhead: float = 1.15,
) -> float:
    """Cable run between two devices: straight line plus routing overhead.

    Clamped to [1, 1000] ft; 25 ft when either location is unknown.
    """
    if start is None or end is None:
        return DEFAULT_SEGMENT_LENGTH
    if routing_overhead <= 0:
        routing_overhead = 1.15
    length = start.distance_to(end) * routing_overhead
    return max(MIN_SEGMENT_LENGTH, min(length, MAX_SEGMENT_LENGTH))
