"""Wire resistance table for solid copper conductors.

Values are ohms per 1000 feet of a single conductor. Voltage-drop math
doubles the run length to account for the return conductor.
"""

from __future__ import annotations

import re

DEFAULT_WIRE_GAUGE = "16 AWG"

WIRE_RESISTANCE: dict[str, float] = {
    "18 AWG": 6.385,
    "16 AWG": 4.016,
    "14 AWG": 2.525,
    "12 AWG": 1.588,
    "10 AWG": 0.999,
    "8 AWG": 0.628,
}

_GAUGE_RE = re.compile(r"^\s*(\d+)\s*(?:AWG)?\s*$", re.IGNORECASE)


def normalize_gauge(label: str) -> str:
    """Canonicalize user input such as ``"14awg"`` or ``"14"`` to ``"14 AWG"``."""
    match = _GAUGE_RE.match(label or "")
    if not match:
        return (label or "").strip()
    return f"{int(match.group(1))} AWG"


def is_known_gauge(label: str) -> bool:
    return normalize_gauge(label) in WIRE_RESISTANCE


def resistance_for(label: str) -> float:
    """Look up ohms/1000ft for a gauge label, falling back to 16 AWG."""
    return WIRE_RESISTANCE.get(
        normalize_gauge(label), WIRE_RESISTANCE[DEFAULT_WIRE_GAUGE]
    )


def available_gauges() -> list[str]:
    """Gauge labels ordered from thinnest to thickest conductor."""
    return sorted(WIRE_RESISTANCE, key=lambda g: WIRE_RESISTANCE[g], reverse=True)
