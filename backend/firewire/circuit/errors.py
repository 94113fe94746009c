"""Error taxonomy for the circuit engine.

Structural errors are expected editing mistakes (wrong mode, unknown
device). The manager never raises them; it returns a failure flag and
keeps the reason on ``last_error`` so callers can report it or raise it.
"""

from __future__ import annotations


class CircuitError(Exception):
    """Base class for circuit engine errors."""


class StructuralError(CircuitError):
    def __init__(self, code: str, message: str, identifier: str | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.identifier = identifier

    def __repr__(self) -> str:
        return f"<StructuralError {self.code}: {self.message}>"


class SerializationError(CircuitError):
    """A configuration could not be turned back into a circuit."""


# Stable codes surfaced to API clients
E_WRONG_MODE = "E_WRONG_MODE"
E_DUPLICATE_DEVICE = "E_DUPLICATE_DEVICE"
E_UNKNOWN_DEVICE = "E_UNKNOWN_DEVICE"
E_NOT_ON_MAIN = "E_NOT_ON_MAIN"
E_NO_ACTIVE_TAP = "E_NO_ACTIVE_TAP"
E_CIRCUIT_FULL = "E_CIRCUIT_FULL"
