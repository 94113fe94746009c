"""Validator output: one issue per violated rule, grouped by severity."""

from __future__ import annotations

from enum import Enum
from pydantic import BaseModel, Field


class ValidationSeverity(str, Enum):
    ERROR = "error"  # circuit cannot be installed as drawn
    WARNING = "warning"  # advisory; validity unaffected


class ValidationIssue(BaseModel):
    code: str
    severity: ValidationSeverity
    message: str
    identifiers: list[str] = Field(default_factory=list)  # devices or tap points
    suggestion: str | None = None


class ValidationStatus(str, Enum):
    VALID = "VALID"
    INVALID = "INVALID"


class ValidationResult(BaseModel):
    status: ValidationStatus
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    checks_passed: int = 0
    checks_total: int = 0

    @property
    def is_valid(self) -> bool:
        return self.status == ValidationStatus.VALID

    @property
    def messages(self) -> list[str]:
        """Error messages in check order, as shown to the designer."""
        return [e.message for e in self.errors]

    @property
    def codes(self) -> list[str]:
        return [i.code for i in self.errors + self.warnings]
