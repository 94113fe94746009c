"""Circuit Validation Engine — Deterministic Rule-Based Circuit Checker.

Pure Python. Fully unit-testable.

Validates a notification circuit against these rules, in order:
  1. Every device node carries a device record
  2. Total alarm load within the usable (derated) load
  3. End-of-line voltage at or above the minimum for every device
  4. No registered T-tap without branch devices
  5. Flattened main/branch lists agree with the tree, and no chain forks
  6. Total wire length within the maximum run (warning)
  7. Worst-case voltage drop within the configured percentage (warning)

Every check runs; violations are accumulated, never short-circuited.

Input:  CircuitManager
Output: ValidationResult with status VALID|INVALID, errors[], warnings[]
"""

from __future__ import annotations

from functools import partial
from typing import Callable

from firewire.circuit.manager import CircuitManager
from firewire.schemas.validation import (
    ValidationResult,
    ValidationIssue,
    ValidationStatus,
    ValidationSeverity,
)

DEFAULT_MAX_VOLTAGE_DROP_PERCENT = 10.0

Check = Callable[[CircuitManager], list[ValidationIssue]]


# ═══════════════════════════════════════════════════════════
# Check 1: Device Records
# ═══════════════════════════════════════════════════════════


def check_device_records(manager: CircuitManager) -> list[ValidationIssue]:
    """A device node without its record cannot contribute a load."""
    errors: list[ValidationIssue] = []
    for node in manager.device_nodes():
        if node.device is None:
            errors.append(
                ValidationIssue(
                    code="E_MISSING_DEVICE_RECORD",
                    severity=ValidationSeverity.ERROR,
                    message=f"Device {node.identifier} has no device data",
                    identifiers=[node.identifier] if node.identifier else [],
                    suggestion="Re-select the device so its current draw is read again",
                )
            )
    return errors


# ═══════════════════════════════════════════════════════════
# Check 2: Total Load
# ═══════════════════════════════════════════════════════════


def check_total_load(manager: CircuitManager) -> list[ValidationIssue]:
    """Alarm load must leave the configured safety reserve untouched."""
    params = manager.parameters
    total = manager.get_total_system_load()
    if total <= params.usable_load:
        return []
    return [
        ValidationIssue(
            code="E_LOAD_EXCEEDS_USABLE",
            severity=ValidationSeverity.ERROR,
            message=(
                f"Total load ({total:.3f}A) exceeds usable load "
                f"({params.usable_load:.3f}A)"
            ),
            suggestion=(
                "Move devices to another circuit or use a supply with a higher rating"
            ),
        )
    ]


# ═══════════════════════════════════════════════════════════
# Check 3: End-of-Line Voltage
# ═══════════════════════════════════════════════════════════


def check_end_of_line_voltage(manager: CircuitManager) -> list[ValidationIssue]:
    """Every device, down to the far end of each chain, needs minimum voltage."""
    manager.ensure_calculated()
    params = manager.parameters
    errors: list[ValidationIssue] = []

    for node in manager.device_nodes():
        if node.voltage >= params.min_voltage:
            continue
        label = "Branch device" if node.is_branch_device else "Device"
        errors.append(
            ValidationIssue(
                code="E_LOW_VOLTAGE",
                severity=ValidationSeverity.ERROR,
                message=(
                    f"{label} '{node.name}' voltage ({node.voltage:.1f}V) "
                    f"below minimum ({params.min_voltage:.1f}V)"
                ),
                identifiers=[node.identifier] if node.identifier else [],
                suggestion="Use a heavier wire gauge or shorten the run",
            )
        )
    return errors


# ═══════════════════════════════════════════════════════════
# Check 4: Empty T-Taps
# ═══════════════════════════════════════════════════════════


def check_empty_branches(manager: CircuitManager) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []
    for tap, members in manager.branches.items():
        if members:
            continue
        name = manager.branch_names.get(tap, "T-Tap")
        errors.append(
            ValidationIssue(
                code="E_EMPTY_BRANCH",
                severity=ValidationSeverity.ERROR,
                message=f"{name} at device {tap} has no branch devices",
                identifiers=[tap],
                suggestion="Add devices to the T-tap or remove it",
            )
        )
    return errors


# ═══════════════════════════════════════════════════════════
# Check 5: Structural Consistency
# ═══════════════════════════════════════════════════════════


def check_structure_consistency(manager: CircuitManager) -> list[ValidationIssue]:
    """Main and branch lists must describe the same devices as the tree."""
    errors: list[ValidationIssue] = []

    tree_main = manager.tree_main_sequence()
    if len(tree_main) != len(manager.main_circuit):
        errors.append(
            ValidationIssue(
                code="E_MAIN_COUNT_MISMATCH",
                severity=ValidationSeverity.ERROR,
                message=(
                    f"Main circuit lists {len(manager.main_circuit)} device(s) "
                    f"but the tree holds {len(tree_main)}"
                ),
                identifiers=sorted(set(tree_main) ^ set(manager.main_circuit)),
            )
        )

    for tap, members in manager.branches.items():
        tree_branch = manager.tree_branch_sequence(tap)
        if len(tree_branch) != len(members):
            name = manager.branch_names.get(tap, "T-Tap")
            errors.append(
                ValidationIssue(
                    code="E_BRANCH_COUNT_MISMATCH",
                    severity=ValidationSeverity.ERROR,
                    message=(
                        f"{name} lists {len(members)} device(s) "
                        f"but the tree holds {len(tree_branch)}"
                    ),
                    identifiers=[tap],
                )
            )

    for node in manager.device_nodes():
        parent = manager.parent_of(node)
        if not node.is_branch_device and parent is not None and parent.is_branch_device:
            errors.append(
                ValidationIssue(
                    code="E_MAIN_CHAIN_BROKEN",
                    severity=ValidationSeverity.ERROR,
                    message=f"Main-circuit device {node.identifier} is wired off a branch",
                    identifiers=[node.identifier] if node.identifier else [],
                )
            )

    for node in manager.forked_nodes():
        errors.append(
            ValidationIssue(
                code="E_CHAIN_FORKED",
                severity=ValidationSeverity.ERROR,
                message=f"Chain splits at '{node.name}'; each run must stay linear",
                identifiers=[node.identifier] if node.identifier else [],
                suggestion="Start a T-tap instead of wiring two devices to one point",
            )
        )

    return errors


# ═══════════════════════════════════════════════════════════
# Check 6: Wire Length
# ═══════════════════════════════════════════════════════════


def check_wire_length(manager: CircuitManager) -> list[ValidationIssue]:
    """Compare installed cable with the longest run the load allows."""
    total_load = manager.get_total_system_load()
    total_length = manager.calculate_total_wire_length()
    max_length = manager.calculate_max_distance(total_load)
    if total_length <= max_length:
        return []
    return [
        ValidationIssue(
            code="W_WIRE_LENGTH",
            severity=ValidationSeverity.WARNING,
            message=(
                f"Total wire length ({total_length:.0f}ft) exceeds maximum "
                f"({max_length:.0f}ft)"
            ),
            suggestion="Split the circuit or use a heavier wire gauge",
        )
    ]


# ═══════════════════════════════════════════════════════════
# Check 7: Voltage Drop Percentage
# ═══════════════════════════════════════════════════════════


def check_voltage_drop_percent(
    manager: CircuitManager,
    max_percent: float = DEFAULT_MAX_VOLTAGE_DROP_PERCENT,
) -> list[ValidationIssue]:
    manager.ensure_calculated()
    nodes = manager.device_nodes()
    if not nodes:
        return []

    system_v = manager.parameters.system_voltage
    worst = min(nodes, key=lambda n: n.voltage)
    drop_pct = (system_v - worst.voltage) / system_v * 100
    if drop_pct <= max_percent:
        return []
    return [
        ValidationIssue(
            code="W_VOLTAGE_DROP",
            severity=ValidationSeverity.WARNING,
            message=(
                f"Voltage drop at '{worst.name}' is {drop_pct:.1f}% "
                f"(limit {max_percent:.1f}%)"
            ),
            identifiers=[worst.identifier] if worst.identifier else [],
        )
    ]


# ═══════════════════════════════════════════════════════════
# Main Validator
# ═══════════════════════════════════════════════════════════

# Registry of all checks, in reporting order
ALL_CHECKS: list[Check] = [
    check_device_records,
    check_total_load,
    check_end_of_line_voltage,
    check_empty_branches,
    check_structure_consistency,
    check_wire_length,
    check_voltage_drop_percent,
]


def validate_circuit(
    manager: CircuitManager,
    checks: list[Check] | None = None,
    max_voltage_drop_percent: float | None = None,
) -> ValidationResult:
    """Run all (or selected) validation checks on a circuit.

    Args:
        manager: The circuit to validate. Stale electrical attributes
                 are recomputed first.
        checks: Optional subset of check functions to run.
                Defaults to ALL_CHECKS.
        max_voltage_drop_percent: Override for the drop-percentage warning.

    Returns:
        ValidationResult with VALID/INVALID status, errors, warnings.
    """
    manager.ensure_calculated()

    check_fns = list(checks) if checks is not None else list(ALL_CHECKS)
    if max_voltage_drop_percent is not None:
        check_fns = [
            partial(check_voltage_drop_percent, max_percent=max_voltage_drop_percent)
            if fn is check_voltage_drop_percent
            else fn
            for fn in check_fns
        ]

    all_errors: list[ValidationIssue] = []
    all_warnings: list[ValidationIssue] = []
    checks_passed = 0

    for check_fn in check_fns:
        issues = check_fn(manager)
        errs = [e for e in issues if e.severity == ValidationSeverity.ERROR]
        warns = [e for e in issues if e.severity != ValidationSeverity.ERROR]
        all_errors.extend(errs)
        all_warnings.extend(warns)
        if not errs:
            checks_passed += 1

    status = (
        ValidationStatus.VALID if len(all_errors) == 0 else ValidationStatus.INVALID
    )

    return ValidationResult(
        status=status,
        errors=all_errors,
        warnings=all_warnings,
        checks_passed=checks_passed,
        checks_total=len(check_fns),
    )


def validate(manager: CircuitManager) -> tuple[bool, list[str]]:
    """Shorthand returning ``(is_valid, error messages)``."""
    result = validate_circuit(manager)
    return result.is_valid, result.messages
