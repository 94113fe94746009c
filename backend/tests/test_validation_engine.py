"""Unit tests for the Circuit Validation Engine."""

import pytest

from firewire.circuit.manager import CircuitManager
from firewire.circuit.tree import NodeType
from firewire.schemas.circuit import DeviceRecord
from firewire.schemas.validation import ValidationSeverity, ValidationStatus
from firewire.validation.engine import (
    ALL_CHECKS,
    check_device_records,
    check_empty_branches,
    check_end_of_line_voltage,
    check_structure_consistency,
    check_total_load,
    check_voltage_drop_percent,
    check_wire_length,
    validate,
    validate_circuit,
)


# ─── Fixtures ───


def _device(ident: str, current: float = 0.03) -> DeviceRecord:
    return DeviceRecord(identifier=ident, name=f"Horn Strobe {ident}", alarm_current=current)


def _manager(*loads: float, distance: float = 50.0) -> CircuitManager:
    manager = CircuitManager()
    for i, load in enumerate(loads, start=1):
        manager.add_device_to_main(f"D{i}", _device(f"D{i}", load), distance)
    return manager


def _tapped_manager() -> CircuitManager:
    manager = _manager(0.03, 0.03)
    manager.start_branch_from_device("D1")
    manager.add_device_to_branch("B1", _device("B1"), 25.0)
    manager.end_branch()
    return manager


def _codes(errors) -> list[str]:
    return [e.code for e in errors]


# ═══════════════════════════════════════════════════════════
# Test Check 1: Device Records
# ═══════════════════════════════════════════════════════════


class TestDeviceRecords:
    def test_all_records_present(self):
        assert check_device_records(_manager(0.03, 0.03)) == []

    def test_missing_record_flagged(self):
        manager = _manager(0.03, 0.03)
        manager.find_node("D2").device = None
        errors = check_device_records(manager)
        assert _codes(errors) == ["E_MISSING_DEVICE_RECORD"]
        assert errors[0].identifiers == ["D2"]


# ═══════════════════════════════════════════════════════════
# Test Check 2: Total Load
# ═══════════════════════════════════════════════════════════


class TestTotalLoad:
    def test_within_usable_load(self):
        assert check_total_load(_manager(1.0, 1.0)) == []

    def test_exceeds_usable_load(self):
        errors = check_total_load(_manager(1.0, 1.5))
        assert len(errors) == 1
        assert errors[0].severity == ValidationSeverity.ERROR
        assert errors[0].message == "Total load (2.500A) exceeds usable load (2.400A)"


# ═══════════════════════════════════════════════════════════
# Test Check 3: End-of-Line Voltage
# ═══════════════════════════════════════════════════════════


class TestEndOfLineVoltage:
    def test_short_run_passes(self):
        assert check_end_of_line_voltage(_manager(0.03, 0.03, 0.03)) == []

    def test_long_run_fails(self):
        # 29 − 0.4016 (supply) − 16.064 (2000ft at 1A) ≈ 12.53V
        manager = _manager(1.0, distance=2000.0)
        errors = check_end_of_line_voltage(manager)
        assert _codes(errors) == ["E_LOW_VOLTAGE"]
        assert errors[0].message == (
            "Device 'Horn Strobe D1' voltage (12.5V) below minimum (16.0V)"
        )

    def test_branch_device_labelled(self):
        manager = _manager(0.03)
        manager.start_branch_from_device("D1")
        manager.add_device_to_branch("B1", _device("B1", 1.0), 2000.0)
        errors = check_end_of_line_voltage(manager)
        assert any(e.message.startswith("Branch device 'Horn Strobe B1'") for e in errors)

    def test_recomputes_stale_manager(self):
        manager = _manager(0.03)
        manager.recalculate()
        manager.set_distance("D1", 5000.0)
        manager.find_node("D1").device = _device("D1", 1.0)
        assert _codes(check_end_of_line_voltage(manager)) == ["E_LOW_VOLTAGE"]


# ═══════════════════════════════════════════════════════════
# Test Check 4: Empty T-Taps
# ═══════════════════════════════════════════════════════════


class TestEmptyBranches:
    def test_populated_branch_passes(self):
        assert check_empty_branches(_tapped_manager()) == []

    def test_empty_branch_flagged(self):
        manager = _manager(0.03, 0.03)
        manager.start_branch_from_device("D2")
        manager.end_branch()
        errors = check_empty_branches(manager)
        assert _codes(errors) == ["E_EMPTY_BRANCH"]
        assert "T-Tap 1" in errors[0].message

    def test_branch_emptied_by_removal(self):
        manager = _tapped_manager()
        manager.remove_device("B1")
        assert _codes(check_empty_branches(manager)) == ["E_EMPTY_BRANCH"]


# ═══════════════════════════════════════════════════════════
# Test Check 5: Structural Consistency
# ═══════════════════════════════════════════════════════════


class TestStructureConsistency:
    def test_consistent(self):
        assert check_structure_consistency(_tapped_manager()) == []

    def test_main_list_mismatch(self):
        manager = _tapped_manager()
        manager.main_circuit.append("ghost")
        errors = check_structure_consistency(manager)
        assert _codes(errors) == ["E_MAIN_COUNT_MISMATCH"]
        assert errors[0].identifiers == ["ghost"]

    def test_branch_list_mismatch(self):
        manager = _tapped_manager()
        manager.branches["D1"].append("ghost")
        assert _codes(check_structure_consistency(manager)) == ["E_BRANCH_COUNT_MISMATCH"]

    def test_main_device_under_branch(self):
        manager = _tapped_manager()
        stray = manager.arena.create(NodeType.DEVICE, identifier="X1")
        manager.arena.attach(manager.find_node("B1"), stray)
        assert "E_MAIN_CHAIN_BROKEN" in _codes(check_structure_consistency(manager))

    def test_main_chain_fork(self):
        manager = _manager(0.03, 0.03)
        extra = manager.arena.create(
            NodeType.DEVICE, identifier="X1", device=_device("X1")
        )
        manager.arena.attach(manager.find_node("D1"), extra)
        errors = check_structure_consistency(manager)
        forks = [e for e in errors if e.code == "E_CHAIN_FORKED"]
        assert len(forks) == 1
        assert forks[0].identifiers == ["D1"]
        assert not validate_circuit(manager).is_valid

    def test_branch_chain_fork(self):
        manager = _tapped_manager()
        extra = manager.arena.create(
            NodeType.DEVICE, identifier="B9", device=_device("B9"), is_branch_device=True
        )
        manager.arena.attach(manager.find_node("B1"), extra)
        manager.resume_branch()
        # B1 is still the listed tail, so B2 lands beside B9
        manager.add_device_to_branch("B2", _device("B2"), 10.0)
        manager.branches["D1"].append("B9")
        assert _codes(check_structure_consistency(manager)) == ["E_CHAIN_FORKED"]

    def test_linear_circuit_has_no_forks(self):
        assert _tapped_manager().forked_nodes() == []


# ═══════════════════════════════════════════════════════════
# Test Checks 6–7: Warnings
# ═══════════════════════════════════════════════════════════


class TestWarnings:
    def test_wire_length_within_max(self):
        assert check_wire_length(_manager(0.5, distance=1000.0)) == []

    def test_wire_length_exceeds_max(self):
        # max run at 0.5A ≈ 3187ft past the supply
        warnings = check_wire_length(_manager(0.5, distance=4000.0))
        assert _codes(warnings) == ["W_WIRE_LENGTH"]
        assert warnings[0].severity == ValidationSeverity.WARNING

    def test_voltage_drop_percent(self):
        # 0.4016 + 3.2128 = 3.6144V drop, 12.5% of 29V
        manager = _manager(1.0, distance=400.0)
        assert _codes(check_voltage_drop_percent(manager)) == ["W_VOLTAGE_DROP"]
        assert check_voltage_drop_percent(manager, max_percent=15.0) == []

    def test_voltage_drop_empty_circuit(self):
        assert check_voltage_drop_percent(CircuitManager()) == []


# ═══════════════════════════════════════════════════════════
# Test Full Validator
# ═══════════════════════════════════════════════════════════


class TestFullValidator:
    def test_empty_circuit_valid(self):
        result = validate_circuit(CircuitManager())
        assert result.status == ValidationStatus.VALID
        assert result.checks_total == len(ALL_CHECKS)
        assert result.checks_passed == len(ALL_CHECKS)

    def test_small_circuit_valid(self):
        result = validate_circuit(_tapped_manager())
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_errors_accumulate(self):
        manager = _manager(1.0, 1.5, distance=2000.0)
        manager.start_branch_from_device("D1")
        manager.end_branch()
        result = validate_circuit(manager)
        codes = _codes(result.errors)
        assert result.status == ValidationStatus.INVALID
        assert "E_LOAD_EXCEEDS_USABLE" in codes
        assert "E_LOW_VOLTAGE" in codes
        assert "E_EMPTY_BRANCH" in codes
        assert result.checks_passed < result.checks_total

    def test_warnings_do_not_invalidate(self):
        result = validate_circuit(_manager(1.0, distance=400.0))
        assert result.is_valid
        assert _codes(result.warnings) == ["W_VOLTAGE_DROP"]

    def test_drop_percent_override(self):
        result = validate_circuit(
            _manager(1.0, distance=400.0), max_voltage_drop_percent=15.0
        )
        assert result.warnings == []

    def test_subset_of_checks(self):
        result = validate_circuit(_manager(1.0, 1.5), checks=[check_empty_branches])
        assert result.is_valid
        assert result.checks_total == 1

    def test_validate_shorthand(self):
        ok, messages = validate(_manager(1.0, 1.5))
        assert not ok
        assert messages == ["Total load (2.500A) exceeds usable load (2.400A)"]

    @pytest.mark.parametrize("count", [0, 1, 5])
    def test_validation_leaves_circuit_editable(self, count):
        manager = _manager(*([0.03] * count))
        validate_circuit(manager)
        assert manager.add_device_to_main("NEW", _device("NEW"))
