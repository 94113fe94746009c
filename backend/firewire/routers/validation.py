"""Validation router — standalone circuit validation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from firewire.circuit.persistence import load_configuration
from firewire.config import get_settings
from firewire.db.session import get_db
from firewire.services.configuration_service import ConfigurationService
from firewire.schemas.configuration import CircuitConfiguration
from firewire.schemas.validation import ValidationResult
from firewire.validation.engine import validate_circuit as run_validation

router = APIRouter()


def _get_service(db: AsyncSession = Depends(get_db)) -> ConfigurationService:
    return ConfigurationService(db)


def _validate_configuration(config: CircuitConfiguration) -> ValidationResult:
    settings = get_settings()
    manager = load_configuration(config, max_devices=settings.max_devices_per_circuit)
    return run_validation(
        manager, max_voltage_drop_percent=settings.max_voltage_drop_percent
    )


@router.post("/configurations/{configuration_id}", response_model=ValidationResult)
async def validate_saved_configuration(
    configuration_id: str,
    service: ConfigurationService = Depends(_get_service),
):
    """Validate a saved configuration without opening a session."""
    config = await service.get_by_id(configuration_id)
    return _validate_configuration(config)


@router.post("/inline", response_model=ValidationResult)
async def validate_inline(config: CircuitConfiguration):
    """Validate a configuration document without persisting. Stateless."""
    return _validate_configuration(config)
