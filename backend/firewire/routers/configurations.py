"""Configuration router — saved circuit repository endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from firewire.db.session import get_db
from firewire.services.configuration_service import ConfigurationService
from firewire.schemas.configuration import (
    CircuitConfiguration,
    ConfigurationListResponse,
    ConfigurationSummary,
)

router = APIRouter()


def _get_service(db: AsyncSession = Depends(get_db)) -> ConfigurationService:
    return ConfigurationService(db)


@router.get("/", response_model=ConfigurationListResponse)
async def list_configurations(
    project_name: str | None = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    service: ConfigurationService = Depends(_get_service),
):
    """List saved circuits, most recently modified first."""
    records, total = await service.list_all(
        project_name=project_name, offset=offset, limit=limit
    )
    return ConfigurationListResponse(
        configurations=[ConfigurationSummary.model_validate(r) for r in records],
        total=total,
    )


@router.get("/search", response_model=list[ConfigurationSummary])
async def find_configurations_with_device(
    identifier: str = Query(..., min_length=1),
    service: ConfigurationService = Depends(_get_service),
):
    """Saved circuits that contain a given device."""
    matches = await service.find_with_device(identifier)
    return [ConfigurationSummary.from_configuration(c) for c in matches]


@router.get("/{configuration_id}", response_model=CircuitConfiguration)
async def get_configuration(
    configuration_id: str,
    service: ConfigurationService = Depends(_get_service),
):
    return await service.get_by_id(configuration_id)


@router.get("/{configuration_id}/export")
async def export_configuration(
    configuration_id: str,
    service: ConfigurationService = Depends(_get_service),
):
    """Download the configuration as a JSON document."""
    content = await service.export_json(configuration_id)
    return Response(
        content=content,
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{configuration_id}.json"'
        },
    )


@router.post("/import", response_model=ConfigurationSummary, status_code=201)
async def import_configuration(
    document: dict = Body(...),
    service: ConfigurationService = Depends(_get_service),
):
    """Store an exported configuration under a new id."""
    config = await service.import_json(document)
    return ConfigurationSummary.from_configuration(config)


@router.delete("/{configuration_id}", status_code=204)
async def delete_configuration(
    configuration_id: str,
    service: ConfigurationService = Depends(_get_service),
):
    await service.delete(configuration_id)
