"""Session router — interactive circuit editing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from firewire.db.session import get_db
from firewire.services.configuration_service import ConfigurationService
from firewire.services.session_service import (
    SessionService,
    get_registry,
    session_view,
)
from firewire.schemas.configuration import ConfigurationSummary
from firewire.schemas.report import CircuitReport
from firewire.schemas.session import (
    BranchStartRequest,
    DeviceAddRequest,
    DistanceUpdate,
    RemovalResponse,
    SessionCreate,
    SessionLoadRequest,
    SessionResponse,
    SessionSaveRequest,
)
from firewire.schemas.validation import ValidationResult

router = APIRouter()


def _get_service() -> SessionService:
    return SessionService(get_registry())


def _get_repository(db: AsyncSession = Depends(get_db)) -> ConfigurationService:
    return ConfigurationService(db)


@router.post("/", response_model=SessionResponse, status_code=201)
async def create_session(
    data: SessionCreate | None = None,
    service: SessionService = Depends(_get_service),
):
    """Open an editing session with an empty circuit."""
    session = service.create(data.parameters if data else None)
    return session_view(session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    service: SessionService = Depends(_get_service),
):
    """Current tree, registries and totals."""
    session = service.registry.get(session_id)
    async with session.lock:
        return session_view(session)


@router.delete("/{session_id}", status_code=204)
async def close_session(
    session_id: str,
    service: SessionService = Depends(_get_service),
):
    service.registry.close(session_id)


# ─── Devices ───


@router.post("/{session_id}/devices/main", response_model=SessionResponse)
async def add_main_device(
    session_id: str,
    data: DeviceAddRequest,
    service: SessionService = Depends(_get_service),
):
    """Append a device to the end of the main circuit."""
    session = await service.add_device(session_id, data, branch=False)
    return session_view(session)


@router.post("/{session_id}/devices/branch", response_model=SessionResponse)
async def add_branch_device(
    session_id: str,
    data: DeviceAddRequest,
    service: SessionService = Depends(_get_service),
):
    """Append a device to the end of the active T-tap."""
    session = await service.add_device(session_id, data, branch=True)
    return session_view(session)


@router.put("/{session_id}/devices/{identifier}/distance", response_model=SessionResponse)
async def update_distance(
    session_id: str,
    identifier: str,
    data: DistanceUpdate,
    service: SessionService = Depends(_get_service),
):
    session = await service.set_distance(session_id, identifier, data.distance)
    return session_view(session)


@router.delete("/{session_id}/devices/{identifier}", response_model=RemovalResponse)
async def remove_device(
    session_id: str,
    identifier: str,
    service: SessionService = Depends(_get_service),
):
    """Remove a device and everything wired downstream of it."""
    result = await service.remove_device(session_id, identifier)
    return RemovalResponse(
        identifier=result.identifier,
        location=result.location,
        position=result.position,
        tap_point=result.tap_point,
        removed=result.removed,
    )


# ─── T-Taps ───


@router.post("/{session_id}/branches", response_model=SessionResponse)
async def start_branch(
    session_id: str,
    data: BranchStartRequest,
    service: SessionService = Depends(_get_service),
):
    """Start (or resume) a T-tap on a main-circuit device."""
    session = await service.start_branch(session_id, data.identifier)
    return session_view(session)


@router.post("/{session_id}/branches/end", response_model=SessionResponse)
async def end_branch(
    session_id: str,
    service: SessionService = Depends(_get_service),
):
    session = await service.end_branch(session_id)
    return session_view(session)


@router.post("/{session_id}/branches/resume", response_model=SessionResponse)
async def resume_branch(
    session_id: str,
    service: SessionService = Depends(_get_service),
):
    session = await service.resume_branch(session_id)
    return session_view(session)


@router.post("/{session_id}/clear", response_model=SessionResponse)
async def clear_session(
    session_id: str,
    service: SessionService = Depends(_get_service),
):
    session = await service.clear(session_id)
    return session_view(session)


# ─── Analysis ───


@router.post("/{session_id}/validate", response_model=ValidationResult)
async def validate_session(
    session_id: str,
    service: SessionService = Depends(_get_service),
):
    """Validate the circuit. The circuit stays editable either way."""
    return await service.validate(session_id)


@router.get("/{session_id}/report", response_model=CircuitReport)
async def session_report(
    session_id: str,
    service: SessionService = Depends(_get_service),
):
    return await service.report(session_id)


# ─── Persistence ───


@router.post("/{session_id}/save", response_model=ConfigurationSummary, status_code=201)
async def save_session(
    session_id: str,
    data: SessionSaveRequest,
    service: SessionService = Depends(_get_service),
    repository: ConfigurationService = Depends(_get_repository),
):
    """Snapshot the circuit into the configuration repository."""
    config = await service.snapshot(
        session_id,
        data.name,
        data.description,
        project_name=data.project_name,
        project_path=data.project_path,
        created_by=data.created_by,
    )
    config = await repository.save(config)
    return ConfigurationSummary.from_configuration(config)


@router.post("/{session_id}/load", response_model=SessionResponse)
async def load_session(
    session_id: str,
    data: SessionLoadRequest,
    service: SessionService = Depends(_get_service),
    repository: ConfigurationService = Depends(_get_repository),
):
    """Replace the session's circuit with a saved configuration."""
    config = await repository.get_by_id(data.configuration_id)
    session = await service.restore(session_id, config)
    return session_view(session)
