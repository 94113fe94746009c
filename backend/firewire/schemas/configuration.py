"""Pydantic schemas for saved circuit configurations."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from firewire.schemas.circuit import CircuitParameters, DeviceRecord
from firewire.schemas.report import CircuitStatistics

CONFIGURATION_SCHEMA_VERSION = 1


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SerializedNode(BaseModel):
    """One device node. The saved tree is a flat pre-order list of these."""

    node_type: str = "Device"
    identifier: str = Field(..., min_length=1)
    parent: str | None = None  # upstream device; None for the supply panel
    is_branch_device: bool = False
    distance_from_parent: float = Field(0.0, ge=0)
    sequence_number: int = 0


class CircuitConfiguration(BaseModel):
    configuration_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    schema_version: int = CONFIGURATION_SCHEMA_VERSION
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    created_at: datetime = Field(default_factory=_now)
    modified_at: datetime = Field(default_factory=_now)
    created_by: str | None = None
    project_name: str | None = None
    project_path: str | None = None

    # Circuit structure
    nodes: list[SerializedNode] = Field(default_factory=list)  # pre-order
    main_circuit: list[str] = Field(default_factory=list)
    branches: dict[str, list[str]] = Field(default_factory=dict)
    branch_names: dict[str, str] = Field(default_factory=dict)
    device_data: dict[str, DeviceRecord] = Field(default_factory=dict)
    mode: str = "main"
    active_tap_point: str | None = None

    parameters: CircuitParameters
    statistics: CircuitStatistics | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> CircuitConfiguration:
        return cls.model_validate_json(raw)


# ─── Repository Schemas ───


class ConfigurationSummary(BaseModel):
    id: str
    name: str
    description: str | None = None
    project_name: str | None = None
    total_devices: int = 0
    total_branches: int = 0
    created_at: datetime
    modified_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_configuration(cls, config: CircuitConfiguration) -> ConfigurationSummary:
        stats = config.statistics
        return cls(
            id=config.configuration_id,
            name=config.name,
            description=config.description,
            project_name=config.project_name,
            total_devices=stats.total_devices if stats else len(config.device_data),
            total_branches=stats.total_branches if stats else len(config.branches),
            created_at=config.created_at,
            modified_at=config.modified_at,
        )


class ConfigurationListResponse(BaseModel):
    configurations: list[ConfigurationSummary]
    total: int
