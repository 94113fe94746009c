"""Configuration service — repository of saved circuit configurations."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from firewire.circuit.errors import SerializationError
from firewire.circuit.persistence import parse_configuration
from firewire.models.configuration import CircuitConfigurationRecord
from firewire.schemas.configuration import CircuitConfiguration

logger = logging.getLogger(__name__)


class ConfigurationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, config: CircuitConfiguration) -> CircuitConfiguration:
        """Insert or overwrite a configuration, stamping its modified date."""
        config.modified_at = datetime.now(timezone.utc)
        record = await self.db.get(CircuitConfigurationRecord, config.configuration_id)
        if record is None:
            record = CircuitConfigurationRecord(
                id=config.configuration_id, created_at=config.created_at
            )
            self.db.add(record)

        stats = config.statistics
        record.name = config.name
        record.description = config.description
        record.project_name = config.project_name
        record.project_path = config.project_path
        record.created_by = config.created_by
        record.schema_version = config.schema_version
        record.total_devices = stats.total_devices if stats else len(config.device_data)
        record.total_branches = stats.total_branches if stats else len(config.branches)
        record.document = config.model_dump(mode="json")
        record.modified_at = config.modified_at

        await self.db.flush()
        logger.info("Saved circuit configuration %s (%s)", config.name, config.configuration_id)
        return config

    async def _get_record(self, configuration_id: str) -> CircuitConfigurationRecord:
        record = await self.db.get(CircuitConfigurationRecord, configuration_id)
        if not record:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Configuration {configuration_id} not found",
            )
        return record

    async def get_by_id(self, configuration_id: str) -> CircuitConfiguration:
        record = await self._get_record(configuration_id)
        return parse_configuration(record.document)

    async def list_all(
        self,
        project_name: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[CircuitConfigurationRecord], int]:
        count_stmt = select(func.count()).select_from(CircuitConfigurationRecord)
        stmt = select(CircuitConfigurationRecord)
        if project_name is not None:
            count_stmt = count_stmt.where(
                CircuitConfigurationRecord.project_name == project_name
            )
            stmt = stmt.where(CircuitConfigurationRecord.project_name == project_name)

        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            stmt.order_by(CircuitConfigurationRecord.modified_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def delete(self, configuration_id: str) -> None:
        record = await self._get_record(configuration_id)
        await self.db.delete(record)
        await self.db.flush()

    async def export_json(self, configuration_id: str) -> str:
        config = await self.get_by_id(configuration_id)
        return config.to_json()

    async def import_json(self, raw: str | bytes | dict) -> CircuitConfiguration:
        """Store a configuration exported elsewhere under a fresh id."""
        config = parse_configuration(raw)
        now = datetime.now(timezone.utc)
        imported = config.model_copy(
            update={
                "configuration_id": str(uuid.uuid4()),
                "name": f"{config.name} (Imported)",
                "created_at": now,
                "modified_at": now,
            }
        )
        return await self.save(imported)

    async def find_with_device(self, identifier: str) -> list[CircuitConfiguration]:
        """Saved circuits that contain the given device, newest first."""
        stmt = select(CircuitConfigurationRecord).order_by(
            CircuitConfigurationRecord.modified_at.desc()
        )
        result = await self.db.execute(stmt)
        matches: list[CircuitConfiguration] = []
        for record in result.scalars().all():
            try:
                config = parse_configuration(record.document)
            except SerializationError:
                logger.warning("Skipping unreadable configuration %s", record.id)
                continue
            if identifier in config.device_data:
                matches.append(config)
        return matches
