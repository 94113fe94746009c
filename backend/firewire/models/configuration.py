"""SQLAlchemy ORM model for saved circuit configurations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from firewire.db.session import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class CircuitConfigurationRecord(Base):
    __tablename__ = "circuit_configurations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )
    project_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Denormalized for listings
    total_devices: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_branches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Full CircuitConfiguration document
    document: Mapped[dict] = mapped_column(JSONDocument, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<CircuitConfiguration {self.name} ({self.id})>"
