"""Saved circuit configuration table.

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "circuit_configurations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("project_name", sa.String(length=255), nullable=True),
        sa.Column("project_path", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("schema_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_devices", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_branches", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("document", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "ix_circuit_configurations_project_name",
        "circuit_configurations",
        ["project_name"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_circuit_configurations_project_name", table_name="circuit_configurations"
    )
    op.drop_table("circuit_configurations")
