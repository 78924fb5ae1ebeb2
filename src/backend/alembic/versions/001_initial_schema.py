"""Initial schema: telemetry readings and device registry

Revision ID: 001
Revises:
Create Date: 2025-01-11

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Append-only readings
    op.create_table(
        "telemetry_readings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("device_id", sa.Text, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reading", sa.Float, nullable=False),
        sa.Column("unit", sa.Text, nullable=False),
        sa.Column("location", sa.Text, nullable=False),
        sa.Column("device_type", sa.Text, nullable=False),
    )
    op.create_index(
        "ix_telemetry_readings_timestamp_device_id",
        "telemetry_readings",
        ["timestamp", "device_id"],
    )

    # One row per device
    op.create_table(
        "device_metadata",
        sa.Column("device_id", sa.Text, primary_key=True),
        sa.Column("name", sa.Text, nullable=False, index=True),
        sa.Column("location", sa.Text, nullable=False),
        sa.Column("device_type", sa.Text, nullable=False),
        sa.Column("last_reported", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column(
            "status",
            sa.Enum(
                "online", "offline", "error",
                name="device_status",
                native_enum=False,
                length=16,
            ),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("device_metadata")
    op.drop_index("ix_telemetry_readings_timestamp_device_id", table_name="telemetry_readings")
    op.drop_table("telemetry_readings")
