"""Initial schema: sites, rooms, racks, device_types, devices, equipment_history, anomalies.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "sites",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "rooms",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("site_id", sa.String(36), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_rooms_site_id", "rooms", ["site_id"])

    op.create_table(
        "racks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("room_id", sa.String(36), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("u_height", sa.Integer, nullable=False, server_default="42"),
        sa.Column("power_kw_limit", sa.Float, nullable=False, server_default="12.0"),
        sa.Column("current_power_kw", sa.Float, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_racks_room_id", "racks", ["room_id"])

    op.create_table(
        "device_types",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(100), nullable=False, unique=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("u_height", sa.Integer, nullable=False, server_default="1"),
        sa.Column("power_kw", sa.Float, nullable=True),
    )

    op.create_table(
        "devices",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("rack_id", sa.String(36), sa.ForeignKey("racks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("device_type_id", sa.String(36), sa.ForeignKey("device_types.id"), nullable=True),
        sa.Column("logical_equipment_id", sa.String(100), nullable=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("u_start", sa.Integer, nullable=False),
        sa.Column("u_height", sa.Integer, nullable=False),
        sa.Column("status_4d", sa.String(20), nullable=False, server_default="EXISTING_RETAINED"),
        sa.Column("power_kw", sa.Float, nullable=False, server_default="0"),
        sa.Column("serial_number", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_devices_rack_id", "devices", ["rack_id"])
    op.create_index("ix_devices_logical_equipment_id", "devices", ["logical_equipment_id"])

    op.create_table(
        "equipment_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("device_id", sa.String(36), sa.ForeignKey("devices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("device_name", sa.String(200), nullable=False),
        sa.Column("modification_type", sa.String(10), nullable=False),
        sa.Column("target_phase", sa.String(10), nullable=True),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_applied", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("from_location", sa.JSON, nullable=True),
        sa.Column("to_location", sa.JSON, nullable=True),
        sa.Column("status_change", sa.JSON, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_equipment_history_device_id", "equipment_history", ["device_id"])

    op.create_table(
        "anomalies",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("site_id", sa.String(36), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("device_id", sa.String(36), sa.ForeignKey("devices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("related_device_ids", sa.JSON, nullable=False),
        sa.Column("rack_id", sa.String(36), nullable=True),
        sa.Column("identity_key", sa.String(200), nullable=False),
        sa.Column("anomaly_type", sa.String(30), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="OPEN"),
        sa.Column("expected_value", sa.JSON, nullable=True),
        sa.Column("observed_value", sa.JSON, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("resolution", sa.Text, nullable=True),
        sa.Column("resolution_action", sa.String(30), nullable=True),
        sa.Column("assigned_to", sa.String(100), nullable=True),
        sa.Column("resolved_by", sa.String(100), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("idempotency_key", sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_anomalies_site_id", "anomalies", ["site_id"])
    op.create_index("ix_anomalies_idempotency_key", "anomalies", ["idempotency_key"])


def downgrade() -> None:
    op.drop_table("anomalies")
    op.drop_table("equipment_history")
    op.drop_table("devices")
    op.drop_table("device_types")
    op.drop_table("racks")
    op.drop_table("rooms")
    op.drop_table("sites")
