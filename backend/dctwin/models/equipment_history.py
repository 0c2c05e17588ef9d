"""EquipmentHistory ORM: append-only audit trail of device changes.

Invariants:
    - Rows are inserted, never updated or deleted by the service
    - device_name is denormalized so the trail survives device row removal
    - device_id is SET NULL if a device row is ever purged
    - from_location/to_location are {"rack_id", "u_position"}; status_change is {"from", "to"}
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from dctwin.db.base import Base


class EquipmentHistory(Base):
    __tablename__ = "equipment_history"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    device_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("devices.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    device_name: Mapped[str] = mapped_column(String(200), nullable=False)
    modification_type: Mapped[str] = mapped_column(String(10), nullable=False)
    target_phase: Mapped[str | None] = mapped_column(String(10), nullable=True)
    scheduled_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    is_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    from_location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    to_location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status_change: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
