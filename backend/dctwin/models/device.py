"""Device ORM: one physical or planned piece of equipment in a rack.

Invariants:
    - Rows are never deleted by the lifecycle service: is_active=False is the soft delete
      (only deleting an emptied site removes its inactive devices)
    - status_4d is a Status4D value; visibility per phase comes from core/domain_types
    - logical_equipment_id links the as-built row and its planned copy after a
      CREATE_PROPOSED move

Design Decisions:
    - String primary keys: scan records and external inventories reference devices by
      opaque ids, not database-generated UUID objects
    - No ORM relationships: the store joins DeviceType explicitly for the category,
      so snapshots never trigger lazy loads in async code
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from dctwin.db.base import Base


class Device(Base):
    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    rack_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("racks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    device_type_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("device_types.id"), nullable=True,
    )
    logical_equipment_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    u_start: Mapped[int] = mapped_column(Integer, nullable=False)
    u_height: Mapped[int] = mapped_column(Integer, nullable=False)
    status_4d: Mapped[str] = mapped_column(
        String(20), nullable=False, default="EXISTING_RETAINED",
    )
    power_kw: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
