"""Rack ORM: vertical U-space and power budget that devices occupy.

Invariants:
    - u_height >= 1; device intervals live inside U1..u_height
    - current_power_kw is maintained by the power telemetry feed, not by this service
    - Every write that checks a rack's occupancy first bumps lock_version on that rack

Design Decisions:
    - Rack rows double as the lock target for placements. The claim is a real UPDATE, not
      only SELECT ... FOR UPDATE: under REPEATABLE READ a second writer whose snapshot
      predates the first writer's commit then fails with a serialization error instead
      of checking against a stale device list
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Float, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from dctwin.db.base import Base


class Rack(Base):
    __tablename__ = "racks"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    room_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    u_height: Mapped[int] = mapped_column(Integer, nullable=False, default=42)
    power_kw_limit: Mapped[float] = mapped_column(
        Float, nullable=False, default=12.0,
    )
    current_power_kw: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0,
    )
    lock_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )
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
