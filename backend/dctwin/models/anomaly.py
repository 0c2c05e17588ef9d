"""Anomaly ORM: a persisted discrepancy between a verification scan and the model.

Invariants:
    - Inserted with status OPEN; only the review workflow changes status/assignment
    - device_id is the primary referenced device; related_device_ids lists all of them
    - idempotency_key (when given) tags every row of one save batch; batch_index is
      the row's position in it, and (site_id, idempotency_key, batch_index) is unique

Design Decisions:
    - JSON expected/observed values: scan payloads vary by tooling
    - rack_id kept without FK: a scan may reference a rack that was since removed
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from dctwin.db.base import Base


class Anomaly(Base):
    __tablename__ = "anomalies"
    __table_args__ = (
        Index(
            "uq_anomalies_site_batch", "site_id", "idempotency_key", "batch_index",
            unique=True,
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    site_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sites.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    device_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("devices.id", ondelete="SET NULL"), nullable=True,
    )
    related_device_ids: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    rack_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    identity_key: Mapped[str] = mapped_column(String(200), nullable=False)
    anomaly_type: Mapped[str] = mapped_column(String(30), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")
    expected_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    observed_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_action: Mapped[str | None] = mapped_column(String(30), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(100), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True,
    )
    batch_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
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
