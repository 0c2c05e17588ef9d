"""Site ORM: a data-center campus, the aggregate root of the inventory graph.

Invariants:
    - code is unique (human-facing identifier, e.g. "site-nyc-01")
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from dctwin.db.base import Base


class Site(Base):
    """Site aggregate root: owns rooms, racks, devices and anomalies."""
    __tablename__ = "sites"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
