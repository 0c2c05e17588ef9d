"""DeviceType ORM: catalogue entry; its category drives MISSING-anomaly criticality."""

import uuid

from sqlalchemy import String, Integer, Float
from sqlalchemy.orm import Mapped, mapped_column

from dctwin.db.base import Base


class DeviceType(Base):
    __tablename__ = "device_types"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    u_height: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    power_kw: Mapped[float | None] = mapped_column(Float, nullable=True)
