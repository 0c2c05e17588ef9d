"""History Schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class HistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    device_id: str | None = None
    device_name: str
    modification_type: str
    target_phase: str | None = None
    scheduled_date: datetime | None = None
    is_applied: bool
    from_location: dict | None = None
    to_location: dict | None = None
    status_change: dict | None = None
    notes: str | None = None
    user_id: str | None = None
    created_at: datetime
