"""Capacity Schemas."""

from pydantic import BaseModel, ConfigDict


class CapacitySuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rack_ids: list[str]
    room_id: str
    total_free_u: int
    total_power_headroom_kw: float
    score: float
    summary: str


class CapacityResponse(BaseModel):
    success: bool = True
    site_id: str
    phase: str
    suggestion: CapacitySuggestionResponse | None = None
