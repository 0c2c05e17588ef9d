"""Inventory Schemas: sites, rooms, racks and the device type catalogue."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SiteCreate(BaseModel):
    code: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=200)


class SiteUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)


class SiteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    name: str
    created_at: datetime


class RoomCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class RoomResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    site_id: str
    name: str


class RackCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    u_height: int = Field(42, ge=1, le=60)
    power_kw_limit: float = Field(12.0, ge=0)
    current_power_kw: float = Field(0.0, ge=0)


class DeviceTypeCreate(BaseModel):
    code: str = Field(min_length=1, max_length=100)
    category: str
    name: str | None = Field(None, max_length=200)
    # 0U covers zero-height gear such as vertical PDUs
    u_height: int = Field(1, ge=0)
    power_kw: float | None = Field(None, ge=0)


class DeviceTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    category: str
    name: str | None = None
    u_height: int
    power_kw: float | None = None
