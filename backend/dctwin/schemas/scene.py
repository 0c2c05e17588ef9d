"""Scene Schemas: the rack/device graph of a site as served to viewers."""

from pydantic import BaseModel, ConfigDict

from dctwin.schemas.device import DeviceResponse


class RoomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class RackOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    room_id: str
    name: str
    u_height: int
    power_kw_limit: float
    current_power_kw: float


class SceneResponse(BaseModel):
    site_id: str
    phase: str | None = None
    rooms: list[RoomOut]
    racks: list[RackOut]
    devices: list[DeviceResponse]
