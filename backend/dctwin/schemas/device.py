"""Device Schemas: request/response models for the lifecycle endpoints.

Invariants:
    - Request models only check shape and ranges; phase/move_type semantics are
      validated by the core so service callers get the same errors as HTTP callers
    - Responses built from DeviceSnapshot via from_attributes
"""

from pydantic import BaseModel, ConfigDict, Field

from dctwin.core.domain_types import Status4D


class MoveDeviceRequest(BaseModel):
    target_rack_id: str = Field(min_length=1, max_length=36)
    target_u_position: int
    target_phase: str
    move_type: str
    user_id: str | None = Field(None, max_length=100)


class RegisterDeviceRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    u_start: int
    u_height: int = Field(ge=1)
    status_4d: str = Status4D.PROPOSED.value
    power_kw: float = Field(0.0, ge=0)
    logical_equipment_id: str | None = Field(None, max_length=100)
    device_type_id: str | None = Field(None, max_length=36)
    serial_number: str | None = Field(None, max_length=100)
    user_id: str | None = Field(None, max_length=100)


class DeviceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    rack_id: str
    name: str
    u_start: int
    u_height: int
    status_4d: Status4D
    power_kw: float
    logical_equipment_id: str | None = None
    device_type_id: str | None = None
    serial_number: str | None = None
    is_active: bool


class MoveDeviceResponse(BaseModel):
    success: bool = True
    device: DeviceResponse
    new_device: DeviceResponse | None = None


class DeviceResult(BaseModel):
    """Single-device envelope for register and delete."""
    success: bool = True
    device: DeviceResponse
