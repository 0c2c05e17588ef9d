"""Device Routes: fetch, register, move and soft-delete devices.

Invariants:
    - Routes are thin: every write goes through DeviceLifecycleService
    - Failures surface as TwinError and are rendered by the global handler
    - Identity comes from the body's user_id or the X-User-Id header (no auth here)
"""

import logging

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.core.errors import ResourceNotFoundError
from dctwin.infrastructure.database import get_db
from dctwin.schemas.device import (
    DeviceResponse, DeviceResult, MoveDeviceRequest, MoveDeviceResponse,
    RegisterDeviceRequest,
)
from dctwin.services.device_lifecycle import DeviceLifecycleService
from dctwin.services.inventory_store import SqlInventoryStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["devices"])


@router.get("/devices/{device_id}", response_model=DeviceResponse)
async def get_device(device_id: str, db: AsyncSession = Depends(get_db)):
    device = await SqlInventoryStore(db).get_device(device_id)
    if device is None:
        raise ResourceNotFoundError("Device", device_id)
    return DeviceResponse.model_validate(device)


@router.post(
    "/racks/{rack_id}/devices", response_model=DeviceResult,
    status_code=status.HTTP_201_CREATED,
)
async def register_device(
    rack_id: str,
    body: RegisterDeviceRequest,
    x_user_id: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """Ingest a PROPOSED or EXISTING_RETAINED device into a rack."""
    device = await DeviceLifecycleService(db).register_device(
        rack_id=rack_id,
        name=body.name,
        u_start=body.u_start,
        u_height=body.u_height,
        status_4d=body.status_4d,
        power_kw=body.power_kw,
        logical_equipment_id=body.logical_equipment_id,
        device_type_id=body.device_type_id,
        serial_number=body.serial_number,
        user_id=body.user_id or x_user_id,
    )
    return DeviceResult(device=DeviceResponse.model_validate(device))


@router.post("/devices/{device_id}/move", response_model=MoveDeviceResponse)
async def move_device(
    device_id: str,
    body: MoveDeviceRequest,
    x_user_id: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """Move in place (MODIFIED) or fork a planned copy (CREATE_PROPOSED). 409 on conflict."""
    outcome = await DeviceLifecycleService(db).move_device(
        device_id=device_id,
        target_rack_id=body.target_rack_id,
        target_u_position=body.target_u_position,
        target_phase=body.target_phase,
        move_type=body.move_type,
        user_id=body.user_id or x_user_id,
    )
    return MoveDeviceResponse(
        device=DeviceResponse.model_validate(outcome.device),
        new_device=(
            DeviceResponse.model_validate(outcome.new_device)
            if outcome.new_device else None
        ),
    )


@router.delete("/devices/{device_id}", response_model=DeviceResult)
async def delete_device(
    device_id: str,
    x_user_id: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the device stays in history, is_active becomes false."""
    outcome = await DeviceLifecycleService(db).delete_device(device_id, x_user_id)
    return DeviceResult(device=DeviceResponse.model_validate(outcome.device))
