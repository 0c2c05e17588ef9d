"""Device Type Routes: the equipment catalogue devices reference."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.infrastructure.database import get_db
from dctwin.schemas.inventory import DeviceTypeCreate, DeviceTypeResponse
from dctwin.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/device-types", tags=["device-types"])


@router.get("")
async def list_device_types(
    category: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    device_types = await InventoryService(db).list_device_types(category)
    return {
        "success": True,
        "device_types": [
            DeviceTypeResponse.model_validate(t).model_dump(mode="json")
            for t in device_types
        ],
    }


@router.post(
    "", response_model=DeviceTypeResponse, status_code=status.HTTP_201_CREATED,
)
async def create_device_type(
    body: DeviceTypeCreate, db: AsyncSession = Depends(get_db),
):
    """409 when the code is already catalogued."""
    device_type = await InventoryService(db).create_device_type(
        code=body.code,
        category=body.category,
        name=body.name,
        u_height=body.u_height,
        power_kw=body.power_kw,
    )
    return DeviceTypeResponse.model_validate(device_type)
