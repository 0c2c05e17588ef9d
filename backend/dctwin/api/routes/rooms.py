"""Room Routes: racks are added to a room."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.infrastructure.database import get_db
from dctwin.schemas.inventory import RackCreate
from dctwin.schemas.scene import RackOut
from dctwin.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/rooms", tags=["rooms"])


@router.post(
    "/{room_id}/racks", response_model=RackOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_rack(
    room_id: str, body: RackCreate, db: AsyncSession = Depends(get_db),
):
    rack = await InventoryService(db).create_rack(
        room_id,
        body.name,
        u_height=body.u_height,
        power_kw_limit=body.power_kw_limit,
        current_power_kw=body.current_power_kw,
    )
    return RackOut.model_validate(rack)
