"""History Routes: read-only view of the equipment audit trail."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.infrastructure.database import get_db
from dctwin.models.equipment_history import EquipmentHistory
from dctwin.schemas.history import HistoryEntryResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/history", tags=["history"])


@router.get("")
async def list_history(
    device_id: str | None = Query(None),
    since: datetime | None = Query(None),
    until: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """History entries, newest first, by device and/or date window."""
    query = select(EquipmentHistory).order_by(
        EquipmentHistory.created_at.desc(), EquipmentHistory.id,
    )
    if device_id:
        query = query.where(EquipmentHistory.device_id == device_id)
    if since:
        query = query.where(EquipmentHistory.created_at >= since)
    if until:
        query = query.where(EquipmentHistory.created_at <= until)
    result = await db.execute(query.limit(limit))
    return {
        "success": True,
        "history": [
            HistoryEntryResponse.model_validate(h).model_dump(mode="json")
            for h in result.scalars().all()
        ],
    }
