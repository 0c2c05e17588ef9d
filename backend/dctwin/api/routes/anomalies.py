"""Anomaly Routes: fetch, triage and resolve persisted anomalies."""

import logging

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.infrastructure.database import get_db
from dctwin.schemas.anomaly import (
    AnomalyResponse, AnomalyUpdate, ResolveAnomalyRequest,
)
from dctwin.services.anomaly_service import AnomalyService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/anomalies", tags=["anomalies"])


@router.get("/{anomaly_id}", response_model=AnomalyResponse)
async def get_anomaly(anomaly_id: str, db: AsyncSession = Depends(get_db)):
    return AnomalyResponse.model_validate(await AnomalyService(db).get(anomaly_id))


@router.patch("/{anomaly_id}", response_model=AnomalyResponse)
async def update_anomaly(
    anomaly_id: str, body: AnomalyUpdate, db: AsyncSession = Depends(get_db),
):
    anomaly = await AnomalyService(db).update(
        anomaly_id,
        status=body.status,
        assigned_to=body.assigned_to,
        notes=body.notes,
        severity=body.severity,
    )
    return AnomalyResponse.model_validate(anomaly)


@router.post("/{anomaly_id}/resolve", response_model=AnomalyResponse)
async def resolve_anomaly(
    anomaly_id: str,
    body: ResolveAnomalyRequest,
    x_user_id: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """ACCEPT_ACTUAL corrects the canonical model; the other actions only close the anomaly."""
    anomaly = await AnomalyService(db).resolve(
        anomaly_id, body.action, body.user_id or x_user_id, body.notes,
    )
    return AnomalyResponse.model_validate(anomaly)
