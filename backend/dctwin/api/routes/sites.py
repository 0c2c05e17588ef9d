"""Site Routes: site catalogue, rooms, scene graph, AI capacity search and verification scans.

Invariants:
    - Reads run in read snapshots (inside the services); writes go through the services
    - POST /anomalies detects and saves in one call unless save=false (preview)
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.core.domain_types import Phase
from dctwin.core.errors import InvalidRequestError
from dctwin.infrastructure.database import get_db
from dctwin.schemas.anomaly import (
    AnomalyResponse, DetectedAnomalyOut, DetectionResponse, VerificationScanRequest,
)
from dctwin.schemas.capacity import CapacityResponse, CapacitySuggestionResponse
from dctwin.schemas.device import DeviceResponse
from dctwin.schemas.inventory import (
    RoomCreate, RoomResponse, SiteCreate, SiteResponse, SiteUpdate,
)
from dctwin.schemas.scene import RackOut, RoomOut, SceneResponse
from dctwin.services.anomaly_service import AnomalyService
from dctwin.services.capacity_service import CapacityService
from dctwin.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sites", tags=["sites"])


# ─── Site catalogue ──────────────────────────────────────────────

@router.get("")
async def list_sites(db: AsyncSession = Depends(get_db)):
    sites = await InventoryService(db).list_sites()
    return {
        "success": True,
        "sites": [SiteResponse.model_validate(s).model_dump(mode="json") for s in sites],
    }


@router.post("", response_model=SiteResponse, status_code=status.HTTP_201_CREATED)
async def create_site(body: SiteCreate, db: AsyncSession = Depends(get_db)):
    site = await InventoryService(db).create_site(body.code, body.name)
    return SiteResponse.model_validate(site)


@router.get("/{site_id}", response_model=SiteResponse)
async def get_site(site_id: str, db: AsyncSession = Depends(get_db)):
    """Look a site up by id or by code."""
    return SiteResponse.model_validate(await InventoryService(db).get_site(site_id))


@router.patch("/{site_id}", response_model=SiteResponse)
async def update_site(
    site_id: str, body: SiteUpdate, db: AsyncSession = Depends(get_db),
):
    site = await InventoryService(db).update_site(site_id, name=body.name)
    return SiteResponse.model_validate(site)


@router.delete("/{site_id}")
async def delete_site(site_id: str, db: AsyncSession = Depends(get_db)):
    """Only a site without active devices can be deleted."""
    site = await InventoryService(db).delete_site(site_id)
    return {
        "success": True,
        "deleted": SiteResponse.model_validate(site).model_dump(mode="json"),
    }


@router.post(
    "/{site_id}/rooms", response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_room(
    site_id: str, body: RoomCreate, db: AsyncSession = Depends(get_db),
):
    room = await InventoryService(db).create_room(site_id, body.name)
    return RoomResponse.model_validate(room)


# ─── Twin views ──────────────────────────────────────────────────

@router.get("/{site_id}/scene", response_model=SceneResponse)
async def get_scene(
    site_id: str,
    phase: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Rooms, racks and active devices of a site, optionally only those visible in `phase`."""
    if phase is not None and phase not in {p.value for p in Phase}:
        raise InvalidRequestError(
            f"Invalid phase '{phase}'. Must be one of {[p.value for p in Phase]}",
            "phase",
        )
    scene = await CapacityService(db).load_scene(site_id)
    devices = scene.devices
    if phase is not None:
        devices = tuple(d for d in devices if d.visible_in(Phase(phase)))
    return SceneResponse(
        site_id=site_id,
        phase=phase,
        rooms=[RoomOut.model_validate(r) for r in scene.rooms],
        racks=[RackOut.model_validate(r) for r in scene.racks],
        devices=[DeviceResponse.model_validate(d) for d in devices],
    )


@router.get("/{site_id}/capacity", response_model=CapacityResponse)
async def get_ai_capacity(
    site_id: str,
    phase: str = Query(Phase.AS_IS.value),
    db: AsyncSession = Depends(get_db),
):
    """Best contiguous 3-6 rack block for an AI deployment, or suggestion=null."""
    suggestion = await CapacityService(db).find_ai_ready_capacity(site_id, phase)
    return CapacityResponse(
        site_id=site_id,
        phase=phase,
        suggestion=(
            CapacitySuggestionResponse.model_validate(suggestion)
            if suggestion else None
        ),
    )


@router.post("/{site_id}/anomalies", response_model=DetectionResponse)
async def detect_site_anomalies(
    site_id: str,
    body: VerificationScanRequest,
    save: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """Reconcile a verification scan against the site's canonical inventory."""
    service = AnomalyService(db)
    report = await service.detect(site_id, [r.to_record() for r in body.records])
    saved_count = 0
    if save:
        saved_count = await service.save(
            site_id, report.anomalies, body.idempotency_key,
        )
    return DetectionResponse(
        site_id=site_id,
        anomalies=[DetectedAnomalyOut.model_validate(a) for a in report.anomalies],
        summary=report.summary,
        saved=save,
        saved_count=saved_count,
    )


@router.get("/{site_id}/anomalies")
async def list_site_anomalies(
    site_id: str,
    status_filter: str | None = Query(None, alias="status"),
    severity: str | None = Query(None),
    anomaly_type: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Anomalies of a site, newest first."""
    rows = await AnomalyService(db).list_for_site(
        site_id, status_filter, severity, anomaly_type, limit, offset,
    )
    return {
        "success": True,
        "anomalies": [
            AnomalyResponse.model_validate(a).model_dump(mode="json") for a in rows
        ],
        "pagination": {"limit": limit, "offset": offset},
    }
