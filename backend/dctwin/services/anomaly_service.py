"""Anomaly Service: loads canonical inventory, runs detection, persists and reviews anomalies.

Invariants:
    - Detection reads inside read_snapshot: one consistent view, never committed
    - save is insert-only; a repeated idempotency_key for the site inserts nothing
    - resolve runs in one write_transaction: model correction, history and anomaly
      status commit together or not at all
    - Only OPEN / INVESTIGATING anomalies can be resolved or edited; update() never
      sets a resolved status (resolved_by / resolved_at come only from resolve())

Design Decisions:
    - detect and save are separate calls so callers can preview a scan without writing
    - ACCEPT_ACTUAL goes through the same pure planners as the lifecycle engine
      (plan_correction / plan_delete), so corrections respect the non-overlap invariant
"""

import dataclasses
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.config import Settings, get_settings
from dctwin.core.detect_anomalies import (
    AnomalyReport, DetectedAnomaly, VerificationRecord, detect_anomalies,
)
from dctwin.core.detect_conflicts import describe_conflicts
from dctwin.core.domain_types import (
    AnomalyStatus, AnomalyType, ResolutionAction, Severity, UNRESOLVED_ANOMALY_STATUSES,
)
from dctwin.core.errors import (
    AnomalyAlreadyResolvedError, ErrorContext, InvalidRequestError,
    PlacementConflictError, ResourceNotFoundError,
)
from dctwin.core.plan_device_change import check_relocation, plan_correction, plan_delete
from dctwin.core.repository_protocols import InventoryStore
from dctwin.infrastructure.database import (
    read_snapshot, retry_on_concurrency, write_transaction,
)
from dctwin.models.anomaly import Anomaly
from dctwin.services.inventory_store import SqlInventoryStore

logger = logging.getLogger(__name__)


def _coerce(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidRequestError(
            f"Invalid {field} '{value}'. Must be one of {[e.value for e in enum_cls]}",
            field,
        )


class AnomalyService:
    """Detection, persistence and the review workflow for one site's anomalies."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.store: InventoryStore = SqlInventoryStore(db)

    # ─── Detection ───────────────────────────────────────────────

    async def detect(
        self,
        site_id: str,
        records: list[VerificationRecord],
        detected_at: datetime | None = None,
    ) -> AnomalyReport:
        async with read_snapshot(self.db, self.settings.read_isolation_level):
            if not await self.store.site_exists(site_id):
                raise ResourceNotFoundError("Site", site_id, ErrorContext(site_id=site_id))
            devices = await self.store.list_site_devices(site_id)

        report = detect_anomalies(site_id, devices, records, detected_at)
        logger.info(
            "Verification scan reconciled",
            extra={"site_id": site_id, "anomaly_count": report.summary["total"]},
        )
        return report

    async def save(
        self,
        site_id: str,
        anomalies: list[DetectedAnomaly] | tuple[DetectedAnomaly, ...],
        idempotency_key: str | None = None,
    ) -> int:
        """Persist detected anomalies; returns the number stored for this batch.

        Two saves racing on the same key collide on uq_anomalies_site_batch; the loser
        is re-run and finds the winner's batch.
        """
        async def attempt() -> int:
            async with write_transaction(self.db, self.settings.write_isolation_level):
                return await self.store.insert_anomalies(
                    site_id, list(anomalies), idempotency_key,
                )

        count = await retry_on_concurrency(attempt, self.settings.write_retry_attempts)
        logger.info(
            "Anomalies saved",
            extra={"site_id": site_id, "anomaly_count": count},
        )
        return count

    # ─── Review workflow ─────────────────────────────────────────

    async def list_for_site(
        self,
        site_id: str,
        status: str | None = None,
        severity: str | None = None,
        anomaly_type: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Anomaly]:
        """Anomalies of a site, newest first."""
        query = select(Anomaly).where(Anomaly.site_id == site_id)
        if status:
            query = query.where(
                Anomaly.status == _coerce(AnomalyStatus, status, "status").value,
            )
        if severity:
            query = query.where(
                Anomaly.severity == _coerce(Severity, severity, "severity").value,
            )
        if anomaly_type:
            query = query.where(
                Anomaly.anomaly_type
                == _coerce(AnomalyType, anomaly_type, "anomaly_type").value,
            )
        query = (
            query.order_by(Anomaly.created_at.desc(), Anomaly.id)
            .limit(limit).offset(offset)
        )
        return list((await self.db.execute(query)).scalars().all())

    async def _get_row(self, anomaly_id: str, for_update: bool = False) -> Anomaly:
        query = select(Anomaly).where(Anomaly.id == anomaly_id)
        if for_update:
            query = query.with_for_update()
        anomaly = (await self.db.execute(query)).scalar_one_or_none()
        if anomaly is None:
            raise ResourceNotFoundError("Anomaly", anomaly_id)
        return anomaly

    async def get(self, anomaly_id: str) -> Anomaly:
        return await self._get_row(anomaly_id)

    async def update(
        self,
        anomaly_id: str,
        status: str | None = None,
        assigned_to: str | None = None,
        notes: str | None = None,
        severity: str | None = None,
    ) -> Anomaly:
        """Triage edit of an unresolved anomaly; resolution goes through resolve()."""
        new_status = _coerce(AnomalyStatus, status, "status") if status else None
        if new_status is not None and new_status not in UNRESOLVED_ANOMALY_STATUSES:
            raise InvalidRequestError(
                f"Status '{new_status.value}' is set by resolving the anomaly, "
                f"not by updating it",
                "status",
            )
        new_severity = _coerce(Severity, severity, "severity") if severity else None

        async with write_transaction(self.db, self.settings.write_isolation_level):
            anomaly = await self._get_row(anomaly_id, for_update=True)
            if AnomalyStatus(anomaly.status) not in UNRESOLVED_ANOMALY_STATUSES:
                raise AnomalyAlreadyResolvedError(anomaly_id, anomaly.status)
            if new_status is not None:
                anomaly.status = new_status.value
            if new_severity is not None:
                anomaly.severity = new_severity.value
            if assigned_to is not None:
                anomaly.assigned_to = assigned_to
            if notes is not None:
                anomaly.notes = notes
            await self.db.flush()
        return anomaly

    async def resolve(
        self,
        anomaly_id: str,
        action: str,
        user_id: str | None = None,
        notes: str | None = None,
    ) -> Anomaly:
        action = _coerce(ResolutionAction, action, "action")
        user_id = user_id or self.settings.default_user_id

        async def attempt() -> Anomaly:
            async with write_transaction(self.db, self.settings.write_isolation_level):
                anomaly = await self._get_row(anomaly_id, for_update=True)
                if AnomalyStatus(anomaly.status) not in UNRESOLVED_ANOMALY_STATUSES:
                    raise AnomalyAlreadyResolvedError(anomaly_id, anomaly.status)

                if action == ResolutionAction.ACCEPT_ACTUAL:
                    await self._accept_actual(anomaly, user_id)
                    anomaly.status = AnomalyStatus.RESOLVED.value
                    anomaly.resolution = notes or "System updated to match actual state"
                elif action == ResolutionAction.UPDATE_SYSTEM_LATER:
                    anomaly.status = AnomalyStatus.RESOLVED.value
                    anomaly.resolution = (
                        notes or "Acknowledged; system record to be updated later"
                    )
                else:
                    anomaly.status = AnomalyStatus.FALSE_POSITIVE.value
                    anomaly.resolution = notes or "Marked as false positive"

                anomaly.resolution_action = action.value
                anomaly.resolved_by = user_id
                anomaly.resolved_at = datetime.now(timezone.utc)
                await self.db.flush()
                return anomaly

        anomaly = await retry_on_concurrency(attempt, self.settings.write_retry_attempts)
        logger.info(
            "Anomaly resolved",
            extra={
                "site_id": anomaly.site_id, "device_id": anomaly.device_id,
                "user_id": user_id,
            },
        )
        return anomaly

    async def _accept_actual(self, anomaly: Anomaly, user_id: str) -> None:
        """Apply the observation to the canonical model (inside the caller's transaction)."""
        kind = AnomalyType(anomaly.anomaly_type)
        if kind in (AnomalyType.UNEXPECTED, AnomalyType.STATUS_MISMATCH):
            return

        ctx = ErrorContext(
            site_id=anomaly.site_id, device_id=anomaly.device_id, user_id=user_id,
        )
        device = (
            await self.store.get_device(anomaly.device_id, for_update=True)
            if anomaly.device_id else None
        )

        if kind == AnomalyType.MISSING:
            if device is not None and device.is_active:
                await self.store.apply_plan(plan_delete(
                    device, user_id,
                    f"Not found during verification (anomaly {anomaly.id})",
                ))
            return

        if device is None or not device.is_active:
            raise ResourceNotFoundError("Device", anomaly.device_id or "", ctx)
        observed = anomaly.observed_value or {}

        if kind == AnomalyType.LOCATION_MISMATCH:
            rack_id = observed.get("rack_id", device.rack_id)
            u_start = observed.get("u_position", device.u_start)
            rack = await self.store.get_rack(rack_id, for_update=True)
            if rack is None:
                raise ResourceNotFoundError("Rack", rack_id, ctx)
            conflicts = check_relocation(
                device, rack, await self.store.list_rack_devices(rack_id), u_start,
            )
            if conflicts:
                raise PlacementConflictError(describe_conflicts(conflicts), ctx)
            await self.store.apply_plan(plan_correction(
                device, {"rack_id": rack_id, "u_start": u_start}, user_id,
                f"Location corrected from verification (anomaly {anomaly.id})",
            ))
            return

        changes = {}
        observed_type = observed.get("device_type_id")
        if observed_type and observed_type != device.device_type_id:
            if not await self.store.device_type_exists(observed_type):
                raise ResourceNotFoundError("DeviceType", observed_type, ctx)
            changes["device_type_id"] = observed_type
        if observed.get("power_kw") is not None and observed["power_kw"] != device.power_kw:
            changes["power_kw"] = observed["power_kw"]
        if observed.get("u_height") is not None and observed["u_height"] != device.u_height:
            resized = dataclasses.replace(device, u_height=observed["u_height"])
            rack = await self.store.get_rack(device.rack_id, for_update=True)
            conflicts = check_relocation(
                resized, rack, await self.store.list_rack_devices(device.rack_id),
                device.u_start,
            )
            if conflicts:
                raise PlacementConflictError(describe_conflicts(conflicts), ctx)
            changes["u_height"] = observed["u_height"]
        if changes:
            await self.store.apply_plan(plan_correction(
                device, changes, user_id,
                f"Attributes corrected from verification (anomaly {anomaly.id}): "
                + ", ".join(sorted(changes)),
            ))
