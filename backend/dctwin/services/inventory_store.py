"""SQL Inventory Store: SQLAlchemy implementation of InventoryStore and SceneLoader.

Invariants:
    - Rows are converted to frozen snapshots immediately after each query; nothing
      returned to callers holds a reference to a live ORM instance
    - get_device(for_update=True) issues SELECT ... FOR UPDATE (ignored by SQLite)
    - get_rack(for_update=True) claims the rack with an UPDATE of lock_version, so two
      writers checking the same rack serialise at any isolation level
    - A save batch that loses the (site_id, idempotency_key, batch_index) race raises
      ConcurrencyError; the retried save then finds the committed batch
    - apply_plan writes exactly what the ChangePlan says and flushes; the enclosing
      write_transaction commits or rolls back
    - Only active devices are returned by list_* and load_scene

Design Decisions:
    - Store does not open transactions itself: the service owns the transaction scope
      (write_transaction / read_snapshot), the store only issues statements
    - DeviceType joined explicitly for the category instead of an ORM relationship,
      so no lazy load can fire in async code
"""

import logging

from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.core.detect_anomalies import DetectedAnomaly
from dctwin.core.errors import ConcurrencyError, ErrorContext, ResourceNotFoundError
from dctwin.core.inventory_snapshot import (
    DeviceSnapshot, RackSnapshot, RoomSnapshot, SceneModel,
)
from dctwin.core.plan_device_change import ChangePlan
from dctwin.models.anomaly import Anomaly
from dctwin.models.device import Device
from dctwin.models.device_type import DeviceType
from dctwin.models.equipment_history import EquipmentHistory
from dctwin.models.rack import Rack
from dctwin.models.room import Room
from dctwin.models.site import Site

logger = logging.getLogger(__name__)


def device_snapshot(row: Device, category: str | None = None) -> DeviceSnapshot:
    return DeviceSnapshot(
        id=row.id,
        rack_id=row.rack_id,
        name=row.name,
        u_start=row.u_start,
        u_height=row.u_height,
        status_4d=row.status_4d,
        power_kw=row.power_kw or 0.0,
        logical_equipment_id=row.logical_equipment_id,
        device_type_id=row.device_type_id,
        category=category,
        serial_number=row.serial_number,
        is_active=row.is_active,
    )


def rack_snapshot(row: Rack) -> RackSnapshot:
    return RackSnapshot(
        id=row.id,
        room_id=row.room_id,
        name=row.name,
        u_height=row.u_height,
        power_kw_limit=row.power_kw_limit,
        current_power_kw=row.current_power_kw,
    )


def _devices_query():
    return (
        select(Device, DeviceType.category)
        .outerjoin(DeviceType, Device.device_type_id == DeviceType.id)
    )


class SqlInventoryStore:
    """InventoryStore + SceneLoader over one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Reads ───────────────────────────────────────────────────

    async def site_exists(self, site_id: str) -> bool:
        result = await self.db.execute(select(Site.id).where(Site.id == site_id))
        return result.scalar_one_or_none() is not None

    async def device_type_exists(self, device_type_id: str) -> bool:
        result = await self.db.execute(
            select(DeviceType.id).where(DeviceType.id == device_type_id)
        )
        return result.scalar_one_or_none() is not None

    async def get_device(
        self, device_id: str, for_update: bool = False,
    ) -> DeviceSnapshot | None:
        query = _devices_query().where(Device.id == device_id)
        if for_update:
            query = query.with_for_update(of=Device)
        row = (await self.db.execute(query)).one_or_none()
        if row is None:
            return None
        device, category = row
        return device_snapshot(device, category)

    async def get_rack(
        self, rack_id: str, for_update: bool = False,
    ) -> RackSnapshot | None:
        if for_update:
            claimed = await self.db.execute(
                update(Rack)
                .where(Rack.id == rack_id)
                .values(lock_version=Rack.lock_version + 1)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount == 0:
                return None
        rack = (await self.db.execute(
            select(Rack).where(Rack.id == rack_id)
        )).scalar_one_or_none()
        return rack_snapshot(rack) if rack else None

    async def list_rack_devices(self, rack_id: str) -> list[DeviceSnapshot]:
        result = await self.db.execute(
            _devices_query()
            .where(Device.rack_id == rack_id, Device.is_active.is_(True))
            .order_by(Device.u_start, Device.id)
        )
        return [device_snapshot(d, c) for d, c in result.all()]

    async def list_site_devices(self, site_id: str) -> list[DeviceSnapshot]:
        result = await self.db.execute(
            _devices_query()
            .join(Rack, Device.rack_id == Rack.id)
            .join(Room, Rack.room_id == Room.id)
            .where(Room.site_id == site_id, Device.is_active.is_(True))
            .order_by(Device.id)
        )
        return [device_snapshot(d, c) for d, c in result.all()]

    async def load_scene(self, site_id: str) -> SceneModel:
        rooms = (await self.db.execute(
            select(Room).where(Room.site_id == site_id).order_by(Room.id)
        )).scalars().all()
        racks = (await self.db.execute(
            select(Rack)
            .join(Room, Rack.room_id == Room.id)
            .where(Room.site_id == site_id)
            .order_by(Rack.room_id, Rack.name, Rack.id)
        )).scalars().all()
        devices = await self.list_site_devices(site_id)
        return SceneModel(
            site_id=site_id,
            rooms=tuple(
                RoomSnapshot(id=r.id, site_id=r.site_id, name=r.name) for r in rooms
            ),
            racks=tuple(rack_snapshot(r) for r in racks),
            devices=tuple(devices),
        )

    # ─── Writes ──────────────────────────────────────────────────

    async def apply_plan(self, plan: ChangePlan) -> None:
        """Stage every update, insert and history row of `plan`, then flush."""
        for update in plan.updates:
            device = await self.db.get(Device, update.device_id)
            if device is None:
                raise ResourceNotFoundError("Device", update.device_id)
            for column, value in update.changes.items():
                setattr(device, column, value)

        for insert in plan.inserts:
            self.db.add(Device(
                id=insert.id,
                rack_id=insert.rack_id,
                name=insert.name,
                u_start=insert.u_start,
                u_height=insert.u_height,
                status_4d=insert.status_4d.value,
                power_kw=insert.power_kw,
                logical_equipment_id=insert.logical_equipment_id,
                device_type_id=insert.device_type_id,
                serial_number=insert.serial_number,
                is_active=True,
            ))
        # History rows reference inserted devices by FK
        await self.db.flush()

        for entry in plan.history:
            self.db.add(EquipmentHistory(
                device_id=entry.device_id,
                device_name=entry.device_name,
                modification_type=entry.modification_type.value,
                target_phase=entry.target_phase.value if entry.target_phase else None,
                from_location=entry.from_location,
                to_location=entry.to_location,
                status_change=entry.status_change,
                notes=entry.notes,
                user_id=entry.user_id,
            ))
        await self.db.flush()

    async def count_anomalies_for_key(self, site_id: str, idempotency_key: str) -> int:
        result = await self.db.execute(
            select(func.count(Anomaly.id)).where(
                Anomaly.site_id == site_id,
                Anomaly.idempotency_key == idempotency_key,
            )
        )
        return result.scalar_one()

    async def insert_anomalies(
        self, site_id: str, anomalies: list[DetectedAnomaly],
        idempotency_key: str | None = None,
    ) -> int:
        """Insert-only; a repeated idempotency_key returns the earlier count unchanged."""
        if idempotency_key:
            existing = await self.count_anomalies_for_key(site_id, idempotency_key)
            if existing:
                logger.info(
                    "Anomaly batch already saved, skipping",
                    extra={"site_id": site_id, "anomaly_count": existing},
                )
                return existing

        for position, a in enumerate(anomalies):
            row = Anomaly(
                site_id=site_id,
                device_id=a.device_id,
                related_device_ids=list(a.related_device_ids),
                rack_id=a.rack_id,
                identity_key=a.identity_key,
                anomaly_type=a.anomaly_type.value,
                severity=a.severity.value,
                status=a.status.value,
                expected_value=a.expected_value,
                observed_value=a.observed_value,
                notes=a.notes,
                idempotency_key=idempotency_key,
                batch_index=position if idempotency_key else None,
            )
            if a.created_at is not None:
                row.created_at = a.created_at
            self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError:
            if not idempotency_key:
                raise
            raise ConcurrencyError(
                f"Anomaly batch '{idempotency_key}' is being saved concurrently",
                ErrorContext(site_id=site_id),
            )
        return len(anomalies)
