"""Device Lifecycle Service: transactional shell around core/plan_device_change.

Invariants:
    - Inputs validated before the first statement (no transaction opened for bad requests)
    - Lock order: device row, then every rack whose occupancy is checked, in rack id
      order (no lock-order deadlocks between two concurrent moves)
    - A write that loses a concurrent-write race is re-run as a whole, in a fresh
      transaction, up to settings.write_retry_attempts times
    - Conflict or NotFound inside the transaction rolls back: zero rows written
    - Every committed change carries its history rows in the same commit

Design Decisions:
    - Read-check-write in one write_transaction at the configured isolation level:
      SELECT ... FOR UPDATE on the device, a lock_version UPDATE on each rack checked
      (closes the check-then-act race, see SqlInventoryStore.get_rack)
    - Outcomes are snapshots read back inside the transaction, after the flush
    - Ids for planned copies generated here (uuid4) so the core stays deterministic
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.config import Settings, get_settings
from dctwin.core.detect_conflicts import describe_conflicts
from dctwin.core.domain_types import MoveType, Status4D
from dctwin.core.errors import (
    ErrorContext, InvalidRequestError, PlacementConflictError, ResourceNotFoundError,
)
from dctwin.core.inventory_snapshot import DeviceSnapshot, RackSnapshot
from dctwin.core.plan_device_change import (
    DeviceInsert, check_move, check_registration, plan_delete, plan_move,
    plan_registration, validate_move_request,
)
from dctwin.core.repository_protocols import InventoryStore
from dctwin.infrastructure.database import retry_on_concurrency, write_transaction
from dctwin.services.inventory_store import SqlInventoryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveOutcome:
    device: DeviceSnapshot
    new_device: DeviceSnapshot | None = None


@dataclass(frozen=True)
class DeleteOutcome:
    device: DeviceSnapshot


class DeviceLifecycleService:
    """move_device / delete_device / register_device over one AsyncSession."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.store: InventoryStore = SqlInventoryStore(db)

    async def _active_device(
        self, device_id: str, ctx: ErrorContext,
    ) -> DeviceSnapshot:
        device = await self.store.get_device(device_id, for_update=True)
        if device is None or not device.is_active:
            raise ResourceNotFoundError("Device", device_id, ctx)
        return device

    async def _claim_racks(
        self, rack_ids: set[str], ctx: ErrorContext,
    ) -> dict[str, tuple[RackSnapshot, list[DeviceSnapshot]]]:
        """Claim each rack (id order) and load its active devices."""
        claimed = {}
        for rack_id in sorted(rack_ids):
            rack = await self.store.get_rack(rack_id, for_update=True)
            if rack is None:
                raise ResourceNotFoundError("Rack", rack_id, ctx)
            claimed[rack_id] = (rack, await self.store.list_rack_devices(rack_id))
        return claimed

    async def _write(self, operation):
        return await retry_on_concurrency(
            operation, self.settings.write_retry_attempts,
        )

    async def move_device(
        self,
        device_id: str,
        target_rack_id: str,
        target_u_position: int,
        target_phase: str,
        move_type: str,
        user_id: str | None = None,
    ) -> MoveOutcome:
        phase, kind = validate_move_request(target_phase, move_type, target_u_position)
        user_id = user_id or self.settings.default_user_id
        ctx = ErrorContext(device_id=device_id, rack_id=target_rack_id, user_id=user_id)

        async def attempt() -> MoveOutcome:
            async with write_transaction(self.db, self.settings.write_isolation_level):
                device = await self._active_device(device_id, ctx)
                racks = await self._claim_racks({target_rack_id, device.rack_id}, ctx)
                target_rack, target_devices = racks[target_rack_id]
                origin_rack, origin_devices = racks[device.rack_id]

                conflicts = check_move(
                    device, target_rack, target_devices, target_u_position, phase, kind,
                    origin_rack, origin_devices,
                )
                if conflicts:
                    logger.info(
                        "Move rejected: U-space conflict",
                        extra={
                            "device_id": device_id, "rack_id": target_rack_id,
                            "phase": phase.value, "conflict_count": len(conflicts),
                        },
                    )
                    raise PlacementConflictError(describe_conflicts(conflicts), ctx)

                new_device_id = (
                    str(uuid.uuid4()) if kind == MoveType.CREATE_PROPOSED else None
                )
                plan = plan_move(
                    device, target_rack_id, target_u_position, phase, kind, user_id,
                    new_device_id=new_device_id,
                )
                await self.store.apply_plan(plan)

                return MoveOutcome(
                    device=await self.store.get_device(device_id),
                    new_device=(
                        await self.store.get_device(new_device_id)
                        if new_device_id else None
                    ),
                )

        outcome = await self._write(attempt)
        logger.info(
            "Device moved",
            extra={
                "device_id": device_id, "rack_id": target_rack_id,
                "phase": phase.value, "move_type": kind.value, "user_id": user_id,
            },
        )
        return outcome

    async def delete_device(
        self, device_id: str, user_id: str | None = None, reason: str | None = None,
    ) -> DeleteOutcome:
        """Soft delete: the row stays, is_active becomes False."""
        user_id = user_id or self.settings.default_user_id
        ctx = ErrorContext(device_id=device_id, user_id=user_id)

        async def attempt() -> DeleteOutcome:
            async with write_transaction(self.db, self.settings.write_isolation_level):
                device = await self._active_device(device_id, ctx)
                await self.store.apply_plan(plan_delete(device, user_id, reason))
                return DeleteOutcome(device=await self.store.get_device(device_id))

        outcome = await self._write(attempt)
        logger.info(
            "Device soft-deleted",
            extra={"device_id": device_id, "user_id": user_id},
        )
        return outcome

    async def register_device(
        self,
        rack_id: str,
        name: str,
        u_start: int,
        u_height: int,
        status_4d: str = Status4D.PROPOSED.value,
        power_kw: float = 0.0,
        logical_equipment_id: str | None = None,
        device_type_id: str | None = None,
        serial_number: str | None = None,
        user_id: str | None = None,
    ) -> DeviceSnapshot:
        """Ingest a new PROPOSED or EXISTING_RETAINED device into a rack."""
        try:
            status = Status4D(status_4d)
        except ValueError:
            raise InvalidRequestError(
                f"Invalid status_4d '{status_4d}'. "
                f"Must be one of {[s.value for s in Status4D]}",
                "status_4d",
            )
        user_id = user_id or self.settings.default_user_id
        ctx = ErrorContext(rack_id=rack_id, user_id=user_id)

        async def attempt() -> DeviceSnapshot:
            async with write_transaction(self.db, self.settings.write_isolation_level):
                rack, rack_devices = (await self._claim_racks({rack_id}, ctx))[rack_id]
                if device_type_id and not await self.store.device_type_exists(device_type_id):
                    raise ResourceNotFoundError("DeviceType", device_type_id, ctx)

                conflicts = check_registration(rack, rack_devices, u_start, u_height, status)
                if conflicts:
                    logger.info(
                        "Registration rejected: U-space conflict",
                        extra={"rack_id": rack_id, "conflict_count": len(conflicts)},
                    )
                    raise PlacementConflictError(describe_conflicts(conflicts), ctx)

                new_device = DeviceInsert(
                    id=str(uuid.uuid4()),
                    rack_id=rack_id,
                    name=name,
                    u_start=u_start,
                    u_height=u_height,
                    status_4d=status,
                    power_kw=power_kw,
                    logical_equipment_id=logical_equipment_id,
                    device_type_id=device_type_id,
                    serial_number=serial_number,
                )
                await self.store.apply_plan(plan_registration(new_device, user_id))
                return await self.store.get_device(new_device.id)

        created = await self._write(attempt)
        logger.info(
            "Device registered",
            extra={"device_id": created.id, "rack_id": rack_id, "user_id": user_id},
        )
        return created
