"""Device Lifecycle Service: transactional move, delete and register.

Invariants:
    - A colliding move raises PlacementConflictError and writes nothing
    - CREATE_PROPOSED never changes the original's rack_id/u_start
    - After any successful move, no two active devices visible in a phase overlap
    - A storage failure mid-plan rolls every write back
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from dctwin.core.domain_types import Phase, Status4D
from dctwin.core.errors import (
    DatabaseError, InvalidRequestError, PlacementConflictError,
    PlacementOutOfBoundsError, ResourceNotFoundError,
)
from dctwin.models import Device, EquipmentHistory
from dctwin.services.device_lifecycle import DeviceLifecycleService
from dctwin.services.inventory_store import SqlInventoryStore


async def _history(db):
    result = await db.execute(select(EquipmentHistory).order_by(EquipmentHistory.created_at))
    return result.scalars().all()


async def _device_row(db, device_id):
    result = await db.execute(
        select(Device).where(Device.id == device_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _assert_no_overlaps(db):
    devices = await SqlInventoryStore(db).list_site_devices("site-1")
    for phase in Phase:
        visible = [d for d in devices if d.visible_in(phase)]
        for i, a in enumerate(visible):
            for b in visible[i + 1:]:
                if a.rack_id == b.rack_id:
                    assert not a.overlaps(b.u_start, b.u_height), (phase, a.id, b.id)


# ─── move_device: MODIFIED ───────────────────────────────────────

async def test_modified_move_updates_in_place(test_db, seed):
    outcome = await DeviceLifecycleService(test_db).move_device(
        "D1", "R2", 30, "TO_BE", "MODIFIED", "alice",
    )

    assert outcome.new_device is None
    assert (outcome.device.rack_id, outcome.device.u_start) == ("R2", 30)
    assert outcome.device.status_4d == Status4D.MODIFIED

    (entry,) = await _history(test_db)
    assert entry.modification_type == "move"
    assert entry.device_id == "D1"
    assert entry.from_location == {"rack_id": "R1", "u_position": 10}
    assert entry.to_location == {"rack_id": "R2", "u_position": 30}
    assert entry.status_change == {"from": "EXISTING_RETAINED", "to": "MODIFIED"}
    assert entry.target_phase == "TO_BE"
    assert entry.user_id == "alice"
    await _assert_no_overlaps(test_db)


async def test_modified_move_can_shift_within_own_footprint(test_db, seed):
    outcome = await DeviceLifecycleService(test_db).move_device(
        "D1", "R1", 11, "AS_IS", "MODIFIED", "alice",
    )
    assert outcome.device.u_start == 11


async def test_colliding_move_writes_nothing(test_db, seed):
    service = DeviceLifecycleService(test_db)
    with pytest.raises(PlacementConflictError) as exc:
        await service.move_device("D1", "R2", 6, "TO_BE", "MODIFIED", "alice")

    assert [c["device_id"] for c in exc.value.conflicts] == ["D3"]
    assert exc.value.conflicts[0]["u_end"] == 8
    d1 = await _device_row(test_db, "D1")
    assert (d1.rack_id, d1.u_start, d1.status_4d) == ("R1", 10, "EXISTING_RETAINED")
    assert await _history(test_db) == []


async def test_move_into_planned_slot_conflicts_only_where_visible(test_db, seed):
    service = DeviceLifecycleService(test_db)
    # D2 (PROPOSED, R1 U20) is visible in TO_BE and FUTURE, both shown for MODIFIED
    with pytest.raises(PlacementConflictError):
        await service.move_device("D3", "R1", 19, "TO_BE", "MODIFIED")


async def test_invalid_phase_fails_before_storage(test_db, seed):
    with pytest.raises(InvalidRequestError) as exc:
        await DeviceLifecycleService(test_db).move_device(
            "D1", "R2", 30, "SOMEDAY", "MODIFIED",
        )
    assert exc.value.field == "target_phase"


async def test_out_of_bounds_target(test_db, seed):
    with pytest.raises(PlacementOutOfBoundsError):
        await DeviceLifecycleService(test_db).move_device(
            "D1", "R2", 42, "TO_BE", "MODIFIED",
        )


async def test_unknown_device_and_rack_are_not_found(test_db, seed):
    service = DeviceLifecycleService(test_db)
    with pytest.raises(ResourceNotFoundError):
        await service.move_device("nope", "R2", 30, "TO_BE", "MODIFIED")
    with pytest.raises(ResourceNotFoundError) as exc:
        await service.move_device("D1", "R99", 30, "TO_BE", "MODIFIED")
    assert exc.value.resource_type == "Rack"


# ─── move_device: CREATE_PROPOSED ────────────────────────────────

async def test_create_proposed_forks_a_planned_copy(test_db, seed):
    outcome = await DeviceLifecycleService(test_db).move_device(
        "D1", "R2", 30, "TO_BE", "CREATE_PROPOSED", "alice",
    )

    original, copy = outcome.device, outcome.new_device
    assert (original.rack_id, original.u_start) == ("R1", 10)
    assert original.status_4d == Status4D.EXISTING_REMOVED
    assert copy.status_4d == Status4D.PROPOSED
    assert (copy.rack_id, copy.u_start, copy.u_height) == ("R2", 30, 2)
    assert copy.logical_equipment_id == original.logical_equipment_id == "L1"
    assert copy.device_type_id == "type-switch"

    kinds = sorted(h.modification_type for h in await _history(test_db))
    assert kinds == ["add", "move"]
    await _assert_no_overlaps(test_db)


async def test_create_proposed_in_future_assigns_logical_id(test_db, seed):
    outcome = await DeviceLifecycleService(test_db).move_device(
        "D3", "R1", 30, "FUTURE", "CREATE_PROPOSED", "alice",
    )
    assert outcome.new_device.status_4d == Status4D.FUTURE
    assert outcome.device.logical_equipment_id == "logical-D3"
    assert outcome.new_device.logical_equipment_id == "logical-D3"


# ─── Atomicity ───────────────────────────────────────────────────

async def test_storage_failure_rolls_back_every_write(test_db, seed, monkeypatch):
    original_apply = SqlInventoryStore.apply_plan

    async def failing_apply(self, plan):
        await original_apply(self, plan)
        raise OperationalError("INSERT INTO equipment_history", {}, Exception("disk I/O error"))

    monkeypatch.setattr(SqlInventoryStore, "apply_plan", failing_apply)

    with pytest.raises(DatabaseError) as exc:
        await DeviceLifecycleService(test_db).move_device(
            "D1", "R2", 30, "TO_BE", "CREATE_PROPOSED", "alice",
        )

    assert exc.value.kind == "internal"
    d1 = await _device_row(test_db, "D1")
    assert (d1.rack_id, d1.u_start, d1.status_4d) == ("R1", 10, "EXISTING_RETAINED")
    assert d1.logical_equipment_id == "L1"
    count = await test_db.execute(select(Device).where(Device.rack_id == "R2"))
    assert [d.id for d in count.scalars().all()] == ["D3"]
    assert await _history(test_db) == []


# ─── delete_device ───────────────────────────────────────────────

async def test_delete_soft_deletes_and_logs(test_db, seed):
    outcome = await DeviceLifecycleService(test_db).delete_device("D1", "bob")

    assert outcome.device.is_active is False
    assert outcome.device.status_4d == Status4D.EXISTING_REMOVED
    d1 = await _device_row(test_db, "D1")
    assert d1.is_active is False
    (entry,) = await _history(test_db)
    assert entry.modification_type == "remove"
    assert entry.user_id == "bob"


async def test_delete_keeps_planned_status(test_db, seed):
    outcome = await DeviceLifecycleService(test_db).delete_device("D2", "bob")
    assert outcome.device.status_4d == Status4D.PROPOSED


async def test_delete_inactive_device_is_not_found(test_db, seed):
    service = DeviceLifecycleService(test_db)
    await service.delete_device("D1", "bob")
    with pytest.raises(ResourceNotFoundError):
        await service.delete_device("D1", "bob")
    assert len(await _history(test_db)) == 1


async def test_deleted_device_cannot_be_moved(test_db, seed):
    service = DeviceLifecycleService(test_db)
    await service.delete_device("D1", "bob")
    with pytest.raises(ResourceNotFoundError):
        await service.move_device("D1", "R2", 30, "TO_BE", "MODIFIED")


async def test_deleted_device_frees_its_slot(test_db, seed):
    service = DeviceLifecycleService(test_db)
    await service.delete_device("D3", "bob")
    outcome = await service.move_device("D1", "R2", 5, "TO_BE", "MODIFIED")
    assert outcome.device.rack_id == "R2"


async def test_default_user_applied_when_none_given(test_db, seed):
    await DeviceLifecycleService(test_db).delete_device("D2")
    (entry,) = await _history(test_db)
    assert entry.user_id == "system"


# ─── register_device ─────────────────────────────────────────────

async def test_register_device_inserts_and_logs_add(test_db, seed):
    created = await DeviceLifecycleService(test_db).register_device(
        "R2", "edge-switch", 40, 2, "EXISTING_RETAINED", power_kw=0.2,
        device_type_id="type-switch", user_id="carol",
    )
    assert created.is_active
    assert created.category == "SWITCH"
    (entry,) = await _history(test_db)
    assert entry.modification_type == "add"
    assert entry.device_id == created.id


async def test_register_rejects_modified_status(test_db, seed):
    with pytest.raises(InvalidRequestError):
        await DeviceLifecycleService(test_db).register_device("R2", "x", 40, 1, "MODIFIED")


async def test_register_conflicts_with_planned_device(test_db, seed):
    with pytest.raises(PlacementConflictError):
        await DeviceLifecycleService(test_db).register_device("R1", "x", 20, 1, "PROPOSED")


async def test_register_unknown_device_type_is_not_found(test_db, seed):
    with pytest.raises(ResourceNotFoundError) as exc:
        await DeviceLifecycleService(test_db).register_device(
            "R2", "x", 40, 1, "PROPOSED", device_type_id="type-missing",
        )
    assert exc.value.resource_type == "DeviceType"
