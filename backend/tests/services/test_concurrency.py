"""Concurrent writers: rack claims, whole-transaction retry and batch uniqueness.

Invariants:
    - A write that loses a race is re-run from scratch and sees the winner's commit
    - Retries are bounded; the last ConcurrencyError reaches the caller (409)
    - Serialization failures and deadlocks map to ConcurrencyError, other driver
      errors to DatabaseError
    - Two racing moves into one slot never both commit (PostgreSQL, REPEATABLE READ)
"""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from dctwin.config import get_settings
from dctwin.core.domain_types import Phase
from dctwin.core.errors import ConcurrencyError, DatabaseError, PlacementConflictError
from dctwin.infrastructure.database import _map_sqlalchemy_error, retry_on_concurrency
from dctwin.models import Anomaly, Device, EquipmentHistory
from dctwin.services.anomaly_service import AnomalyService
from dctwin.services.device_lifecycle import DeviceLifecycleService
from dctwin.services.inventory_store import SqlInventoryStore


class _DriverError(Exception):
    def __init__(self, sqlstate):
        super().__init__(f"driver error {sqlstate}")
        self.sqlstate = sqlstate


def _snapshot_settings():
    return get_settings().model_copy(update={
        "write_isolation_level": "REPEATABLE READ",
        "read_isolation_level": "REPEATABLE READ",
    })


async def _assert_no_overlaps(db):
    devices = await SqlInventoryStore(db).list_site_devices("site-1")
    for phase in Phase:
        visible = [d for d in devices if d.visible_in(phase)]
        for i, a in enumerate(visible):
            for b in visible[i + 1:]:
                if a.rack_id == b.rack_id:
                    assert not a.overlaps(b.u_start, b.u_height), (phase, a.id, b.id)


# ─── Error mapping ───────────────────────────────────────────────

@pytest.mark.parametrize("sqlstate", ["40001", "40P01"])
def test_serialization_failure_and_deadlock_are_retryable(sqlstate):
    error = _map_sqlalchemy_error(
        OperationalError("UPDATE racks", {}, _DriverError(sqlstate)),
    )
    assert isinstance(error, ConcurrencyError)
    assert error.http_status == 409


def test_other_driver_errors_stay_database_errors():
    error = _map_sqlalchemy_error(
        OperationalError("UPDATE racks", {}, _DriverError("53300")),
    )
    assert isinstance(error, DatabaseError)
    assert not isinstance(error, ConcurrencyError)


async def test_retry_gives_up_after_configured_attempts():
    calls = []

    async def always_loses():
        calls.append(1)
        raise ConcurrencyError("Concurrent write detected; retry the request")

    with pytest.raises(ConcurrencyError):
        await retry_on_concurrency(always_loses, attempts=2, base_delay_ms=1)
    assert len(calls) == 2


# ─── Lifecycle retry (SQLite) ────────────────────────────────────

async def test_move_reruns_after_losing_a_rack_claim(test_db, seed, monkeypatch):
    real_get_rack = SqlInventoryStore.get_rack
    claims = []

    async def contended(self, rack_id, for_update=False):
        if for_update:
            claims.append(rack_id)
            if len(claims) == 1:
                raise ConcurrencyError("Concurrent write detected; retry the request")
        return await real_get_rack(self, rack_id, for_update)

    monkeypatch.setattr(SqlInventoryStore, "get_rack", contended)

    outcome = await DeviceLifecycleService(test_db).move_device(
        "D1", "R2", 30, "TO_BE", "MODIFIED", "alice",
    )

    assert (outcome.device.rack_id, outcome.device.u_start) == ("R2", 30)
    # origin and target claimed in id order, twice
    assert claims == ["R1", "R1", "R2"]
    history = (await test_db.execute(select(EquipmentHistory))).scalars().all()
    assert [h.modification_type for h in history] == ["move"]


async def test_write_that_keeps_losing_gives_up_and_writes_nothing(test_db, seed, monkeypatch):
    async def always_contended(self, rack_id, for_update=False):
        raise ConcurrencyError("Concurrent write detected; retry the request")

    monkeypatch.setattr(SqlInventoryStore, "get_rack", always_contended)
    settings = get_settings().model_copy(update={"write_retry_attempts": 2})

    with pytest.raises(ConcurrencyError):
        await DeviceLifecycleService(test_db, settings).register_device(
            "R2", "late-server", 30, 2,
        )

    count = await test_db.execute(select(func.count()).select_from(Device))
    assert count.scalar_one() == 3


# ─── PostgreSQL: real row locks and snapshots ────────────────────

async def test_racing_moves_into_one_slot_leave_no_overlap(pg_session_factory, monkeypatch):
    settings = _snapshot_settings()
    real_get_rack = SqlInventoryStore.get_rack

    async with pg_session_factory() as db_a, pg_session_factory() as db_b:
        raced = []

        async def get_rack(self, rack_id, for_update=False):
            # B already holds its snapshot; A commits a move into the same slot first
            if self.db is db_b and for_update and not raced:
                raced.append(rack_id)
                await DeviceLifecycleService(db_a, settings).move_device(
                    "D1", "R2", 30, "TO_BE", "MODIFIED", "alice",
                )
            return await real_get_rack(self, rack_id, for_update)

        monkeypatch.setattr(SqlInventoryStore, "get_rack", get_rack)

        with pytest.raises(PlacementConflictError):
            await DeviceLifecycleService(db_b, settings).move_device(
                "D2", "R2", 30, "TO_BE", "MODIFIED", "bob",
            )
        assert raced == ["R1"]

    async with pg_session_factory() as db:
        d2 = (await db.execute(select(Device).where(Device.id == "D2"))).scalar_one()
        assert (d2.rack_id, d2.u_start) == ("R1", 20)
        await _assert_no_overlaps(db)


async def test_racing_registrations_into_one_slot(pg_session_factory, monkeypatch):
    settings = _snapshot_settings()
    real_get_rack = SqlInventoryStore.get_rack

    async with pg_session_factory() as db_a, pg_session_factory() as db_b:
        raced = []

        async def get_rack(self, rack_id, for_update=False):
            if self.db is db_b and for_update and not raced:
                raced.append(rack_id)
                await DeviceLifecycleService(db_a, settings).register_device(
                    "R2", "first-server", 30, 2,
                )
            return await real_get_rack(self, rack_id, for_update)

        monkeypatch.setattr(SqlInventoryStore, "get_rack", get_rack)

        # B takes its snapshot before A commits
        await db_b.connection(execution_options={"isolation_level": "REPEATABLE READ"})
        await db_b.execute(select(func.count()).select_from(Device))
        with pytest.raises(PlacementConflictError):
            await DeviceLifecycleService(db_b, settings).register_device(
                "R2", "second-server", 31, 2,
            )

    async with pg_session_factory() as db:
        await _assert_no_overlaps(db)


async def test_racing_saves_of_one_batch_store_it_once(pg_session_factory):
    settings = _snapshot_settings()
    async with pg_session_factory() as db:
        report = await AnomalyService(db, settings).detect("site-1", [])

    async def save():
        async with pg_session_factory() as db:
            return await AnomalyService(db, settings).save(
                "site-1", report.anomalies, idempotency_key="scan-9",
            )

    assert await asyncio.gather(save(), save()) == [2, 2]
    async with pg_session_factory() as db:
        count = await db.execute(select(func.count()).select_from(Anomaly))
        assert count.scalar_one() == 2
