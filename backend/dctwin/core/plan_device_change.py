"""Device Change Planning: pure decision half of the Device Lifecycle Engine.

Invariants:
    - All functions are PURE: they read snapshots and return a ChangePlan, never write
    - A ChangePlan is applied atomically by the shell: updates, inserts and history together
    - Every plan carries at least one history draft (the audit trail is never skipped)
    - CREATE_PROPOSED never changes the original's rack_id/u_start, only its status
    - Conflict checks cover every phase in which the resulting row will be visible,
      so the per-phase non-overlap invariant holds after any applied plan

Design Decisions:
    - One enum-dispatched plan_move for MODIFIED and CREATE_PROPOSED: both paths share
      validation, conflict detection and history shape
    - Ids for inserted rows are supplied by the caller: keeps the core deterministic
    - check_* functions return the colliding snapshots; the shell decides to raise,
      mirroring how the conflict detector reports rather than throws
"""

from dataclasses import dataclass, field
from typing import Any

from dctwin.core.domain_types import (
    Phase, Status4D, MoveType, ModificationType,
    INGESTION_STATUSES, phases_showing, proposed_status_for,
)
from dctwin.core.detect_conflicts import check_bounds, find_conflicts_in_phases
from dctwin.core.errors import InvalidRequestError
from dctwin.core.inventory_snapshot import DeviceSnapshot, RackSnapshot, location_of


@dataclass(frozen=True)
class DeviceUpdate:
    device_id: str
    changes: dict[str, Any]


@dataclass(frozen=True)
class DeviceInsert:
    id: str
    rack_id: str
    name: str
    u_start: int
    u_height: int
    status_4d: Status4D
    power_kw: float = 0.0
    logical_equipment_id: str | None = None
    device_type_id: str | None = None
    serial_number: str | None = None


@dataclass(frozen=True)
class HistoryDraft:
    device_id: str | None
    device_name: str
    modification_type: ModificationType
    user_id: str | None
    target_phase: Phase | None = None
    from_location: dict | None = None
    to_location: dict | None = None
    status_change: dict | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ChangePlan:
    updates: tuple[DeviceUpdate, ...] = field(default_factory=tuple)
    inserts: tuple[DeviceInsert, ...] = field(default_factory=tuple)
    history: tuple[HistoryDraft, ...] = field(default_factory=tuple)


# ─── Request validation (pre-storage) ────────────────────────────

def validate_move_request(
    target_phase: str, move_type: str, target_u_position: int,
) -> tuple[Phase, MoveType]:
    """Coerce and validate move inputs before any storage access."""
    try:
        phase = Phase(target_phase)
    except ValueError:
        raise InvalidRequestError(
            f"Invalid target_phase '{target_phase}'. "
            f"Must be one of {[p.value for p in Phase]}",
            "target_phase",
        )
    try:
        kind = MoveType(move_type)
    except ValueError:
        raise InvalidRequestError(
            f"Invalid move_type '{move_type}'. "
            f"Must be one of {[m.value for m in MoveType]}",
            "move_type",
        )
    if isinstance(target_u_position, bool) or not isinstance(target_u_position, int):
        raise InvalidRequestError(
            "target_u_position must be an integer", "target_u_position",
        )
    if target_u_position < 0:
        raise InvalidRequestError(
            "target_u_position must be >= 0", "target_u_position",
        )
    return phase, kind


def _ordered_phases(first: Phase, extra: tuple[Phase, ...]) -> list[Phase]:
    phases = [first]
    phases.extend(p for p in extra if p != first)
    return phases


def resulting_status(device: DeviceSnapshot, phase: Phase, move_type: MoveType) -> Status4D:
    """Status of the row that will sit at the target after the move."""
    if move_type == MoveType.MODIFIED:
        return Status4D.MODIFIED
    return proposed_status_for(phase)


# ─── Move ────────────────────────────────────────────────────────

def check_move(
    device: DeviceSnapshot,
    target_rack: RackSnapshot,
    target_rack_devices: list[DeviceSnapshot],
    target_u: int,
    phase: Phase,
    move_type: MoveType,
    origin_rack: RackSnapshot | None = None,
    origin_rack_devices: list[DeviceSnapshot] | None = None,
) -> list[DeviceSnapshot]:
    """Bounds-check the target and return every device the move would collide with."""
    check_bounds(target_rack, target_u, device.u_height)
    status = resulting_status(device, phase, move_type)
    exclude = (device.id,) if move_type == MoveType.MODIFIED else ()
    conflicts = find_conflicts_in_phases(
        target_rack, target_rack_devices, target_u, device.u_height,
        _ordered_phases(phase, phases_showing(status)), exclude,
    )
    if (
        move_type == MoveType.CREATE_PROPOSED
        and device.status_4d != Status4D.EXISTING_REMOVED
        and origin_rack is not None
    ):
        # The original stays in place as EXISTING_REMOVED and becomes visible wherever
        # that status is shown.
        newly_visible = tuple(
            p for p in phases_showing(Status4D.EXISTING_REMOVED)
            if p not in phases_showing(device.status_4d)
        )
        if newly_visible:
            conflicts += find_conflicts_in_phases(
                origin_rack, origin_rack_devices or [], device.u_start,
                device.u_height, newly_visible, (device.id,),
            )
    unique = {d.id: d for d in conflicts}
    return sorted(unique.values(), key=lambda d: (d.rack_id, d.u_start, d.id))


def plan_move(
    device: DeviceSnapshot,
    target_rack_id: str,
    target_u: int,
    phase: Phase,
    move_type: MoveType,
    user_id: str | None,
    new_device_id: str | None = None,
    fallback_logical_id: str | None = None,
) -> ChangePlan:
    """Plan a conflict-free move. Call check_move first."""
    from_location = location_of(device)
    to_location = {"rack_id": target_rack_id, "u_position": target_u}

    if move_type == MoveType.MODIFIED:
        return ChangePlan(
            updates=(DeviceUpdate(device.id, {
                "rack_id": target_rack_id,
                "u_start": target_u,
                "status_4d": Status4D.MODIFIED.value,
            }),),
            history=(HistoryDraft(
                device_id=device.id,
                device_name=device.name,
                modification_type=ModificationType.MOVE,
                user_id=user_id,
                target_phase=phase,
                from_location=from_location,
                to_location=to_location,
                status_change={
                    "from": device.status_4d.value, "to": Status4D.MODIFIED.value,
                },
                notes=f"Device moved from rack {device.rack_id} to {target_rack_id}",
            ),),
        )

    if not new_device_id:
        raise InvalidRequestError(
            "CREATE_PROPOSED requires an id for the planned copy", "new_device_id",
        )
    logical_id = device.logical_equipment_id or fallback_logical_id or f"logical-{device.id}"
    new_status = proposed_status_for(phase)
    original_changes: dict[str, Any] = {"status_4d": Status4D.EXISTING_REMOVED.value}
    if device.logical_equipment_id != logical_id:
        original_changes["logical_equipment_id"] = logical_id

    return ChangePlan(
        updates=(DeviceUpdate(device.id, original_changes),),
        inserts=(DeviceInsert(
            id=new_device_id,
            rack_id=target_rack_id,
            name=device.name,
            u_start=target_u,
            u_height=device.u_height,
            status_4d=new_status,
            power_kw=device.power_kw,
            logical_equipment_id=logical_id,
            device_type_id=device.device_type_id,
            serial_number=device.serial_number,
        ),),
        history=(
            HistoryDraft(
                device_id=device.id,
                device_name=device.name,
                modification_type=ModificationType.MOVE,
                user_id=user_id,
                target_phase=phase,
                from_location=from_location,
                to_location=to_location,
                status_change={
                    "from": device.status_4d.value,
                    "to": Status4D.EXISTING_REMOVED.value,
                },
                notes=(
                    "Original device marked for removal "
                    f"(relocation planned, linked: {logical_id})"
                ),
            ),
            HistoryDraft(
                device_id=new_device_id,
                device_name=device.name,
                modification_type=ModificationType.ADD,
                user_id=user_id,
                target_phase=phase,
                from_location=from_location,
                to_location=to_location,
                status_change={"from": None, "to": new_status.value},
                notes=(
                    "New device created for planned relocation "
                    f"(linked: {logical_id}, source: {device.id})"
                ),
            ),
        ),
    )


# ─── Delete ──────────────────────────────────────────────────────

def plan_delete(device: DeviceSnapshot, user_id: str | None, reason: str | None = None) -> ChangePlan:
    """Soft delete; an EXISTING_RETAINED device also becomes EXISTING_REMOVED."""
    new_status = (
        Status4D.EXISTING_REMOVED
        if device.status_4d == Status4D.EXISTING_RETAINED
        else device.status_4d
    )
    return ChangePlan(
        updates=(DeviceUpdate(device.id, {
            "is_active": False, "status_4d": new_status.value,
        }),),
        history=(HistoryDraft(
            device_id=device.id,
            device_name=device.name,
            modification_type=ModificationType.REMOVE,
            user_id=user_id,
            from_location=location_of(device),
            status_change={"from": device.status_4d.value, "to": new_status.value},
            notes=reason or "Device soft-deleted (is_active set to false)",
        ),),
    )


# ─── Registration (ingestion) ────────────────────────────────────

def check_registration(
    rack: RackSnapshot,
    rack_devices: list[DeviceSnapshot],
    u_start: int,
    u_height: int,
    status: Status4D,
) -> list[DeviceSnapshot]:
    """Bounds-check and collide a new device against every phase showing `status`."""
    if status not in INGESTION_STATUSES:
        raise InvalidRequestError(
            f"New devices must be {sorted(s.value for s in INGESTION_STATUSES)}, "
            f"got '{status.value}'",
            "status_4d",
        )
    check_bounds(rack, u_start, u_height)
    return find_conflicts_in_phases(
        rack, rack_devices, u_start, u_height, phases_showing(status),
    )


def plan_registration(new_device: DeviceInsert, user_id: str | None) -> ChangePlan:
    return ChangePlan(
        inserts=(new_device,),
        history=(HistoryDraft(
            device_id=new_device.id,
            device_name=new_device.name,
            modification_type=ModificationType.ADD,
            user_id=user_id,
            to_location={"rack_id": new_device.rack_id, "u_position": new_device.u_start},
            status_change={"from": None, "to": new_device.status_4d.value},
            notes="Device registered",
        ),),
    )


# ─── Corrections from verification (accept actual) ───────────────

def check_relocation(
    device: DeviceSnapshot,
    rack: RackSnapshot,
    rack_devices: list[DeviceSnapshot],
    u_start: int,
) -> list[DeviceSnapshot]:
    """Collisions if the canonical record is corrected to an observed location."""
    check_bounds(rack, u_start, device.u_height)
    return find_conflicts_in_phases(
        rack, rack_devices, u_start, device.u_height,
        phases_showing(device.status_4d), (device.id,),
    )


def plan_correction(
    device: DeviceSnapshot,
    changes: dict[str, Any],
    user_id: str | None,
    notes: str,
) -> ChangePlan:
    """Record-keeping edit: status untouched, history tagged 'edit'."""
    to_location = None
    if "rack_id" in changes or "u_start" in changes:
        to_location = {
            "rack_id": changes.get("rack_id", device.rack_id),
            "u_position": changes.get("u_start", device.u_start),
        }
    return ChangePlan(
        updates=(DeviceUpdate(device.id, dict(changes)),),
        history=(HistoryDraft(
            device_id=device.id,
            device_name=device.name,
            modification_type=ModificationType.EDIT,
            user_id=user_id,
            from_location=location_of(device) if to_location else None,
            to_location=to_location,
            notes=notes,
        ),),
    )
