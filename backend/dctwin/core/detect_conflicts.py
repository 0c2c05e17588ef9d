"""Conflict Detector: decides whether a candidate rack placement collides under a phase.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - A device collides only if active, in the rack, not excluded, visible in the phase
      and its [u_start, u_start + u_height) interval intersects the candidate's
    - Bounds violations raise PlacementOutOfBoundsError; collisions are returned, never raised
    - Output ordered by (u_start, id): identical inputs give identical lists

Design Decisions:
    - Linear scan over the rack's devices: racks hold tens of devices, an interval
      tree would not pay for itself
    - Multi-phase check lives here so the lifecycle engine and ingestion share it
"""

from collections.abc import Iterable

from dctwin.core.domain_types import Phase
from dctwin.core.errors import PlacementOutOfBoundsError
from dctwin.core.inventory_snapshot import DeviceSnapshot, RackSnapshot


def check_bounds(rack: RackSnapshot, u_start: int, u_height: int) -> None:
    """Raise PlacementOutOfBoundsError unless the interval fits U1..rack.u_height."""
    if u_start < 1 or u_height < 1 or u_start + u_height - 1 > rack.u_height:
        raise PlacementOutOfBoundsError(rack.id, u_start, u_height, rack.u_height)


def find_conflicts(
    rack: RackSnapshot,
    devices: Iterable[DeviceSnapshot],
    u_start: int,
    u_height: int,
    phase: Phase,
    exclude_device_ids: Iterable[str] = (),
) -> list[DeviceSnapshot]:
    """Devices visible under `phase` whose U-range intersects the candidate."""
    excluded = set(exclude_device_ids)
    hits = [
        d for d in devices
        if d.rack_id == rack.id
        and d.id not in excluded
        and d.visible_in(phase)
        and d.overlaps(u_start, u_height)
    ]
    return sorted(hits, key=lambda d: (d.u_start, d.id))


def find_conflicts_in_phases(
    rack: RackSnapshot,
    devices: Iterable[DeviceSnapshot],
    u_start: int,
    u_height: int,
    phases: Iterable[Phase],
    exclude_device_ids: Iterable[str] = (),
) -> list[DeviceSnapshot]:
    """Union of find_conflicts over several phases, deduplicated, same ordering."""
    devices = list(devices)
    excluded = tuple(exclude_device_ids)
    found: dict[str, DeviceSnapshot] = {}
    for phase in phases:
        for d in find_conflicts(rack, devices, u_start, u_height, phase, excluded):
            found.setdefault(d.id, d)
    return sorted(found.values(), key=lambda d: (d.u_start, d.id))


def describe_conflicts(conflicts: list[DeviceSnapshot]) -> list[dict]:
    """JSON-ready conflict payload (u_end is inclusive, as shown to operators)."""
    return [
        {
            "device_id": d.id,
            "device_name": d.name,
            "rack_id": d.rack_id,
            "u_start": d.u_start,
            "u_end": d.u_end - 1,
            "status_4d": d.status_4d.value,
        }
        for d in conflicts
    ]
