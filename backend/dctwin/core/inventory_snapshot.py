"""Inventory Snapshot: immutable, IO-free views of the rack/device graph.

Invariants:
    - Snapshots are frozen dataclasses: core functions cannot mutate the model they read
    - A SceneModel holds only active devices (soft-deleted rows are filtered by the loader)
    - Identifiers are plain strings so the core never depends on a UUID column type

Design Decisions:
    - Snapshots decouple the core from the ORM: the shell converts rows once,
      the core receives plain values and stays testable without a database
"""

from dataclasses import dataclass, field

from dctwin.core.domain_types import Status4D, Phase, is_visible


@dataclass(frozen=True)
class RoomSnapshot:
    id: str
    site_id: str
    name: str


@dataclass(frozen=True)
class RackSnapshot:
    id: str
    room_id: str
    name: str
    u_height: int = 42
    power_kw_limit: float = 12.0
    current_power_kw: float = 0.0

    @property
    def power_headroom_kw(self) -> float:
        """Unused power budget, never negative."""
        return max(0.0, self.power_kw_limit - self.current_power_kw)


@dataclass(frozen=True)
class DeviceSnapshot:
    id: str
    rack_id: str
    name: str
    u_start: int
    u_height: int
    status_4d: Status4D
    power_kw: float = 0.0
    logical_equipment_id: str | None = None
    device_type_id: str | None = None
    category: str | None = None
    serial_number: str | None = None
    is_active: bool = True

    def __post_init__(self):
        # Rows arrive with plain strings from the DB
        object.__setattr__(self, "status_4d", Status4D(self.status_4d))

    @property
    def u_end(self) -> int:
        """Exclusive upper bound of the occupied interval."""
        return self.u_start + self.u_height

    def overlaps(self, u_start: int, u_height: int) -> bool:
        """True if [u_start, u_start + u_height) intersects this device."""
        return not (self.u_end <= u_start or self.u_start >= u_start + u_height)

    def visible_in(self, phase: Phase) -> bool:
        return self.is_active and is_visible(self.status_4d, phase)


@dataclass(frozen=True)
class SceneModel:
    """In-memory rack/device graph of one site."""
    site_id: str
    rooms: tuple[RoomSnapshot, ...] = field(default_factory=tuple)
    racks: tuple[RackSnapshot, ...] = field(default_factory=tuple)
    devices: tuple[DeviceSnapshot, ...] = field(default_factory=tuple)

    def devices_in_rack(self, rack_id: str) -> list[DeviceSnapshot]:
        return [d for d in self.devices if d.rack_id == rack_id]

    def rack(self, rack_id: str) -> RackSnapshot | None:
        return next((r for r in self.racks if r.id == rack_id), None)


def occupied_u(devices: list[DeviceSnapshot], rack_id: str, phase: Phase) -> int:
    """Sum of u_height for devices in `rack_id` visible under `phase`."""
    return sum(
        d.u_height for d in devices
        if d.rack_id == rack_id and d.visible_in(phase)
    )


def location_of(device: DeviceSnapshot) -> dict:
    """History/anomaly location payload for a device."""
    return {"rack_id": device.rack_id, "u_position": device.u_start}
