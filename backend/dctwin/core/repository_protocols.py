"""Boundary Protocols: contracts between core and shell.

Invariants:
    - Core NEVER imports from shell; dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but the core functions that consume their results are never async; the shell
      orchestrates the async calls around the pure logic
    - Write methods take ChangePlan pieces, so a store cannot invent changes the core
      did not decide
"""

from typing import Protocol

from dctwin.core.detect_anomalies import DetectedAnomaly
from dctwin.core.inventory_snapshot import DeviceSnapshot, RackSnapshot, SceneModel
from dctwin.core.plan_device_change import ChangePlan


class InventoryStore(Protocol):
    """Transactional access to devices, racks, history and anomalies."""
    async def site_exists(self, site_id: str) -> bool: ...
    async def device_type_exists(self, device_type_id: str) -> bool: ...
    async def get_device(
        self, device_id: str, for_update: bool = False,
    ) -> DeviceSnapshot | None: ...
    async def get_rack(
        self, rack_id: str, for_update: bool = False,
    ) -> RackSnapshot | None: ...
    async def list_rack_devices(self, rack_id: str) -> list[DeviceSnapshot]: ...
    async def list_site_devices(self, site_id: str) -> list[DeviceSnapshot]: ...
    async def apply_plan(self, plan: ChangePlan) -> None: ...
    async def insert_anomalies(
        self, site_id: str, anomalies: list[DetectedAnomaly],
        idempotency_key: str | None = None,
    ) -> int: ...


class SceneLoader(Protocol):
    """Supplies the in-memory rack/device graph of a site."""
    async def site_exists(self, site_id: str) -> bool: ...
    async def load_scene(self, site_id: str) -> SceneModel: ...
