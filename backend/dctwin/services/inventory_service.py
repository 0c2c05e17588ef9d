"""Inventory Service: the catalogue around the twin (sites, rooms, racks, device types).

Invariants:
    - Site and device type codes are unique; a duplicate is DuplicateResourceError (409)
    - Sites are addressed by id or by code
    - A site with active devices cannot be deleted; its rooms, racks and devices go
      with it otherwise (history rows survive with device_id set to NULL)
    - Every write runs in one write_transaction

Design Decisions:
    - Plain CRUD, no core/ planner: nothing here touches U-space occupancy
    - Returns ORM rows; routes render them through from_attributes schemas
"""

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.config import Settings, get_settings
from dctwin.core.domain_types import DeviceCategory
from dctwin.core.errors import (
    DuplicateResourceError, ErrorContext, InvalidRequestError, ResourceNotFoundError,
)
from dctwin.infrastructure.database import write_transaction
from dctwin.models import Device, DeviceType, Rack, Room, Site

logger = logging.getLogger(__name__)


class InventoryService:

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    async def _insert(self, row, resource_type: str, code: str):
        self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError:
            raise DuplicateResourceError(resource_type, "code", code)
        return row

    # ─── Sites ───────────────────────────────────────────────────

    async def list_sites(self) -> list[Site]:
        result = await self.db.execute(select(Site).order_by(Site.code))
        return list(result.scalars().all())

    async def _find_site(self, site_ref: str, for_update: bool = False) -> Site:
        query = select(Site).where(or_(Site.id == site_ref, Site.code == site_ref))
        if for_update:
            query = query.with_for_update()
        site = (await self.db.execute(query.limit(1))).scalar_one_or_none()
        if site is None:
            raise ResourceNotFoundError("Site", site_ref, ErrorContext(site_id=site_ref))
        return site

    async def get_site(self, site_ref: str) -> Site:
        return await self._find_site(site_ref)

    async def create_site(self, code: str, name: str) -> Site:
        async with write_transaction(self.db, self.settings.write_isolation_level):
            taken = await self.db.execute(select(Site.id).where(Site.code == code))
            if taken.first() is not None:
                raise DuplicateResourceError("Site", "code", code)
            site = await self._insert(Site(code=code, name=name), "Site", code)
        logger.info("Site created", extra={"site_id": site.id})
        return site

    async def update_site(self, site_ref: str, name: str | None = None) -> Site:
        async with write_transaction(self.db, self.settings.write_isolation_level):
            site = await self._find_site(site_ref, for_update=True)
            if name is not None:
                site.name = name
            await self.db.flush()
        return site

    async def delete_site(self, site_ref: str) -> Site:
        """Hard delete of an emptied site."""
        async with write_transaction(self.db, self.settings.write_isolation_level):
            site = await self._find_site(site_ref, for_update=True)
            active = (await self.db.execute(
                select(func.count(Device.id))
                .join(Rack, Device.rack_id == Rack.id)
                .join(Room, Rack.room_id == Room.id)
                .where(Room.site_id == site.id, Device.is_active.is_(True))
            )).scalar_one()
            if active:
                raise InvalidRequestError(
                    f"Site '{site.code}' still has {active} active devices; "
                    f"delete or move them first",
                    "site_id",
                    ErrorContext(site_id=site.id),
                )
            await self.db.execute(delete(Site).where(Site.id == site.id))
        logger.info("Site deleted", extra={"site_id": site.id})
        return site

    # ─── Rooms and racks ─────────────────────────────────────────

    async def create_room(self, site_ref: str, name: str) -> Room:
        async with write_transaction(self.db, self.settings.write_isolation_level):
            site = await self._find_site(site_ref)
            room = Room(site_id=site.id, name=name)
            self.db.add(room)
            await self.db.flush()
        logger.info("Room created", extra={"site_id": room.site_id})
        return room

    async def create_rack(
        self,
        room_id: str,
        name: str,
        u_height: int = 42,
        power_kw_limit: float = 12.0,
        current_power_kw: float = 0.0,
    ) -> Rack:
        async with write_transaction(self.db, self.settings.write_isolation_level):
            room = (await self.db.execute(
                select(Room).where(Room.id == room_id)
            )).scalar_one_or_none()
            if room is None:
                raise ResourceNotFoundError("Room", room_id)
            rack = Rack(
                room_id=room_id,
                name=name,
                u_height=u_height,
                power_kw_limit=power_kw_limit,
                current_power_kw=current_power_kw,
            )
            self.db.add(rack)
            await self.db.flush()
        logger.info(
            "Rack created",
            extra={"site_id": room.site_id, "rack_id": rack.id},
        )
        return rack

    # ─── Device types ────────────────────────────────────────────

    async def list_device_types(self, category: str | None = None) -> list[DeviceType]:
        query = select(DeviceType)
        if category:
            query = query.where(DeviceType.category == _category(category).value)
        result = await self.db.execute(query.order_by(DeviceType.code))
        return list(result.scalars().all())

    async def create_device_type(
        self,
        code: str,
        category: str,
        name: str | None = None,
        u_height: int = 1,
        power_kw: float | None = None,
    ) -> DeviceType:
        kind = _category(category)
        async with write_transaction(self.db, self.settings.write_isolation_level):
            taken = await self.db.execute(
                select(DeviceType.id).where(DeviceType.code == code)
            )
            if taken.first() is not None:
                raise DuplicateResourceError("DeviceType", "code", code)
            device_type = await self._insert(
                DeviceType(
                    code=code, category=kind.value, name=name,
                    u_height=u_height, power_kw=power_kw,
                ),
                "DeviceType", code,
            )
        logger.info(f"Device type created: {code} ({kind.value})")
        return device_type


def _category(value: str) -> DeviceCategory:
    try:
        return DeviceCategory(value)
    except ValueError:
        raise InvalidRequestError(
            f"Invalid category '{value}'. Must be one of {[c.value for c in DeviceCategory]}",
            "category",
        )
