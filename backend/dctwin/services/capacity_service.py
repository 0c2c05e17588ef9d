"""Capacity Service: loads a site's scene in a read snapshot and runs the AI capacity search."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from dctwin.config import Settings, get_settings
from dctwin.core.domain_types import Phase
from dctwin.core.errors import ErrorContext, InvalidRequestError, ResourceNotFoundError
from dctwin.core.find_ai_capacity import CapacitySuggestion, find_ai_ready_capacity
from dctwin.core.inventory_snapshot import SceneModel
from dctwin.core.repository_protocols import SceneLoader
from dctwin.infrastructure.database import read_snapshot
from dctwin.services.inventory_store import SqlInventoryStore

logger = logging.getLogger(__name__)


class CapacityService:

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.store: SceneLoader = SqlInventoryStore(db)

    async def load_scene(self, site_id: str) -> SceneModel:
        async with read_snapshot(self.db, self.settings.read_isolation_level):
            if not await self.store.site_exists(site_id):
                raise ResourceNotFoundError("Site", site_id, ErrorContext(site_id=site_id))
            return await self.store.load_scene(site_id)

    async def find_ai_ready_capacity(
        self, site_id: str, phase: str = Phase.AS_IS.value,
    ) -> CapacitySuggestion | None:
        try:
            phase = Phase(phase)
        except ValueError:
            raise InvalidRequestError(
                f"Invalid phase '{phase}'. Must be one of {[p.value for p in Phase]}",
                "phase",
            )
        scene = await self.load_scene(site_id)
        suggestion = find_ai_ready_capacity(scene, phase)
        logger.info(
            "AI capacity search finished",
            extra={
                "site_id": site_id, "phase": phase.value,
                "rack_id": suggestion.rack_ids[0] if suggestion else None,
            },
        )
        return suggestion
