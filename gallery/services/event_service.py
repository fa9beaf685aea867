"""Read path: event listings served from the snapshot cache."""

from typing import Optional

from gallery.errors import NotFound
from gallery.models.gallery import Event, Photo
from gallery.services.cache import SnapshotCache
from gallery.services.reconciliation import ReconciliationEngine


class EventService:
    def __init__(self, cache: SnapshotCache, engine: ReconciliationEngine):
        self.cache = cache
        self.engine = engine

    async def list_events(self, visible_only: bool = True, force_refresh: bool = False) -> list[Event]:
        """Events newest first. The public gallery only sees visible ones."""
        snapshot = await self.cache.get_snapshot(force_refresh=force_refresh)
        if visible_only:
            return [e for e in snapshot if e.visible]
        return list(snapshot)

    async def get_event(self, event_id: str, visible_only: bool = True) -> Event:
        """Find an event in the snapshot, falling back to a direct lookup.

        Hidden events do not exist as far as the public gallery is concerned.
        """
        snapshot = await self.cache.get_snapshot()
        event: Optional[Event] = next((e for e in snapshot if e.id == event_id), None)
        if event is None:
            event = await self.engine.load_event(event_id)
        if event is None or (visible_only and not event.visible):
            raise NotFound("event", event_id)
        return event

    async def get_event_photos(self, event_id: str, limit: Optional[int] = None) -> list[Photo]:
        return await self.engine.event_photos(event_id, limit)
