"""Legacy event metadata kept as one JSON document in the object store.

Deployments that predate the relational store recorded their events as an
array of JSON objects at a fixed key. The record is still read for lookups
and migration, and pruned when one of its events is deleted.
"""

import json
import logging
from typing import Any, Optional

from gallery.errors import NotFound
from gallery.stores.object_store import ObjectStore

logger = logging.getLogger(__name__)


class LegacyMetadataStore:
    def __init__(self, objects: ObjectStore, key: str = "events/metadata.json"):
        self.objects = objects
        self.key = key

    async def load(self) -> list[dict[str, Any]]:
        """Return all legacy records; a missing or unreadable record counts as empty."""
        try:
            raw = await self.objects.get_object(self.key)
        except NotFound:
            return []

        try:
            records = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unparsable event metadata at %s: %s", self.key, e)
            return []

        if not isinstance(records, list):
            logger.warning("Event metadata at %s is not a list, ignoring", self.key)
            return []
        return [r for r in records if isinstance(r, dict) and r.get("id")]

    async def save(self, records: list[dict[str, Any]]) -> None:
        body = json.dumps(records, indent=2, default=str).encode()
        await self.objects.put_object(self.key, body, "application/json")
        logger.info("Event metadata saved (%d records)", len(records))

    async def find(self, event_id: str) -> Optional[dict[str, Any]]:
        for record in await self.load():
            if record["id"] == event_id:
                return record
        return None

    async def remove(self, event_id: str) -> bool:
        """Drop ``event_id`` from the record. Returns False when it was not there."""
        records = await self.load()
        remaining = [r for r in records if r["id"] != event_id]
        if len(remaining) == len(records):
            return False
        await self.save(remaining)
        return True
