"""Reconcile relational rows and object-store folders into one event list.

Relational rows are the primary source. Ids with no row come from the
legacy JSON metadata record when it lists them, otherwise from bare
object-store folders, which are synthesized from their keys. When the
database is down the engine serves a fixed demo dataset instead of failing
the read path.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from gallery.errors import GalleryError, NotFound
from gallery.models.event import EventRow, PhotoRow
from gallery.models.gallery import PLACEHOLDER_THUMBNAIL, Event, Photo
from gallery.stores.metadata import LegacyMetadataStore
from gallery.stores.object_store import ObjectStore, group_by_folder
from gallery.stores.relational import RelationalStore, as_utc

logger = logging.getLogger(__name__)

THUMBNAIL_MARKER = "thumbnail"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _demo(event_id: str, name: str, year: int, month: int, day: int, thumbnail: str) -> Event:
    return Event(
        id=event_id,
        name=name,
        date=datetime(year, month, day, tzinfo=timezone.utc),
        thumbnail=thumbnail,
        visible=True,
    )


DEMO_EVENTS: tuple[Event, ...] = (
    _demo("evento-1", "Casamento - Maria & João", 2025, 1, 15, "/casamento.jpg"),
    _demo("evento-2", "Formatura - Turma 2024", 2024, 12, 20, "/formatura.jpg"),
    _demo("evento-3", "Aniversário - Sofia 15 anos", 2024, 11, 10, "/anivers-rio.jpg"),
    _demo("evento-4", "Corporativo - Conferência Tech 2024", 2024, 10, 5, "/corporativo.jpg"),
    _demo("evento-5", "Batizado - Lucas", 2024, 9, 22, "/batizado.jpg"),
    _demo("evento-6", "Casamento - Pedro & Ana", 2024, 8, 14, "/casamento.jpg"),
)


def folder_display_name(folder: str) -> str:
    """``summer_party`` -> ``Summer Party``."""
    return re.sub(r"\b\w", lambda m: m.group().upper(), folder.replace("_", " "))


def sort_newest_first(events: list[Event]) -> tuple[Event, ...]:
    return tuple(sorted(events, key=lambda e: e.date, reverse=True))


# --- Sources ---


@dataclass(frozen=True)
class RelationalSource:
    row: EventRow
    photos: tuple[Photo, ...]


@dataclass(frozen=True)
class FolderSource:
    folder: str
    photos: tuple[Photo, ...]
    discovered_at: datetime


@dataclass(frozen=True)
class LegacySource:
    record: dict
    photos: tuple[Photo, ...]


EventSource = Union[RelationalSource, FolderSource, LegacySource]


def photo_from_row(row: PhotoRow) -> Photo:
    return Photo(id=row.id, url=row.url, filename=row.filename)


def _thumbnail_or_first_photo(thumbnail: Optional[str], photos: tuple[Photo, ...]) -> str:
    if thumbnail and thumbnail != PLACEHOLDER_THUMBNAIL:
        return thumbnail
    return photos[0].url if photos else PLACEHOLDER_THUMBNAIL


def _parse_legacy_date(value) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str) and value:
        try:
            return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            pass
    return utc_now()


def build_event(source: EventSource) -> Event:
    """Turn one source into a canonical Event; every default is decided here."""
    match source:
        case RelationalSource(row=row, photos=photos):
            return Event(
                id=row.id,
                name=row.name,
                date=as_utc(row.date),
                thumbnail=_thumbnail_or_first_photo(row.thumbnail, photos),
                visible=bool(row.visible),
                photos=photos,
            )
        case FolderSource(folder=folder, photos=photos, discovered_at=discovered_at):
            return Event(
                id=folder,
                name=folder_display_name(folder),
                date=discovered_at,  # no better signal for auto-detected events
                thumbnail=_thumbnail_or_first_photo(None, photos),
                visible=True,
                photos=photos,
            )
        case LegacySource(record=record, photos=photos):
            return Event(
                id=record["id"],
                name=record.get("name") or folder_display_name(record["id"]),
                date=_parse_legacy_date(record.get("date")),
                thumbnail=_thumbnail_or_first_photo(record.get("thumbnail"), photos),
                visible=record.get("visible") is not False,
                photos=photos,
            )
    raise TypeError(f"Unknown event source: {source!r}")


class ReconciliationEngine:
    def __init__(
        self,
        relational: RelationalStore,
        objects: ObjectStore,
        metadata: Optional[LegacyMetadataStore] = None,
        demo_fallback: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.relational = relational
        self.objects = objects
        self.metadata = metadata
        self.demo_fallback = demo_fallback
        self.clock = clock

    # --- Object-store helpers ---

    def _is_photo_key(self, key: str) -> bool:
        if key.endswith("/") or THUMBNAIL_MARKER in key:
            return False
        return not (self.metadata and key == self.metadata.key)

    def _photo_from_key(self, key: str) -> Photo:
        return Photo(id=key, url=self.objects.resolve_url(key), filename=key)

    async def _folder_photos(self, event_id: str, limit: Optional[int] = None) -> tuple[Photo, ...]:
        listing = await self.objects.list_object_keys(f"{event_id}/", limit)
        return tuple(self._photo_from_key(key) for key in listing.keys if self._is_photo_key(key))

    # --- Full reconciliation ---

    async def _relational_sources(self) -> list[RelationalSource]:
        rows, photo_rows = await asyncio.gather(
            self.relational.list_events(),
            self.relational.list_photos(),
        )
        by_event: dict[str, list[Photo]] = {}
        for photo in photo_rows:
            by_event.setdefault(photo.event_id, []).append(photo_from_row(photo))
        return [RelationalSource(row=row, photos=tuple(by_event.get(row.id, []))) for row in rows]

    async def _discover_folders(self) -> dict[str, tuple[Photo, ...]]:
        """Every top-level folder with its photos, from one listing of the bucket."""
        listing = await self.objects.list_object_keys("")
        # the legacy record's own key never makes a folder event
        skip = self.metadata.key if self.metadata else None
        grouped = group_by_folder(k for k in listing.keys if k != skip)
        return {
            folder: tuple(self._photo_from_key(k) for k in keys if self._is_photo_key(k))
            for folder, keys in grouped.items()
        }

    async def _legacy_records(self) -> list[dict]:
        if self.metadata is None:
            return []
        return await self.metadata.load()

    def _unmatched_sources(
        self,
        folders: dict[str, tuple[Photo, ...]],
        records: list[dict],
        known_ids: set[str],
    ) -> list[EventSource]:
        """Sources for ids with no relational row.

        A folder named after a legacy record belongs to that record; the
        remaining folders become auto-detected events.
        """
        sources: list[EventSource] = []
        legacy_ids: set[str] = set()
        for record in records:
            event_id = record["id"]
            if event_id in known_ids or event_id in legacy_ids:
                continue
            legacy_ids.add(event_id)
            sources.append(LegacySource(record=record, photos=folders.get(event_id, ())))

        discovered_at = self.clock()
        for folder, photos in folders.items():
            if folder in known_ids or folder in legacy_ids:
                continue
            sources.append(FolderSource(folder=folder, photos=photos, discovered_at=discovered_at))
        return sources

    async def reconcile(self) -> tuple[Event, ...]:
        """Build a fresh canonical snapshot, newest event first."""
        results = await asyncio.gather(
            self._relational_sources(),
            self._discover_folders(),
            self._legacy_records(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        relational_result, folders_result, legacy_result = results

        if isinstance(relational_result, Exception):
            logger.warning("Relational store unavailable, serving demo events: %s", relational_result)
            return sort_newest_first(list(DEMO_EVENTS)) if self.demo_fallback else ()

        folders: dict[str, tuple[Photo, ...]] = {}
        if isinstance(folders_result, Exception):
            logger.warning("Object store unavailable, skipping folder detection: %s", folders_result)
        else:
            folders = folders_result

        records: list[dict] = []
        if isinstance(legacy_result, Exception):
            logger.warning("Legacy metadata unavailable, skipping it: %s", legacy_result)
        else:
            records = legacy_result

        known_ids = {s.row.id for s in relational_result}
        sources: list[EventSource] = list(relational_result)
        sources.extend(self._unmatched_sources(folders, records, known_ids))

        events = [build_event(s) for s in sources]
        logger.debug(
            "Reconciled %d events (%d without a database row)", len(events), len(sources) - len(relational_result)
        )
        return sort_newest_first(events)

    # --- Single event lookups ---

    async def event_photos(self, event_id: str, limit: Optional[int] = None) -> list[Photo]:
        """Photos of one event.

        Photo rows are authoritative for events that have a database row, even
        when there are none: objects left under such an event's prefix are
        orphans of an incomplete delete. Only events without a row (legacy or
        auto-detected) are read from their object-store folder.
        """
        try:
            rows = await self.relational.get_photos_for_event(event_id, limit)
            if rows:
                return [photo_from_row(r) for r in rows]
            await self.relational.get_event(event_id)
            return []
        except NotFound:
            pass
        except GalleryError as e:
            logger.error("Error loading photos for event %s: %s", event_id, e)

        try:
            return list(await self._folder_photos(event_id, limit))
        except GalleryError as e:
            logger.info("Object store not available for event %s: %s", event_id, e)
            return []

    async def load_event(self, event_id: str) -> Optional[Event]:
        """Look one event up directly in the stores, bypassing any snapshot."""
        try:
            row = await self.relational.get_event(event_id)
        except NotFound:
            row = None
        except GalleryError as e:
            logger.warning("Relational lookup of event %s failed: %s", event_id, e)
            row = None

        if row is not None:
            photos = tuple(await self.event_photos(event_id))
            return build_event(RelationalSource(row=row, photos=photos))

        if self.metadata is None:
            return None
        try:
            record = await self.metadata.find(event_id)
        except GalleryError as e:
            logger.info("Event %s not found in legacy metadata either: %s", event_id, e)
            return None
        if record is None:
            return None
        photos = tuple(await self.event_photos(event_id))
        return build_event(LegacySource(record=record, photos=photos))
