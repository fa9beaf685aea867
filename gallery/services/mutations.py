"""Multi-step writes spanning the relational store and the object store.

There is no transaction across the two stores. Each operation runs a fixed
sequence of steps; a failing step stops the sequence and whatever already
committed stays committed. When that leaves one store changed and the
other not, the caller gets a ``PartialFailure`` listing the completed
steps. Every path that changed anything invalidates the snapshot cache.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date as date_type, datetime, time as time_type, timezone
from typing import Optional, Sequence, Union

from gallery.errors import NotFound, PartialFailure, ValidationError
from gallery.models.event import EventRow, PhotoRow
from gallery.models.gallery import PLACEHOLDER_THUMBNAIL, Event, Photo
from gallery.services.cache import SnapshotCache
from gallery.services.reconciliation import RelationalSource, build_event, photo_from_row
from gallery.stores.metadata import LegacyMetadataStore
from gallery.stores.object_store import ObjectStore
from gallery.stores.relational import RelationalStore, as_utc
from gallery.utils.storage import (
    epoch_ms,
    event_photo_key,
    event_prefix,
    event_thumbnail_key,
    new_event_id,
    new_photo_id,
)

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
MAX_NAME_LENGTH = 200


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class DeleteEventResult:
    event_id: str
    removed_objects: int
    source: str  # 'relational' | 'legacy_metadata' | 'folder'


DateInput = Union[datetime, date_type, str, None]


def parse_event_date(value: DateInput) -> datetime:
    """Accept a datetime, a date or an ISO 8601 string; return aware UTC."""
    if value is None or value == "":
        raise ValidationError("Event date is required")
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date_type):
        return datetime.combine(value, time_type.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return as_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            raise ValidationError(f"Invalid date format: {value!r}")
    raise ValidationError(f"Invalid date: {value!r}")


def clean_event_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Event name is required")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"Event name is longer than {MAX_NAME_LENGTH} characters")
    return cleaned


class MutationCoordinator:
    def __init__(
        self,
        relational: RelationalStore,
        objects: ObjectStore,
        cache: SnapshotCache,
        metadata: Optional[LegacyMetadataStore] = None,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        allowed_content_types: Sequence[str] = ALLOWED_CONTENT_TYPES,
    ):
        self.relational = relational
        self.objects = objects
        self.cache = cache
        self.metadata = metadata
        self.max_upload_bytes = max_upload_bytes
        self.allowed_content_types = tuple(allowed_content_types)

    # --- Validation (no I/O) ---

    def validate_file(self, file: UploadedFile) -> None:
        if file.content_type not in self.allowed_content_types:
            raise ValidationError(
                f"File type {file.content_type} not allowed. Only JPEG, PNG, and WebP are supported."
            )
        if file.size == 0:
            raise ValidationError(f"File {file.filename} is empty")
        if file.size > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise ValidationError(f"File {file.filename} is too large. Maximum size is {limit_mb}MB.")

    # --- Events ---

    async def create_event(
        self, name: Optional[str], date: DateInput, thumbnail: Optional[UploadedFile] = None
    ) -> Event:
        """Create an event row, uploading its thumbnail first when one is given."""
        name = clean_event_name(name)
        when = parse_event_date(date)
        if thumbnail is not None:
            self.validate_file(thumbnail)

        event_id = new_event_id()
        thumbnail_url = PLACEHOLDER_THUMBNAIL
        completed: list[str] = []

        if thumbnail is not None:
            key = event_thumbnail_key(event_id, thumbnail.content_type)
            thumbnail_url = await self.objects.put_object(key, thumbnail.data, thumbnail.content_type)
            completed.append(f"upload thumbnail {key}")

        try:
            row = await self.relational.insert_event(
                EventRow(id=event_id, name=name, date=when, thumbnail=thumbnail_url, visible=True)
            )
        except Exception as e:
            logger.error("Error creating event %s: %s", event_id, e)
            if completed:
                self.cache.invalidate()
                raise PartialFailure("create_event", completed, "insert event row", e) from e
            raise

        self.cache.invalidate()
        logger.info("Created event %s (%s)", event_id, name)
        return build_event(RelationalSource(row=row, photos=()))

    async def update_event(
        self,
        event_id: str,
        name: Optional[str] = None,
        date: DateInput = None,
        visible: Optional[bool] = None,
    ) -> Event:
        fields = {}
        if name is not None:
            fields["name"] = clean_event_name(name)
        if date is not None:
            fields["date"] = parse_event_date(date)
        if visible is not None:
            fields["visible"] = bool(visible)
        if not fields:
            raise ValidationError("No fields to update")

        row = await self.relational.update_event(event_id, fields)
        self.cache.invalidate()
        logger.info("Updated event %s: %s", event_id, sorted(fields))

        photo_rows = await self.relational.get_photos_for_event(event_id)
        photos = tuple(photo_from_row(p) for p in photo_rows)
        return build_event(RelationalSource(row=row, photos=photos))

    async def delete_event(self, event_id: str) -> DeleteEventResult:
        """Remove an event's objects, then its row (or legacy metadata entry)."""
        prefix = event_prefix(event_id)
        removed = 0
        object_error: Optional[Exception] = None

        try:
            removed = await self.objects.delete_objects_by_prefix(prefix)
        except Exception as e:
            # best-effort cleanup, the relational step still runs
            object_error = e
            logger.warning("Could not delete objects under %s: %s", prefix, e)

        try:
            source = await self._delete_event_record(event_id, removed, object_error)
        except Exception as e:
            logger.error("Error deleting event %s: %s", event_id, e)
            if removed and not isinstance(e, NotFound):
                raise PartialFailure(
                    "delete_event", [f"delete {removed} object(s) under {prefix}"], "delete event row", e
                ) from e
            raise
        finally:
            self.cache.invalidate()

        if object_error is not None:
            raise PartialFailure(
                "delete_event", [f"delete event record ({source})"], f"delete objects under {prefix}", object_error
            ) from object_error

        logger.info("Deleted event %s (%s, %d objects)", event_id, source, removed)
        return DeleteEventResult(event_id=event_id, removed_objects=removed, source=source)

    async def _delete_event_record(
        self, event_id: str, removed: int, object_error: Optional[Exception]
    ) -> str:
        """Delete the relational row; events without one are legacy metadata entries or bare folders."""
        try:
            await self.relational.delete_event(event_id)
            return "relational"
        except NotFound:
            pass

        if self.metadata is not None and await self.metadata.remove(event_id):
            logger.info("Event %s removed from legacy metadata", event_id)
            return "legacy_metadata"
        if removed:
            return "folder"
        if object_error is not None:
            raise object_error
        raise NotFound("event", event_id)

    # --- Photos ---

    def _photo_keys(self, event_id: str, files: Sequence[UploadedFile]) -> list[str]:
        now_ms = epoch_ms()
        keys: list[str] = []
        for file in files:
            key = event_photo_key(event_id, file.filename, now_ms)
            n = 1
            while key in keys:
                stem, dot, ext = file.filename.rpartition(".")
                renamed = f"{stem}-{n}.{ext}" if dot else f"{file.filename}-{n}"
                key = event_photo_key(event_id, renamed, now_ms)
                n += 1
            keys.append(key)
        return keys

    async def _store_photo(self, event_id: str, key: str, file: UploadedFile) -> Photo:
        url = await self.objects.put_object(key, file.data, file.content_type)
        try:
            row = await self.relational.insert_photo(
                PhotoRow(id=new_photo_id(), filename=key, url=url, event_id=event_id)
            )
        except Exception as e:
            logger.error("Photo %s uploaded but its row was not saved: %s", key, e)
            raise PartialFailure("upload_event_photo", [f"upload object {key}"], "insert photo row", e) from e
        return photo_from_row(row)

    async def upload_event_photos(self, event_id: str, files: Sequence[UploadedFile]) -> list[Photo]:
        """Validate every file, then upload them concurrently."""
        if not files:
            raise ValidationError("No files provided")
        for file in files:
            self.validate_file(file)

        await self.relational.get_event(event_id)

        keys = self._photo_keys(event_id, files)
        results = await asyncio.gather(
            *(self._store_photo(event_id, key, file) for key, file in zip(keys, files)),
            return_exceptions=True,
        )

        stored = [r for r in results if isinstance(r, Photo)]
        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            if not isinstance(failure, Exception):
                raise failure

        if stored or any(isinstance(f, PartialFailure) for f in failures):
            self.cache.invalidate()

        if failures:
            if not stored and len(failures) == 1:
                raise failures[0]
            completed = [f"upload photo {p.id}" for p in stored]
            for failure in failures:
                if isinstance(failure, PartialFailure):
                    completed.extend(failure.completed)
            raise PartialFailure(
                "upload_event_photos",
                completed,
                f"{len(failures)} of {len(files)} upload(s)",
                failures[0],
            ) from failures[0]

        logger.info("Uploaded %d photo(s) to event %s", len(stored), event_id)
        return stored

    async def upload_event_photo(self, event_id: str, file: UploadedFile) -> Photo:
        photos = await self.upload_event_photos(event_id, [file])
        return photos[0]

    async def delete_event_photo(self, event_id: str, photo_id: str) -> None:
        """Delete the photo row, then its object.

        The object key comes from the row's filename; it is not the photo id.
        Row first: a crash in between leaves an orphaned object, never a row
        pointing at a missing image.
        """
        row = await self.relational.get_photo(photo_id)
        if row.event_id != event_id:
            raise NotFound("photo", photo_id)

        await self.relational.delete_photo(photo_id)

        try:
            await self.objects.delete_object(row.filename)
        except Exception as e:
            self.cache.invalidate()
            logger.error("Photo row %s deleted but object %s was not: %s", photo_id, row.filename, e)
            raise PartialFailure(
                "delete_event_photo", [f"delete photo row {photo_id}"], f"delete object {row.filename}", e
            ) from e

        self.cache.invalidate()
        logger.info("Deleted photo %s (%s) from event %s", photo_id, row.filename, event_id)
