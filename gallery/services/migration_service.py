"""Copy legacy JSON event metadata into the relational store."""

import logging
from dataclasses import dataclass, field

from gallery.errors import ValidationError
from gallery.models.event import EventRow, PhotoRow
from gallery.models.gallery import PLACEHOLDER_THUMBNAIL
from gallery.services.mutations import parse_event_date
from gallery.services.reconciliation import folder_display_name
from gallery.stores.metadata import LegacyMetadataStore
from gallery.stores.relational import RelationalStore
from gallery.utils.storage import key_from_url

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    events: int = 0
    photos: int = 0
    skipped: list[str] = field(default_factory=list)


def legacy_photo_filename(photo: dict, event_id: str) -> str:
    """Object key of a legacy photo.

    Old records only carried ``id`` and ``url``; the id is not reliably the
    object key, so the URL is preferred when it points under the event.
    """
    if photo.get("filename"):
        return photo["filename"]
    from_url = key_from_url(photo.get("url", ""), event_id)
    return from_url or photo["id"]


async def migrate_legacy_metadata(
    metadata: LegacyMetadataStore, relational: RelationalStore
) -> MigrationReport:
    """Upsert every legacy event and its photos. Safe to run more than once."""
    report = MigrationReport()
    records = await metadata.load()
    logger.info("Found %d events in legacy metadata", len(records))

    for record in records:
        event_id = record["id"]
        try:
            date = parse_event_date(record.get("date"))
        except ValidationError as e:
            logger.warning("Skipping legacy event %s: %s", event_id, e)
            report.skipped.append(event_id)
            continue

        await relational.upsert_event(
            EventRow(
                id=event_id,
                name=record.get("name") or folder_display_name(event_id),
                date=date,
                thumbnail=record.get("thumbnail") or PLACEHOLDER_THUMBNAIL,
                visible=record.get("visible") is not False,
            )
        )
        report.events += 1

        for photo in record.get("photos") or []:
            if not isinstance(photo, dict) or not photo.get("id") or not photo.get("url"):
                continue
            await relational.upsert_photo(
                PhotoRow(
                    id=photo["id"],
                    filename=legacy_photo_filename(photo, event_id),
                    url=photo["url"],
                    event_id=event_id,
                )
            )
            report.photos += 1
        logger.info("Migrated event %s (%s)", event_id, record.get("name"))

    return report
