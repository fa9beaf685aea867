"""Copying the legacy JSON metadata record into the database."""

import pytest

from gallery.services.migration_service import legacy_photo_filename, migrate_legacy_metadata

LEGACY_RECORDS = [
    {
        "id": "evento-1700000000000-abc123xyz",
        "name": "Casamento - Maria & João",
        "date": "2024-01-15T00:00:00.000Z",
        "thumbnail": "/placeholder.jpg",
        "visible": True,
        "photos": [
            {"id": "photo-1", "url": "http://localhost:9000/photos/evento-1700000000000-abc123xyz/1700-a.jpg"},
            {"id": "photo-2", "url": "/api/images/other/2.jpg", "filename": "evento-1700000000000-abc123xyz/2.jpg"},
        ],
    },
    {"id": "broken", "name": "No date"},
]


def test_legacy_photo_filename_prefers_explicit_then_url_then_id():
    assert legacy_photo_filename({"id": "p", "filename": "ev/f.jpg"}, "ev") == "ev/f.jpg"
    assert legacy_photo_filename({"id": "p", "url": "http://h/photos/ev/a%20b.jpg"}, "ev") == "ev/a b.jpg"
    assert legacy_photo_filename({"id": "p", "url": "/elsewhere.jpg"}, "ev") == "p"


@pytest.mark.asyncio
async def test_migrate_upserts_events_and_photos(metadata, relational):
    await metadata.save(LEGACY_RECORDS)

    report = await migrate_legacy_metadata(metadata, relational)

    assert report.events == 1
    assert report.photos == 2
    assert report.skipped == ["broken"]
    photos = {p.id: p for p in await relational.list_photos()}
    assert photos["photo-1"].filename == "evento-1700000000000-abc123xyz/1700-a.jpg"
    assert photos["photo-2"].filename == "evento-1700000000000-abc123xyz/2.jpg"


@pytest.mark.asyncio
async def test_migrate_twice_does_not_duplicate(metadata, relational):
    await metadata.save(LEGACY_RECORDS)
    await migrate_legacy_metadata(metadata, relational)
    await migrate_legacy_metadata(metadata, relational)

    assert len(await relational.list_events()) == 1
    assert len(await relational.list_photos()) == 2


@pytest.mark.asyncio
async def test_rerun_keeps_original_created_at(metadata, relational):
    await metadata.save(LEGACY_RECORDS)
    await migrate_legacy_metadata(metadata, relational)
    first = {p.id: p.created_at for p in await relational.list_photos()}
    event_created = (await relational.list_events())[0].created_at

    await migrate_legacy_metadata(metadata, relational)

    assert {p.id: p.created_at for p in await relational.list_photos()} == first
    assert (await relational.list_events())[0].created_at == event_created
