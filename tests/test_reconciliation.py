"""Merging relational rows, object-store folders and legacy metadata."""

import json
from datetime import datetime, timezone

import pytest

from gallery.errors import StoreUnavailable
from gallery.models.event import EventRow, PhotoRow
from gallery.models.gallery import PLACEHOLDER_THUMBNAIL
from gallery.services.reconciliation import DEMO_EVENTS, ReconciliationEngine, folder_display_name
from gallery.stores.object_store import LocalObjectStore
from gallery.stores.relational import SQLRelationalStore

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class DownRelationalStore(SQLRelationalStore):
    async def list_events(self):
        raise StoreUnavailable(self.name, "connection refused")

    async def get_event(self, event_id):
        raise StoreUnavailable(self.name, "connection refused")

    async def get_photos_for_event(self, event_id, limit=None):
        raise StoreUnavailable(self.name, "connection refused")


class DownObjectStore(LocalObjectStore):
    async def list_object_keys(self, prefix="", limit=None):
        raise StoreUnavailable(self.name, "timeout")


class CountingObjectStore(LocalObjectStore):
    def __init__(self, root):
        super().__init__(root)
        self.list_calls = 0

    async def list_object_keys(self, prefix="", limit=None):
        self.list_calls += 1
        return await super().list_object_keys(prefix, limit)


def _engine(relational, objects, metadata=None, **kwargs):
    return ReconciliationEngine(relational, objects, metadata, clock=lambda: FIXED_NOW, **kwargs)


def test_folder_display_name():
    assert folder_display_name("summer_party") == "Summer Party"
    assert folder_display_name("evento-2024") == "Evento-2024"


@pytest.mark.asyncio
async def test_relational_events_with_photos(relational, objects):
    await relational.insert_event(EventRow(id="ev", name="Wedding", date=datetime(2025, 1, 15, tzinfo=timezone.utc)))
    await relational.insert_photo(PhotoRow(id="photo-1", filename="ev/1-a.jpg", url="/api/images/ev/1-a.jpg", event_id="ev"))

    snapshot = await _engine(relational, objects).reconcile()

    assert len(snapshot) == 1
    event = snapshot[0]
    assert event.name == "Wedding"
    assert event.photo_count == 1
    # no thumbnail of its own, first photo stands in
    assert event.thumbnail == "/api/images/ev/1-a.jpg"


@pytest.mark.asyncio
async def test_folder_without_row_becomes_event(relational, objects):
    await relational.insert_event(EventRow(id="ev", name="Wedding", date=datetime(2025, 1, 15, tzinfo=timezone.utc)))
    await objects.put_object("ev/ignored.jpg", b"x", "image/jpeg")
    await objects.put_object("summer_party/1.jpg", b"x", "image/jpeg")
    await objects.put_object("summer_party/thumbnail.jpg", b"x", "image/jpeg")

    snapshot = await _engine(relational, objects).reconcile()

    assert [e.id for e in snapshot] == ["summer_party", "ev"]
    folder_event = snapshot[0]
    assert folder_event.name == "Summer Party"
    assert folder_event.date == FIXED_NOW
    assert [p.id for p in folder_event.photos] == ["summer_party/1.jpg"]
    assert folder_event.thumbnail == folder_event.photos[0].url
    # relational row wins, its folder is not listed twice
    assert snapshot[1].photo_count == 0


@pytest.mark.asyncio
async def test_empty_folder_event_gets_placeholder(relational, objects):
    await objects.put_object("only_thumb/thumbnail.jpg", b"x", "image/jpeg")
    snapshot = await _engine(relational, objects).reconcile()
    assert snapshot[0].thumbnail == PLACEHOLDER_THUMBNAIL
    assert snapshot[0].photo_count == 0


@pytest.mark.asyncio
async def test_metadata_record_key_is_not_a_folder_event(relational, objects, metadata):
    await metadata.save([])
    snapshot = await _engine(relational, objects, metadata).reconcile()
    assert snapshot == ()


@pytest.mark.asyncio
async def test_legacy_record_owns_its_folder(relational, objects, metadata):
    await metadata.save([{"id": "old_party", "name": "Festa Antiga", "date": "2020-01-01", "visible": False}])
    await objects.put_object("old_party/1.jpg", b"x", "image/jpeg")
    engine = _engine(relational, objects, metadata)

    snapshot = await engine.reconcile()

    assert len(snapshot) == 1
    event = snapshot[0]
    assert event.name == "Festa Antiga"
    assert event.date == datetime(2020, 1, 1, tzinfo=timezone.utc)
    assert event.visible is False
    assert [p.id for p in event.photos] == ["old_party/1.jpg"]
    assert event == await engine.load_event("old_party")


@pytest.mark.asyncio
async def test_legacy_record_without_folder_is_listed(relational, objects, metadata):
    await metadata.save([{"id": "old", "name": "Old", "date": "2021-05-01T00:00:00Z"}])
    snapshot = await _engine(relational, objects, metadata).reconcile()
    assert [(e.id, e.name, e.photo_count) for e in snapshot] == [("old", "Old", 0)]
    assert snapshot[0].thumbnail == PLACEHOLDER_THUMBNAIL


@pytest.mark.asyncio
async def test_relational_row_wins_over_legacy_record(relational, objects, metadata):
    await relational.insert_event(EventRow(id="ev", name="Wedding", date=datetime(2025, 1, 15, tzinfo=timezone.utc)))
    await metadata.save([{"id": "ev", "name": "Stale name", "visible": False}])
    snapshot = await _engine(relational, objects, metadata).reconcile()
    assert [(e.id, e.name, e.visible) for e in snapshot] == [("ev", "Wedding", True)]


@pytest.mark.asyncio
async def test_folders_discovered_from_a_single_listing(relational, tmp_path):
    objects = CountingObjectStore(tmp_path)
    for folder in ("a", "b", "c"):
        await objects.put_object(f"{folder}/1.jpg", b"x", "image/jpeg")

    snapshot = await _engine(relational, objects).reconcile()

    assert sorted(e.id for e in snapshot) == ["a", "b", "c"]
    assert all(e.photo_count == 1 for e in snapshot)
    assert objects.list_calls == 1


@pytest.mark.asyncio
async def test_relational_failure_serves_demo_events(db_engine, objects):
    snapshot = await _engine(DownRelationalStore(db_engine), objects).reconcile()
    assert [e.id for e in snapshot] == [e.id for e in DEMO_EVENTS]
    assert snapshot[0].id == "evento-1"


@pytest.mark.asyncio
async def test_relational_failure_without_demo_fallback(db_engine, objects):
    snapshot = await _engine(DownRelationalStore(db_engine), objects, demo_fallback=False).reconcile()
    assert snapshot == ()


@pytest.mark.asyncio
async def test_object_store_failure_keeps_relational_events(relational, tmp_path):
    await relational.insert_event(EventRow(id="ev", name="Wedding", date=datetime(2025, 1, 15, tzinfo=timezone.utc)))
    snapshot = await _engine(relational, DownObjectStore(tmp_path)).reconcile()
    assert [e.id for e in snapshot] == ["ev"]


@pytest.mark.asyncio
async def test_event_photos_falls_back_to_folder_listing(relational, objects):
    await objects.put_object("legacy/a.jpg", b"x", "image/jpeg")
    await objects.put_object("legacy/b.jpg", b"x", "image/jpeg")
    await objects.put_object("legacy/thumbnail.jpg", b"x", "image/jpeg")

    photos = await _engine(relational, objects).event_photos("legacy")
    assert [p.id for p in photos] == ["legacy/a.jpg", "legacy/b.jpg"]

    limited = await _engine(relational, objects).event_photos("legacy", limit=1)
    assert len(limited) == 1


@pytest.mark.asyncio
async def test_event_photos_both_stores_down(db_engine, tmp_path):
    engine = _engine(DownRelationalStore(db_engine), DownObjectStore(tmp_path))
    assert await engine.event_photos("anything") == []


@pytest.mark.asyncio
async def test_load_event_from_legacy_metadata(db_engine, objects, metadata):
    record = {"id": "old", "name": "Festa Junina", "date": "2023-06-24T00:00:00Z", "visible": True}
    await objects.put_object(metadata.key, json.dumps([record]).encode(), "application/json")
    await objects.put_object("old/1.jpg", b"x", "image/jpeg")

    event = await _engine(DownRelationalStore(db_engine), objects, metadata).load_event("old")

    assert event.name == "Festa Junina"
    assert event.date == datetime(2023, 6, 24, tzinfo=timezone.utc)
    assert event.photo_count == 1


@pytest.mark.asyncio
async def test_load_event_unknown_returns_none(relational, objects, metadata):
    assert await _engine(relational, objects, metadata).load_event("ghost") is None


@pytest.mark.asyncio
async def test_unreadable_metadata_counts_as_empty(objects, metadata):
    await objects.put_object(metadata.key, b"{not json", "application/json")
    assert await metadata.load() == []
