"""Wiring of stores and services, built once per process."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from gallery.services.cache import SnapshotCache
from gallery.services.event_service import EventService
from gallery.services.mutations import MutationCoordinator
from gallery.services.reconciliation import ReconciliationEngine
from gallery.stores.metadata import LegacyMetadataStore
from gallery.stores.object_store import ObjectStore, build_object_store
from gallery.stores.relational import RelationalStore, SQLRelationalStore


@dataclass
class GalleryServices:
    relational: RelationalStore
    objects: ObjectStore
    metadata: Optional[LegacyMetadataStore]
    engine: ReconciliationEngine
    cache: SnapshotCache
    events: EventService
    mutations: MutationCoordinator


def assemble(
    relational: RelationalStore,
    objects: ObjectStore,
    metadata: Optional[LegacyMetadataStore] = None,
    cache_ttl_seconds: float = 300,
    demo_fallback: bool = True,
    max_upload_bytes: int = 10 * 1024 * 1024,
    allowed_content_types=("image/jpeg", "image/jpg", "image/png", "image/webp"),
) -> GalleryServices:
    engine = ReconciliationEngine(relational, objects, metadata, demo_fallback=demo_fallback)
    cache = SnapshotCache(engine, ttl_seconds=cache_ttl_seconds)
    return GalleryServices(
        relational=relational,
        objects=objects,
        metadata=metadata,
        engine=engine,
        cache=cache,
        events=EventService(cache, engine),
        mutations=MutationCoordinator(
            relational,
            objects,
            cache,
            metadata,
            max_upload_bytes=max_upload_bytes,
            allowed_content_types=allowed_content_types,
        ),
    )


def build_services(settings, db_engine: Engine) -> GalleryServices:
    """Pick the backends named in settings and wire everything together."""
    objects = build_object_store(settings)
    metadata = LegacyMetadataStore(objects, settings.legacy_metadata_key) if settings.legacy_metadata_enabled else None
    return assemble(
        SQLRelationalStore(db_engine),
        objects,
        metadata,
        cache_ttl_seconds=settings.cache_ttl_seconds,
        demo_fallback=settings.demo_fallback,
        max_upload_bytes=settings.max_upload_bytes,
        allowed_content_types=settings.allowed_content_types,
    )
