# scripts/migrate_metadata.py
"""Copy events from the legacy JSON metadata record into the database.

Usage: python scripts/migrate_metadata.py [--key events/metadata.json]
"""

import argparse
import asyncio
import logging

from gallery.config import settings
from gallery.database import engine, init_db
from gallery.services.migration_service import migrate_legacy_metadata
from gallery.stores.metadata import LegacyMetadataStore
from gallery.stores.object_store import build_object_store
from gallery.stores.relational import SQLRelationalStore


async def run(key: str) -> int:
    init_db(engine)
    objects = build_object_store(settings)
    report = await migrate_legacy_metadata(LegacyMetadataStore(objects, key), SQLRelationalStore(engine))
    print(f"Migrated {report.events} events and {report.photos} photos.")
    if report.skipped:
        print(f"Skipped {len(report.skipped)} events: {', '.join(report.skipped)}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--key", default=settings.legacy_metadata_key, help="object key of the metadata record")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level)
    return asyncio.run(run(args.key))


if __name__ == "__main__":
    raise SystemExit(main())
