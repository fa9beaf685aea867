"""Relational store adapter: the events and photos tables."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, exc as sa_exc
from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from gallery.errors import NotFound, StoreUnavailable
from gallery.models.event import EventRow, PhotoRow

logger = logging.getLogger(__name__)

UPDATABLE_EVENT_FIELDS = ("name", "date", "thumbnail", "visible")


def as_utc(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _normalize_event(row: EventRow) -> EventRow:
    row.date = as_utc(row.date)
    row.created_at = as_utc(row.created_at)
    row.updated_at = as_utc(row.updated_at)
    return row


def _normalize_photo(row: PhotoRow) -> PhotoRow:
    row.created_at = as_utc(row.created_at)
    return row


class RelationalStore(ABC):
    """Contract of the row store holding events and their photos."""

    @abstractmethod
    async def list_events(self) -> list[EventRow]:
        """All events, newest date first."""

    @abstractmethod
    async def list_photos(self) -> list[PhotoRow]:
        """All photos, oldest upload first."""

    @abstractmethod
    async def get_event(self, event_id: str) -> EventRow:
        """Raises NotFound when absent."""

    @abstractmethod
    async def get_photo(self, photo_id: str) -> PhotoRow:
        """Raises NotFound when absent."""

    @abstractmethod
    async def get_photos_for_event(self, event_id: str, limit: Optional[int] = None) -> list[PhotoRow]:
        ...

    @abstractmethod
    async def insert_event(self, row: EventRow) -> EventRow:
        ...

    @abstractmethod
    async def update_event(self, event_id: str, fields: dict[str, Any]) -> EventRow:
        """Raises NotFound when absent."""

    @abstractmethod
    async def delete_event(self, event_id: str) -> None:
        """Delete the event and its photo rows. Raises NotFound when absent."""

    @abstractmethod
    async def insert_photo(self, row: PhotoRow) -> PhotoRow:
        ...

    @abstractmethod
    async def delete_photo(self, photo_id: str) -> None:
        """Raises NotFound when absent."""

    @abstractmethod
    async def upsert_event(self, row: EventRow) -> EventRow:
        ...

    @abstractmethod
    async def upsert_photo(self, row: PhotoRow) -> PhotoRow:
        ...


class SQLRelationalStore(RelationalStore):
    """SQLModel implementation. Each call runs in its own session on a worker thread."""

    name = "database"

    def __init__(self, engine: Engine):
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.TimeoutError) as e:
            raise StoreUnavailable(self.name, str(getattr(e, "orig", None) or e)) from e

    # --- Reads ---

    def _list_events(self) -> list[EventRow]:
        with self._session() as session:
            rows = session.exec(
                select(EventRow).order_by(col(EventRow.date).desc())
            ).all()
            return [_normalize_event(r) for r in rows]

    async def list_events(self) -> list[EventRow]:
        return await self._run(self._list_events)

    def _list_photos(self) -> list[PhotoRow]:
        with self._session() as session:
            rows = session.exec(
                select(PhotoRow).order_by(col(PhotoRow.created_at).asc())
            ).all()
            return [_normalize_photo(r) for r in rows]

    async def list_photos(self) -> list[PhotoRow]:
        return await self._run(self._list_photos)

    def _get_event(self, event_id: str) -> EventRow:
        with self._session() as session:
            row = session.get(EventRow, event_id)
            if not row:
                raise NotFound("event", event_id)
            return _normalize_event(row)

    async def get_event(self, event_id: str) -> EventRow:
        return await self._run(self._get_event, event_id)

    def _get_photo(self, photo_id: str) -> PhotoRow:
        with self._session() as session:
            row = session.get(PhotoRow, photo_id)
            if not row:
                raise NotFound("photo", photo_id)
            return _normalize_photo(row)

    async def get_photo(self, photo_id: str) -> PhotoRow:
        return await self._run(self._get_photo, photo_id)

    def _photos_for_event(self, event_id: str, limit: Optional[int]) -> list[PhotoRow]:
        query = (
            select(PhotoRow)
            .where(PhotoRow.event_id == event_id)
            .order_by(col(PhotoRow.created_at).asc())
        )
        if limit:
            query = query.limit(limit)
        with self._session() as session:
            return [_normalize_photo(r) for r in session.exec(query).all()]

    async def get_photos_for_event(self, event_id: str, limit: Optional[int] = None) -> list[PhotoRow]:
        return await self._run(self._photos_for_event, event_id, limit)

    # --- Writes ---

    def _insert(self, row):
        with self._session() as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    async def insert_event(self, row: EventRow) -> EventRow:
        return _normalize_event(await self._run(self._insert, row))

    async def insert_photo(self, row: PhotoRow) -> PhotoRow:
        return _normalize_photo(await self._run(self._insert, row))

    def _update_event(self, event_id: str, fields: dict[str, Any]) -> EventRow:
        with self._session() as session:
            row = session.get(EventRow, event_id)
            if not row:
                raise NotFound("event", event_id)
            for name, value in fields.items():
                if name not in UPDATABLE_EVENT_FIELDS:
                    raise ValueError(f"Event field {name!r} cannot be updated")
                setattr(row, name, value)
            row.updated_at = datetime.now(timezone.utc)
            session.add(row)
            session.commit()
            session.refresh(row)
            return _normalize_event(row)

    async def update_event(self, event_id: str, fields: dict[str, Any]) -> EventRow:
        return await self._run(self._update_event, event_id, fields)

    def _delete_event(self, event_id: str) -> None:
        with self._session() as session:
            row = session.get(EventRow, event_id)
            if not row:
                raise NotFound("event", event_id)
            # Explicit so the cascade holds on backends without FK enforcement
            session.exec(delete(PhotoRow).where(PhotoRow.event_id == event_id))
            session.delete(row)
            session.commit()

    async def delete_event(self, event_id: str) -> None:
        await self._run(self._delete_event, event_id)

    def _delete_photo(self, photo_id: str) -> None:
        with self._session() as session:
            row = session.get(PhotoRow, photo_id)
            if not row:
                raise NotFound("photo", photo_id)
            session.delete(row)
            session.commit()

    async def delete_photo(self, photo_id: str) -> None:
        await self._run(self._delete_photo, photo_id)

    def _merge(self, row):
        with self._session() as session:
            existing = session.get(type(row), row.id)
            if existing is not None:
                # re-imports keep the original creation time
                row.created_at = existing.created_at
            merged = session.merge(row)
            session.commit()
            session.refresh(merged)
            return merged

    async def upsert_event(self, row: EventRow) -> EventRow:
        return _normalize_event(await self._run(self._merge, row))

    async def upsert_photo(self, row: PhotoRow) -> PhotoRow:
        return _normalize_photo(await self._run(self._merge, row))
