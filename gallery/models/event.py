"""Event and Photo tables."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, ForeignKey, String
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventRow(SQLModel, table=True):
    __tablename__ = "events"

    id: str = Field(primary_key=True)  # also the object-store prefix
    name: str
    date: datetime = Field(index=True)
    thumbnail: Optional[str] = None
    visible: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class PhotoRow(SQLModel, table=True):
    __tablename__ = "photos"

    id: str = Field(primary_key=True)
    filename: str  # object-store key, not derived from id
    url: str
    event_id: str = Field(
        sa_column=Column(
            String,
            ForeignKey("events.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        )
    )
    created_at: datetime = Field(default_factory=_utcnow, index=True)
