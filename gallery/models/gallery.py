"""Canonical gallery types handed out by the reconciliation engine."""

from dataclasses import dataclass, field
from datetime import datetime

PLACEHOLDER_THUMBNAIL = "/placeholder.jpg"


@dataclass(frozen=True)
class Photo:
    id: str
    url: str
    filename: str = ""


@dataclass(frozen=True)
class Event:
    id: str
    name: str
    date: datetime
    thumbnail: str = PLACEHOLDER_THUMBNAIL
    visible: bool = True
    photos: tuple[Photo, ...] = field(default_factory=tuple)

    @property
    def photo_count(self) -> int:
        return len(self.photos)
