"""Event Gallery Database Models."""

from gallery.models.event import EventRow, PhotoRow

__all__ = [
    "EventRow",
    "PhotoRow",
]
