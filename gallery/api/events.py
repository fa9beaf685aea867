"""Public gallery API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from gallery.api.deps import get_services
from gallery.models.gallery import Event, Photo
from gallery.schemas.event import EventResponse, PhotoResponse
from gallery.services.container import GalleryServices

router = APIRouter(prefix="/events", tags=["events"])


def photo_to_response(photo: Photo) -> PhotoResponse:
    return PhotoResponse(id=photo.id, url=photo.url, filename=photo.filename)


def event_to_response(event: Event) -> EventResponse:
    return EventResponse(
        id=event.id,
        name=event.name,
        date=event.date.isoformat(),
        thumbnail=event.thumbnail,
        visible=event.visible,
        photo_count=event.photo_count,
        photos=[photo_to_response(p) for p in event.photos],
    )


@router.get("", response_model=list[EventResponse])
async def list_events(services: GalleryServices = Depends(get_services)):
    """Visible events, newest first."""
    events = await services.events.list_events(visible_only=True)
    return [event_to_response(e) for e in events]


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: str, services: GalleryServices = Depends(get_services)):
    event = await services.events.get_event(event_id, visible_only=True)
    return event_to_response(event)


@router.get("/{event_id}/photos", response_model=list[PhotoResponse])
async def get_event_photos(
    event_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    services: GalleryServices = Depends(get_services),
):
    # hidden events stay hidden here too
    await services.events.get_event(event_id, visible_only=True)
    photos = await services.events.get_event_photos(event_id, limit)
    return [photo_to_response(p) for p in photos]
