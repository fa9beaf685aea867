"""Admin event management API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from gallery.api.deps import get_current_admin, get_services
from gallery.api.events import event_to_response, photo_to_response
from gallery.schemas.event import (
    DeleteEventResponse,
    DeleteResponse,
    EventResponse,
    EventUpdateRequest,
    UploadResponse,
)
from gallery.services.container import GalleryServices
from gallery.services.mutations import UploadedFile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/events", tags=["admin"], dependencies=[Depends(get_current_admin)])


async def _read_upload(upload: UploadFile) -> UploadedFile:
    data = await upload.read()
    return UploadedFile(
        filename=upload.filename or "photo",
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


@router.get("", response_model=list[EventResponse])
async def list_events(refresh: bool = False, services: GalleryServices = Depends(get_services)):
    """All events including hidden ones. ``refresh`` bypasses the cache."""
    events = await services.events.list_events(visible_only=False, force_refresh=refresh)
    return [event_to_response(e) for e in events]


@router.post("", response_model=EventResponse, status_code=201)
async def create_event(
    name: str = Form(...),
    date: str = Form(...),
    thumbnail: Optional[UploadFile] = File(None),
    services: GalleryServices = Depends(get_services),
):
    thumb = None
    # browsers submit an empty part when no file was picked
    if thumbnail is not None and thumbnail.filename:
        thumb = await _read_upload(thumbnail)
    event = await services.mutations.create_event(name, date, thumb)
    return event_to_response(event)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: str, services: GalleryServices = Depends(get_services)):
    event = await services.events.get_event(event_id, visible_only=False)
    return event_to_response(event)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    request: EventUpdateRequest,
    services: GalleryServices = Depends(get_services),
):
    event = await services.mutations.update_event(
        event_id, name=request.name, date=request.date, visible=request.visible
    )
    return event_to_response(event)


@router.delete("/{event_id}", response_model=DeleteEventResponse)
async def delete_event(event_id: str, services: GalleryServices = Depends(get_services)):
    result = await services.mutations.delete_event(event_id)
    return DeleteEventResponse(
        success=True,
        event_id=result.event_id,
        removed_objects=result.removed_objects,
        source=result.source,
    )


@router.post("/{event_id}/photos", response_model=UploadResponse, status_code=201)
async def upload_photos(
    event_id: str,
    files: list[UploadFile] = File(...),
    services: GalleryServices = Depends(get_services),
):
    uploads = [await _read_upload(f) for f in files]
    photos = await services.mutations.upload_event_photos(event_id, uploads)
    return UploadResponse(success=True, photos=[photo_to_response(p) for p in photos])


@router.delete("/{event_id}/photos/{photo_id:path}", response_model=DeleteResponse)
async def delete_photo(event_id: str, photo_id: str, services: GalleryServices = Depends(get_services)):
    await services.mutations.delete_event_photo(event_id, photo_id)
    return DeleteResponse(success=True)
