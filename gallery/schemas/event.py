"""Event and photo request/response schemas."""

from typing import Optional

from pydantic import BaseModel


class PhotoResponse(BaseModel):
    id: str
    url: str
    filename: str


class EventResponse(BaseModel):
    id: str
    name: str
    date: str
    thumbnail: str
    visible: bool
    photo_count: int
    photos: list[PhotoResponse]


class EventUpdateRequest(BaseModel):
    name: Optional[str] = None
    date: Optional[str] = None
    visible: Optional[bool] = None


class UploadResponse(BaseModel):
    success: bool
    photos: list[PhotoResponse]


class DeleteEventResponse(BaseModel):
    success: bool
    event_id: str
    removed_objects: int
    source: str


class DeleteResponse(BaseModel):
    success: bool
