"""Image proxy: serves object-store bytes when no public base URL is configured."""

import mimetypes
import posixpath

from fastapi import APIRouter, Depends, Response

from gallery.api.deps import get_services
from gallery.errors import NotFound
from gallery.services.container import GalleryServices

router = APIRouter(prefix="/images", tags=["images"])


def _is_private_key(key: str, services: GalleryServices) -> bool:
    # the legacy metadata record lists hidden events
    if services.metadata is None:
        return False
    return posixpath.normpath(key.lstrip("/")) == posixpath.normpath(services.metadata.key)


@router.get("/{key:path}")
async def get_image(key: str, services: GalleryServices = Depends(get_services)):
    if _is_private_key(key, services):
        raise NotFound("object", key)
    data = await services.objects.get_object(key)
    media_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Cache-Control": "public, max-age=86400"},
    )
