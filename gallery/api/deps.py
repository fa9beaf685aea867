"""Common API dependencies: service container and admin session checks."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gallery.config import settings
from gallery.errors import Unauthorized
from gallery.services import auth_service
from gallery.services.container import GalleryServices

bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> GalleryServices:
    return request.app.state.gallery


def get_current_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Validate the admin session from the Bearer header or the session cookie."""
    token = credentials.credentials if credentials else request.cookies.get(settings.session_cookie)
    if not token:
        raise Unauthorized("Not authenticated")

    admin = auth_service.verify(token)
    if admin is None:
        raise Unauthorized("Invalid or expired session")
    return admin
