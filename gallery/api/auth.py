"""Admin login/logout API endpoints."""

from fastapi import APIRouter, Response

from gallery.config import settings
from gallery.schemas.auth import LoginRequest, LoginResponse
from gallery.services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(request: LoginRequest, response: Response):
    """Check the admin credentials and set the session cookie."""
    token = auth_service.login(request.username, request.password)
    max_age = settings.session_expire_minutes * 60
    response.set_cookie(
        key=settings.session_cookie,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=max_age,
        path="/",
    )
    return LoginResponse(success=True, access_token=token, expires_in=max_age)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.session_cookie, path="/")
    return {"success": True}
