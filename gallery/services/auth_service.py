"""Admin authentication.

A single credential pair from settings; a successful login yields a signed
session token carried by the ``admin-session`` cookie or a Bearer header.
"""

import logging
import secrets

import jwt

from gallery.config import settings
from gallery.errors import Unauthorized
from gallery.utils.security import create_session_token, decode_token

logger = logging.getLogger(__name__)


def verify_credentials(username: str, password: str) -> bool:
    # evaluate both comparisons so timing does not reveal which one failed
    user_ok = secrets.compare_digest(username.encode(), settings.admin_username.encode())
    password_ok = secrets.compare_digest(password.encode(), settings.admin_password.encode())
    return user_ok and password_ok


def login(username: str, password: str) -> str:
    """Check credentials and issue a session token. Raises Unauthorized."""
    if not verify_credentials(username, password):
        logger.warning("Failed admin login for %r", username)
        raise Unauthorized("Invalid credentials")
    logger.info("Admin %s logged in", username)
    return create_session_token(username)


def verify(token: str | None) -> str | None:
    """Return the admin identity a token belongs to, or None."""
    if not token:
        return None
    try:
        payload = decode_token(token)
    except jwt.PyJWTError:
        return None
    if payload.get("type") != "admin":
        return None
    return payload.get("sub")
