"""Security utilities: admin session tokens."""

from datetime import datetime, timedelta, timezone

import jwt

from gallery.config import settings


# --- JWT Tokens ---

def create_session_token(username: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.session_expire_minutes)
    payload = {
        "sub": username,
        "exp": expire,
        "type": "admin",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
