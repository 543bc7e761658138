"""Short-lived signed tokens (bearer tokens, OAuth state)."""

from datetime import timedelta
from typing import Any

from jose import jwt

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now


def create_token(claims: dict[str, Any], expires_in: timedelta) -> str:
    settings = get_settings()
    payload = dict(claims)
    payload["exp"] = utc_now() + expires_in
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and verify a token. Raises ``jose.JWTError`` when invalid or expired."""
    settings = get_settings()
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        options={"verify_aud": False},
    )
