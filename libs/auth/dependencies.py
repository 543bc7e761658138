from typing import Annotated, Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import ADMIN, RETAILER, AuthUser
from libs.common.config import get_settings

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _decode(credentials: HTTPAuthorizationCredentials) -> AuthUser:
    settings = get_settings()
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
        return AuthUser(**payload)
    except (JWTError, ValidationError):
        raise credentials_exception


async def get_current_user(
    token: Annotated[HTTPAuthorizationCredentials, Depends(security)]
) -> AuthUser:
    """
    Validate the bearer JWT and return the authenticated user.
    """
    return _decode(token)


async def get_optional_user(
    token: Annotated[Optional[HTTPAuthorizationCredentials], Depends(optional_security)]
) -> Optional[AuthUser]:
    if token is None:
        return None
    return _decode(token)


def require_role(*roles: str) -> Callable:
    """Build a dependency that only admits users holding one of ``roles``."""

    async def _checker(
        current_user: Annotated[AuthUser, Depends(get_current_user)]
    ) -> AuthUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(roles)}",
            )
        return current_user

    return _checker


require_admin = require_role(ADMIN)
require_retailer = require_role(RETAILER)
