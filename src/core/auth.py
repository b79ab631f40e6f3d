"""
Optional JWT authentication.

Shoppers are usually anonymous; when a site passes a signed JWT for a logged
in customer, the filter state is keyed to the user id instead of the client
IP. Authentication is disabled entirely while AUTH_JWT_SECRET is empty.

Usage:
    from core.auth import get_current_user, AuthUser

    @router.get("/")
    def read(user: Optional[AuthUser] = Depends(get_current_user)):
        ...
"""

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import Settings, get_settings


security = HTTPBearer(
    scheme_name="Customer JWT",
    description="HS256 JWT identifying a logged in customer (optional).",
    auto_error=False,
)


@dataclass
class AuthUser:
    """
    Authenticated customer.

    Attributes:
        id: User id (from the 'sub' claim)
        email: Email address, when present
        role: Role claim (defaults to 'authenticated')
    """
    id: str
    email: Optional[str] = None
    role: str = "authenticated"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_jwt(token: str, settings: Optional[Settings] = None) -> dict:
    """
    Verify and decode a customer JWT.

    Raises:
        HTTPException: 401 when the token is invalid, expired or for another audience
    """
    settings = settings or get_settings()
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=["HS256"],
            audience=settings.auth_jwt_audience,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidAudienceError:
        raise _unauthorized("Invalid token audience")
    except jwt.InvalidTokenError as e:
        raise _unauthorized(f"Invalid token: {str(e)}")


def extract_user(payload: dict) -> AuthUser:
    return AuthUser(
        id=str(payload["sub"]),
        email=payload.get("email"),
        role=payload.get("role", "authenticated"),
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthUser]:
    """
    FastAPI dependency returning the customer, or None for anonymous access.

    A bearer token sent while auth is disabled is ignored; a bad token sent
    while auth is enabled is rejected with 401.
    """
    if not credentials or not credentials.credentials:
        return None

    settings = get_settings()
    if not settings.auth_jwt_secret:
        return None

    return extract_user(verify_jwt(credentials.credentials, settings))
