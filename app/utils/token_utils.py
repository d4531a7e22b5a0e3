from fastapi import Request
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
import os
from pydantic import BaseModel

from app import config
from app.errors import Forbidden, Unauthorized
from app.models.user_model import User


class CurrentUser(BaseModel):
    """Identity carried by a bearer token."""

    id: int
    email: str
    username: str


def _get_secret_key() -> str:
    secret = config.SECRET_KEY or os.getenv("SECRET_KEY")
    if not secret:
        # Fail fast with a clear message instead of a generic 500
        raise RuntimeError("SECRET_KEY is not configured in the backend environment")
    if len(secret) < 32:
        raise RuntimeError("SECRET_KEY is too short; use at least 32 characters")
    return secret


def create_access_token(user: User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "exp": expire,
    }
    return jwt.encode(to_encode, _get_secret_key(), algorithm=config.ALGORITHM)


def decode_access_token(token: str) -> CurrentUser:
    """Verify signature and expiry; raise Forbidden on any failure."""
    try:
        payload = jwt.decode(token, _get_secret_key(), algorithms=[config.ALGORITHM])
        return CurrentUser(
            id=int(payload["id"]),
            email=payload["email"],
            username=payload["username"],
        )
    except (JWTError, KeyError, TypeError, ValueError):
        raise Forbidden("Invalid or expired token")


def _bearer_token(request: Request) -> Optional[str]:
    # second space-separated part, whatever the scheme word is
    parts = request.headers.get("Authorization", "").split(" ")
    token = parts[1] if len(parts) > 1 else ""
    return token or None


async def get_current_user(request: Request) -> CurrentUser:
    # missing token -> 401, bad or expired token -> 403
    token = _bearer_token(request)
    if token is None:
        raise Unauthorized("Access token required")
    return decode_access_token(token)


async def get_current_user_optional(request: Request) -> Optional[CurrentUser]:
    token = _bearer_token(request)
    if token is None:
        return None
    try:
        return decode_access_token(token)
    except Forbidden:
        return None


