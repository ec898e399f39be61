"""
Password hashing, signed session tokens and the cookie-based auth dependency.

A token is an HS256 JWT carrying the user id (`id`) and an expiry (`exp`).
It is issued at register/login and travels back on every request in the
`token` cookie; `get_current_user` turns that cookie into a User row or a 401.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Cookie, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.config import settings
from pinboard.database import get_db
from pinboard.models import User
from pinboard.telemetry import AUTH_FAILURES_TOTAL

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def create_token(user_id: str, ttl: Optional[timedelta] = None) -> str:
    expires = datetime.now(timezone.utc) + (ttl or timedelta(days=settings.token_ttl_days))
    return jwt.encode(
        {"id": user_id, "exp": expires},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> str:
    """
    Verify signature + expiry and return the user id claim.
    Raises jwt.InvalidTokenError on any failure.
    """
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["exp"]},
    )
    user_id = payload.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise jwt.InvalidTokenError("token has no user id")
    return user_id


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        max_age=settings.token_ttl_seconds,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


def clear_token_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.cookie_name,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


async def get_current_user(
    token: Optional[str] = Cookie(None, alias=settings.cookie_name),
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency guarding every authenticated route."""
    if not token:
        AUTH_FAILURES_TOTAL.labels(reason="missing_cookie").inc()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please Login")

    try:
        user_id = decode_token(token)
    except jwt.InvalidTokenError as exc:
        AUTH_FAILURES_TOTAL.labels(reason="invalid_token").inc()
        logger.debug("Rejected token: %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = await db.get(User, user_id)
    if not user:
        # account deleted after the token was issued
        AUTH_FAILURES_TOTAL.labels(reason="unknown_user").inc()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please Login")
    return user
