"""
Session verification for Project Hub.

Sign-in happens elsewhere; this module only issues test/dev tokens and
verifies the JWT a browser (cookie) or script (Bearer header) presents.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated

import jwt
from fastapi import Cookie, Header, HTTPException, WebSocket, status

from gallery.types import Identity
from hub.config import settings


def create_jwt(identity_id: str, name: str | None = None) -> str:
    """
    Create a JWT for a creator session.

    Args:
        identity_id: Opaque creator identifier (becomes authorRef)
        name: Optional display name

    Returns:
        Signed JWT string
    """
    expires_at = datetime.now(UTC) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(identity_id),
        "exp": expires_at,
        "iat": datetime.now(UTC),
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    """
    Decode and verify a JWT.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please sign in again.",
        ) from e
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token. Please sign in again.",
        ) from e


def identity_from_token(token: str) -> Identity:
    """Verify a token and return the Identity it names."""
    payload = decode_jwt(token)
    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token. Please sign in again.",
        )
    return Identity(id=subject, name=payload.get("name"))


def _pick_token(session: str | None, authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        return authorization.removeprefix("Bearer ").strip() or None
    return session or None


async def get_optional_identity(
    session: Annotated[str | None, Cookie()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> Identity | None:
    """
    FastAPI dependency for routes guests may use.

    No credentials → None (guest). Bad credentials still → 401, so a stale
    session is reported instead of silently downgraded.
    """
    token = _pick_token(session, authorization)
    if token is None:
        return None
    return identity_from_token(token)


async def get_current_identity(
    session: Annotated[str | None, Cookie()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    """FastAPI dependency for creator-only routes."""
    token = _pick_token(session, authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Please sign in.",
        )
    return identity_from_token(token)


def identity_from_websocket(websocket: WebSocket) -> Identity | None:
    """
    Extract the identity from a WebSocket's session cookie.

    Returns None (guest) if absent or invalid; the socket stays read-only.
    """
    session = websocket.cookies.get("session")
    if not session:
        return None
    try:
        payload = jwt.decode(session, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    subject = payload.get("sub")
    return Identity(id=subject, name=payload.get("name")) if subject else None
