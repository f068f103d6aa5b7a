"""Tests for session token handling."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from fastapi import HTTPException

from gallery.types import Identity
from hub.auth import _pick_token, create_jwt, decode_jwt, get_current_identity, get_optional_identity, identity_from_token
from hub.config import settings


def test_round_trip():
    token = create_jwt("creator-1", "Ada")
    assert identity_from_token(token) == Identity("creator-1", "Ada")


def test_expired_token():
    token = jwt.encode(
        {"sub": "creator-1", "exp": datetime.now(UTC) - timedelta(minutes=1)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(HTTPException) as exc:
        decode_jwt(token)
    assert exc.value.status_code == 401
    assert "expired" in exc.value.detail.lower()


def test_wrong_secret():
    token = jwt.encode({"sub": "creator-1"}, "other-secret", algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        decode_jwt(token)
    assert exc.value.status_code == 401


def test_token_without_subject():
    token = jwt.encode({"name": "nobody"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(HTTPException):
        identity_from_token(token)


def test_bearer_header_wins_over_cookie():
    assert _pick_token("cookie-token", "Bearer header-token") == "header-token"
    assert _pick_token("cookie-token", None) == "cookie-token"
    assert _pick_token(None, "Basic abc") is None


async def test_optional_identity_guest():
    assert await get_optional_identity(session=None, authorization=None) is None


async def test_current_identity_requires_token():
    with pytest.raises(HTTPException) as exc:
        await get_current_identity(session=None, authorization=None)
    assert exc.value.status_code == 401


async def test_current_identity_from_cookie():
    identity = await get_current_identity(session=create_jwt("creator-9"), authorization=None)
    assert identity.id == "creator-9"
