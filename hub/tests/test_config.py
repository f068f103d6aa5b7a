"""Tests for the settings singleton."""

from __future__ import annotations

from hub.config import Settings, settings


def test_sandbox_origin_from_environment():
    assert settings.SANDBOX_ORIGIN == "http://sandbox.test"


def test_only_live_settings():
    # Knobs nothing reads are not carried.
    for name in ("TESTING", "ENVIRONMENT", "PUBLIC_URL", "NOTIFY_CHANNEL"):
        assert not hasattr(Settings, name)
