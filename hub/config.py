"""
Project Hub configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Store
    STORE_BACKEND: str = os.environ.get("STORE_BACKEND", "postgres")  # postgres | memory
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")

    # Auth (sessions are issued elsewhere; we only verify them)
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = 24

    # Application
    HUB_NAME: str = os.environ.get("HUB_NAME", "Project Hub")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Sandbox documents are only served on this origin. It must not be the
    # origin the hub itself is served from.
    SANDBOX_ORIGIN: str = os.environ.get("SANDBOX_ORIGIN", "http://sandbox.localhost:8000").rstrip("/")

    # Limits
    MAX_CODE_BYTES: int = int(os.environ.get("MAX_CODE_BYTES", str(512 * 1024)))
    WEBSOCKET_MAX_MESSAGE_BYTES: int = 64 * 1024


# Singleton instance
settings = Settings()

if settings.STORE_BACKEND not in ("postgres", "memory"):
    raise RuntimeError(f"STORE_BACKEND must be 'postgres' or 'memory', got {settings.STORE_BACKEND!r}")
if not settings.JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is required")
if settings.STORE_BACKEND == "postgres" and not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
if not settings.SANDBOX_ORIGIN.startswith(("http://", "https://")):
    raise RuntimeError(f"SANDBOX_ORIGIN must be an http(s) origin, got {settings.SANDBOX_ORIGIN!r}")
