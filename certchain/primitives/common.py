"""
certchain — Common Primitives

Shared base classes and utilities used across all systems.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel
from ulid import ULID


def new_id() -> str:
    """Generate a new ULID string. Time-sortable, globally unique."""
    return str(ULID())


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def to_hex(value: bytes | bytearray | str) -> str:
    """
    Render a hash-like value as a 0x-prefixed lowercase hex string.

    Accepts raw bytes (including HexBytes) or an already-hex string.
    """
    if isinstance(value, str):
        body = value[2:] if value[:2].lower() == "0x" else value
        return "0x" + body.lower()
    return "0x" + bytes(value).hex()


# ─── Base Models ──────────────────────────────────────────────────


class CertBaseModel(BaseModel):
    """Base model for all certchain primitives."""

    model_config = {"populate_by_name": True, "from_attributes": True}
