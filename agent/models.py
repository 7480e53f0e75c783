"""Agent-side data types shared by the scanner, protocol, and sync client."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class SyncState(StrEnum):
    """Lifecycle state of the sync client."""

    OFFLINE = "offline"
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass
class FileRecord:
    """One file in a manifest, keyed by its canonical path.

    ``content_hash`` is the digest of the raw local bytes, before any path
    rewriting of the content. ``content`` is set only when the receiver is
    believed to lack the current bytes.
    """

    path: str
    content_hash: str
    mod_time: int
    size: int
    content: bytes | None = None


@dataclass
class SyncStats:
    """Cumulative statistics reported to status observers."""

    total_files: int = 0
    total_size: int = 0
    last_sync_time: datetime | None = None
    last_error: str = ""
    downloaded_count: int = 0
    uploaded_count: int = 0


def hash_bytes(data: bytes) -> str:
    """Compute SHA-256 hash of raw bytes."""
    return hashlib.sha256(data).hexdigest()
