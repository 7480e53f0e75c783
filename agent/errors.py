"""Agent-side exception types."""

from __future__ import annotations


class SyncError(Exception):
    """A sync cycle failed (network, HTTP status, auth, or relay-reported failure)."""


class ConfigurationError(SyncError):
    """The agent lacks a server URL or token; no network I/O was attempted."""


class ScanError(SyncError):
    """The watched directory itself could not be read."""
