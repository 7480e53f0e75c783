"""Timestamp helpers for the persisted tenant registry."""

from __future__ import annotations

from datetime import datetime, timezone

import pendulum


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for JSON serialization."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def parse_timestamp(value: str | None, default_tz: str = "UTC") -> datetime | None:
    """Parse a persisted timestamp into a timezone-aware datetime.

    Accepts ISO 8601 variants (with or without ``T`` separator, offset or
    ``Z`` suffix) as well as date-only strings. Missing or zero-valued
    timestamps (year 1, as written by registries that never saw activity)
    yield None.
    """
    if not value or not value.strip():
        return None

    parsed = pendulum.parse(value.strip(), tz=default_tz, strict=False)
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz=default_tz  # type: ignore[union-attr]
        )
    if parsed.year <= 1:
        return None
    return parsed
