"""
UTC timestamp helpers for stored documents.

All persisted instants are normalized to UTC and serialized as ISO-8601
strings with an explicit ``+00:00`` offset. Naive datetimes are interpreted as
UTC (they carry no offset to convert from).
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: object) -> datetime:
    """Parse a stored timestamp (datetime or ISO string) into UTC.

    Raises ValueError for anything else, including unparseable strings.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(raw))
        except ValueError as exc:
            raise ValueError("invalid_timestamp") from exc
    raise ValueError("invalid_timestamp")


def parse_optional_timestamp(value: object) -> Optional[datetime]:
    if value is None:
        return None
    return parse_timestamp(value)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).isoformat()


__all__ = ["utcnow", "ensure_utc", "parse_timestamp", "parse_optional_timestamp", "to_iso"]
