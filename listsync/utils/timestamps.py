# listsync/utils/timestamps.py
# Timestamps travel as ISO-8601 UTC strings with fixed microsecond precision,
# so comparing the strings orders them chronologically in every backend.

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def encode_timestamp(value: datetime) -> str:
    """Serialize a datetime into the canonical record field format."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def decode_timestamp(raw: object) -> datetime | None:
    """Parse a record field back into an aware datetime. Returns None if unusable."""
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if not isinstance(raw, str) or not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
