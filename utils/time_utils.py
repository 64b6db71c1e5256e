"""Time helpers.

Keep all timestamps consistent and timezone-aware.
Python 3.12 deprecates naive UTC helpers like datetime.utcnow(); use this module instead.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as a timezone-aware datetime in UTC (+00:00)."""

    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime.

    - If `dt` is naive, it is treated as UTC.
    - If `dt` is timezone-aware, it is converted to UTC.
    """

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_epoch_seconds(dt: datetime) -> int:
    """Whole seconds since the Unix epoch (what `if_modified_since` expects)."""

    return int(ensure_utc(dt).timestamp())


def to_epoch_millis(dt: datetime) -> int:
    return int(ensure_utc(dt).timestamp() * 1000)


def to_iso_z(dt: datetime) -> str:
    """Format as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Millisecond precision with a literal ``Z`` keeps `lastUpdateDate` in the
    same shape existing metadata files already use.
    """

    u = ensure_utc(dt)
    return u.strftime("%Y-%m-%dT%H:%M:%S.") + f"{u.microsecond // 1000:03d}Z"
