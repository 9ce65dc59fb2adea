"""UTC time helpers shared by services and backends."""

from __future__ import annotations

from datetime import date, datetime, time, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    """Serialize a timestamp for the record store (always UTC, ISO-8601)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_iso(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp; naive values are taken as UTC. Bad input yields None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utc_midnight(day: date) -> datetime:
    """Calendar date -> 00:00:00 UTC on that date."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)
