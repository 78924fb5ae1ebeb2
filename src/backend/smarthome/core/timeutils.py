"""UTC timestamp parsing and formatting helpers."""

from datetime import datetime, timezone

from pydantic import TypeAdapter, ValidationError

_datetime_adapter = TypeAdapter(datetime)


class InvalidTimestampError(ValueError):
    """String is not a recognisable date."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalise aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 string (or Unix time as a string) into an aware UTC datetime.

    Raises:
        InvalidTimestampError: If the string is not a recognisable date.
    """
    try:
        parsed = _datetime_adapter.validate_python(value.strip())
    except ValidationError as e:
        raise InvalidTimestampError(f"Invalid timestamp: {value!r}") from e
    return ensure_utc(parsed)


def isoformat_utc(value: datetime) -> str:
    """Format as ``2025-01-01T00:00:00.000Z``."""
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")
