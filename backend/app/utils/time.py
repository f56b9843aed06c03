"""Time Utilities - UTC timestamps for stored documents and DATE field values"""
from datetime import datetime, timezone
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """ISO 8601 with a Z suffix, the form timestamps are stored in"""
    return as_utc(dt).isoformat().replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO 8601 date or datetime

    Both "2024-05-01" and "2024-05-01T10:30:00Z" are accepted; a bare date
    is midnight UTC.

    Raises:
        ValueError: If the string is not ISO 8601 or is out of range
    """
    try:
        return as_utc(date_parser.isoparse(value))
    except OverflowError as exc:
        raise ValueError(f"Date out of range: {value}") from exc
