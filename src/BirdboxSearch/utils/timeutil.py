"""Timestamp coercion shared by the query builder, models and adapters."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as dt_parser

from BirdboxSearch.errors import InvalidArgument

# ISO-8601 strings must carry a full calendar date; bare digits such as
# "1234" are ambiguous between a year and an epoch offset.
_ISO_DATE_RE = re.compile(r"^\s*\d{4}-?\d{2}-?\d{2}")


def to_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime (naive input is taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any, name: str = "timestamp") -> datetime:
    """Coerce a datetime, epoch seconds or ISO-8601 string into UTC.

    Args:
        value: Raw bound value.
        name: Option name used in error messages.

    Returns:
        Aware UTC datetime.

    Raises:
        InvalidArgument: If the value cannot be interpreted as a timestamp.
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, bool):
        raise InvalidArgument(f"{name} must be a timestamp, got a boolean")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidArgument(f"{name} is out of range: {value!r}") from e
    if isinstance(value, str):
        if not _ISO_DATE_RE.match(value):
            raise InvalidArgument(f"{name} is not an ISO-8601 date: {value!r}")
        try:
            return to_utc(dt_parser.isoparse(value.strip()))
        except (ValueError, OverflowError) as e:
            raise InvalidArgument(f"{name} is not an ISO-8601 date: {value!r}") from e
    raise InvalidArgument(f"{name} must be a datetime, number or ISO-8601 string")


def parse_optional_datetime(value: Any) -> datetime | None:
    """Parse a stored document timestamp, returning None when absent."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(dt_parser.isoparse(str(value)))


def format_datetime(value: datetime | None) -> str | None:
    """Serialize a timestamp for index documents (ISO-8601, UTC)."""
    if value is None:
        return None
    return to_utc(value).isoformat()
