"""Timestamp helpers.

Every record timestamp is kept in the canonical UTC form
``YYYY-MM-DDTHH:MM:SS.mmmZ`` so lexical order equals chronological order.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta


def datetime_to_iso(value: datetime | None) -> str | None:
    """Convert a datetime to a canonical ISO-8601 string, or None."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def datetime_from_iso(value: str | None) -> datetime | None:
    """Convert an ISO-8601 string to an aware UTC datetime, or None.

    Raises:
        ValueError: If *value* is not a parseable ISO-8601 timestamp.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def normalize_iso(value: str | None) -> str | None:
    """Re-render any ISO-8601 timestamp in canonical form."""
    return datetime_to_iso(datetime_from_iso(value))


def utc_now_iso() -> str:
    """Current UTC time in canonical form."""
    return datetime_to_iso(datetime.now(UTC))


def is_newer(candidate: str | None, reference: str | None) -> bool:
    """Return True if *candidate* is strictly later than *reference*.

    A missing timestamp sorts before every present one.
    """
    if candidate is None:
        return False
    if reference is None:
        return True
    return datetime_from_iso(candidate) > datetime_from_iso(reference)


def advance_timestamp(previous: str | None, now: str | None = None) -> str:
    """Return a mutation timestamp strictly later than *previous*.

    Uses *now* (default: the current time) unless the clock has not moved
    past *previous*, in which case *previous* plus one millisecond.
    """
    now = now or utc_now_iso()
    if previous is None or is_newer(now, previous):
        return now
    return datetime_to_iso(datetime_from_iso(previous) + timedelta(milliseconds=1))


def get_clock() -> Callable[[], str]:
    """FastAPI dependency returning the server clock."""
    return utc_now_iso
