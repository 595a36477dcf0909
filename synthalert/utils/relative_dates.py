"""
Relative date parsing — "now", "7d", "3M", ISO-8601 strings → aware datetimes.

Relative tokens are measured back from the reference instant when used as a
range start and forward when used as a range end ("7d" as an end date means
seven days from now). Unparseable input never raises: it returns None, the
invalid-instant sentinel, and callers check for it.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

_RELATIVE_TOKEN = re.compile(r"^(\d+)([mhdwMy])$")

# Units with a fixed length. Months and years go through calendar arithmetic.
_FIXED_UNITS: dict[str, str] = {
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _shift_months(value: datetime, months: int) -> datetime:
    """Move *value* by a signed number of calendar months, clamping the day."""
    total = value.year * 12 + (value.month - 1) + months
    year, month = divmod(total, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def parse_iso_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (trailing Z allowed) into an aware datetime.

    Naive values are read as UTC. Returns None for anything unparseable.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return _as_utc(parsed)


def is_valid_iso_timestamp(value: Any) -> bool:
    return parse_iso_timestamp(value) is not None


def parse_date_token(token: Any, now: datetime, *, future: bool = False) -> Optional[datetime]:
    """Resolve a date token against the reference instant *now*.

    Args:
        token: "now", a relative token like "30m" / "7d" / "1M" / "2y", an
            ISO-8601 string, or a datetime.
        now: Reference instant. Naive values are read as UTC.
        future: Apply relative offsets forward instead of backward.

    Returns:
        An aware datetime, or None when the token cannot be resolved.
    """
    now = _as_utc(now)

    if isinstance(token, datetime):
        return _as_utc(token)
    if isinstance(token, date):
        return datetime(token.year, token.month, token.day, tzinfo=timezone.utc)
    if not isinstance(token, str):
        logger.debug("relative_dates.unsupported_type", extra={"type": type(token).__name__})
        return None

    text = token.strip()
    if text == "now":
        return now

    match = _RELATIVE_TOKEN.match(text)
    if match:
        amount = int(match.group(1))
        unit = match.group(2)
        sign = 1 if future else -1
        try:
            if unit in _FIXED_UNITS:
                return now + sign * timedelta(**{_FIXED_UNITS[unit]: amount})
            months = amount * 12 if unit == "y" else amount
            return _shift_months(now, sign * months)
        except (OverflowError, ValueError):
            logger.debug("relative_dates.out_of_range", extra={"token": text})
            return None

    parsed = parse_iso_timestamp(text)
    if parsed is None:
        logger.debug("relative_dates.unparseable", extra={"token": text})
    return parsed
