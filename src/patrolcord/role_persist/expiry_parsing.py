"""
Parsing of the ``expiry`` option of ``/role-persist add``.

Accepts relative durations ("3 days", "2 weeks from now", "1 month") and
absolute dates understood by ``dateutil`` ("2026-12-01 18:00"). Naive dates
are taken as UTC.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from patrolcord.role_persist.errors import ExpiryParseError

EXPIRY_SUGGESTIONS = ("1 day", "3 days", "7 days", "2 weeks", "1 month")

_DURATION_PATTERN = re.compile(
    r"^\s*(?:in\s+)?(?P<amount>\d+)\s*(?P<unit>[a-z]+)\s*(?:from\s+now)?\s*$",
    re.IGNORECASE,
)

_UNIT_ALIASES = {
    "minutes": ("m", "min", "mins", "minute", "minutes"),
    "hours": ("h", "hr", "hrs", "hour", "hours"),
    "days": ("d", "day", "days"),
    "weeks": ("w", "wk", "wks", "week", "weeks"),
    "months": ("mo", "month", "months"),
    "years": ("y", "yr", "yrs", "year", "years"),
}
_UNITS = {alias: unit for unit, aliases in _UNIT_ALIASES.items() for alias in aliases}


def parse_duration(text: str, now: datetime) -> datetime | None:
    """Return ``now`` shifted by a "<amount> <unit>" expression, or None if it is not one."""
    match = _DURATION_PATTERN.match(text)
    if not match:
        return None
    unit = _UNITS.get(match.group("unit").lower())
    if unit is None:
        return None
    try:
        return now + relativedelta(**{unit: int(match.group("amount"))})
    except (ValueError, OverflowError) as exc:
        raise ExpiryParseError(f"Duration out of range: {text!r}", "unknown_format") from exc


def parse_absolute(text: str, now: datetime) -> datetime:
    try:
        parsed = date_parser.parse(text, default=now.replace(hour=0, minute=0, second=0, microsecond=0))
    except (ValueError, OverflowError) as exc:
        raise ExpiryParseError(f"Unrecognised date: {text!r}", "unknown_format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_expiry(text: str, now: datetime, min_lifetime: timedelta = timedelta(hours=3)) -> datetime:
    """
    Turn ``text`` into an aware UTC expiry date.

    Raises:
        ExpiryParseError: ``unknown_format`` when nothing could be parsed,
            ``date_in_past`` when the date is not after ``now``,
            ``expiry_too_soon`` when it is closer than ``min_lifetime``.
    """
    text = text.strip()
    if not text:
        raise ExpiryParseError("Empty expiry", "unknown_format")

    expiry = parse_duration(text, now) or parse_absolute(text, now)

    if expiry <= now:
        raise ExpiryParseError(f"Expiry {expiry.isoformat()} is in the past", "date_in_past")
    if expiry - now < min_lifetime:
        raise ExpiryParseError(f"Expiry {expiry.isoformat()} is too soon", "expiry_too_soon")
    return expiry
