"""
Month key derivation.

A month key is the canonical "YYYY-MM" string every ledger record is
filed under. Missing or malformed input never fails: it degrades to the
current month, and the fallback is logged.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional, Union

import structlog

logger = structlog.get_logger(__name__)

MONTH_KEY_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

DateLike = Union[str, date, datetime, None]


def current_month_key() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m")


def is_month_key(value: object) -> bool:
    """True if value is a well-formed "YYYY-MM" key."""
    return isinstance(value, str) and MONTH_KEY_PATTERN.match(value) is not None


def month_key(value: DateLike = None, fallback: Optional[str] = None) -> str:
    """
    Map a date-like value to its "YYYY-MM" month key.

    Strings are cut to their first 7 characters. Anything that doesn't
    yield a real calendar month falls back to `fallback`, or the
    current month when no fallback is given.
    """
    default = fallback or current_month_key()

    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m")
    if not value:
        return default
    if not isinstance(value, str):
        logger.warning("month_key_fallback", value=repr(value), fallback=default)
        return default

    key = value.strip()[:7]
    if is_month_key(key):
        return key

    logger.warning("month_key_fallback", value=value, fallback=default)
    return default


_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def timestamp_order(value: DateLike) -> datetime:
    """
    Sort key for an ISO-8601 timestamp.

    "Z" and "+00:00" compare equal, naive values are read as UTC, and
    anything unparseable sorts first.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return _EARLIEST
    else:
        return _EARLIEST

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
