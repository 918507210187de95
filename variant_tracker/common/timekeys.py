"""
Time Key Codec

Normalizes the three time encodings found in surveillance extracts into a
single orderable integer key plus a display label:

- year + week-of-year  -> key YYYYWW, label "YYYY-Www"
- year + month         -> key YYYYMM, label "YYYY-MM"
- calendar day strings -> datetime.date

Week anchoring follows the published dashboard: week W of year Y starts on
Jan 1 of Y plus 7*(W-1) days. Keys of the same granularity sort
chronologically across year boundaries; keys of different granularities must
never be mixed in one series.

Unparseable strings emit a ``ParseFailure`` warning and return None; callers
substitute the ``UNKNOWN`` sentinel for display.
"""

from __future__ import annotations

import re
import warnings
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple

from variant_tracker.common.constants import TIMESTAMP_FORMAT, UNKNOWN
from variant_tracker.common.errors import ParseFailure


ChronoKey = int

# Day-level input formats (numeric only, no locale-dependent month names)
ISO_DATE_FORMAT = "%Y-%m-%d"
COMPACT_DATE_FORMAT = "%Y%m%d"

_MONTH_PATTERN = re.compile(r"^(\d{4})-?(\d{2})$")
_YEARWEEK_PATTERN = re.compile(r"^(\d{4})(\d{1,2})$")


class Granularity(Enum):
    """Bucket size of a chronological key."""
    WEEK = "week"
    MONTH = "month"


# =============================================================================
# WEEK KEYS
# =============================================================================

def _check_week(year: int, week: int) -> None:
    if not 1 <= int(week) <= 53:
        raise ValueError(f"week must be in 1..53, got {week} (year {year})")


def week_start(year: int, week: int) -> date:
    """
    Calendar date anchoring a (year, week) pair.

    Args:
        year: Calendar year
        week: Week of year (1-53)

    Returns:
        Jan 1 of ``year`` offset by 7*(week-1) days
    """
    _check_week(year, week)
    return date(int(year), 1, 1) + timedelta(days=7 * (int(week) - 1))


def week_key(year: int, week: int) -> ChronoKey:
    """Monotonic YYYYWW key for a (year, week) pair."""
    _check_week(year, week)
    return int(year) * 100 + int(week)


def week_label(year: int, week: int) -> str:
    return f"{int(year)}-W{int(week):02d}"


def split_key(key: ChronoKey) -> Tuple[int, int]:
    """Split a YYYYWW / YYYYMM key into (year, period)."""
    return divmod(int(key), 100)


def parse_yearweek(value) -> Optional[Tuple[int, int]]:
    """
    Parse a compact year-week value such as 202503 or "202503".

    Returns:
        (year, week) or None (with a ParseFailure warning)
    """
    match = _YEARWEEK_PATTERN.match(str(value).strip())
    if match:
        year, week = int(match.group(1)), int(match.group(2))
        if 1 <= week <= 53:
            return year, week
    warnings.warn(f"Unparseable year-week value: {value!r}", ParseFailure, stacklevel=2)
    return None


def yearweek_to_date(value) -> Optional[date]:
    """
    Monday of the calendar week containing the week-start date of a
    compact YYYYWW value. Used to place cumulative counts on a time axis.
    """
    parsed = parse_yearweek(value)
    if parsed is None:
        return None
    anchor = week_start(*parsed)
    return anchor - timedelta(days=anchor.weekday())


# =============================================================================
# MONTH KEYS
# =============================================================================

def month_key(year: int, month: int) -> ChronoKey:
    if not 1 <= int(month) <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    return int(year) * 100 + int(month)


def month_label(year: int, month: int) -> str:
    return f"{int(year)}-{int(month):02d}"


def month_start(year: int, month: int) -> date:
    return date(int(year), int(month), 1)


def parse_month(value) -> Optional[Tuple[int, int]]:
    """
    Parse a month bucket encoded as "YYYYMM" (or "YYYY-MM").

    Returns:
        (year, month) or None (with a ParseFailure warning)
    """
    match = _MONTH_PATTERN.match(str(value).strip())
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if 1 <= month <= 12:
            return year, month
    warnings.warn(f"Unparseable month value: {value!r}", ParseFailure, stacklevel=2)
    return None


def week_to_month(year: int, week: int) -> Tuple[int, int]:
    """Re-bucket a (year, week) pair to the month containing its start date."""
    start = week_start(year, week)
    return start.year, start.month


# =============================================================================
# GENERIC KEY HELPERS
# =============================================================================

def key_to_date(key: ChronoKey, granularity: Granularity) -> date:
    year, period = split_key(key)
    if granularity is Granularity.WEEK:
        return week_start(year, period)
    return month_start(year, period)


def key_to_label(key: ChronoKey, granularity: Granularity) -> str:
    year, period = split_key(key)
    if granularity is Granularity.WEEK:
        return week_label(year, period)
    return month_label(year, period)


# =============================================================================
# DAY-LEVEL DATES & TIMESTAMPS
# =============================================================================

def parse_date(value, fmt: str = ISO_DATE_FORMAT) -> Optional[date]:
    """
    Parse a day-level date string in one fixed format.

    Args:
        value: Raw date string (e.g. "2025-01-05" or "20250105")
        fmt: strptime format; numeric fields only

    Returns:
        datetime.date or None (with a ParseFailure warning)
    """
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            pass
    warnings.warn(f"Unparseable date {value!r} (expected {fmt})", ParseFailure, stacklevel=2)
    return None


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse a "last updated" stamp such as "2025-02-05 14:03:11 UTC".

    A "T" separator and a trailing "Z" / "UTC" are accepted; the result is
    timezone-aware UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        for suffix in (" UTC", "UTC", "Z"):
            if text.endswith(suffix):
                text = text[: -len(suffix)].rstrip()
                break
        text = text.replace("T", " ", 1)
        try:
            return datetime.strptime(text, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    warnings.warn(f"Unparseable timestamp: {value!r}", ParseFailure, stacklevel=2)
    return None


def display_date(value: Optional[date]) -> str:
    """ISO label for a parsed date, or the UNKNOWN sentinel."""
    if value is None:
        return UNKNOWN
    return value.isoformat()
