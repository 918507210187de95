"""
Recency Bands for geographic detections.

Age (whole days between the detection date and "now") is bucketed into three
ordered bands with fixed boundaries:

    age <= 14        -> RECENT
    15 <= age <= 45  -> INTERMEDIATE
    age > 45         -> OLDER

Dates in the future (negative age) count as RECENT.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from variant_tracker.common.constants import INTERMEDIATE_MAX_DAYS, RECENT_MAX_DAYS


class RecencyBand(Enum):
    RECENT = "recent"
    INTERMEDIATE = "intermediate"
    OLDER = "older"


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def age_in_days(observed: Union[date, datetime], now: Union[date, datetime]) -> int:
    return (_as_date(now) - _as_date(observed)).days


def classify_recency(
    observed: Optional[Union[date, datetime]],
    now: Union[date, datetime]
) -> Optional[RecencyBand]:
    """
    Recency band of a detection.

    Args:
        observed: Detection date, or None when the source had none
        now: Reference date of the computation

    Returns:
        RecencyBand, or None for undated detections
    """
    if observed is None:
        return None
    age = age_in_days(observed, now)
    if age <= RECENT_MAX_DAYS:
        return RecencyBand.RECENT
    if age <= INTERMEDIATE_MAX_DAYS:
        return RecencyBand.INTERMEDIATE
    return RecencyBand.OLDER
