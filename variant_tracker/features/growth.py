"""
Growth & Rank Engine for the Variant Tracker

Growth:
- Pairwise growth:   g_t = (c_t - c_{t-1}) / c_{t-1}, with g_t = 0 when c_{t-1} = 0
- Smoothed growth:   mean of the most recent N (default 4) pairwise rates
- Growth dynamics:   per period, new detections and growth rate
- Cumulative series: running totals on a Monday-anchored week axis

A zero baseline is treated as no growth rather than infinite growth, and
fewer than two points yield a growth rate of exactly 0.

Rank:
- delta = previous_rank - current_rank (positive = moved toward rank 1)
- no previous rank = new entrant, no numeric delta
Ranks are never re-derived here; they come precomputed with the snapshot.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from variant_tracker.common import timekeys
from variant_tracker.common.constants import GROWTH_SMOOTHING_WINDOW
from variant_tracker.common.errors import InvalidSnapshot, MissingBaseline
from variant_tracker.data.models import ChronoPoint, CumulativeSnapshot, EmergingVariant, RankedEntity


SeriesInput = Union[Sequence[CumulativeSnapshot], Sequence[float]]


# =============================================================================
# GROWTH RATES
# =============================================================================

def _as_values(series: SeriesInput) -> Tuple[np.ndarray, List[CumulativeSnapshot]]:
    """Sorted, validated values (and the snapshots they came from, if any)."""
    items = list(series)
    snapshots: List[CumulativeSnapshot] = []
    if items and isinstance(items[0], CumulativeSnapshot):
        snapshots = sorted(items, key=lambda s: s.period_key)
        values = [s.cumulative_count for s in snapshots]
    else:
        values = [float(v) for v in items]

    negative = {i for i, v in enumerate(values) if v < 0}
    if negative:
        warnings.warn(
            f"Excluded {len(negative)} point(s) with negative counts from growth series",
            InvalidSnapshot,
            stacklevel=3,
        )
        keep = [i for i in range(len(values)) if i not in negative]
        values = [values[i] for i in keep]
        if snapshots:
            snapshots = [snapshots[i] for i in keep]

    return np.asarray(values, dtype=np.float64), snapshots


def pairwise_growth_rates(values: Sequence[float]) -> np.ndarray:
    """
    Fractional change between consecutive values.

    Args:
        values: Ordered cumulative counts

    Returns:
        Array of len(values) - 1 rates; 0 where the previous value is 0
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.size < 2:
        return np.zeros(0, dtype=np.float64)
    prev = arr[:-1]
    curr = arr[1:]
    rates = np.zeros_like(prev)
    np.divide(curr - prev, prev, out=rates, where=prev != 0)
    return rates


def smoothed_growth_rate(
    series: SeriesInput,
    window: int = GROWTH_SMOOTHING_WINDOW,
    cumulative: bool = True
) -> float:
    """
    Smoothed weekly growth rate of a detection series.

    Args:
        series: CumulativeSnapshot records (sorted by period here) or plain
            numbers in chronological order
        window: Number of most recent pairwise rates to average; fewer
            available rates are averaged as-is
        cumulative: False if ``series`` holds per-period (incremental) counts;
            they are accumulated before computing growth

    Returns:
        Signed growth rate (0.0 when fewer than two valid points exist)
    """
    if window < 1:
        raise ValueError(f"window must be positive, got {window}")

    values, _ = _as_values(series)
    if not cumulative:
        values = np.cumsum(values)

    if values.size < 2:
        warnings.warn(
            f"Growth needs at least 2 points, got {values.size}; using 0",
            MissingBaseline,
            stacklevel=2,
        )
        return 0.0

    rates = pairwise_growth_rates(values)
    return float(np.mean(rates[-window:]))


@dataclass(frozen=True)
class GrowthPoint:
    """New detections and growth rate of one period relative to the previous one."""
    period_key: int
    label: str
    new_detections: int
    growth_rate: float


def growth_dynamics(snapshots: Sequence[CumulativeSnapshot]) -> Tuple[GrowthPoint, ...]:
    """
    Per-period new detections and growth rate of a cumulative series.

    Decreasing cumulative counts are tolerated and show up as negative new
    detections / negative growth.

    Returns:
        One GrowthPoint per consecutive pair (empty for fewer than 2 points)
    """
    values, ordered = _as_values(snapshots)
    if values.size < 2:
        return ()

    rates = pairwise_growth_rates(values)
    return tuple(
        GrowthPoint(
            period_key=ordered[i + 1].period_key,
            label=ordered[i + 1].label,
            new_detections=int(values[i + 1] - values[i]),
            growth_rate=float(rates[i]),
        )
        for i in range(len(rates))
    )


def cumulative_series(snapshots: Sequence[CumulativeSnapshot]) -> Tuple[ChronoPoint, ...]:
    """
    Cumulative counts of one variant placed on a calendar axis.

    Each point starts on the Monday of the week its YYYYWW period falls in,
    so series of different variants line up on a shared date axis.
    """
    points = []
    for snap in sorted(snapshots, key=lambda s: s.period_key):
        start = timekeys.yearweek_to_date(snap.period_key)
        if start is None:
            continue
        points.append(ChronoPoint(
            key=snap.period_key,
            label=snap.label,
            start=start,
            total=snap.cumulative_count,
        ))
    return tuple(points)


def comparison_axis(series: Iterable[Sequence[ChronoPoint]]) -> Tuple[date, ...]:
    """Sorted union of the start dates of several cumulative series."""
    return tuple(sorted({point.start for points in series for point in points}))


# =============================================================================
# RANK CHANGES
# =============================================================================

class RankDirection(Enum):
    """How an entity moved between two ranked snapshots."""
    NEW = "new"
    IMPROVED = "improved"
    DECLINED = "declined"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class RankChange:
    """
    Rank movement of one entity.

    Attributes:
        identifier: Stable entity id (lineage + mutation fingerprint)
        current_rank: Rank in the current snapshot
        previous_rank: Rank in the previous snapshot, None for new entrants
        delta: previous_rank - current_rank, None for new entrants
    """
    identifier: str
    current_rank: int
    previous_rank: Optional[int]
    delta: Optional[int]

    @property
    def is_new_entrant(self) -> bool:
        return self.delta is None

    @property
    def direction(self) -> RankDirection:
        if self.delta is None:
            return RankDirection.NEW
        if self.delta > 0:
            return RankDirection.IMPROVED
        if self.delta < 0:
            return RankDirection.DECLINED
        return RankDirection.UNCHANGED


def rank_delta(current_rank: int, previous_rank: Optional[int] = None, identifier: str = "") -> RankChange:
    """
    Diff one entity's rank between two snapshots.

    Example:
        >>> rank_delta(3, 5).delta
        2
        >>> rank_delta(3).is_new_entrant
        True
    """
    if current_rank < 1:
        raise ValueError(f"current_rank must be positive, got {current_rank}")
    if previous_rank is None:
        return RankChange(identifier, current_rank, None, None)
    return RankChange(identifier, current_rank, previous_rank, previous_rank - current_rank)


def diff_rankings(
    current: Iterable[RankedEntity],
    previous: Optional[Iterable[RankedEntity]] = None
) -> Mapping[str, RankChange]:
    """
    Rank changes for every entity of the current snapshot.

    Args:
        current: Entities of the current snapshot
        previous: Entities of the previous snapshot, matched by identifier.
            When omitted, each entity's own ``previous_rank`` is used.

    Returns:
        identifier -> RankChange, in current-rank order
    """
    previous_ranks: Optional[Dict[str, int]] = None
    if previous is not None:
        previous_ranks = {entity.identifier: entity.current_rank for entity in previous}

    changes = {}
    for entity in sorted(current, key=lambda e: e.current_rank):
        if previous_ranks is None:
            prior = entity.previous_rank
        else:
            prior = previous_ranks.get(entity.identifier)
        changes[entity.identifier] = rank_delta(entity.current_rank, prior, entity.identifier)
    return MappingProxyType(changes)


# =============================================================================
# WATCHLIST
# =============================================================================

@dataclass(frozen=True)
class WatchlistEntry:
    """One row of the emerging-variants watchlist."""
    identifier: str
    lineage: str
    mutations: str
    rank: RankChange
    growth_rate: float
    # "cumulative" when computed from history, "reported" when taken from source
    growth_source: str
    latest_count: int


def build_watchlist(
    variants: Iterable[EmergingVariant],
    size: int = 10,
    window: int = GROWTH_SMOOTHING_WINDOW
) -> Tuple[WatchlistEntry, ...]:
    """
    Top emerging variants by current rank, with rank change and growth.

    Growth is recomputed from the cumulative history whenever it has at least
    two points; otherwise the source's ``weeklyGrowthRate`` (or 0) is used.

    Args:
        variants: Parsed emerging variants
        size: Number of entries to keep
        window: Smoothing window for growth

    Returns:
        Tuple of WatchlistEntry ordered by current rank
    """
    ordered = sorted(variants, key=lambda v: v.current_rank)[:size]
    entries = []
    for variant in ordered:
        if len(variant.cumulative) >= 2:
            growth = smoothed_growth_rate(variant.cumulative, window=window)
            source = "cumulative"
        else:
            growth = variant.weekly_growth_rate if variant.weekly_growth_rate is not None else 0.0
            source = "reported"

        history = sorted(variant.cumulative, key=lambda s: s.period_key)
        entries.append(WatchlistEntry(
            identifier=variant.identifier,
            lineage=variant.lineage,
            mutations=variant.mutations,
            rank=rank_delta(variant.current_rank, variant.previous_rank, variant.identifier),
            growth_rate=float(growth),
            growth_source=source,
            latest_count=history[-1].cumulative_count if history else 0,
        ))
    return tuple(entries)
