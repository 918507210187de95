"""
Hierarchical Aggregation for the Variant Tracker

Flattens nested region → week → count records into chronological series:
- Weekly progression (optionally split by subtype)
- Monthly counts (weeks re-bucketed to the month containing their start date)
- Smoothed relative frequency per region
- Continental monthly trends of a single emerging variant

Aggregation always accumulates: duplicate (region, period) entries and
periods reported by several regions are summed, never overwritten. Input
order is irrelevant; outputs are sorted by chronological key.
"""

from __future__ import annotations

import warnings
from itertools import chain
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple, Union

import pandas as pd

from variant_tracker.common import timekeys
from variant_tracker.common.errors import InvalidSnapshot
from variant_tracker.common.timekeys import Granularity
from variant_tracker.data.models import ChronoPoint, EmergingVariant, RegionSeries


RegionInput = Union[Iterable[RegionSeries], Mapping[str, Iterable[RegionSeries]]]

_COLUMNS = ['region', 'chrono_key', 'count']


# =============================================================================
# FLATTENING
# =============================================================================

def _bucket_key(year: int, week: int, granularity: Granularity) -> timekeys.ChronoKey:
    if granularity is Granularity.WEEK:
        return timekeys.week_key(year, week)
    return timekeys.month_key(*timekeys.week_to_month(year, week))


def flatten_regions(
    regions: Iterable[RegionSeries],
    granularity: Granularity = Granularity.WEEK
) -> pd.DataFrame:
    """
    Flatten region series into one row per weekly record.

    Args:
        regions: Region series (continents) of one subtype
        granularity: WEEK keeps YYYYWW keys; MONTH re-buckets to YYYYMM

    Returns:
        DataFrame with columns: region, chrono_key, count
    """
    rows = []
    n_negative = 0
    for region in regions:
        for record in region.weekly:
            if record.isolate_count < 0:
                n_negative += 1
                continue
            rows.append({
                'region': region.region,
                'chrono_key': _bucket_key(record.year, record.week, granularity),
                'count': record.isolate_count,
            })

    if n_negative:
        warnings.warn(
            f"Excluded {n_negative} weekly record(s) with negative counts",
            InvalidSnapshot,
            stacklevel=2,
        )

    return pd.DataFrame(rows, columns=_COLUMNS).astype({'chrono_key': 'int64', 'count': 'int64'})


def _point(key: int, granularity: Granularity, total, by_subtype: Mapping[str, int]) -> ChronoPoint:
    return ChronoPoint(
        key=int(key),
        label=timekeys.key_to_label(key, granularity),
        start=timekeys.key_to_date(key, granularity),
        total=total,
        by_subtype=MappingProxyType(dict(by_subtype)),
    )


# =============================================================================
# SERIES AGGREGATION
# =============================================================================

def aggregate_series(
    region_input: RegionInput,
    granularity: Granularity = Granularity.WEEK
) -> Tuple[ChronoPoint, ...]:
    """
    Sum nested region records into one chronological series.

    Passing a plain sequence of RegionSeries yields single-count points.
    Passing a mapping subtype -> sequence yields points carrying a per-subtype
    breakdown; a period seen by only one subtype gets zero for the others.

    Args:
        region_input: Region series, or subtype key -> region series
        granularity: WEEK or MONTH buckets

    Returns:
        Tuple of ChronoPoint sorted by key (keys unique)
    """
    if isinstance(region_input, Mapping):
        return _aggregate_by_subtype(region_input, granularity)

    df = flatten_regions(region_input, granularity)
    if df.empty:
        return ()

    sums = df.groupby('chrono_key')['count'].sum().sort_index()
    return tuple(
        _point(key, granularity, int(count), {})
        for key, count in sums.items()
    )


def _aggregate_by_subtype(
    region_input: Mapping[str, Iterable[RegionSeries]],
    granularity: Granularity
) -> Tuple[ChronoPoint, ...]:
    subtypes = list(region_input)
    frames = []
    for subtype, regions in region_input.items():
        df = flatten_regions(regions, granularity)
        if df.empty:
            continue
        df['subtype'] = subtype
        frames.append(df)

    combined = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()
    if combined.empty:
        return ()

    table = combined.pivot_table(
        index='chrono_key',
        columns='subtype',
        values='count',
        aggfunc='sum',
        fill_value=0,
    )
    # subtypes with no records at all still get a zero column
    table = table.reindex(columns=subtypes, fill_value=0).sort_index()

    points = []
    for key, row in table.iterrows():
        breakdown = {subtype: int(row[subtype]) for subtype in subtypes}
        points.append(_point(key, granularity, sum(breakdown.values()), breakdown))
    return tuple(points)


def weekly_progression(weekly_by_subtype: Mapping[str, Iterable[RegionSeries]]) -> Tuple[ChronoPoint, ...]:
    """Weekly counts of every subtype on one shared, sorted week axis."""
    return aggregate_series(weekly_by_subtype, Granularity.WEEK)


def monthly_counts(region_input: RegionInput) -> Tuple[ChronoPoint, ...]:
    """Monthly counts of one subtype (sequence) or per subtype (mapping)."""
    return aggregate_series(region_input, Granularity.MONTH)


def global_monthly_counts(weekly_by_subtype: Mapping[str, Iterable[RegionSeries]]) -> Tuple[ChronoPoint, ...]:
    """Monthly counts with every subtype summed into a single figure."""
    pooled: List[RegionSeries] = list(chain.from_iterable(weekly_by_subtype.values()))
    return aggregate_series(pooled, Granularity.MONTH)


def series_total(points: Sequence[ChronoPoint]) -> float:
    return sum(point.total for point in points)


def latest_window(points: Sequence[ChronoPoint], window: int) -> Dict[str, float]:
    """
    Per-subtype sums over the ``window`` most recent points.

    Args:
        points: Sorted series with per-subtype breakdown
        window: Number of trailing periods

    Returns:
        subtype -> summed count (empty if the series is empty)
    """
    if window < 1:
        raise ValueError(f"window must be positive, got {window}")
    totals: Dict[str, float] = {}
    for point in points[-window:]:
        for subtype, count in point.by_subtype.items():
            totals[subtype] = totals.get(subtype, 0) + count
    return totals


# =============================================================================
# REGIONAL FREQUENCY
# =============================================================================

def region_frequency_series(
    regions: Iterable[RegionSeries],
    field: str = 'percOfUKVUI_4wkavg'
) -> Mapping[str, Tuple[ChronoPoint, ...]]:
    """
    Smoothed relative variant frequency per region.

    Weeks lacking ``field`` are left out; duplicate weeks within a region are
    averaged (frequencies are proportions, not additive counts).

    Args:
        regions: Region series of one subtype
        field: Frequency column (e.g. percOfUKVUI_4wkavg, expSmoothingPerc)

    Returns:
        region name -> sorted weekly series, regions in first-seen order
    """
    rows = []
    order: List[str] = []
    for region in regions:
        if region.region not in order:
            order.append(region.region)
        for record in region.weekly:
            if field in record.frequencies:
                rows.append({
                    'region': region.region,
                    'chrono_key': record.chrono_key,
                    'value': record.frequencies[field],
                })

    df = pd.DataFrame(rows, columns=['region', 'chrono_key', 'value'])
    result: Dict[str, Tuple[ChronoPoint, ...]] = {}
    for name in order:
        subset = df[df['region'] == name]
        means = subset.groupby('chrono_key')['value'].mean().sort_index()
        result[name] = tuple(
            _point(key, Granularity.WEEK, float(value), {})
            for key, value in means.items()
        )
    return MappingProxyType(result)


# =============================================================================
# CONTINENTAL TRENDS (single variant)
# =============================================================================

def continental_monthly_trends(variant: EmergingVariant) -> Mapping[str, Tuple[ChronoPoint, ...]]:
    """
    Continent → month → value rollup for one emerging variant.

    Every continent gets a point for every month observed anywhere for the
    variant (zero where the continent had none), so grouped bars line up.

    Returns:
        continent -> sorted monthly series, continents in source order
    """
    rows = []
    order: List[str] = []
    for trend in variant.continents:
        if trend.continent not in order:
            order.append(trend.continent)
        for record in trend.monthly:
            rows.append({
                'region': trend.continent,
                'chrono_key': record.chrono_key,
                'value': record.value,
            })

    if not rows:
        return MappingProxyType({name: () for name in order})

    df = pd.DataFrame(rows, columns=['region', 'chrono_key', 'value'])
    table = df.pivot_table(
        index='chrono_key',
        columns='region',
        values='value',
        aggfunc='sum',
        fill_value=0.0,
    )
    table = table.reindex(columns=order, fill_value=0.0).sort_index()

    return MappingProxyType({
        name: tuple(
            _point(key, Granularity.MONTH, float(table.at[key, name]), {})
            for key in table.index
        )
        for name in order
    })
