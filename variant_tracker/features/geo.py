"""
Geographic Aggregation for the Variant Tracker

Two modes over geo-tagged detection counts (one list per subtype/source):

1. Country level: counts summed per canonical country name, per subtype, with
   a representative coordinate (the single contributing point with the
   largest count; first encountered wins ties) and a dominance label.
2. Point level: every distinct (latitude, longitude) stays its own unit;
   exact-coordinate duplicates across lists are summed. Each point carries
   its most recent detection date and recency band.

Country names go through the fixed alias map first and, when a list of
canonical atlas names is available, a fuzzy match (rapidfuzz) against it, so
the same country is never split because two sources spell it differently.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd
from rapidfuzz import fuzz, process

from variant_tracker.common.constants import COUNTRY_ALIASES
from variant_tracker.common.errors import InvalidSnapshot
from variant_tracker.data.models import GeoPoint
from variant_tracker.labels.dominance import Dominance, classify_dominance, subtype_share
from variant_tracker.labels.recency import RecencyBand, classify_recency


Coordinate = Tuple[float, float]


# =============================================================================
# COUNTRY NAME RESOLUTION
# =============================================================================

class CountryNameResolver:
    """
    Maps source country spellings to canonical names.

    Resolution order:
    1. Fixed alias map (exact match)
    2. Already canonical (exact match against ``canonical_names``)
    3. Fuzzy match against ``canonical_names`` (fuzz.ratio >= score_threshold)
    4. The stripped source spelling unchanged
    """

    def __init__(
        self,
        aliases: Mapping[str, str] = COUNTRY_ALIASES,
        canonical_names: Optional[Iterable[str]] = None,
        score_threshold: int = 90
    ):
        self.aliases = dict(aliases)
        self.canonical_names = sorted(set(canonical_names)) if canonical_names else []
        self._canonical_set = set(self.canonical_names)
        self.score_threshold = score_threshold
        self._cache: Dict[str, str] = {}

    def __call__(self, name: str) -> str:
        name = str(name).strip()
        if name not in self._cache:
            self._cache[name] = self._resolve(name)
        return self._cache[name]

    def _resolve(self, name: str) -> str:
        if name in self.aliases:
            return self.aliases[name]
        if not self.canonical_names or name in self._canonical_set:
            return name
        match = process.extractOne(name, self.canonical_names, scorer=fuzz.ratio)
        if match and match[1] >= self.score_threshold:
            return match[0]
        return name


def resolve_country(name: str, aliases: Mapping[str, str] = COUNTRY_ALIASES) -> str:
    """Alias-only resolution (no atlas names)."""
    name = str(name).strip()
    return aliases.get(name, name)


# =============================================================================
# FLATTENING
# =============================================================================

def _as_date(value: Optional[Union[date, datetime]]) -> Optional[date]:
    if value is None:
        return None
    return value.date() if isinstance(value, datetime) else value


def _points_frame(
    point_lists: Mapping[str, Iterable[GeoPoint]],
    resolver: CountryNameResolver
) -> pd.DataFrame:
    rows = []
    n_negative = 0
    for subtype, points in point_lists.items():
        for point in points:
            if point.count < 0:
                n_negative += 1
                continue
            rows.append({
                'subtype': subtype,
                'location': point.location,
                'country': resolver(point.country),
                'lat': point.latitude,
                'lng': point.longitude,
                'count': point.count,
                'observed': pd.Timestamp(point.observed_date) if point.observed_date else pd.NaT,
            })

    if n_negative:
        warnings.warn(
            f"Excluded {n_negative} geo point(s) with negative counts",
            InvalidSnapshot,
            stacklevel=3,
        )

    df = pd.DataFrame(rows, columns=['subtype', 'location', 'country', 'lat', 'lng', 'count', 'observed'])
    df['count'] = df['count'].astype('int64')
    df['lat'] = df['lat'].astype('float64')
    df['lng'] = df['lng'].astype('float64')
    df['observed'] = pd.to_datetime(df['observed'])
    return df


def _breakdown(df: pd.DataFrame, index, subtypes: Sequence[str]) -> pd.DataFrame:
    table = df.pivot_table(index=index, columns='subtype', values='count', aggfunc='sum', fill_value=0)
    return table.reindex(columns=list(subtypes), fill_value=0)


# =============================================================================
# COUNTRY LEVEL
# =============================================================================

@dataclass(frozen=True)
class CountryAggregate:
    """
    Detections of one canonical country.

    ``dominance`` and ``share_a`` are only set when exactly two subtypes were
    aggregated (share_a is None when the country total is zero).
    """
    country: str
    by_subtype: Mapping[str, int]
    total: int
    representative: Optional[Coordinate]
    dominance: Optional[Dominance] = None
    share_a: Optional[float] = None


def aggregate_by_country(
    point_lists: Mapping[str, Iterable[GeoPoint]],
    resolver: Optional[CountryNameResolver] = None
) -> Mapping[str, CountryAggregate]:
    """
    Merge geo points of every subtype into per-country totals.

    Args:
        point_lists: subtype (or source) key -> geo points
        resolver: Country name resolver; alias map only when omitted

    Returns:
        canonical country -> CountryAggregate, sorted by country name
    """
    resolver = resolver or CountryNameResolver()
    subtypes = list(point_lists)
    df = _points_frame(point_lists, resolver)
    if df.empty:
        return MappingProxyType({})

    table = _breakdown(df, 'country', subtypes)

    # idxmax keeps the first row among equal maxima
    located = df.dropna(subset=['lat', 'lng'])
    best_rows = located.groupby('country', sort=False)['count'].idxmax()

    aggregates = {}
    for country in sorted(table.index):
        breakdown = {s: int(table.at[country, s]) for s in subtypes}
        representative = None
        if country in best_rows.index:
            row = located.loc[best_rows[country]]
            representative = (float(row['lat']), float(row['lng']))

        dominance = share = None
        if len(subtypes) == 2:
            a, b = breakdown[subtypes[0]], breakdown[subtypes[1]]
            dominance = classify_dominance(a, b)
            share = subtype_share(a, b)

        aggregates[country] = CountryAggregate(
            country=country,
            by_subtype=MappingProxyType(breakdown),
            total=sum(breakdown.values()),
            representative=representative,
            dominance=dominance,
            share_a=share,
        )
    return MappingProxyType(aggregates)


def top_countries(aggregates: Mapping[str, CountryAggregate], n: int = 20) -> Tuple[CountryAggregate, ...]:
    """Largest contributors by total (ties broken by name)."""
    ranked = sorted(aggregates.values(), key=lambda agg: (-agg.total, agg.country))
    return tuple(ranked[:n])


# =============================================================================
# POINT LEVEL
# =============================================================================

@dataclass(frozen=True)
class PointAggregate:
    """Detections at one exact coordinate, merged across lists."""
    coordinate: Coordinate
    location: str
    country: str
    by_subtype: Mapping[str, int]
    total: int
    latest_observed: Optional[date] = None
    recency: Optional[RecencyBand] = None


def aggregate_points(
    point_lists: Mapping[str, Iterable[GeoPoint]],
    now: Optional[Union[date, datetime]] = None,
    resolver: Optional[CountryNameResolver] = None
) -> Tuple[PointAggregate, ...]:
    """
    Point-level footprint: one unit per distinct (latitude, longitude).

    Points without coordinates cannot be placed and are excluded (with an
    InvalidSnapshot warning); everything else is summed, never dropped.

    Args:
        point_lists: subtype (or source) key -> geo points
        now: Reference date for recency bands (defaults to today)
        resolver: Country name resolver; alias map only when omitted

    Returns:
        Tuple of PointAggregate in first-encountered coordinate order
    """
    resolver = resolver or CountryNameResolver()
    now = _as_date(now) or date.today()
    subtypes = list(point_lists)
    df = _points_frame(point_lists, resolver)

    unplaced = int(df[['lat', 'lng']].isna().any(axis=1).sum())
    if unplaced:
        warnings.warn(
            f"{unplaced} geo point(s) without coordinates left out of the point footprint",
            InvalidSnapshot,
            stacklevel=2,
        )
    df = df.dropna(subset=['lat', 'lng'])
    if df.empty:
        return ()

    info = df.groupby(['lat', 'lng'], sort=False).agg(
        location=('location', 'first'),
        country=('country', 'first'),
        latest=('observed', 'max'),
    )
    table = _breakdown(df, ['lat', 'lng'], subtypes).reindex(info.index)

    points = []
    for ((lat, lng), row), (_, counts) in zip(info.iterrows(), table.iterrows()):
        breakdown = {s: int(counts[s]) for s in subtypes}
        latest = row['latest'].date() if pd.notna(row['latest']) else None
        points.append(PointAggregate(
            coordinate=(float(lat), float(lng)),
            location=row['location'],
            country=row['country'],
            by_subtype=MappingProxyType(breakdown),
            total=sum(breakdown.values()),
            latest_observed=latest,
            recency=classify_recency(latest, now),
        ))
    return tuple(points)
