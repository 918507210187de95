"""
Snapshot record types
=====================

Each JSON record of a published snapshot is converted into one of these
immutable (``frozen=True``) dataclasses so that:
- records cannot be modified after loading, and
- every derived structure is newly allocated from them.

Field names are snake_case; the JSON key each one is read from is listed in
``variant_tracker.data.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Generic, Mapping, Optional, Tuple, TypeVar

from variant_tracker.common import timekeys


def _frozen_mapping() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class WeeklyRecord:
    """Isolate count of one region for one (year, week)."""
    year: int
    week: int
    isolate_count: int
    num_countries: Optional[int] = None
    # optional relative-frequency columns (percOfUKVUI_4wkavg, ...)
    frequencies: Mapping[str, float] = field(default_factory=_frozen_mapping)

    @property
    def chrono_key(self) -> timekeys.ChronoKey:
        return timekeys.week_key(self.year, self.week)

    @property
    def start_date(self) -> date:
        return timekeys.week_start(self.year, self.week)


@dataclass(frozen=True)
class RegionSeries:
    """A continent and its weekly records, in source (not chronological) order."""
    region: str
    child_region_count: int
    weekly: Tuple[WeeklyRecord, ...]


@dataclass(frozen=True)
class MonthlyRecord:
    """A value (count or prevalence) for one (year, month) bucket."""
    year: int
    month: int
    value: float

    @property
    def chrono_key(self) -> timekeys.ChronoKey:
        return timekeys.month_key(self.year, self.month)


@dataclass(frozen=True)
class ContinentTrend:
    """Monthly values of one emerging variant in one continent."""
    continent: str
    monthly: Tuple[MonthlyRecord, ...]


@dataclass(frozen=True)
class ChronoPoint:
    """
    One point of a derived time series.

    ``by_subtype`` is empty when the series was built from a single input
    list; otherwise it holds a count for every requested subtype (zero when
    a subtype did not observe the period).
    """
    key: timekeys.ChronoKey
    label: str
    start: date
    total: float
    by_subtype: Mapping[str, float] = field(default_factory=_frozen_mapping)


@dataclass(frozen=True)
class CumulativeSnapshot:
    """Running total of detections of one variant up to a YYYYWW period."""
    period_key: int
    cumulative_count: int

    @property
    def label(self) -> str:
        year, week = timekeys.split_key(self.period_key)
        return timekeys.week_label(year, week)


@dataclass(frozen=True)
class RankedEntity:
    """Ranking of one entity in the current and (optionally) previous snapshot."""
    identifier: str
    current_rank: int
    previous_rank: Optional[int] = None


@dataclass(frozen=True)
class GeoPoint:
    """A geo-tagged detection count. Coordinates may be absent in the source."""
    location: str
    country: str
    latitude: Optional[float]
    longitude: Optional[float]
    count: int
    observed_date: Optional[date] = None

    @property
    def coordinate(self) -> Optional[Tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class TotalsRecord:
    """Per-subtype grand totals with the snapshot's refresh stamp (raw text)."""
    total_isolates: int
    total_countries: int
    utc_timestamp: Optional[str]


@dataclass(frozen=True)
class EmergingVariant:
    """One watchlist entry: lineage, ranking and its detection history."""
    identifier: str
    lineage: str
    mutations: str
    current_rank: int
    previous_rank: Optional[int]
    weekly_growth_rate: Optional[float]
    cumulative: Tuple[CumulativeSnapshot, ...] = ()
    detections: Tuple[GeoPoint, ...] = ()
    continents: Tuple[ContinentTrend, ...] = ()

    @property
    def ranking(self) -> RankedEntity:
        return RankedEntity(self.identifier, self.current_rank, self.previous_rank)


@dataclass(frozen=True)
class SampleRecord:
    """A sequenced sample with its collection and database submission dates."""
    strain: str
    country: str
    collection_date: Optional[date]
    submission_date: Optional[date]


T = TypeVar("T")


@dataclass(frozen=True)
class SourceRecords(Generic[T]):
    """
    Parsed content of one source file.

    ``available`` is False when the file was missing or its top level was not
    a JSON array; ``records`` is then empty and the presentation layer should
    show a "data unavailable" state. ``n_skipped`` counts invalid records.
    """
    records: Tuple[T, ...] = ()
    available: bool = True
    n_skipped: int = 0

    @classmethod
    def unavailable(cls) -> "SourceRecords[T]":
        return cls(records=(), available=False, n_skipped=0)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)
