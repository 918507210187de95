"""
Headline KPIs for the Variant Tracker

Rolls the derived structures up into the dashboard's top-line figures:
- Total sequences and reporting countries (summed over subtypes)
- Currently dominant subtype over the most recent 4 periods
- Mean reporting latency (collection -> submission, in days)
- "Data last updated" stamp

Every KPI has an explicit neutral state (zero, "Mixed", None, "unknown")
instead of a fabricated value when its inputs are missing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from variant_tracker.common import timekeys
from variant_tracker.common.constants import DOMINANCE_WINDOW, UNKNOWN
from variant_tracker.data.models import ChronoPoint, SampleRecord, TotalsRecord
from variant_tracker.features.aggregation import latest_window
from variant_tracker.labels.dominance import Dominance, classify_dominance, dominance_label


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class HeadlineTotals:
    """
    Attributes:
        total_sequences: Sum of totalNumIsolates over subtypes
        countries_reporting: Sum of totalNumCountries over subtypes
        by_subtype: subtype -> (isolates, countries)
        available: False when no subtype had a totals record
        unique_countries: Distinct canonical countries in the geo data
            (None when not computed); a country reporting both subtypes
            counts once here but twice in countries_reporting
    """
    total_sequences: int
    countries_reporting: int
    by_subtype: Mapping[str, Tuple[int, int]]
    available: bool
    unique_countries: Optional[int] = None


@dataclass(frozen=True)
class DominantSubtype:
    dominance: Dominance
    label: str
    window_counts: Mapping[str, float]
    n_periods: int


@dataclass(frozen=True)
class LatencySummary:
    """
    Attributes:
        mean_days: Mean non-negative latency, None without valid samples
        n_samples: Samples contributing to the mean
        n_excluded: Samples submitted before collection (data-quality issue)
        n_incomplete: Samples missing either date
    """
    mean_days: Optional[float]
    n_samples: int
    n_excluded: int
    n_incomplete: int


@dataclass(frozen=True)
class LastUpdated:
    timestamp: Optional[datetime]
    label: str

    @property
    def is_known(self) -> bool:
        return self.timestamp is not None


@dataclass(frozen=True)
class KpiSummary:
    totals: HeadlineTotals
    dominant: DominantSubtype
    latency: LatencySummary
    last_updated: LastUpdated


# =============================================================================
# KPI COMPUTATION
# =============================================================================

def headline_totals(
    totals: Mapping[str, Optional[TotalsRecord]],
    unique_countries: Optional[int] = None
) -> HeadlineTotals:
    """
    Sum per-subtype grand totals.

    Args:
        totals: subtype -> TotalsRecord (None when the subtype had none)
        unique_countries: Count of merged country aggregates, if known
    """
    by_subtype = {}
    for subtype, record in totals.items():
        if record is None:
            by_subtype[subtype] = (0, 0)
        else:
            by_subtype[subtype] = (record.total_isolates, record.total_countries)

    return HeadlineTotals(
        total_sequences=sum(isolates for isolates, _ in by_subtype.values()),
        countries_reporting=sum(countries for _, countries in by_subtype.values()),
        by_subtype=MappingProxyType(by_subtype),
        available=any(record is not None for record in totals.values()),
        unique_countries=unique_countries,
    )


def current_dominance(
    progression: Sequence[ChronoPoint],
    subtypes: Sequence[str],
    labels: Optional[Sequence[str]] = None,
    window: int = DOMINANCE_WINDOW
) -> DominantSubtype:
    """
    Dominant subtype over the most recent ``window`` periods.

    Args:
        progression: Weekly series with per-subtype breakdown (sorted)
        subtypes: The two subtype keys, A first
        labels: Display names aligned with ``subtypes`` (keys when omitted)
        window: Trailing periods to pool

    Returns:
        DominantSubtype; label is "unknown" when the series is empty
    """
    if len(subtypes) != 2:
        raise ValueError(f"Dominance compares exactly 2 subtypes, got {len(subtypes)}")
    labels = list(labels) if labels is not None else list(subtypes)

    counts = latest_window(progression, window)
    a = counts.get(subtypes[0], 0)
    b = counts.get(subtypes[1], 0)
    dominance = classify_dominance(a, b)
    n_periods = min(len(progression), window)

    return DominantSubtype(
        dominance=dominance,
        label=dominance_label(dominance, labels) if n_periods else UNKNOWN,
        window_counts=MappingProxyType({subtypes[0]: a, subtypes[1]: b}),
        n_periods=n_periods,
    )


def reporting_latency(samples: Iterable[SampleRecord]) -> LatencySummary:
    """
    Mean days between sample collection and database submission.

    Samples submitted before they were collected are excluded from the mean;
    samples missing either date are not latency samples at all.
    """
    latencies: List[int] = []
    excluded = incomplete = 0
    for sample in samples:
        if sample.collection_date is None or sample.submission_date is None:
            incomplete += 1
            continue
        days = (sample.submission_date - sample.collection_date).days
        if days < 0:
            excluded += 1
            continue
        latencies.append(days)

    return LatencySummary(
        mean_days=float(np.mean(latencies)) if latencies else None,
        n_samples=len(latencies),
        n_excluded=excluded,
        n_incomplete=incomplete,
    )


def last_updated(stamps: Iterable[Optional[str]]) -> LastUpdated:
    """
    Latest parseable "last updated" stamp across subtypes.

    Unparseable stamps are ignored (ParseFailure warning); if none parses the
    result is the explicit "unknown" state.
    """
    parsed = [timekeys.parse_timestamp(stamp) for stamp in stamps if stamp is not None]
    valid = [stamp for stamp in parsed if stamp is not None]
    if not valid:
        return LastUpdated(timestamp=None, label=UNKNOWN)
    latest = max(valid)
    return LastUpdated(timestamp=latest, label=latest.strftime("%Y-%m-%d %H:%M UTC"))


def most_recent_samples(
    samples: Iterable[SampleRecord],
    by: str = "collection",
    n: int = 10
) -> Tuple[SampleRecord, ...]:
    """
    The ``n`` most recent samples by collection or submission date.

    Samples without the requested date sort after all dated ones.
    """
    if by not in ("collection", "submission"):
        raise ValueError(f"by must be 'collection' or 'submission', got {by!r}")
    attr = f"{by}_date"
    samples = list(samples)
    dated = [s for s in samples if getattr(s, attr) is not None]
    undated = [s for s in samples if getattr(s, attr) is None]
    ordered = sorted(dated, key=lambda s: getattr(s, attr), reverse=True) + undated
    return tuple(ordered[:n])


def build_kpis(
    totals: Mapping[str, Optional[TotalsRecord]],
    progression: Sequence[ChronoPoint],
    samples: Iterable[SampleRecord],
    subtypes: Sequence[str],
    labels: Optional[Sequence[str]] = None,
    window: int = DOMINANCE_WINDOW,
    unique_countries: Optional[int] = None
) -> KpiSummary:
    """Bundle every headline KPI."""
    return KpiSummary(
        totals=headline_totals(totals, unique_countries),
        dominant=current_dominance(progression, subtypes, labels, window),
        latency=reporting_latency(samples),
        last_updated=last_updated(
            record.utc_timestamp for record in totals.values() if record is not None
        ),
    )
