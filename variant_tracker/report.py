"""
Dashboard Report - BLOCK 4: Assembly

Builds every derived structure of one snapshot into a single immutable
DashboardReport:
1. Weekly progression and monthly counts (per subtype and pooled)
2. Regional relative-frequency series per subtype
3. Country aggregates, top contributors and the point footprint
4. Emerging-variant watchlists with growth dynamics, cumulative series on
   a shared week axis, continental trends and per-variant footprints
5. Headline KPIs and the most-recent sample tables

``report_to_dict`` renders the report to JSON-ready primitives for the
presentation layer.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from variant_tracker.config import Settings
from variant_tracker.data.loader import PARSERS, Snapshot
from variant_tracker.data.models import ChronoPoint, SampleRecord
from variant_tracker.evaluation.kpi import KpiSummary, build_kpis, most_recent_samples
from variant_tracker.features.aggregation import (
    continental_monthly_trends,
    global_monthly_counts,
    monthly_counts,
    region_frequency_series,
    weekly_progression,
)
from variant_tracker.features.geo import (
    CountryAggregate,
    CountryNameResolver,
    PointAggregate,
    aggregate_by_country,
    aggregate_points,
    top_countries,
)
from variant_tracker.features.growth import (
    GrowthPoint,
    WatchlistEntry,
    build_watchlist,
    comparison_axis,
    cumulative_series,
    growth_dynamics,
)


# =============================================================================
# REPORT STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class VariantReport:
    """Watchlist row plus the per-variant drill-down series."""
    entry: WatchlistEntry
    growth: Tuple[GrowthPoint, ...]
    # running totals, each point starting on the Monday of its week
    cumulative: Tuple[ChronoPoint, ...]
    continents: Mapping[str, Tuple[ChronoPoint, ...]]
    footprint: Tuple[PointAggregate, ...]


@dataclass(frozen=True)
class SubtypeReport:
    key: str
    label: str
    region_frequency: Mapping[str, Tuple[ChronoPoint, ...]]
    watchlist: Tuple[VariantReport, ...]
    # shared date axis of the watchlist's cumulative series
    growth_axis: Tuple[date, ...]
    recent_by_collection: Tuple[SampleRecord, ...]
    recent_by_submission: Tuple[SampleRecord, ...]
    # category -> False when its source file was missing or malformed
    available: Mapping[str, bool]


@dataclass(frozen=True)
class DashboardReport:
    """Every derived structure of one snapshot, computed for ``now``."""
    now: date
    subtypes: Tuple[str, ...]
    labels: Tuple[str, ...]
    progression: Tuple[ChronoPoint, ...]
    monthly: Tuple[ChronoPoint, ...]
    global_monthly: Tuple[ChronoPoint, ...]
    countries: Mapping[str, CountryAggregate]
    top_countries: Tuple[CountryAggregate, ...]
    footprint: Tuple[PointAggregate, ...]
    kpis: KpiSummary
    by_subtype: Mapping[str, SubtypeReport]


# =============================================================================
# BUILD
# =============================================================================

def _records(section: Mapping[str, Any], subtype: str) -> Tuple[Any, ...]:
    return section[subtype].records


def _variant_reports(
    snapshot: Snapshot,
    subtype: str,
    settings: Settings,
    now: date,
    resolver: CountryNameResolver
) -> Tuple[VariantReport, ...]:
    variants = {v.identifier: v for v in _records(snapshot.variants, subtype)}
    watchlist = build_watchlist(variants.values(), size=settings.watchlist_size, window=settings.growth_window)

    reports = []
    for entry in watchlist:
        variant = variants[entry.identifier]
        reports.append(VariantReport(
            entry=entry,
            growth=growth_dynamics(variant.cumulative),
            cumulative=cumulative_series(variant.cumulative),
            continents=continental_monthly_trends(variant),
            footprint=aggregate_points({subtype: variant.detections}, now=now, resolver=resolver),
        ))
    return tuple(reports)


def build_dashboard_report(
    snapshot: Snapshot,
    settings: Settings,
    now: Optional[Union[date, datetime]] = None,
    canonical_names: Optional[Iterable[str]] = None
) -> DashboardReport:
    """
    Compute the full dashboard report of one snapshot.

    Args:
        snapshot: Parsed snapshot (subtype order must match settings)
        settings: Typed config
        now: Reference date for recency bands (defaults to today)
        canonical_names: Atlas country names for fuzzy reconciliation

    Returns:
        DashboardReport
    """
    if tuple(snapshot.subtypes) != tuple(settings.subtypes):
        raise ValueError(
            f"Snapshot subtypes {snapshot.subtypes} do not match configured {settings.subtypes}"
        )
    if isinstance(now, datetime):
        now = now.date()
    now = now or date.today()

    subtypes = settings.subtypes
    resolver = CountryNameResolver(
        canonical_names=canonical_names,
        score_threshold=settings.fuzzy_score_threshold,
    )

    weekly = {s: _records(snapshot.weekly, s) for s in subtypes}
    geo = {s: _records(snapshot.geo, s) for s in subtypes}
    totals = {s: (_records(snapshot.totals, s) or (None,))[0] for s in subtypes}
    samples = [sample for s in subtypes for sample in _records(snapshot.samples, s)]

    progression = weekly_progression(weekly)
    countries = aggregate_by_country(geo, resolver=resolver)

    by_subtype = {}
    for key, label in zip(subtypes, settings.subtype_labels):
        own_samples = _records(snapshot.samples, key)
        watchlist = _variant_reports(snapshot, key, settings, now, resolver)
        by_subtype[key] = SubtypeReport(
            key=key,
            label=label,
            region_frequency=region_frequency_series(weekly[key], settings.region_frequency_field),
            watchlist=watchlist,
            growth_axis=comparison_axis(v.cumulative for v in watchlist),
            recent_by_collection=most_recent_samples(own_samples, 'collection', settings.recent_samples),
            recent_by_submission=most_recent_samples(own_samples, 'submission', settings.recent_samples),
            available=MappingProxyType({
                category: snapshot.category(category)[key].available for category in PARSERS
            }),
        )

    return DashboardReport(
        now=now,
        subtypes=tuple(subtypes),
        labels=tuple(settings.subtype_labels),
        progression=progression,
        monthly=monthly_counts(weekly),
        global_monthly=global_monthly_counts(weekly),
        countries=countries,
        top_countries=top_countries(countries, n=settings.top_countries),
        footprint=aggregate_points(geo, now=now, resolver=resolver),
        kpis=build_kpis(
            totals,
            progression,
            samples,
            subtypes,
            labels=settings.subtype_labels,
            window=settings.dominance_window,
            unique_countries=len(countries),
        ),
        by_subtype=MappingProxyType(by_subtype),
    )


# =============================================================================
# SERIALIZATION
# =============================================================================

def _to_primitive(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_primitive(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _to_primitive(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_primitive(v) for v in value]
    return value


def report_to_dict(report: DashboardReport) -> dict:
    """
    Render a report as nested dicts/lists of JSON primitives.

    Enums become their values, dates ISO strings, coordinates [lat, lng].
    """
    return _to_primitive(report)
