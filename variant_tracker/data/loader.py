"""
Snapshot Loader - BLOCK 1: Data Acquisition

This module handles:
1. Reading the per-subtype JSON files of a published snapshot
2. Validating every record against its expected shape
3. Converting valid records into immutable dataclasses

Rules (shared by every source file):
- Extra keys are ignored; the JSON key names below are preserved verbatim.
- A record missing a required key, or carrying a negative count, is skipped
  (``InvalidSnapshot`` warning) instead of failing the whole file.
- A file whose top level is not a JSON array, or which is missing, yields
  ``SourceRecords.unavailable()`` (``SourceShapeMismatch`` warning).

Source files (one per subtype):
- weekRegion2perc_<subtype>.json   -> RegionSeries
- countryCountTotal_<subtype>.json -> TotalsRecord
- map_<subtype>.json               -> GeoPoint
- emergingVariants_<subtype>.json  -> EmergingVariant
- recentSamples_<subtype>.json     -> SampleRecord
"""

from __future__ import annotations

import hashlib
import json
import math
import warnings
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from variant_tracker.common import timekeys
from variant_tracker.common.errors import InvalidSnapshot, SourceShapeMismatch
from variant_tracker.data.models import (
    ContinentTrend,
    CumulativeSnapshot,
    EmergingVariant,
    GeoPoint,
    MonthlyRecord,
    RegionSeries,
    SampleRecord,
    SourceRecords,
    TotalsRecord,
    WeeklyRecord,
)


FREQUENCY_FIELDS = (
    "percOfUKVUI",
    "percOfUKVUI_2wkavg",
    "percOfUKVUI_3wkavg",
    "percOfUKVUI_4wkavg",
    "expSmoothingPerc",
)

DEFAULT_FILES = {
    "weekly": "weekRegion2perc_{subtype}.json",
    "totals": "countryCountTotal_{subtype}.json",
    "geo": "map_{subtype}.json",
    "variants": "emergingVariants_{subtype}.json",
    "samples": "recentSamples_{subtype}.json",
}


class _InvalidRecord(Exception):
    """Internal: raised by record parsers, counted and skipped by the caller."""


# =============================================================================
# FIELD COERCION
# =============================================================================

def _require(record: Any, key: str) -> Any:
    if not isinstance(record, dict):
        raise _InvalidRecord(f"record is {type(record).__name__}, not an object")
    value = record.get(key)
    if value is None:
        raise _InvalidRecord(f"missing '{key}'")
    return value


def _to_int(value: Any, key: str) -> int:
    # bool is an int subclass; never a valid count
    if isinstance(value, bool):
        raise _InvalidRecord(f"'{key}' is not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise _InvalidRecord(f"'{key}' is not an integer: {value!r}")


def _to_count(value: Any, key: str) -> int:
    count = _to_int(value, key)
    if count < 0:
        raise _InvalidRecord(f"negative '{key}': {count}")
    return count


def _to_float(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise _InvalidRecord(f"'{key}' is not numeric: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise _InvalidRecord(f"'{key}' is not numeric: {value!r}")
    if math.isnan(number) or math.isinf(number):
        raise _InvalidRecord(f"'{key}' is not finite: {value!r}")
    return number


def _optional_float(value: Any) -> Optional[float]:
    """Lenient numeric read: empty strings and junk become None."""
    if value is None or value == "":
        return None
    try:
        return _to_float(value, "value")
    except _InvalidRecord:
        return None


def _optional_count(value: Any) -> Optional[int]:
    """Lenient count read for optional fields: junk and negatives become None."""
    if value is None or value == "":
        return None
    try:
        return _to_count(value, "value")
    except _InvalidRecord:
        return None


def _optional_rank(value: Any) -> Optional[int]:
    rank = _optional_count(value)
    return rank if rank else None


def _parse_each(
    items: Sequence[Any],
    parse_one: Callable[[Any], Any],
    source: str
) -> Tuple[Tuple[Any, ...], int]:
    """Parse every item, skipping invalid ones. Returns (records, n_skipped)."""
    records = []
    skipped = 0
    first_reason = None
    for item in items:
        try:
            records.append(parse_one(item))
        except _InvalidRecord as exc:
            skipped += 1
            if first_reason is None:
                first_reason = str(exc)
    if skipped:
        warnings.warn(
            f"{source}: skipped {skipped} invalid record(s) (first: {first_reason})",
            InvalidSnapshot,
            stacklevel=3,
        )
    return tuple(records), skipped


def _as_array(raw: Any, source: str) -> Optional[List[Any]]:
    if isinstance(raw, list):
        return raw
    warnings.warn(
        f"{source}: expected a JSON array, got {type(raw).__name__}",
        SourceShapeMismatch,
        stacklevel=3,
    )
    return None


# =============================================================================
# RECORD PARSERS
# =============================================================================

def _parse_weekly_record(item: Any) -> WeeklyRecord:
    year = _to_int(_require(item, "year"), "year")
    week = _to_int(_require(item, "weekNum"), "weekNum")
    if not 1 <= week <= 53:
        raise _InvalidRecord(f"weekNum out of range: {week}")
    count = _to_count(_require(item, "numIsolates"), "numIsolates")

    frequencies = {}
    for key in FREQUENCY_FIELDS:
        value = _optional_float(item.get(key))
        if value is not None:
            frequencies[key] = value

    return WeeklyRecord(
        year=year,
        week=week,
        isolate_count=count,
        num_countries=_optional_count(item.get("numCountries")),
        frequencies=MappingProxyType(frequencies),
    )


def parse_region_series(raw: Any, source: str = "weekly") -> SourceRecords[RegionSeries]:
    """
    Parse a weekRegion2perc file: [{continent, numCountriesInContinent, weeklyData: [...]}].

    Invalid weekly entries are skipped individually; the region is kept.
    """
    items = _as_array(raw, source)
    if items is None:
        return SourceRecords.unavailable()

    week_skips = 0

    def parse_one(item: Any) -> RegionSeries:
        nonlocal week_skips
        region = str(_require(item, "continent"))
        weekly_raw = _require(item, "weeklyData")
        if not isinstance(weekly_raw, list):
            raise _InvalidRecord("'weeklyData' is not an array")
        weekly, skipped = _parse_each(weekly_raw, _parse_weekly_record, f"{source}/{region}")
        week_skips += skipped
        return RegionSeries(
            region=region,
            child_region_count=_optional_count(item.get("numCountriesInContinent")) or 0,
            weekly=weekly,
        )

    records, skipped = _parse_each(items, parse_one, source)
    return SourceRecords(records=records, n_skipped=skipped + week_skips)


def _parse_geo_point(item: Any) -> GeoPoint:
    country = str(_require(item, "country"))
    return GeoPoint(
        location=str(item.get("city") or ""),
        country=country,
        latitude=_optional_float(item.get("lat")),
        longitude=_optional_float(item.get("lng")),
        count=_to_count(_require(item, "count"), "count"),
    )


def parse_geo_points(raw: Any, source: str = "geo") -> SourceRecords[GeoPoint]:
    """Parse a map file: [{city, country, lat, lng, count}]. lat/lng arrive as strings."""
    items = _as_array(raw, source)
    if items is None:
        return SourceRecords.unavailable()
    records, skipped = _parse_each(items, _parse_geo_point, source)
    return SourceRecords(records=records, n_skipped=skipped)


def parse_totals(raw: Any, source: str = "totals") -> SourceRecords[TotalsRecord]:
    """Parse a countryCountTotal file; only its first element is meaningful."""
    items = _as_array(raw, source)
    if items is None:
        return SourceRecords.unavailable()

    def parse_one(item: Any) -> TotalsRecord:
        stamp = item.get("utcTimestamp") if isinstance(item, dict) else None
        return TotalsRecord(
            total_isolates=_to_count(_require(item, "totalNumIsolates"), "totalNumIsolates"),
            total_countries=_to_count(_require(item, "totalNumCountries"), "totalNumCountries"),
            utc_timestamp=str(stamp) if stamp is not None else None,
        )

    records, skipped = _parse_each(items[:1], parse_one, source)
    return SourceRecords(records=records, n_skipped=skipped)


def derive_variant_id(lineage: str, mutations: str) -> str:
    """
    Stable identifier for a variant: lineage plus a short fingerprint of its
    mutation list (lineage names alone repeat across reporting cycles).
    """
    digest = hashlib.sha1(mutations.encode("utf-8")).hexdigest()[:10]
    return f"{lineage}|{digest}"


def _parse_cumulative(item: Any) -> CumulativeSnapshot:
    period = _to_int(_require(item, "yearweek"), "yearweek")
    if timekeys.parse_yearweek(period) is None:
        raise _InvalidRecord(f"bad yearweek: {period}")
    return CumulativeSnapshot(period_key=period, cumulative_count=_to_count(_require(item, "count"), "count"))


def _parse_detection(item: Any) -> GeoPoint:
    country = str(_require(item, "ctry"))
    count = _to_count(_require(item, "ct"), "ct")
    raw_date = item.get("dt")
    observed = None
    if raw_date not in (None, ""):
        observed = timekeys.parse_date(str(raw_date), timekeys.COMPACT_DATE_FORMAT)
    return GeoPoint(
        location=str(item.get("city") or ""),
        country=country,
        latitude=_optional_float(item.get("lat")),
        longitude=_optional_float(item.get("lng")),
        count=count,
        observed_date=observed,
    )


def _parse_monthly(item: Any) -> MonthlyRecord:
    parsed = timekeys.parse_month(_require(item, "date"))
    if parsed is None:
        raise _InvalidRecord(f"bad month: {item.get('date')!r}")
    value = _to_float(_require(item, "count"), "count")
    if value < 0:
        raise _InvalidRecord(f"negative 'count': {value}")
    return MonthlyRecord(year=parsed[0], month=parsed[1], value=value)


def _parse_continent(item: Any, skips: List[int]) -> ContinentTrend:
    continent = str(_require(item, "continent"))
    monthly_raw = item.get("monthlydata") or []
    if not isinstance(monthly_raw, list):
        raise _InvalidRecord("'monthlydata' is not an array")
    monthly, skipped = _parse_each(monthly_raw, _parse_monthly, f"continent/{continent}")
    skips.append(skipped)
    return ContinentTrend(continent=continent, monthly=monthly)


def _nested(
    item: dict,
    key: str,
    parse_one: Callable[[Any], Any],
    source: str,
    skips: List[int]
) -> Tuple[Any, ...]:
    value = item.get(key) or []
    if not isinstance(value, list):
        raise _InvalidRecord(f"'{key}' is not an array")
    records, skipped = _parse_each(value, parse_one, source)
    skips.append(skipped)
    return records


def _parse_variant(item: Any, skips: List[int]) -> EmergingVariant:
    """Nested records skipped along the way are tallied into ``skips``."""
    lineage = str(_require(item, "cladeLineage"))
    mutations = str(item.get("dissimilarityProtmutlist") or "")
    current_rank = _to_int(_require(item, "currRanking"), "currRanking")
    if current_rank < 1:
        raise _InvalidRecord(f"currRanking must be positive: {current_rank}")
    identifier = item.get("uniqueId") or derive_variant_id(lineage, mutations)
    source = f"variant/{identifier}"
    return EmergingVariant(
        identifier=str(identifier),
        lineage=lineage,
        mutations=mutations,
        current_rank=current_rank,
        previous_rank=_optional_rank(item.get("prevRanking")),
        weekly_growth_rate=_optional_float(item.get("weeklyGrowthRate")),
        cumulative=_nested(item, "cumLoc", _parse_cumulative, source, skips),
        detections=_nested(item, "map", _parse_detection, source, skips),
        continents=_nested(item, "continents", partial(_parse_continent, skips=skips), source, skips),
    )


def parse_variants(raw: Any, source: str = "variants") -> SourceRecords[EmergingVariant]:
    """Parse an emergingVariants file (watchlist entries with nested history)."""
    items = _as_array(raw, source)
    if items is None:
        return SourceRecords.unavailable()
    nested_skips: List[int] = []
    records, skipped = _parse_each(items, partial(_parse_variant, skips=nested_skips), source)
    return SourceRecords(records=records, n_skipped=skipped + sum(nested_skips))


def _parse_sample(item: Any) -> SampleRecord:
    def optional_date(key: str):
        value = item.get(key)
        if value in (None, ""):
            return None
        return timekeys.parse_date(str(value), timekeys.ISO_DATE_FORMAT)

    return SampleRecord(
        strain=str(_require(item, "strain")),
        country=str(item.get("country") or ""),
        collection_date=optional_date("collectionDate"),
        submission_date=optional_date("submissionDate"),
    )


def parse_samples(raw: Any, source: str = "samples") -> SourceRecords[SampleRecord]:
    """Parse a recentSamples file: [{strain, country, collectionDate, submissionDate}]."""
    items = _as_array(raw, source)
    if items is None:
        return SourceRecords.unavailable()
    records, skipped = _parse_each(items, _parse_sample, source)
    return SourceRecords(records=records, n_skipped=skipped)


PARSERS: Mapping[str, Callable[[Any, str], SourceRecords]] = MappingProxyType({
    "weekly": parse_region_series,
    "totals": parse_totals,
    "geo": parse_geo_points,
    "variants": parse_variants,
    "samples": parse_samples,
})


# =============================================================================
# SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class Snapshot:
    """
    All parsed sources of one published snapshot.

    Each category maps subtype key -> SourceRecords. A subtype without a file
    for a category maps to ``SourceRecords.unavailable()``.
    """
    subtypes: Tuple[str, ...]
    weekly: Mapping[str, SourceRecords[RegionSeries]] = field(default_factory=dict)
    totals: Mapping[str, SourceRecords[TotalsRecord]] = field(default_factory=dict)
    geo: Mapping[str, SourceRecords[GeoPoint]] = field(default_factory=dict)
    variants: Mapping[str, SourceRecords[EmergingVariant]] = field(default_factory=dict)
    samples: Mapping[str, SourceRecords[SampleRecord]] = field(default_factory=dict)
    source_dir: Optional[Path] = None

    def category(self, name: str) -> Mapping[str, SourceRecords]:
        if name not in PARSERS:
            raise ValueError(f"Unknown snapshot category: {name}")
        return getattr(self, name)


def parse_snapshot(
    payloads: Mapping[str, Mapping[str, Any]],
    subtypes: Sequence[str],
    source_dir: Optional[Path] = None
) -> Snapshot:
    """
    Build a Snapshot from already-decoded JSON payloads.

    Args:
        payloads: category -> subtype -> decoded JSON (anything json.load returns)
        subtypes: Ordered subtype keys (first is subtype A)
        source_dir: Where the payloads came from, for reference only

    Returns:
        Snapshot with every (category, subtype) filled in
    """
    unknown = set(payloads) - set(PARSERS)
    if unknown:
        raise ValueError(f"Unknown snapshot categories: {sorted(unknown)}")

    sections: Dict[str, Dict[str, SourceRecords]] = {}
    for category, parser in PARSERS.items():
        by_subtype = payloads.get(category, {})
        section = {}
        for subtype in subtypes:
            if subtype in by_subtype:
                section[subtype] = parser(by_subtype[subtype], f"{category}/{subtype}")
            else:
                section[subtype] = SourceRecords.unavailable()
        sections[category] = MappingProxyType(section)

    return Snapshot(subtypes=tuple(subtypes), source_dir=source_dir, **sections)


def read_json(path: Union[str, Path]) -> Any:
    """
    Decode one JSON file. A missing or undecodable file yields None, which the
    parsers report as a shape mismatch.
    """
    path = Path(path)
    if not path.exists():
        warnings.warn(f"Source file not found: {path}", SourceShapeMismatch, stacklevel=2)
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        warnings.warn(f"Unreadable source file {path}: {exc}", SourceShapeMismatch, stacklevel=2)
        return None


def load_snapshot(
    snapshot_dir: Union[str, Path],
    subtypes: Sequence[str],
    files: Optional[Mapping[str, str]] = None,
    verbose: bool = True
) -> Snapshot:
    """
    Load every source file of a snapshot directory.

    Args:
        snapshot_dir: Directory holding the JSON files
        subtypes: Ordered subtype keys, substituted into the file templates
        files: category -> filename template with a ``{subtype}`` placeholder
        verbose: Print per-file progress

    Returns:
        Parsed Snapshot
    """
    snapshot_dir = Path(snapshot_dir)
    files = dict(DEFAULT_FILES, **(files or {}))

    payloads: Dict[str, Dict[str, Any]] = {}
    for category in PARSERS:
        payloads[category] = {}
        for subtype in subtypes:
            path = snapshot_dir / files[category].format(subtype=subtype)
            payloads[category][subtype] = read_json(path)

    snapshot = parse_snapshot(payloads, subtypes, source_dir=snapshot_dir)

    if verbose:
        print(f"Loading snapshot from {snapshot_dir}...")
        for category in PARSERS:
            for subtype in subtypes:
                result = snapshot.category(category)[subtype]
                status = f"{len(result)} records" if result.available else "unavailable"
                skipped = f" ({result.n_skipped} skipped)" if result.n_skipped else ""
                print(f"  → {category}/{subtype}: {status}{skipped}")

    return snapshot
