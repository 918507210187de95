"""Tests for variant_tracker.features.aggregation: hierarchical rollups."""

from types import MappingProxyType

import pytest

from variant_tracker.common.errors import InvalidSnapshot
from variant_tracker.data.models import (
    ContinentTrend,
    EmergingVariant,
    MonthlyRecord,
    RegionSeries,
    WeeklyRecord,
)
from variant_tracker.features.aggregation import (
    aggregate_series,
    continental_monthly_trends,
    flatten_regions,
    global_monthly_counts,
    latest_window,
    monthly_counts,
    region_frequency_series,
    series_total,
    weekly_progression,
)


def region(name, *weeks):
    """weeks: (year, week, count) or (year, week, count, {field: value})"""
    records = []
    for entry in weeks:
        freqs = entry[3] if len(entry) > 3 else {}
        records.append(WeeklyRecord(entry[0], entry[1], entry[2], frequencies=MappingProxyType(freqs)))
    return RegionSeries(region=name, child_region_count=0, weekly=tuple(records))


EUROPE = region("Europe", (2025, 3, 7), (2025, 1, 10), (2024, 52, 4))
ASIA = region("Asia", (2025, 1, 5), (2025, 2, 1))


# ── single series ─────────────────────────────────────────────────────

class TestAggregateSeries:
    def test_total_equals_sum_of_records(self):
        points = aggregate_series([EUROPE, ASIA])
        assert series_total(points) == 7 + 10 + 4 + 5 + 1

    def test_region_order_irrelevant(self):
        assert aggregate_series([EUROPE, ASIA]) == aggregate_series([ASIA, EUROPE])

    def test_sorted_unique_keys(self):
        keys = [p.key for p in aggregate_series([EUROPE, ASIA])]
        assert keys == [202452, 202501, 202502, 202503]

    def test_same_period_accumulates(self):
        points = aggregate_series([EUROPE, ASIA])
        assert points[1].total == 15
        assert points[1].label == "2025-W01"

    def test_duplicate_week_in_one_region_accumulates(self):
        dup = region("Europe", (2025, 1, 3), (2025, 1, 4))
        assert aggregate_series([dup])[0].total == 7

    def test_empty(self):
        assert aggregate_series([]) == ()
        assert aggregate_series({"a": [], "b": []}) == ()

    def test_negative_count_excluded(self):
        bad = region("Europe", (2025, 1, -5), (2025, 2, 3))
        with pytest.warns(InvalidSnapshot):
            points = aggregate_series([bad])
        assert [p.total for p in points] == [3]

    def test_flatten_columns(self):
        df = flatten_regions([EUROPE])
        assert list(df.columns) == ['region', 'chrono_key', 'count']
        assert len(df) == 3


# ── per-subtype breakdown ─────────────────────────────────────────────

class TestBySubtype:
    def test_missing_period_gets_zero(self):
        points = weekly_progression({"h1n1": [EUROPE], "h3n2": [ASIA]})
        first = points[0]
        assert first.key == 202452
        assert dict(first.by_subtype) == {"h1n1": 4, "h3n2": 0}

    def test_subtype_without_records_gets_zero_column(self):
        points = weekly_progression({"h1n1": [EUROPE], "h3n2": []})
        assert all(p.by_subtype["h3n2"] == 0 for p in points)
        assert series_total(points) == 21

    def test_breakdown_sums_to_total(self):
        points = weekly_progression({"h1n1": [EUROPE], "h3n2": [ASIA]})
        for p in points:
            assert p.total == sum(p.by_subtype.values())

    def test_fixture_progression(self, snapshot):
        weekly = {s: snapshot.weekly[s].records for s in snapshot.subtypes}
        points = weekly_progression(weekly)
        assert [p.key for p in points] == [202452, 202501, 202502, 202503, 202504]
        assert dict(points[2].by_subtype) == {"h1n1": 30, "h3n2": 40}


# ── month rollup ──────────────────────────────────────────────────────

class TestMonthly:
    def test_weeks_rebucketed_by_start_date(self):
        weeks = region("Europe", *[(2025, w, 1) for w in range(1, 7)])
        points = monthly_counts([weeks])
        # weeks 1-5 start in January, week 6 on Feb 5
        assert [(p.label, p.total) for p in points] == [("2025-01", 5), ("2025-02", 1)]

    def test_year_boundary(self):
        points = monthly_counts([EUROPE, ASIA])
        assert [p.key for p in points] == [202412, 202501]

    def test_global_pools_subtypes(self):
        points = global_monthly_counts({"h1n1": [EUROPE], "h3n2": [ASIA]})
        assert points[-1].total == 7 + 10 + 5 + 1
        assert dict(points[-1].by_subtype) == {}

    def test_per_subtype_monthly(self):
        points = monthly_counts({"h1n1": [EUROPE], "h3n2": [ASIA]})
        assert dict(points[-1].by_subtype) == {"h1n1": 17, "h3n2": 6}


class TestLatestWindow:
    def test_trailing_sum(self):
        points = weekly_progression({"h1n1": [EUROPE], "h3n2": [ASIA]})
        assert latest_window(points, 2) == {"h1n1": 7, "h3n2": 1}

    def test_window_longer_than_series(self):
        points = weekly_progression({"h1n1": [EUROPE], "h3n2": [ASIA]})
        assert latest_window(points, 10) == {"h1n1": 21, "h3n2": 6}

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            latest_window((), 0)


# ── frequency & continental trends ────────────────────────────────────

class TestRegionFrequency:
    def test_series_per_region(self):
        eu = region("Europe", (2025, 2, 1, {"percOfUKVUI_4wkavg": 20.0}), (2025, 1, 1, {"percOfUKVUI_4wkavg": 10.0}))
        asia = region("Asia", (2025, 1, 1))
        result = region_frequency_series([eu, asia])
        assert list(result) == ["Europe", "Asia"]
        assert [p.total for p in result["Europe"]] == [10.0, 20.0]
        assert result["Asia"] == ()

    def test_duplicate_weeks_averaged(self):
        eu = region("Europe", (2025, 1, 1, {"expSmoothingPerc": 10.0}), (2025, 1, 1, {"expSmoothingPerc": 30.0}))
        result = region_frequency_series([eu], field="expSmoothingPerc")
        assert result["Europe"][0].total == 20.0


class TestContinentalTrends:
    def test_zero_fill_and_sorting(self):
        variant = EmergingVariant(
            identifier="v", lineage="x", mutations="", current_rank=1, previous_rank=None,
            weekly_growth_rate=None,
            continents=(
                ContinentTrend("Europe", (MonthlyRecord(2025, 2, 5.0), MonthlyRecord(2025, 1, 3.0))),
                ContinentTrend("Asia", (MonthlyRecord(2025, 2, 1.0),)),
            ),
        )
        trends = continental_monthly_trends(variant)
        assert list(trends) == ["Europe", "Asia"]
        assert [p.label for p in trends["Europe"]] == ["2025-01", "2025-02"]
        assert [p.total for p in trends["Asia"]] == [0.0, 1.0]

    def test_no_continents(self):
        variant = EmergingVariant("v", "x", "", 1, None, None)
        assert dict(continental_monthly_trends(variant)) == {}
