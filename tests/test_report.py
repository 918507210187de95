"""Tests for variant_tracker.report and the snapshot context."""

import json
from datetime import date

import pytest

from variant_tracker.common.errors import SourceShapeMismatch
from variant_tracker.data.context import SnapshotContext, atlas_country_names
from variant_tracker.data.loader import parse_snapshot
from variant_tracker.report import build_dashboard_report, report_to_dict


NOW = date(2025, 2, 10)


# ── report ────────────────────────────────────────────────────────────

class TestDashboardReport:
    def test_sections(self, snapshot, settings):
        report = build_dashboard_report(snapshot, settings, now=NOW)
        assert report.now == NOW
        assert report.subtypes == ('h1n1', 'h3n2')
        assert len(report.progression) == 5
        assert [p.label for p in report.global_monthly] == ["2024-12", "2025-01"]
        assert list(report.countries) == ["France", "United States of America"]
        assert report.top_countries[0].country == "United States of America"
        assert report.top_countries[0].representative == (41.88, -87.63)
        assert len(report.footprint) == 3

    def test_kpis(self, snapshot, settings):
        kpis = build_dashboard_report(snapshot, settings, now=NOW).kpis
        assert kpis.totals.total_sequences == 2000
        assert kpis.totals.countries_reporting == 75
        # "United States" and "United States of America" are one country
        assert kpis.totals.unique_countries == 2
        assert kpis.dominant.label == "Mixed"
        assert kpis.latency.mean_days == 5.0

    def test_watchlist_drilldown(self, snapshot, settings):
        h1n1 = build_dashboard_report(snapshot, settings, now=NOW).by_subtype['h1n1']
        assert h1n1.label == "H1N1"
        assert [v.entry.rank.current_rank for v in h1n1.watchlist] == [1, 2]
        v1 = h1n1.watchlist[1]
        assert [g.new_detections for g in v1.growth] == [50, 75]
        assert list(v1.continents) == ["Europe", "Asia"]
        lyon = v1.footprint[0]
        assert lyon.location == "Lyon"
        assert lyon.recency.value == "recent"   # 13 days before NOW

    def test_cumulative_comparison(self, snapshot, settings):
        h1n1 = build_dashboard_report(snapshot, settings, now=NOW).by_subtype['h1n1']
        new, v1 = h1n1.watchlist
        assert new.cumulative == ()
        assert [p.total for p in v1.cumulative] == [100, 150, 225]
        assert [p.start for p in v1.cumulative] == [date(2024, 12, 30), date(2025, 1, 6), date(2025, 1, 13)]
        assert h1n1.growth_axis == tuple(p.start for p in v1.cumulative)
        assert build_dashboard_report(snapshot, settings, now=NOW).by_subtype['h3n2'].growth_axis == ()

    def test_recent_tables(self, snapshot, settings):
        h1n1 = build_dashboard_report(snapshot, settings, now=NOW).by_subtype['h1n1']
        assert [s.strain for s in h1n1.recent_by_collection] == ["A/Paris/2/2025", "A/Boston/1/2025"]
        assert [s.strain for s in h1n1.recent_by_submission] == ["A/Paris/2/2025", "A/Boston/1/2025"]

    def test_availability(self, raw_payloads, settings):
        del raw_payloads["samples"]
        snap = parse_snapshot(raw_payloads, settings.subtypes)
        report = build_dashboard_report(snap, settings, now=NOW)
        h3n2 = report.by_subtype['h3n2']
        assert h3n2.available['samples'] is False
        assert h3n2.available['weekly'] is True
        assert h3n2.recent_by_collection == ()
        assert report.kpis.latency.mean_days is None

    def test_subtype_mismatch(self, raw_payloads, settings):
        snap = parse_snapshot(raw_payloads, ('h3n2', 'h1n1'))
        with pytest.raises(ValueError):
            build_dashboard_report(snap, settings, now=NOW)

    def test_canonical_names_used(self, snapshot, settings):
        report = build_dashboard_report(
            snapshot, settings, now=NOW, canonical_names=["France", "United States of America"]
        )
        assert set(report.countries) == {"France", "United States of America"}

    def test_json_ready(self, snapshot, settings):
        data = report_to_dict(build_dashboard_report(snapshot, settings, now=NOW))
        text = json.dumps(data)
        assert json.loads(text)['now'] == "2025-02-10"
        assert data['top_countries'][0]['representative'] == [41.88, -87.63]
        assert data['kpis']['dominant']['dominance'] == "mixed"
        assert data['progression'][0]['by_subtype'] == {'h1n1': 10, 'h3n2': 0}
        assert data['by_subtype']['h1n1']['growth_axis'][0] == "2024-12-30"


# ── context ───────────────────────────────────────────────────────────

class TestSnapshotContext:
    def test_lazy_load(self, settings):
        ctx = SnapshotContext(settings)
        assert not ctx.is_loaded
        assert len(ctx.snapshot.weekly['h1n1']) == 2
        assert ctx.is_loaded

    def test_report_memoized(self, settings):
        ctx = SnapshotContext(settings)
        first = ctx.report(now=NOW)
        assert ctx.report(now=NOW) is first
        assert ctx.report(now=date(2025, 3, 1)) is not first

    def test_invalidate_reloads(self, settings, snapshot_dir):
        ctx = SnapshotContext(settings)
        first = ctx.report(now=NOW)
        (snapshot_dir / "countryCountTotal_h3n2.json").write_text(
            json.dumps([{"totalNumIsolates": 1, "totalNumCountries": 1}]), encoding="utf-8"
        )
        assert ctx.report(now=NOW) is first

        ctx.invalidate()
        assert not ctx.is_loaded
        assert ctx.report(now=NOW).kpis.totals.total_sequences == 1201

    def test_no_atlas_configured(self, settings):
        assert SnapshotContext(settings).atlas_names == ()


class TestAtlasNames:
    def test_topojson(self):
        atlas = {"type": "Topology", "objects": {"countries": {"geometries": [
            {"properties": {"name": "France"}},
            {"properties": {"name": "Chad"}},
            {"properties": {}},
        ]}}}
        assert atlas_country_names(atlas) == ("Chad", "France")

    def test_geojson(self):
        atlas = {"type": "FeatureCollection", "features": [
            {"properties": {"name": "Peru"}},
        ]}
        assert atlas_country_names(atlas) == ("Peru",)

    def test_unknown_shape(self):
        with pytest.warns(SourceShapeMismatch):
            assert atlas_country_names([1, 2]) == ()
