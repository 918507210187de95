#!/usr/bin/env python3
"""
Build Dashboard Report

Loads one published snapshot, derives every dashboard structure
(progression, monthly counts, country aggregates, watchlists, KPIs) and
writes them as a single JSON document.

Output: results/dashboard_report.json (data.report_output in config)

Usage:
    python scripts/build_dashboard_report.py
    python scripts/build_dashboard_report.py --data-dir data/snapshot --now 2025-03-01
"""
import sys
import argparse
import json
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from variant_tracker.config import get_project_root, load_config, settings_from_config
from variant_tracker.data.context import SnapshotContext
from variant_tracker.report import report_to_dict


def main():
    parser = argparse.ArgumentParser(description="Build the dashboard report of one snapshot")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    parser.add_argument("--data-dir", type=str, default=None, help="Override data.snapshot_dir")
    parser.add_argument("--output", type=str, default=None, help="Override data.report_output")
    parser.add_argument("--now", type=str, default=None, help="Reference date YYYY-MM-DD (default: today)")
    args = parser.parse_args()

    # Load config
    root = get_project_root()
    cfg = load_config(str(root / args.config))
    if args.data_dir:
        cfg.setdefault('data', {})['snapshot_dir'] = str(Path(args.data_dir).resolve())
    if args.output:
        cfg.setdefault('data', {})['report_output'] = str(Path(args.output).resolve())
    settings = settings_from_config(cfg)

    now = datetime.strptime(args.now, "%Y-%m-%d").date() if args.now else None

    print("=" * 60)
    print("VARIANT TRACKER - BUILD DASHBOARD REPORT")
    print("=" * 60)

    ctx = SnapshotContext(settings, verbose=True)
    if ctx.atlas_names:
        print(f"  ✓ Atlas: {len(ctx.atlas_names)} canonical country names")

    report = ctx.report(now=now)

    # Summary
    kpis = report.kpis
    print("\n" + "=" * 60)
    print("REPORT SUMMARY")
    print("=" * 60)
    print(f"Reference date: {report.now}")
    print(f"Weeks in progression: {len(report.progression)}")
    print(f"Months: {len(report.global_monthly)}")
    print(f"Countries: {len(report.countries)}")
    print(f"Point footprint: {len(report.footprint)} locations")
    print(f"Total sequences: {kpis.totals.total_sequences:,}")
    print(f"Countries reporting: {kpis.totals.countries_reporting}")
    print(f"Dominant subtype (last {kpis.dominant.n_periods} weeks): {kpis.dominant.label}")
    if kpis.latency.mean_days is not None:
        print(f"Mean reporting latency: {kpis.latency.mean_days:.1f} days "
              f"({kpis.latency.n_samples} samples, {kpis.latency.n_excluded} excluded)")
    else:
        print("Mean reporting latency: n/a")
    print(f"Data last updated: {kpis.last_updated.label}")

    for sub in report.by_subtype.values():
        missing = [category for category, ok in sub.available.items() if not ok]
        status = f"unavailable: {', '.join(missing)}" if missing else "all sources available"
        print(f"  → {sub.label}: {len(sub.watchlist)} watchlist variants ({status})")

    output_path = settings.report_output
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(report_to_dict(report), f, indent=2, ensure_ascii=False)

    print(f"\n✓ Report saved to {output_path}")
    return report


if __name__ == "__main__":
    main()
