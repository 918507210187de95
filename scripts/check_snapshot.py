#!/usr/bin/env python3
"""
Snapshot Sanity Check

Quick verification that a snapshot directory is usable:
1. Config loads
2. Every source file exists and is a JSON array
3. Records parse (skipped-record counts per file)
4. Data-quality warnings raised while parsing

Usage:
    python scripts/check_snapshot.py
    python scripts/check_snapshot.py --data-dir data/snapshot
"""
import sys
import argparse
import warnings
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from variant_tracker.config import get_project_root, load_config, settings_from_config
from variant_tracker.data.loader import PARSERS, load_snapshot


def check_sources(snapshot, subtypes):
    """Print one line per source file; returns the number of unavailable files."""
    unavailable = 0
    for category in PARSERS:
        for subtype in subtypes:
            result = snapshot.category(category)[subtype]
            if not result.available:
                unavailable += 1
                print(f"  ✗ {category}/{subtype}: unavailable")
                continue
            skipped = f", {result.n_skipped} skipped" if result.n_skipped else ""
            print(f"  ✓ {category}/{subtype}: {len(result)} records{skipped}")
    return unavailable


def main():
    parser = argparse.ArgumentParser(description="Check a snapshot directory")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    parser.add_argument("--data-dir", type=str, default=None, help="Override data.snapshot_dir")
    args = parser.parse_args()

    print("=" * 60)
    print("VARIANT TRACKER - SNAPSHOT CHECK")
    print("=" * 60)

    print("Checking config...", end=" ")
    try:
        cfg = load_config(str(get_project_root() / args.config))
        if args.data_dir:
            cfg.setdefault('data', {})['snapshot_dir'] = str(Path(args.data_dir).resolve())
        settings = settings_from_config(cfg)
        print("✓")
    except (FileNotFoundError, ValueError, KeyError) as e:
        print(f"✗ ({e})")
        sys.exit(1)

    print(f"Checking sources in {settings.snapshot_dir}...")
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        snapshot = load_snapshot(settings.snapshot_dir, settings.subtypes, files=settings.files, verbose=False)
    unavailable = check_sources(snapshot, settings.subtypes)

    if caught:
        print(f"\nData-quality warnings ({len(caught)}):")
        for w in caught:
            print(f"  → [{w.category.__name__}] {w.message}")

    total = len(PARSERS) * len(settings.subtypes)
    print("\n" + "=" * 60)
    if unavailable == 0:
        print(f"ALL SOURCES AVAILABLE ({total}/{total}) ✓")
    else:
        print(f"SOURCES UNAVAILABLE ({unavailable}/{total}) ✗")
        print("The dashboard will show 'data unavailable' for these sections.")
        sys.exit(1)


if __name__ == "__main__":
    main()
