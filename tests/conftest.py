"""Shared fixtures: a small two-subtype snapshot in its published JSON shape."""

import copy
import json

import pytest

from variant_tracker.config import load_config, settings_from_config
from variant_tracker.data.loader import DEFAULT_FILES, parse_snapshot


SUBTYPES = ("h1n1", "h3n2")


_RAW = {
    "weekly": {
        "h1n1": [
            {
                "continent": "Europe",
                "numCountriesInContinent": 40,
                "weeklyData": [
                    {"year": 2024, "weekNum": 52, "numIsolates": 10, "numCountries": 3,
                     "percOfUKVUI_4wkavg": 12.5},
                    {"year": 2025, "weekNum": 1, "numIsolates": 20, "numCountries": 4,
                     "percOfUKVUI_4wkavg": 15.0},
                    {"year": 2025, "weekNum": 2, "numIsolates": 30, "numCountries": 5,
                     "percOfUKVUI_4wkavg": 17.5},
                ],
            },
            {
                "continent": "Asia",
                "numCountriesInContinent": 48,
                "weeklyData": [
                    {"year": 2025, "weekNum": 1, "numIsolates": 5},
                    {"year": 2025, "weekNum": 3, "numIsolates": 15},
                ],
            },
        ],
        "h3n2": [
            {
                "continent": "Europe",
                "weeklyData": [
                    {"year": 2025, "weekNum": 2, "numIsolates": 40},
                    {"year": 2025, "weekNum": 4, "numIsolates": 8},
                ],
            },
        ],
    },
    "totals": {
        "h1n1": [{"totalNumIsolates": 1200, "totalNumCountries": 45,
                  "utcTimestamp": "2025-02-05 14:03:11 UTC"}],
        "h3n2": [{"totalNumIsolates": 800, "totalNumCountries": 30,
                  "utcTimestamp": "2025-02-06 09:00:00 UTC"}],
    },
    "geo": {
        "h1n1": [
            {"city": "Boston", "country": "United States", "lat": "42.36", "lng": "-71.06", "count": 5},
            {"city": "Paris", "country": "France", "lat": "48.85", "lng": "2.35", "count": 3},
        ],
        "h3n2": [
            {"city": "Boston", "country": "United States of America", "lat": "42.36", "lng": "-71.06",
             "count": 2},
            {"city": "Chicago", "country": "United States of America", "lat": "41.88", "lng": "-87.63",
             "count": 9},
        ],
    },
    "variants": {
        "h1n1": [
            {
                "uniqueId": "v1",
                "cladeLineage": "5a.2a.1",
                "dissimilarityProtmutlist": "HA1:K54Q,HA1:A186T",
                "currRanking": 2,
                "prevRanking": 5,
                "weeklyGrowthRate": 0.1,
                "cumLoc": [
                    {"yearweek": 202503, "count": 225},
                    {"yearweek": 202501, "count": 100},
                    {"yearweek": 202502, "count": 150},
                ],
                "map": [
                    {"city": "Lyon", "ctry": "France", "lat": "45.76", "lng": "4.84", "ct": 4,
                     "dt": "20250128"},
                ],
                "continents": [
                    {"continent": "Europe", "monthlydata": [
                        {"date": "202501", "count": 3},
                        {"date": "202502", "count": 5},
                    ]},
                    {"continent": "Asia", "monthlydata": [
                        {"date": "202502", "count": 1},
                    ]},
                ],
            },
            {
                "cladeLineage": "5a.2a",
                "dissimilarityProtmutlist": "HA1:T120A",
                "currRanking": 1,
                "weeklyGrowthRate": 0.25,
                "cumLoc": [],
            },
        ],
        "h3n2": [],
    },
    "samples": {
        "h1n1": [
            {"strain": "A/Boston/1/2025", "country": "United States",
             "collectionDate": "2025-01-01", "submissionDate": "2025-01-05"},
            {"strain": "A/Paris/2/2025", "country": "France",
             "collectionDate": "2025-01-10", "submissionDate": "2025-01-08"},
        ],
        "h3n2": [
            {"strain": "A/Tokyo/3/2025", "country": "Japan",
             "collectionDate": "2025-01-03", "submissionDate": "2025-01-09"},
        ],
    },
}


@pytest.fixture
def raw_payloads():
    """category -> subtype -> decoded JSON (a fresh copy per test)."""
    return copy.deepcopy(_RAW)


@pytest.fixture
def snapshot(raw_payloads):
    return parse_snapshot(raw_payloads, SUBTYPES)


@pytest.fixture
def snapshot_dir(tmp_path, raw_payloads):
    """The fixture snapshot written out with the default file names."""
    directory = tmp_path / "snapshot"
    directory.mkdir()
    for category, by_subtype in raw_payloads.items():
        for subtype, payload in by_subtype.items():
            path = directory / DEFAULT_FILES[category].format(subtype=subtype)
            path.write_text(json.dumps(payload), encoding="utf-8")
    return directory


@pytest.fixture
def settings(snapshot_dir):
    cfg = load_config()
    cfg['data']['snapshot_dir'] = str(snapshot_dir)
    cfg['data']['report_output'] = str(snapshot_dir.parent / "report.json")
    return settings_from_config(cfg)
