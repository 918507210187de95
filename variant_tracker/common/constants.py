"""
Policy constants for the variant tracker.

These values reproduce the published dashboard's classifications exactly.
They are NOT read from the YAML config: changing them would break parity
with historical outputs.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping


# =============================================================================
# DOMINANCE (two-way subtype comparison)
# =============================================================================

# share of subtype A above which A is dominant
DOMINANCE_UPPER = 0.6
# share of subtype A below which B is dominant
DOMINANCE_LOWER = 0.4


# =============================================================================
# RECENCY BANDS (days since detection)
# =============================================================================

RECENT_MAX_DAYS = 14
INTERMEDIATE_MAX_DAYS = 45


# =============================================================================
# GROWTH
# =============================================================================

# number of most recent pairwise changes averaged into the smoothed rate
GROWTH_SMOOTHING_WINDOW = 4

# number of most recent periods used for the "currently dominant" KPI
DOMINANCE_WINDOW = 4


# =============================================================================
# SENTINELS & FORMATS
# =============================================================================

UNKNOWN = "unknown"

# "Last updated" stamps, e.g. "2025-02-05 14:03:11 UTC"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


# =============================================================================
# COUNTRY ALIASES
# =============================================================================

# Source spelling -> canonical (atlas) spelling.
COUNTRY_ALIASES: Mapping[str, str] = MappingProxyType({
    "United States": "United States of America",
    "USA": "United States of America",
    "Russian Federation": "Russia",
    "Cote d'Ivoire": "Côte d'Ivoire",
    "Ivory Coast": "Côte d'Ivoire",
    "Korea, Republic of": "South Korea",
    "Republic of Korea": "South Korea",
    "Viet Nam": "Vietnam",
    "Czech Republic": "Czechia",
    "Iran, Islamic Republic of": "Iran",
    "Lao People's Democratic Republic": "Laos",
    "Bolivia, Plurinational State of": "Bolivia",
    "Venezuela, Bolivarian Republic of": "Venezuela",
    "Tanzania, United Republic of": "Tanzania",
    "Syrian Arab Republic": "Syria",
    "Democratic Republic of the Congo": "Dem. Rep. Congo",
    "Central African Republic": "Central African Rep.",
    "Bosnia and Herzegovina": "Bosnia and Herz.",
    "Dominican Republic": "Dominican Rep.",
})
