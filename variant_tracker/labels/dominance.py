"""
Dominance Classification for the Variant Tracker

Two-way subtype comparison used everywhere the dashboard compares A vs B
(map coloring, headline KPI, per-country breakdown):

    p = A / (A + B)
    p > 0.6  -> A dominant
    p < 0.4  -> B dominant
    else     -> mixed          (also when A + B = 0)

The 0.6 / 0.4 thresholds are fixed policy (see common.constants).
"""

from __future__ import annotations

import warnings
from enum import Enum
from typing import Optional, Sequence

from variant_tracker.common.constants import DOMINANCE_LOWER, DOMINANCE_UPPER
from variant_tracker.common.errors import InvalidSnapshot


class Dominance(Enum):
    """Outcome of a two-way subtype comparison."""
    A_DOMINANT = "a_dominant"
    B_DOMINANT = "b_dominant"
    MIXED = "mixed"


def _non_negative(value: float, name: str) -> float:
    if value < 0:
        warnings.warn(f"Negative count for {name} ({value}); using 0", InvalidSnapshot, stacklevel=3)
        return 0
    return value


def subtype_share(count_a: float, count_b: float) -> Optional[float]:
    """Share of subtype A in A + B, or None when both are zero."""
    count_a = _non_negative(count_a, "A")
    count_b = _non_negative(count_b, "B")
    total = count_a + count_b
    if total == 0:
        return None
    return count_a / total


def classify_dominance(count_a: float, count_b: float) -> Dominance:
    """
    Classify which subtype dominates.

    Args:
        count_a: Non-negative count of subtype A
        count_b: Non-negative count of subtype B

    Returns:
        Dominance label; MIXED when there is nothing to compare
    """
    share = subtype_share(count_a, count_b)
    if share is None:
        return Dominance.MIXED
    if share > DOMINANCE_UPPER:
        return Dominance.A_DOMINANT
    if share < DOMINANCE_LOWER:
        return Dominance.B_DOMINANT
    return Dominance.MIXED


def dominance_label(dominance: Dominance, subtype_labels: Sequence[str]) -> str:
    """Display label: the dominant subtype's name, or "Mixed"."""
    if len(subtype_labels) != 2:
        raise ValueError(f"Dominance compares exactly 2 subtypes, got {len(subtype_labels)}")
    if dominance is Dominance.A_DOMINANT:
        return subtype_labels[0]
    if dominance is Dominance.B_DOMINANT:
        return subtype_labels[1]
    return "Mixed"
