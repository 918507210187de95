"""Discrete classifiers over derived counts (dominance, recency)."""

from variant_tracker.labels.dominance import Dominance, classify_dominance, dominance_label, subtype_share
from variant_tracker.labels.recency import RecencyBand, age_in_days, classify_recency

__all__ = [
    'Dominance',
    'classify_dominance',
    'dominance_label',
    'subtype_share',
    'RecencyBand',
    'age_in_days',
    'classify_recency',
]
