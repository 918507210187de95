"""Evaluation module - headline KPIs and recent-sample tables."""

from variant_tracker.evaluation.kpi import (
    HeadlineTotals,
    DominantSubtype,
    LatencySummary,
    LastUpdated,
    KpiSummary,
    headline_totals,
    current_dominance,
    reporting_latency,
    last_updated,
    most_recent_samples,
    build_kpis
)

__all__ = [
    'HeadlineTotals',
    'DominantSubtype',
    'LatencySummary',
    'LastUpdated',
    'KpiSummary',
    'headline_totals',
    'current_dominance',
    'reporting_latency',
    'last_updated',
    'most_recent_samples',
    'build_kpis'
]
