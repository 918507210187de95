"""
Snapshot Context

Single owner of the resources shared by every derived view:
- the parsed snapshot (loaded lazily on first access)
- the atlas's canonical country names (loaded lazily, optional)
- the last built DashboardReport (memoized per reference date)

Everything is read-only once loaded. ``invalidate()`` is the only way to
drop it, e.g. when a new snapshot has been published into the directory.
"""

from __future__ import annotations

import warnings
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from variant_tracker.common.errors import SourceShapeMismatch
from variant_tracker.config import Settings
from variant_tracker.report import DashboardReport, build_dashboard_report
from variant_tracker.data.loader import Snapshot, load_snapshot, read_json


def _geometry_names(geometries: Any) -> List[str]:
    names = []
    for geometry in geometries or []:
        properties = geometry.get('properties') if isinstance(geometry, dict) else None
        name = properties.get('name') if isinstance(properties, dict) else None
        if name:
            names.append(str(name))
    return names


def atlas_country_names(atlas: Any) -> Tuple[str, ...]:
    """
    Country names of a decoded world atlas.

    Accepts TopoJSON (``objects.<layer>.geometries[].properties.name``) and
    GeoJSON (``features[].properties.name``). Returns sorted unique names;
    an unrecognised shape yields an empty tuple with a SourceShapeMismatch
    warning.
    """
    names: List[str] = []
    if isinstance(atlas, dict) and atlas.get('type') == 'Topology':
        for layer in (atlas.get('objects') or {}).values():
            if isinstance(layer, dict):
                names.extend(_geometry_names(layer.get('geometries')))
    elif isinstance(atlas, dict) and atlas.get('type') == 'FeatureCollection':
        names.extend(_geometry_names(atlas.get('features')))
    else:
        warnings.warn("Atlas is neither TopoJSON nor GeoJSON", SourceShapeMismatch, stacklevel=2)
    return tuple(sorted(set(names)))


class SnapshotContext:
    """
    Lazily loaded, explicitly invalidated snapshot resources.

    Pass one instance by reference to every consumer instead of reloading
    the snapshot per view.

    Example:
        >>> ctx = SnapshotContext(load_settings())
        >>> report = ctx.report()
        >>> ctx.invalidate()   # new snapshot published
    """

    def __init__(self, settings: Settings, verbose: bool = False):
        self.settings = settings
        self.verbose = verbose
        self._snapshot: Optional[Snapshot] = None
        self._atlas_names: Optional[Tuple[str, ...]] = None
        self._report: Optional[DashboardReport] = None
        self._report_date: Optional[date] = None

    @property
    def snapshot(self) -> Snapshot:
        if self._snapshot is None:
            self._snapshot = load_snapshot(
                self.settings.snapshot_dir,
                self.settings.subtypes,
                files=self.settings.files,
                verbose=self.verbose,
            )
        return self._snapshot

    @property
    def atlas_names(self) -> Tuple[str, ...]:
        """Canonical country names; empty when no atlas is configured."""
        if self._atlas_names is None:
            atlas_path: Optional[Path] = self.settings.atlas
            if atlas_path is None:
                self._atlas_names = ()
            else:
                raw = read_json(atlas_path)
                self._atlas_names = atlas_country_names(raw) if raw is not None else ()
        return self._atlas_names

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def report(self, now: Optional[Union[date, datetime]] = None) -> DashboardReport:
        """DashboardReport for ``now`` (default today), built once per date."""
        if isinstance(now, datetime):
            now = now.date()
        now = now or date.today()
        if self._report is None or self._report_date != now:
            self._report = build_dashboard_report(
                self.snapshot,
                self.settings,
                now=now,
                canonical_names=self.atlas_names or None,
            )
            self._report_date = now
        return self._report

    def invalidate(self) -> None:
        """Drop the snapshot, atlas names and memoized report."""
        self._snapshot = None
        self._atlas_names = None
        self._report = None
        self._report_date = None
