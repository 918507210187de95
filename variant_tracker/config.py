"""
Configuration loader for the Influenza Variant Tracker.
Loads YAML config and provides typed access to settings.
"""
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from variant_tracker.data.loader import DEFAULT_FILES, FREQUENCY_FIELDS


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to config/config_default.yaml

    Returns:
        Dictionary containing all configuration settings
    """
    if config_path is None:
        config_path = get_project_root() / "config" / "config_default.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f)

    return config or {}


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


def get_data_path(relative_path: str) -> Path:
    """
    Get absolute path for a data file.

    Args:
        relative_path: Path relative to project root (e.g., "data/snapshot")

    Returns:
        Absolute Path object (unchanged if already absolute)
    """
    path = Path(relative_path)
    return path if path.is_absolute() else get_project_root() / path


# =============================================================================
# TYPED SETTINGS
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """Typed view of the config sections the report builder needs."""
    snapshot_dir: Path
    files: Mapping[str, str]
    atlas: Optional[Path]
    report_output: Path
    subtypes: Tuple[str, ...]
    subtype_labels: Tuple[str, ...]
    dominance_window: int = 4
    growth_window: int = 4
    top_countries: int = 20
    watchlist_size: int = 10
    recent_samples: int = 10
    region_frequency_field: str = 'percOfUKVUI_4wkavg'
    fuzzy_score_threshold: int = 90


_ANALYSIS_KEYS = (
    'dominance_window',
    'growth_window',
    'top_countries',
    'watchlist_size',
    'recent_samples',
    'region_frequency_field',
)


def settings_from_config(cfg: Dict[str, Any]) -> Settings:
    """
    Validate a loaded config dict and convert it to Settings.

    Raises:
        ValueError: Unknown file category or analysis key, a subtype list
            that is not exactly two entries, or an unknown frequency field
    """
    data = cfg.get('data', {}) or {}
    files = dict(DEFAULT_FILES)
    for category, template in (data.get('files') or {}).items():
        if category not in DEFAULT_FILES:
            raise ValueError(f"Unknown data file category: {category}")
        if '{subtype}' not in template:
            raise ValueError(f"File template for '{category}' lacks a {{subtype}} placeholder")
        files[category] = template

    subtypes = cfg.get('subtypes') or []
    if len(subtypes) != 2:
        raise ValueError(f"Exactly 2 subtypes are compared, config lists {len(subtypes)}")
    keys = tuple(str(entry['key']) for entry in subtypes)
    labels = tuple(str(entry.get('label', entry['key'])) for entry in subtypes)

    analysis = cfg.get('analysis', {}) or {}
    unknown = set(analysis) - set(_ANALYSIS_KEYS)
    if unknown:
        raise ValueError(f"Unknown analysis settings: {sorted(unknown)}")
    field = analysis.get('region_frequency_field', 'percOfUKVUI_4wkavg')
    if field not in FREQUENCY_FIELDS:
        raise ValueError(f"Unknown frequency field: {field}")

    atlas = data.get('atlas')
    geo = cfg.get('geo', {}) or {}

    return Settings(
        snapshot_dir=get_data_path(data.get('snapshot_dir', 'data/snapshot')),
        files=MappingProxyType(files),
        atlas=get_data_path(atlas) if atlas else None,
        report_output=get_data_path(data.get('report_output', 'results/dashboard_report.json')),
        subtypes=keys,
        subtype_labels=labels,
        region_frequency_field=field,
        fuzzy_score_threshold=int(geo.get('fuzzy_score_threshold', 90)),
        **{key: int(analysis[key]) for key in _ANALYSIS_KEYS
           if key in analysis and key != 'region_frequency_field'},
    )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """load_config + settings_from_config."""
    return settings_from_config(load_config(config_path))
