"""Tests for variant_tracker.config: YAML loading and typed settings."""

import pytest
import yaml

from variant_tracker.config import (
    get_data_path,
    get_project_root,
    load_config,
    load_settings,
    settings_from_config,
)


class TestLoadConfig:
    def test_default_config_loads(self):
        cfg = load_config()
        assert 'data' in cfg
        assert 'subtypes' in cfg
        assert 'analysis' in cfg

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_custom_file(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text(yaml.safe_dump({'subtypes': [{'key': 'a'}, {'key': 'b'}]}))
        assert load_config(str(path))['subtypes'][0]['key'] == 'a'

    def test_empty_file_is_empty_dict(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)) == {}


class TestSettings:
    def test_defaults(self):
        settings = load_settings()
        assert settings.subtypes == ('h1n1', 'h3n2')
        assert settings.subtype_labels == ('H1N1', 'H3N2')
        assert settings.dominance_window == 4
        assert settings.top_countries == 20
        assert settings.watchlist_size == 10
        assert settings.fuzzy_score_threshold == 90
        assert settings.files['geo'] == "map_{subtype}.json"
        assert settings.atlas is None

    def test_relative_paths_resolved_from_root(self):
        settings = load_settings()
        assert settings.snapshot_dir == get_project_root() / "data" / "snapshot"

    def test_absolute_path_kept(self, tmp_path):
        assert get_data_path(str(tmp_path)) == tmp_path

    def test_label_defaults_to_key(self):
        settings = settings_from_config({'subtypes': [{'key': 'a'}, {'key': 'b'}]})
        assert settings.subtype_labels == ('a', 'b')

    def test_analysis_override(self):
        cfg = load_config()
        cfg['analysis']['top_countries'] = 5
        assert settings_from_config(cfg).top_countries == 5

    def test_exactly_two_subtypes(self):
        cfg = load_config()
        cfg['subtypes'].append({'key': 'b_victoria'})
        with pytest.raises(ValueError):
            settings_from_config(cfg)

    def test_unknown_analysis_key(self):
        cfg = load_config()
        cfg['analysis']['smoothing'] = 3
        with pytest.raises(ValueError):
            settings_from_config(cfg)

    def test_template_needs_placeholder(self):
        cfg = load_config()
        cfg['data']['files']['geo'] = "map.json"
        with pytest.raises(ValueError):
            settings_from_config(cfg)

    def test_unknown_frequency_field(self):
        cfg = load_config()
        cfg['analysis']['region_frequency_field'] = "percOfEverything"
        with pytest.raises(ValueError):
            settings_from_config(cfg)
