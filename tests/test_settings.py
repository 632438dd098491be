"""
Tests for per-tournament settings.yaml handling.
"""
import pytest
import sys
import os
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from contest.errors import PolicyError, ValidationError
from contest.settings import get_default_settings, load_settings, parse_region_labels, save_settings


class TestSettings:
    """Tests for loading and saving settings."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """Test a tournament without settings.yaml uses defaults."""
        assert load_settings(str(tmp_path)) == get_default_settings()

    def test_defaults_have_no_policy(self):
        """Test ties wait for an operator unless configured."""
        assert get_default_settings()['tie_break_policy'] is None

    def test_partial_file_is_merged(self, tmp_path):
        """Test keys absent from the file come from defaults."""
        (tmp_path / "settings.yaml").write_text(yaml.dump({'tournament_name': 'Snacks'}))
        settings = load_settings(str(tmp_path))
        assert settings['tournament_name'] == 'Snacks'
        assert settings['region_labels'][1] == 'Region 1'

    def test_region_labels_keys_become_integers(self, tmp_path):
        """Test labels written with string keys are keyed by region number."""
        (tmp_path / "settings.yaml").write_text("region_labels:\n  '2': East\n")
        settings = load_settings(str(tmp_path))
        assert settings['region_labels'][2] == 'East'
        assert settings['region_labels'][4] == 'Region 4'

    def test_bad_policy_fails_on_load(self, tmp_path):
        """Test an unknown policy is reported when settings are read."""
        (tmp_path / "settings.yaml").write_text(yaml.dump({'tie_break_policy': 'coin-flip'}))
        with pytest.raises(PolicyError):
            load_settings(str(tmp_path))

    def test_save_and_load(self, tmp_path):
        """Test saved settings load back."""
        settings = get_default_settings()
        settings['tie_break_policy'] = 'favor-higher-seed'
        target = tmp_path / "new"
        save_settings(str(target), settings)
        assert load_settings(str(target))['tie_break_policy'] == 'favor-higher-seed'

    def test_unknown_region_label_key_fails_on_load(self, tmp_path):
        """Test a hand-edited label for a non-region is a ValidationError."""
        (tmp_path / "settings.yaml").write_text(yaml.dump({'region_labels': {'north': 'N'}}))
        with pytest.raises(ValidationError, match="north"):
            load_settings(str(tmp_path))

    def test_region_labels_must_be_mapping(self, tmp_path):
        """Test a list of labels is a ValidationError."""
        (tmp_path / "settings.yaml").write_text(yaml.dump({'region_labels': ['N', 'S']}))
        with pytest.raises(ValidationError, match="mapping"):
            load_settings(str(tmp_path))

    def test_settings_file_must_be_mapping(self, tmp_path):
        """Test a settings file holding a list is rejected."""
        (tmp_path / "settings.yaml").write_text("- a\n- b\n")
        with pytest.raises(ValidationError):
            load_settings(str(tmp_path))

    def test_malformed_yaml_raises(self, tmp_path):
        """Test unparseable YAML surfaces to the caller."""
        (tmp_path / "settings.yaml").write_text("region_labels: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_settings(str(tmp_path))


class TestParseRegionLabels:
    """Tests for reading region label mappings."""

    def test_string_and_int_keys(self):
        """Test JSON string keys and YAML int keys both map to region numbers."""
        assert parse_region_labels({'1': 'North', 3: 'West'}) == {1: 'North', 3: 'West'}

    def test_none_is_empty(self):
        """Test a missing mapping adds no labels."""
        assert parse_region_labels(None) == {}

    def test_rejects_unknown_regions(self):
        """Test keys outside 1-4 are rejected."""
        for bad in ({'north': 'N'}, {5: 'Fifth'}, {0: 'Zero'}, {2.5: 'Half'}, {True: 'Yes'}):
            with pytest.raises(ValidationError):
                parse_region_labels(bad)

    def test_rejects_non_mapping(self):
        """Test lists and strings are rejected."""
        for bad in (['North'], 'North'):
            with pytest.raises(ValidationError):
                parse_region_labels(bad)
