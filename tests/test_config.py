"""Tests for configuration management."""

import pytest
from pathlib import Path
import tempfile

from annotator_engine.core.config import EngineConfig, ConfigManager


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_default_config(self):
        """Test creating config with defaults."""
        config = EngineConfig()

        assert config.min_zoom == 0.5
        assert config.max_zoom == 2.0
        assert config.zoom_step == 0.25
        assert config.min_box_size == 10.0
        assert config.default_confidence == 95
        assert config.max_history_entries == 100
        assert config.brush_radius == 20
        assert config.strict_completion is False
        assert config.auto_advance_keypoints is True

    def test_custom_config(self):
        """Test creating config with custom values."""
        config = EngineConfig(
            min_box_size=4,
            mask_opacity=0.8,
            show_labels=False
        )

        assert config.min_box_size == 4
        assert config.mask_opacity == 0.8
        assert config.show_labels is False

    def test_to_dict(self):
        """Test converting config to dictionary."""
        config = EngineConfig(max_zoom=3.0, strict_completion=True)

        data = config.to_dict()

        assert data["maxZoom"] == 3.0
        assert data["strictCompletion"] is True
        assert "handleTolerance" in data

    def test_from_dict(self):
        """Test creating config from dictionary."""
        data = {
            "minZoom": 0.25,
            "maxZoom": 4.0,
            "minBoxSize": 6,
            "brushRadius": 30,
            "autoAdvanceKeypoints": False
        }

        config = EngineConfig.from_dict(data)

        assert config.min_zoom == 0.25
        assert config.max_zoom == 4.0
        assert config.min_box_size == 6
        assert config.brush_radius == 30
        assert config.auto_advance_keypoints is False

    def test_from_dict_with_defaults(self):
        """Test creating config from partial dictionary."""
        config = EngineConfig.from_dict({"fontSize": 14})

        assert config.font_size == 14
        assert config.line_thickness == 2  # default
        assert config.max_history_entries == 100  # default

    def test_inverted_zoom_range_swapped(self):
        """Test that an inverted zoom range is corrected."""
        config = EngineConfig.from_dict({"minZoom": 3.0, "maxZoom": 1.0})

        assert (config.min_zoom, config.max_zoom) == (1.0, 3.0)

    def test_dict_round_trip(self):
        """Test that to_dict and from_dict agree."""
        config = EngineConfig(min_box_size=12, mask_opacity=0.3, font_size=9)

        assert EngineConfig.from_dict(config.to_dict()) == config


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_load_nonexistent_file(self):
        """Test loading config when file doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "nonexistent.yaml"
            manager = ConfigManager(config_path)

            config = manager.load()

            # Should return default config
            assert config == EngineConfig()

    def test_load_file(self, sample_config_yaml):
        """Test loading a YAML file."""
        config = ConfigManager(sample_config_yaml).load()

        assert config.min_zoom == 0.25
        assert config.max_zoom == 4.0
        assert config.min_box_size == 8
        assert config.strict_completion is True

    def test_invalid_yaml_falls_back(self, temp_dir):
        """Test that a malformed file yields defaults."""
        config_path = temp_dir / "broken.yaml"
        config_path.write_text("minZoom: [unclosed\n")

        config = ConfigManager(config_path).load()

        assert config == EngineConfig()

    def test_save_and_load(self):
        """Test saving and loading config."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            manager = ConfigManager(config_path)

            config = EngineConfig(min_box_size=5, show_labels=False)
            assert manager.save(config)

            loaded = manager.load()

            assert loaded.min_box_size == 5
            assert loaded.show_labels is False

    def test_save_without_config(self, temp_dir):
        """Test that saving with nothing loaded is refused."""
        manager = ConfigManager(temp_dir / "config.yaml")

        assert manager.save() is False

    def test_update(self):
        """Test updating config values."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            manager = ConfigManager(config_path)

            manager.update(brush_radius=35, not_a_setting=1)

            assert manager.config.brush_radius == 35
            assert not hasattr(manager.config, "not_a_setting")
            assert ConfigManager(config_path).load().brush_radius == 35

    def test_config_property(self):
        """Test config property lazy loading."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            manager = ConfigManager(config_path)

            # First access loads config
            config1 = manager.config
            config2 = manager.config

            # Should return same instance
            assert config1 is config2
