"""Configuration management for the annotation engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Default configuration file path
DEFAULT_CONFIG_PATH = Path("annotator.yaml")


@dataclass
class EngineConfig:
    """
    Engine configuration settings.

    Interaction thresholds, zoom range and rendering preferences.
    """

    min_zoom: float = 0.5
    max_zoom: float = 2.0
    zoom_step: float = 0.25
    min_box_size: float = 10.0  # Image-space pixels, both axes
    default_confidence: int = 95  # 0-100
    max_history_entries: int = 100  # Per item
    brush_radius: int = 20
    min_brush_radius: int = 5
    max_brush_radius: int = 50
    handle_tolerance: float = 10.0  # Screen pixels
    mask_opacity: float = 0.5
    strict_completion: bool = False  # Require every label on an item
    auto_advance_keypoints: bool = True
    show_labels: bool = True
    line_thickness: int = 2
    font_size: int = 12

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "minZoom": self.min_zoom,
            "maxZoom": self.max_zoom,
            "zoomStep": self.zoom_step,
            "minBoxSize": self.min_box_size,
            "defaultConfidence": self.default_confidence,
            "maxHistoryEntries": self.max_history_entries,
            "brushRadius": self.brush_radius,
            "minBrushRadius": self.min_brush_radius,
            "maxBrushRadius": self.max_brush_radius,
            "handleTolerance": self.handle_tolerance,
            "maskOpacity": self.mask_opacity,
            "strictCompletion": self.strict_completion,
            "autoAdvanceKeypoints": self.auto_advance_keypoints,
            "showLabels": self.show_labels,
            "lineThickness": self.line_thickness,
            "fontSize": self.font_size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EngineConfig:
        """Create config from dictionary."""
        config = cls(
            min_zoom=data.get("minZoom", 0.5),
            max_zoom=data.get("maxZoom", 2.0),
            zoom_step=data.get("zoomStep", 0.25),
            min_box_size=data.get("minBoxSize", 10.0),
            default_confidence=data.get("defaultConfidence", 95),
            max_history_entries=data.get("maxHistoryEntries", 100),
            brush_radius=data.get("brushRadius", 20),
            min_brush_radius=data.get("minBrushRadius", 5),
            max_brush_radius=data.get("maxBrushRadius", 50),
            handle_tolerance=data.get("handleTolerance", 10.0),
            mask_opacity=data.get("maskOpacity", 0.5),
            strict_completion=data.get("strictCompletion", False),
            auto_advance_keypoints=data.get("autoAdvanceKeypoints", True),
            show_labels=data.get("showLabels", True),
            line_thickness=data.get("lineThickness", 2),
            font_size=data.get("fontSize", 12),
        )
        if config.min_zoom > config.max_zoom:
            logger.warning(
                f"minZoom {config.min_zoom} exceeds maxZoom {config.max_zoom}, swapping"
            )
            config.min_zoom, config.max_zoom = config.max_zoom, config.min_zoom
        return config


class ConfigManager:
    """
    Manager for loading and saving engine configuration.

    Handles YAML serialization and provides a clean interface
    for configuration access.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Optional[EngineConfig] = None

    @property
    def config(self) -> EngineConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> EngineConfig:
        """
        Load configuration from file.

        Returns:
            EngineConfig instance with loaded or default values
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return EngineConfig()

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {self.config_path}")
            return EngineConfig.from_dict(data)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            return EngineConfig()
        except OSError as e:
            logger.error(f"Error loading config: {e}")
            return EngineConfig()

    def save(self, config: Optional[EngineConfig] = None) -> bool:
        """
        Save configuration to file.

        Args:
            config: Configuration to save, or use current config

        Returns:
            True if save was successful
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        try:
            with open(self.config_path, "w") as f:
                yaml.dump(self._config.to_dict(), f, default_flow_style=False)
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False

    def update(self, **kwargs: Any) -> None:
        """
        Update configuration with new values.

        Args:
            **kwargs: Key-value pairs to update
        """
        config = self.config
        for key, value in kwargs.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown config key: {key}")
        self.save()
