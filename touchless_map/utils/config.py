"""
Centralized configuration manager.
Loads YAML configs and provides typed access with defaults.

Every tunable of the control pipeline (smoothing, gesture thresholds,
debounce window, dead zone, flick physics, viewport rates) lives here so
nothing is hardcoded in the stages themselves. The file is deep-merged over
DEFAULTS, so a partial config.yaml only has to name what it changes.
"""

import copy
import os
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

DEFAULTS = {
    "system": {
        "name": "Touchless Map Control",
        "version": "1.0.0",
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_size_mb": 10,
        "backup_count": 3,
    },
    "tracking": {
        "max_hands": 2,
        "min_hand_spread": 0.02,
    },
    "smoothing": {
        "landmark_alpha": 0.5,
        "pinch_alpha": 0.3,
    },
    "gestures": {
        "thumb_curl_ratio": 0.5,
        "curl_tolerance_ratio": 0.2,
        "close_pinch_ratio": 0.75,
        "index_middle_min_ratio": 0.58,
        "fingers_closed_ratio": 0.8,
        "spread_angle_deg": 60.0,
        "require_fingers_closed": True,
    },
    "modes": {
        "debounce_frames": 3,
        "geometric_fireworks": False,
        "category_modes": {
            "Closed_Fist": "IDLE",
            "Open_Palm": "FIREWORKS",
            "Pointing_Up": "PANNING",
        },
    },
    "dead_zone": {
        "center": [0.5, 0.5],
        "radius": 0.1,
    },
    "vectors": {
        "pan_speed_amplifier": 1.4,
    },
    "viewport": {
        "width": 1280,
        "height": 720,
        "pan_base_speed_px_s": 500.0,
        "zoom_speed_multiplier": 3.0,
        "max_zoom_speed": 1.0,
        "zoom_dead_zone_threshold": 0.02,
        "max_tick_gap_ms": 100.0,
    },
    "flick": {
        "velocity_threshold": 1.2,
        "launch_multiplier": 0.8,
        "decay": 0.95,
        "stop_threshold": 0.02,
        "cooldown_ms": 300.0,
        "reference_tick_ms": 16.0,
    },
    "fireworks": {
        "duration_ms": 5000.0,
    },
    "camera": {
        "device_id": 0,
        "width": 1280,
        "height": 720,
        "flip_horizontal": True,
    },
    "recognizer": {
        "model_path": "",
        "min_detection_confidence": 0.5,
        "min_presence_confidence": 0.5,
        "min_tracking_confidence": 0.5,
    },
    "performance": {
        "metrics_window": 100,
    },
}

# Schema: sections and their expected types
_CONFIG_SCHEMA = {
    "tracking": {
        "max_hands": int,
        "min_hand_spread": float,
    },
    "smoothing": {
        "landmark_alpha": float,
        "pinch_alpha": float,
    },
    "gestures": {
        "thumb_curl_ratio": float,
        "curl_tolerance_ratio": float,
        "close_pinch_ratio": float,
        "index_middle_min_ratio": float,
        "fingers_closed_ratio": float,
        "spread_angle_deg": float,
        "require_fingers_closed": bool,
    },
    "modes": {
        "debounce_frames": int,
        "geometric_fireworks": bool,
        "category_modes": dict,
    },
    "dead_zone": {
        "center": list,
        "radius": float,
    },
    "vectors": {
        "pan_speed_amplifier": float,
    },
    "viewport": {
        "width": int,
        "height": int,
        "pan_base_speed_px_s": float,
        "zoom_speed_multiplier": float,
        "max_zoom_speed": float,
    },
    "flick": {
        "velocity_threshold": float,
        "launch_multiplier": float,
        "decay": float,
        "stop_threshold": float,
        "cooldown_ms": float,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Singleton configuration manager."""

    _instance = None
    _data = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._data = copy.deepcopy(DEFAULTS)
        return cls._instance

    def load(self, config_path=None):
        """Load configuration from a YAML file over the built-in defaults."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")

        try:
            with open(config_path, "r") as f:
                file_data = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            file_data = {}

        if not isinstance(file_data, dict):
            logger.warning("Config root should be a mapping, got %s; using defaults",
                           type(file_data).__name__)
            file_data = {}

        self._data = _deep_merge(copy.deepcopy(DEFAULTS), file_data)
        self._validate()
        return self

    def load_dict(self, data: dict):
        """Merge an in-memory dict over the defaults (tests, embedding hosts)."""
        self._data = _deep_merge(copy.deepcopy(DEFAULTS), data or {})
        self._validate()
        return self

    def _validate(self):
        """Validate critical config fields against schema."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if section is None:
                warnings.append(f"Missing config section: '{section_name}'")
                continue
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name in section:
                    value = section[field_name]
                    # Allow int where float is expected
                    if expected_type is float and isinstance(value, (int, float)) \
                            and not isinstance(value, bool):
                        continue
                    if not isinstance(value, expected_type):
                        warnings.append(
                            f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                            f"got {type(value).__name__} ({value!r})"
                        )

        if warnings:
            for w in warnings:
                logger.warning("Config validation: %s", w)
        else:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'viewport.width'."""
        keys = key_path.split(".")
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value):
        """Set nested config value using dot notation (CLI overrides)."""
        keys = key_path.split(".")
        node = self._data
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section, {})

    @property
    def tracking(self) -> dict:
        return self._data.get("tracking", {})

    @property
    def smoothing(self) -> dict:
        return self._data.get("smoothing", {})

    @property
    def gestures(self) -> dict:
        return self._data.get("gestures", {})

    @property
    def modes(self) -> dict:
        return self._data.get("modes", {})

    @property
    def dead_zone(self) -> dict:
        return self._data.get("dead_zone", {})

    @property
    def vectors(self) -> dict:
        return self._data.get("vectors", {})

    @property
    def viewport(self) -> dict:
        return self._data.get("viewport", {})

    @property
    def flick(self) -> dict:
        return self._data.get("flick", {})

    @property
    def fireworks(self) -> dict:
        return self._data.get("fireworks", {})

    @property
    def camera(self) -> dict:
        return self._data.get("camera", {})

    @property
    def recognizer(self) -> dict:
        return self._data.get("recognizer", {})

    @property
    def performance(self) -> dict:
        return self._data.get("performance", {})

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = {}
