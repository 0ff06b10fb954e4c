# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for voxcue.
Handles loading and saving settings from a YAML config file.
"""

from pathlib import Path
from typing import Any, TypedDict

import yaml

CONFIG_FILENAME: str = ".voxcue.yaml"


class TrackingSettings(TypedDict):
    """Type definition for tracking configuration settings."""
    lookahead_word_count: int
    confidence_threshold: float
    max_transcript_length: int
    match_expiry_ms: int
    normalized_word_prefix_length: int
    restart_delay_ms: int


class Config(TypedDict):
    """Type definition for the complete configuration."""
    # Server settings
    host: str
    port: int
    # Optional JSONL file that receives every recognition frame
    record_events: str | None
    tracking: TrackingSettings


# Default configuration values
DEFAULT_CONFIG: Config = {
    # Server settings
    "host": "127.0.0.1",
    "port": 8000,
    "record_events": None,

    # Tracking thresholds
    "tracking": {
        "lookahead_word_count": 5,
        "confidence_threshold": 0.85,
        "max_transcript_length": 50,
        "match_expiry_ms": 5000,
        "normalized_word_prefix_length": 5,
        # Browsers refuse to restart recognition immediately after an abort
        "restart_delay_ms": 250,
    },
}


def get_config_path() -> Path:
    """Get the path to the config file in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Deep merge two dictionaries, with override taking precedence.
    Returns a new dictionary without modifying the originals.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, merged with defaults.

    Args:
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        Configuration dictionary with all values (defaults + overrides from file).
    """
    if config_path is None:
        config_path = get_config_path()

    config: dict[str, Any] = _deep_merge({}, DEFAULT_CONFIG)

    if config_path.exists():
        try:
            with open(config_path, encoding='utf-8') as f:
                file_config: dict[str, Any] | None = yaml.safe_load(f)
                if isinstance(file_config, dict):
                    config = _deep_merge(config, file_config)
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Could not load config from {config_path}: {e}")

    return config  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Returns:
        True if save was successful, False otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(dict(config), f, default_flow_style=False, sort_keys=False)
        return True
    except (OSError, yaml.YAMLError) as e:
        print(f"Error saving config to {config_path}: {e}")
        return False


def get_tracking_settings(config: Config) -> TrackingSettings:
    """
    Extract tracking settings from config, filling in any missing keys.

    Args:
        config: Configuration dictionary.

    Returns:
        Tracking settings dictionary.
    """
    return _deep_merge(  # type: ignore[return-value]
        DEFAULT_CONFIG["tracking"], config.get("tracking") or {})


def validate_tracking_settings(settings: TrackingSettings) -> TrackingSettings:
    """
    Check tracking settings are usable and coerce them to their proper types.

    Raises:
        ValueError: If a value is out of range or of the wrong type.
    """
    try:
        checked: TrackingSettings = {
            "lookahead_word_count": int(settings["lookahead_word_count"]),
            "confidence_threshold": float(settings["confidence_threshold"]),
            "max_transcript_length": int(settings["max_transcript_length"]),
            "match_expiry_ms": int(settings["match_expiry_ms"]),
            "normalized_word_prefix_length": int(
                settings["normalized_word_prefix_length"]),
            "restart_delay_ms": int(settings["restart_delay_ms"]),
        }
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid tracking settings: {e}") from e

    if checked["lookahead_word_count"] < 1:
        raise ValueError("lookahead_word_count must be at least 1")
    if not 0.0 <= checked["confidence_threshold"] <= 1.0:
        raise ValueError("confidence_threshold must be between 0 and 1")
    if checked["max_transcript_length"] < 2:
        raise ValueError("max_transcript_length must be at least 2")
    if checked["match_expiry_ms"] < 0:
        raise ValueError("match_expiry_ms must not be negative")
    if checked["normalized_word_prefix_length"] < 1:
        raise ValueError("normalized_word_prefix_length must be at least 1")
    if checked["restart_delay_ms"] < 0:
        raise ValueError("restart_delay_ms must not be negative")

    return checked


def update_config_tracking(config: Config, tracking: dict[str, Any]) -> Config:
    """
    Update the tracking section of the config with new settings.
    Returns a new config dict.
    """
    new_config: dict[str, Any] = _deep_merge({}, config)
    new_config["tracking"] = _deep_merge(
        new_config.get("tracking", {}),
        tracking
    )
    return new_config  # type: ignore[return-value]
