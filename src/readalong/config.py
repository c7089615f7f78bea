# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for Readalong.
Handles loading and saving settings from a YAML config file.
"""

import copy
import logging
import math
from pathlib import Path
from typing import Any, TypedDict

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME: str = ".readalong.yaml"


class MatchingSettings(TypedDict):
    """Fuzzy matching thresholds (similarity, 0-1)."""
    live_threshold: float  # Highlighting while reading
    scoring_threshold: float  # Assessment after reading


class SessionSettings(TypedDict):
    """Reading session behaviour."""
    max_restarts: int  # Consecutive unexpected engine stops before giving up
    max_queue_size: int  # Pending events per threaded session
    interim_throttle_ms: int  # Minimum gap between interim events (0 = off)


class Config(TypedDict):
    """Type definition for the complete configuration."""
    # Server settings
    host: str
    port: int
    log_level: str
    # Matching and session behaviour
    matching: MatchingSettings
    session: SessionSettings


# Default configuration values
DEFAULT_CONFIG: Config = {
    # Server settings
    "host": "127.0.0.1",
    "port": 8000,
    "log_level": "WARNING",

    # Fuzzy matching thresholds
    "matching": {
        "live_threshold": 0.7,
        "scoring_threshold": 0.8,
    },

    # Reading sessions
    "session": {
        "max_restarts": 3,
        "max_queue_size": 50,
        "interim_throttle_ms": 0,
    },
}


def get_config_path() -> Path:
    """Get the path to the config file in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Deep merge two dictionaries, with override taking precedence.
    Returns a new dictionary without modifying the originals.

    Args:
        base: Base dictionary to merge from.
        override: Dictionary with values that take precedence over base.

    Returns:
        New dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _clamp_thresholds(config: dict[str, Any]) -> dict[str, Any]:
    """Keep thresholds inside [0, 1], falling back to defaults for junk values."""
    if not isinstance(config.get("matching"), dict):
        logger.warning("Invalid matching section in config, using defaults")
        config["matching"] = dict(DEFAULT_CONFIG["matching"])
        return config
    matching = dict(config["matching"])
    config["matching"] = matching
    for key, default in DEFAULT_CONFIG["matching"].items():
        raw = matching.get(key, default)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            value = math.nan
        if isinstance(raw, bool) or not math.isfinite(value):
            logger.warning("Invalid %s %r in config, using %s", key, raw, default)
            value = default
        matching[key] = min(max(value, 0.0), 1.0)
    return config


# Smallest accepted value for each session setting
_SESSION_MINIMUMS: dict[str, int] = {
    "max_restarts": 1,
    "max_queue_size": 1,
    "interim_throttle_ms": 0,
}


def _validate_session(config: dict[str, Any]) -> dict[str, Any]:
    """Coerce session settings to ints, falling back to defaults for junk values."""
    if not isinstance(config.get("session"), dict):
        logger.warning("Invalid session section in config, using defaults")
        config["session"] = dict(DEFAULT_CONFIG["session"])
        return config
    session = dict(config["session"])
    config["session"] = session
    for key, default in DEFAULT_CONFIG["session"].items():
        raw = session.get(key, default)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) \
                or not math.isfinite(raw) or raw != int(raw):
            logger.warning("Invalid %s %r in config, using %s", key, raw, default)
            session[key] = default
            continue
        session[key] = max(int(raw), _SESSION_MINIMUMS[key])
    return config


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

    # Start with defaults
    config: dict[str, Any] = copy.deepcopy(dict(DEFAULT_CONFIG))

    # Load from file if it exists
    if config_path.exists():
        try:
            with open(config_path, encoding='utf-8') as f:
                file_config: dict[str, Any] | None = yaml.safe_load(f)
                if isinstance(file_config, dict):
                    config = _deep_merge(config, file_config)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load config from %s: %s", config_path, e)

    return _validate_session(_clamp_thresholds(config))  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Args:
        config: Configuration dictionary to save.
        config_path: Optional path to config file. If None, uses default location.

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
        logger.error("Error saving config to %s: %s", config_path, e)
        return False


def get_matching_settings(config: Config) -> MatchingSettings:
    """
    Extract matching thresholds from config.

    Args:
        config: Configuration dictionary.

    Returns:
        Matching settings dictionary.
    """
    matching = config.get("matching")
    if not isinstance(matching, dict):
        matching = DEFAULT_CONFIG["matching"]
    return matching.copy()  # type: ignore[return-value]


def get_session_settings(config: Config) -> SessionSettings:
    """
    Extract reading session settings from config.

    Args:
        config: Configuration dictionary.

    Returns:
        Session settings dictionary.
    """
    session = config.get("session")
    if not isinstance(session, dict):
        session = DEFAULT_CONFIG["session"]
    return session.copy()  # type: ignore[return-value]
