"""XDG-compliant path helpers for grit data storage."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_cache_dir, user_config_dir, user_data_dir


def get_data_dir() -> Path:
    """Get the data directory for grit (debug log exports)."""
    override = os.environ.get("GRIT_DATA_DIR")
    if override:
        return Path(override)
    return Path(user_data_dir("grit"))


def get_config_dir() -> Path:
    """Get the config directory for grit (config.toml)."""
    override = os.environ.get("GRIT_CONFIG_DIR")
    if override:
        return Path(override)
    return Path(user_config_dir("grit"))


def get_cache_dir() -> Path:
    """Get the per-user cache root for grit."""
    override = os.environ.get("GRIT_CACHE_DIR")
    if override:
        return Path(override)
    return Path(user_cache_dir("grit"))


def get_response_cache_dir() -> Path:
    """Get the directory holding one record per cached forge resource."""
    return get_cache_dir() / "responses"


def get_config_path() -> Path:
    """Get the path to the main config file."""
    return get_config_dir() / "config.toml"


def get_debug_log_path() -> Path:
    """Get the path to the debug log export file."""
    return get_data_dir() / "debug.log"


def ensure_directories() -> None:
    """Create all necessary directories if they don't exist."""
    get_data_dir().mkdir(parents=True, exist_ok=True)
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_response_cache_dir().mkdir(parents=True, exist_ok=True)
