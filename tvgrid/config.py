"""
Configuration management for tvgrid.

Handles loading, validation, and access to application configuration.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

# Global configuration instance
_config: Optional["TVGridConfig"] = None


class PlaylistConfig(BaseModel):
    """Playlist source configuration."""
    url: str = ""
    fallback_url: str = ""  # Used when the primary playlist cannot be loaded
    fetch_timeout: float = 30.0
    user_agent: str = "Mozilla/5.0 (X11; Linux x86_64) tvgrid"


class ValidationConfig(BaseModel):
    """Source validation configuration."""
    concurrency_limit: int = Field(default=5, ge=1)
    probe_timeout: float = Field(default=10.0, gt=0)


class FailoverConfig(BaseModel):
    """Playback failover configuration."""
    attach_timeout: float = Field(default=10.0, gt=0)
    media_recovery_attempts: int = Field(default=1, ge=0)
    # Bounded-retry variant: stop once every source failed in one cascade
    stop_after_full_cycle: bool = False
    failover_delay: float = Field(default=0.5, ge=0)


class SlotsConfig(BaseModel):
    """On-screen player slot configuration."""
    count: int = Field(default=9, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "logs/tvgrid.log"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class TVGridConfig(BaseModel):
    """Main tvgrid configuration."""
    playlist: PlaylistConfig = Field(default_factory=PlaylistConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    failover: FailoverConfig = Field(default_factory=FailoverConfig)
    slots: SlotsConfig = Field(default_factory=SlotsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> TVGridConfig:
    """
    Load configuration from file.

    Args:
        config_path: Path to config file. Defaults to config.yaml in the
            working directory or project root.

    Returns:
        Loaded and validated configuration.
    """
    global _config

    if config_path is None:
        possible_paths = [
            Path("config.yaml"),
            Path(__file__).parent.parent / "config.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: dict[str, Any] = {}

    if config_path and Path(config_path).exists():
        with open(config_path, encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    env_overrides = _get_env_overrides()
    _deep_merge(config_data, env_overrides)

    _config = TVGridConfig(**config_data)
    return _config


def get_config() -> TVGridConfig:
    """
    Get the current configuration.

    Returns:
        Current configuration (loads default if not yet loaded).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> TVGridConfig:
    """Reload configuration from disk."""
    global _config
    _config = None
    return load_config()


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    env_map = {
        "TVGRID_PLAYLIST_URL": ("playlist", "url"),
        "TVGRID_FALLBACK_URL": ("playlist", "fallback_url"),
        "TVGRID_CONCURRENCY": ("validation", "concurrency_limit"),
        "TVGRID_PROBE_TIMEOUT": ("validation", "probe_timeout"),
        "TVGRID_STOP_AFTER_FULL_CYCLE": ("failover", "stop_after_full_cycle"),
        "TVGRID_LOG_LEVEL": ("logging", "level"),
    }

    for env_var, path in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested(overrides, path, _parse_env_value(value))

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _set_nested(d: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    """Set a nested dictionary value from a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override into base dictionary."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


class _ConfigProxy:
    """
    Proxy object that provides lazy access to configuration.

    Allows modules to import `config` directly and access it like:
        from tvgrid.config import config
        config.validation.concurrency_limit
    """

    def __getattr__(self, name: str) -> Any:
        return getattr(get_config(), name)

    def __repr__(self) -> str:
        return f"<ConfigProxy for {get_config()}>"


config = _ConfigProxy()
