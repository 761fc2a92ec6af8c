"""YAML configuration loading and validation."""

from .loader import AppConfig, ConfigError, ProxySettings, Thresholds, WaveSettings, load_config

__all__ = [
    "AppConfig",
    "ConfigError",
    "ProxySettings",
    "Thresholds",
    "WaveSettings",
    "load_config",
]
