from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load the YAML config (default ``config/rvtools.yml``)
- Validate it against ``config_schema.json``
- Apply defaults for every omitted key
- Let ``RVTOOLS_AI_PROXY_URL`` override ``proxy.base_url``
"""

__all__ = [
    "ConfigError",
    "Thresholds",
    "WaveSettings",
    "ProxySettings",
    "AppConfig",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/rvtools.yml")
PROXY_URL_ENV = "RVTOOLS_AI_PROXY_URL"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class Thresholds:
    snapshot_blocker_age_days: int = 30
    hw_version_minimum: int = 14
    readiness_ready: int = 80
    readiness_needs_preparation: int = 60


@dataclass(frozen=True)
class WaveSettings:
    mode: str = "network"
    group_by: str = "portGroup"


@dataclass(frozen=True)
class ProxySettings:
    base_url: str | None = None
    timeout_seconds: float = 60.0
    max_retries: int = 3
    cache_ttl_seconds: float = 24 * 60 * 60


@dataclass(frozen=True)
class AppConfig:
    migration_mode: str = "vsi"
    thresholds: Thresholds = field(default_factory=Thresholds)
    waves: WaveSettings = field(default_factory=WaveSettings)
    proxy: ProxySettings = field(default_factory=ProxySettings)
    keep_na_strings: tuple[str, ...] = ("NA", "N/A", "null", "None")
    overrides_path: str | None = None
    exclusion_rules: str | None = None


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: the schema file is missing or invalid, or ``data`` fails
            validation (unknown keys, wrong types, out-of-range values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build(data: dict[str, Any]) -> AppConfig:
    thresholds = Thresholds(**data.get("thresholds", {}))
    if thresholds.readiness_needs_preparation > thresholds.readiness_ready:
        raise ConfigError("thresholds.readiness_needs_preparation must not exceed readiness_ready")
    proxy_raw = dict(data.get("proxy", {}))
    env_url = os.getenv(PROXY_URL_ENV)
    if env_url:
        proxy_raw["base_url"] = env_url
    defaults = AppConfig()
    return AppConfig(
        migration_mode=data.get("migration_mode", defaults.migration_mode),
        thresholds=thresholds,
        waves=WaveSettings(**data.get("waves", {})),
        proxy=ProxySettings(**proxy_raw),
        keep_na_strings=tuple(data.get("keep_na_strings", defaults.keep_na_strings)),
        overrides_path=data.get("overrides_path"),
        exclusion_rules=data.get("exclusion_rules"),
    )


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration.

    ``path=None`` means "use ``DEFAULT_CONFIG_PATH`` if it exists, else built-in
    defaults". An explicitly given path must exist.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return _build({})
        path = DEFAULT_CONFIG_PATH
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)
    return _build(data)
