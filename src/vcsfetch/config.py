"""
Configuration and defaults.

Settings come from four layers, later ones winning:

    1. Defaults below
    2. .vcsfetch/config.yaml (or a file given with --config)
    3. VCSFETCH_* environment variables
    4. Explicit command line options

Example config.yaml:

    cache:
      dir: ~/.vcsfetch/cache
      ttl: 21600
      max_bytes: 1073741824
    command_timeout: 600
    jobs: 4
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .core.cache import DiskCache

logger = logging.getLogger(__name__)

# --- Defaults ---
DEFAULT_CONFIG_PATH = Path(".vcsfetch/config.yaml")
DEFAULT_CACHE_DIR = Path.home() / ".vcsfetch" / "cache"
DEFAULT_CACHE_TTL_SECONDS = 6 * 60 * 60
DEFAULT_CACHE_MAX_BYTES = 1024 * 1024 * 1024
DEFAULT_JOBS = 1

# Environment variable -> settings field
ENV_VARS: Mapping[str, str] = {
    "VCSFETCH_CACHE_DIR": "cache_dir",
    "VCSFETCH_CACHE_TTL": "cache_ttl_seconds",
    "VCSFETCH_CACHE_MAX_BYTES": "cache_max_bytes",
    "VCSFETCH_COMMAND_TIMEOUT": "command_timeout",
    "VCSFETCH_JOBS": "jobs",
}


class ConfigError(Exception):
    """
    Raised when the config file or environment holds invalid values.

    Attributes:
        source: Where the bad value came from.
    """

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Invalid configuration in {source}: {message}")


class Settings(BaseModel):
    """
    Effective settings of a vcsfetch run.

    Attributes:
        cache_dir: Directory of the remote metadata cache.
        cache_ttl_seconds: Age after which cache entries are stale.
        cache_max_bytes: Size bound of the cache.
        command_timeout: Timeout for each VCS client call, None for no limit.
        jobs: Number of parallel downloads in batch mode.
    """

    model_config = ConfigDict(extra="ignore")

    cache_dir: Path = DEFAULT_CACHE_DIR
    cache_ttl_seconds: int = Field(default=DEFAULT_CACHE_TTL_SECONDS, ge=0)
    cache_max_bytes: int = Field(default=DEFAULT_CACHE_MAX_BYTES, ge=0)
    command_timeout: Optional[float] = Field(default=None, gt=0)
    jobs: int = Field(default=DEFAULT_JOBS, ge=1)

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)

    def create_cache(self) -> DiskCache:
        return DiskCache(self.cache_dir.expanduser(), self.cache_max_bytes, self.cache_ttl)


def _flatten_yaml(data: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    cache = data.get("cache") or {}
    if not isinstance(cache, dict):
        raise ConfigError("config file", "'cache' must be a mapping")
    for key, field in (("dir", "cache_dir"), ("ttl", "cache_ttl_seconds"), ("max_bytes", "cache_max_bytes")):
        if key in cache:
            values[field] = cache[key]
    for key in ("command_timeout", "jobs"):
        if key in data:
            values[key] = data[key]
    return values


def load_yaml_config(path: Path) -> Dict[str, Any]:
    """
    Read settings from a YAML file.

    Returns:
        Settings fields found in the file; empty if the file does not exist.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    logger.debug(f"Loaded configuration from {path}")
    return _flatten_yaml(data)


def load_env_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    return {field: environ[var] for var, field in ENV_VARS.items() if environ.get(var, "").strip()}


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Settings:
    """
    Build the effective settings.

    Args:
        config_path: YAML file to read; defaults to .vcsfetch/config.yaml.
        environ: Environment to read; defaults to os.environ.
        **overrides: Explicit values, e.g. from command line options. None
            values are ignored.

    Returns:
        The merged Settings.

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    values = load_yaml_config(path)
    values.update(load_env_config(environ))
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(str(path), str(e)) from e
