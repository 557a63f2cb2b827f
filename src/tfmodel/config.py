"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (TFMODEL__CACHE__CACHE_DIR=/srv/models)
  2. tfmodel.yaml           (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from tfmodel import __version__

# Same location the Node-RED tf-model node has always used, so existing caches are reused.
_DEFAULT_CACHE_DIR = str(Path.home() / ".node-red" / "tf-model")
_DEFAULT_CONFIG_DIR = platformdirs.user_config_dir("tfmodel")
_CONFIG_FILENAME = "tfmodel.yaml"


def _find_config_file() -> str | None:
    """Locate tfmodel.yaml: a project-local file wins over the per-user one."""
    for directory in (Path.cwd(), Path(_DEFAULT_CONFIG_DIR)):
        candidate = directory / _CONFIG_FILENAME
        if candidate.is_file():
            return str(candidate)
    return None


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    cache_dir: str = _DEFAULT_CACHE_DIR
    index_filename: str = "models.json"

    @property
    def root(self) -> Path:
        return Path(self.cache_dir).expanduser()


class FetcherSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # None keeps requests unbounded, as the node always behaved.
    timeout_seconds: float | None = None
    user_agent: str = f"tfmodel/{__version__}"


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # TFMODEL__CACHE__CACHE_DIR sets cache.cache_dir
        env_prefix="TFMODEL__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Node-RED deployments configure through TFMODEL__* variables, so they
        # override tfmodel.yaml. No .env or secrets sources.
        return (init_settings, env_settings, YamlConfigSettingsSource(settings_cls))
