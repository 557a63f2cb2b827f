"""Integration test fixtures.

Provides a real ModelCache built through ``open_model_cache`` (own HTTP client,
settings-driven cache root) and an environment for running the CLI in a
subprocess against an isolated home directory.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from tfmodel.cache import open_model_cache
from tfmodel.config import CacheSettings, Settings

if TYPE_CHECKING:
    from pathlib import Path

    from tfmodel.cache import ModelCache


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(cache=CacheSettings(cache_dir=str(tmp_path / "tf-model")))


@pytest.fixture()
async def model_cache(settings: Settings) -> ModelCache:
    async with open_model_cache(settings) as cache:
        yield cache


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if not k.startswith("TFMODEL__")}
    env["HOME"] = str(tmp_path / "home")
    env["TFMODEL__CACHE__CACHE_DIR"] = str(tmp_path / "tf-model")
    return env
