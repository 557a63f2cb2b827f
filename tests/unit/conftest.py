"""Unit-specific fixtures (network mocked with respx, cache root under tmp_path)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from tfmodel.cache import ModelCache
from tfmodel.fetcher import Fetcher

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "tf-model"


@pytest.fixture()
async def fetcher():
    async with httpx.AsyncClient() as client:
        yield Fetcher(client)


@pytest.fixture()
def model_cache(cache_root: Path, fetcher: Fetcher) -> ModelCache:
    return ModelCache.open(cache_root, fetcher)
