from __future__ import annotations

from tfmodel.models.cache import CacheEntry
from tfmodel.models.manifest import ModelManifest, WeightsGroup

__all__ = [
    # cache
    "CacheEntry",
    # manifest
    "ModelManifest",
    "WeightsGroup",
]
