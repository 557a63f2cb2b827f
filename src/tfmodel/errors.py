"""Error taxonomy for the model cache.

Every failure inside ``tfmodel`` surfaces as a ``ModelCacheError`` carrying an
``ErrorCode``. ``recoverable`` tells the caller whether retrying the same
``resolve`` later can succeed without anything else changing.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    MANIFEST_FETCH_FAILED = "MANIFEST_FETCH_FAILED"
    UNSUPPORTED_MODEL_FORMAT = "UNSUPPORTED_MODEL_FORMAT"
    INVALID_MANIFEST = "INVALID_MANIFEST"
    SHARD_FETCH_FAILED = "SHARD_FETCH_FAILED"
    INCOMPLETE_CACHE_ENTRY = "INCOMPLETE_CACHE_ENTRY"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"


class ModelCacheError(Exception):
    """Raised for every model fetch or cache failure."""

    def __init__(self, code: ErrorCode, message: str, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"
