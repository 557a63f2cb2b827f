"""Persisted URL -> CacheEntry index (``models.json``).

Reads degrade gracefully: a missing, unreadable or malformed index file loads
as empty, and individual malformed records are skipped. Both are logged with
``exc_info`` so they remain observable. Writes do not degrade: an index that
cannot be flushed raises ``CACHE_WRITE_FAILED``, because later resolves would
otherwise trust files the index no longer describes.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from tfmodel.errors import ErrorCode, ModelCacheError
from tfmodel.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

log = structlog.get_logger()


class CacheIndex:
    """In-memory mapping of manifest URL to CacheEntry, flushed on every change."""

    def __init__(self, path: Path, entries: dict[str, CacheEntry] | None = None) -> None:
        self._path = path
        self._entries: dict[str, CacheEntry] = dict(entries or {})

    @classmethod
    def load(cls, path: Path) -> CacheIndex:
        """Load the index at ``path``. A missing file is created empty."""
        if not path.exists():
            index = cls(path)
            index.flush()
            return index

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.warning("cache_index_read_error", path=str(path), exc_info=True)
            return cls(path)

        if not isinstance(raw, dict):
            log.warning("cache_index_malformed", path=str(path), type=type(raw).__name__)
            return cls(path)

        entries: dict[str, CacheEntry] = {}
        for url, record in raw.items():
            try:
                entries[url] = CacheEntry.model_validate({**record, "url": url})
            except (TypeError, ValidationError):
                log.warning("cache_index_entry_skipped", url=url, exc_info=True)
        log.debug("cache_index_loaded", path=str(path), entries=len(entries))
        return cls(path, entries)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, url: str) -> CacheEntry | None:
        return self._entries.get(url)

    def put(self, entry: CacheEntry) -> None:
        """Insert or overwrite the entry for ``entry.url`` and flush."""
        self._entries[entry.url] = entry
        self.flush()

    def remove(self, url: str) -> CacheEntry | None:
        """Drop the entry for ``url`` and flush. Returns the removed entry, if any."""
        entry = self._entries.pop(url, None)
        if entry is not None:
            self.flush()
        return entry

    def to_dict(self) -> dict[str, dict]:
        return {
            url: entry.model_dump(by_alias=True, mode="json")
            for url, entry in self._entries.items()
        }

    def flush(self) -> None:
        """Overwrite the index file with the current entries (temp file + rename)."""
        payload = json.dumps(self.to_dict(), indent=2)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=".models-", suffix=".json.tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise ModelCacheError(
                ErrorCode.CACHE_WRITE_FAILED,
                f"Could not write cache index {self._path}: {exc}",
                recoverable=False,
            ) from exc

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> list[tuple[str, CacheEntry]]:
        return list(self._entries.items())
