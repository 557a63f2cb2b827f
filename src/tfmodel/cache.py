"""On-disk cache of TensorFlow.js web-format models with conditional revalidation.

Cache structure::

    cache_dir/
    ├── models.json          # CacheIndex: url -> {hash, lastModified, filename, complete}
    ├── {hash_code(url_1)}/
    │   ├── model.json
    │   ├── group1-shard1of2.bin
    │   └── group1-shard2of2.bin
    └── {hash_code(url_2)}/
        └── ...

A full fetch records the entry as pending (``complete=False``) before any
shard is downloaded and promotes it once every shard is on disk. A pending
entry is never served; the next ``resolve`` fetches the model again.
"""

from __future__ import annotations

import asyncio
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import structlog
from pydantic import ValidationError

from tfmodel.errors import ErrorCode, ModelCacheError
from tfmodel.fetcher import Fetcher, build_http_client, resolve_shard_url
from tfmodel.hashing import hash_code
from tfmodel.index import CacheIndex
from tfmodel.models.cache import CacheEntry
from tfmodel.models.manifest import ModelManifest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tfmodel.config import Settings

log = structlog.get_logger()

MANIFEST_FILENAME = "model.json"
JSON_CONTENT_TYPE = "application/json"


class ModelCache:
    """Resolve model manifest URLs to local, ready-to-load entry files."""

    def __init__(self, root: Path, index: CacheIndex, fetcher: Fetcher) -> None:
        self._root = root
        self._index = index
        self._fetcher = fetcher
        # Held only while a resolve or remove for the URL is running or waiting
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @classmethod
    def open(cls, root: Path, fetcher: Fetcher, index_filename: str = "models.json") -> ModelCache:
        """Create ``root`` if needed and load its index. Called once at startup."""
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ModelCacheError(
                ErrorCode.CACHE_WRITE_FAILED,
                f"Could not create cache directory {root}: {exc}",
            ) from exc
        index = CacheIndex.load(root / index_filename)
        log.info("model_cache_ready", root=str(root), entries=len(index))
        return cls(root, index, fetcher)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def index(self) -> CacheIndex:
        return self._index

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, url: str) -> CacheEntry | None:
        return self._index.get(url)

    def entries(self) -> dict[str, CacheEntry]:
        return dict(self._index.items())

    def entry_path(self, entry: CacheEntry) -> Path:
        return self._root / entry.content_hash / entry.entry_filename

    def is_intact(self, entry: CacheEntry) -> bool:
        """True if the entry finished downloading and its entry file is still on disk."""
        return entry.complete and self.entry_path(entry).is_file()

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    async def resolve(self, url: str) -> Path:
        """Return the local path of the model entry file for ``url``.

        Network I/O for content only happens on a miss, on an incomplete
        entry, or when the server does not answer the conditional HEAD with
        304. Concurrent calls for the same URL are serialised.

        Raises:
            ModelCacheError: for any network, format or filesystem failure.
        """
        async with self._url_lock(url):
            entry = self._index.get(url)
            if entry is None:
                log.info("model_cache_miss", url=url)
                return await self._fetch(url)

            if not self.is_intact(entry):
                log.warning(
                    "cache_entry_incomplete",
                    url=url,
                    complete=entry.complete,
                    path=str(self.entry_path(entry)),
                )
                return await self._fetch(url)

            if entry.last_modified is None:
                # Nothing to send in If-Modified-Since
                log.info("model_cache_unvalidated", url=url)
                return await self._fetch(url)

            if not await self._fetcher.is_modified_since(url, entry.last_modified):
                log.info("model_cache_hit", url=url, last_modified=entry.last_modified)
                return self.entry_path(entry)

            log.info("model_cache_stale", url=url, last_modified=entry.last_modified)
            return await self._fetch(url)

    @asynccontextmanager
    async def _url_lock(self, url: str) -> AsyncIterator[None]:
        lock = self._locks.get(url)
        if lock is None:
            lock = self._locks[url] = asyncio.Lock()
        self._lock_users[url] = self._lock_users.get(url, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[url] -= 1
            if not self._lock_users[url]:
                del self._lock_users[url]
                del self._locks[url]

    async def _fetch(self, url: str) -> Path:
        """Download manifest and shards for ``url`` and record the entry."""
        content_hash = hash_code(url)
        model_dir = self._root / content_hash

        response = await self._fetcher.get(url)
        content_type = response.headers.get("content-type", "").lower()
        if JSON_CONTENT_TYPE not in content_type:
            raise ModelCacheError(
                ErrorCode.UNSUPPORTED_MODEL_FORMAT,
                f"Unsupported model format at {url}: content-type {content_type!r} "
                f"(only JSON model manifests are supported)",
            )

        entry = CacheEntry(
            url=url,
            content_hash=content_hash,
            last_modified=response.headers.get("last-modified"),
            entry_filename=MANIFEST_FILENAME,
            complete=False,
        )
        self._index.put(entry)

        entry_path = model_dir / entry.entry_filename
        try:
            # A refetch replaces the directory so shards the new manifest dropped go with it
            if model_dir.exists():
                shutil.rmtree(model_dir)
            model_dir.mkdir(parents=True, exist_ok=True)
            entry_path.write_bytes(response.content)
        except OSError as exc:
            raise ModelCacheError(
                ErrorCode.CACHE_WRITE_FAILED,
                f"Could not write {entry_path}: {exc}",
            ) from exc

        try:
            manifest = ModelManifest.model_validate_json(response.content)
        except ValidationError as exc:
            raise ModelCacheError(
                ErrorCode.INVALID_MANIFEST,
                f"{url} is not a valid model manifest: {exc.error_count()} error(s)",
            ) from exc

        shards = [self._shard_target(url, model_dir, path) for path in manifest.shard_paths]
        if shards:
            await self._download_shards(url, shards)

        self._index.put(entry.model_copy(update={"complete": True}))
        log.info("model_cached", url=url, path=str(entry_path), shards=len(shards))
        return entry_path

    async def _download_shards(self, url: str, shards: list[tuple[str, Path]]) -> None:
        tasks = [
            asyncio.create_task(self._fetcher.download(shard_url, dest))
            for shard_url, dest in shards
        ]
        try:
            await asyncio.gather(*tasks)
        except ModelCacheError as exc:
            log.warning("shard_download_failed", url=url, error=str(exc))
            raise ModelCacheError(
                ErrorCode.INCOMPLETE_CACHE_ENTRY,
                f"Cache entry for {url} is incomplete: {exc}",
                recoverable=True,
            ) from exc
        finally:
            for task in tasks:
                task.cancel()

    @staticmethod
    def _shard_target(url: str, model_dir: Path, shard_path: str) -> tuple[str, Path]:
        """Return the download URL and local destination for one manifest shard path."""
        shard_url = resolve_shard_url(url, shard_path)
        try:
            httpx.URL(shard_url)
            dest = (model_dir / shard_path).resolve()
        except (httpx.InvalidURL, ValueError, OSError) as exc:
            raise ModelCacheError(
                ErrorCode.INVALID_MANIFEST,
                f"Shard path {shard_path!r} is not usable: {exc}",
            ) from exc
        if not dest.is_relative_to(model_dir.resolve()):
            raise ModelCacheError(
                ErrorCode.INVALID_MANIFEST,
                f"Shard path {shard_path!r} escapes the model directory",
            )
        return shard_url, dest

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def remove(self, url: str) -> bool:
        """Drop the entry for ``url`` and delete its directory. False if not cached."""
        async with self._url_lock(url):
            entry = self._index.remove(url)
            if entry is None:
                return False
            model_dir = self._root / entry.content_hash
            try:
                if model_dir.exists():
                    shutil.rmtree(model_dir)
            except OSError as exc:
                raise ModelCacheError(
                    ErrorCode.CACHE_WRITE_FAILED,
                    f"Could not remove {model_dir}: {exc}",
                ) from exc
            log.info("model_cache_removed", url=url, path=str(model_dir))
            return True


@asynccontextmanager
async def open_model_cache(settings: Settings) -> AsyncIterator[ModelCache]:
    """Build a ModelCache with its own HTTP client for the lifetime of the context."""
    async with build_http_client(settings.fetcher) as client:
        fetcher = Fetcher(client, settings.fetcher)
        yield ModelCache.open(settings.cache.root, fetcher, settings.cache.index_filename)
