"""HTTP transport for model manifests and weight shards."""

from __future__ import annotations

import posixpath
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

import httpx
import structlog

from tfmodel.config import FetcherSettings
from tfmodel.errors import ErrorCode, ModelCacheError

log = structlog.get_logger()


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared AsyncClient used for all model downloads."""
    settings = settings or FetcherSettings()
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
    )


def resolve_shard_url(manifest_url: str, shard_path: str) -> str:
    """Resolve ``shard_path`` against the directory of ``manifest_url``.

    Keeps scheme and host, drops the manifest's query string and fragment:
    ``https://host/path/model.json`` + ``a.bin`` -> ``https://host/path/a.bin``.
    """
    parts = urlsplit(manifest_url)
    directory = posixpath.dirname(parts.path) or "/"
    path = posixpath.join(directory, shard_path)
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


class Fetcher:
    """Thin wrapper over ``httpx.AsyncClient`` that maps failures to ``ModelCacheError``."""

    def __init__(self, client: httpx.AsyncClient, settings: FetcherSettings | None = None) -> None:
        self._client = client
        self._settings = settings or FetcherSettings()

    async def get(
        self, url: str, code: ErrorCode = ErrorCode.MANIFEST_FETCH_FAILED
    ) -> httpx.Response:
        """GET ``url``; transport errors, malformed URLs and non-2xx statuses raise ``code``."""
        try:
            response = await self._client.get(url)
        except httpx.InvalidURL as exc:
            log.warning("fetch_invalid_url", url=url, error=str(exc))
            raise ModelCacheError(code, f"Cannot request {url!r}: {exc}") from exc
        except httpx.HTTPError as exc:
            log.warning("fetch_error", url=url, error=str(exc))
            raise ModelCacheError(
                code, f"Request to {url} failed: {exc}", recoverable=True
            ) from exc

        if not response.is_success:
            log.warning("fetch_bad_status", url=url, status=response.status_code)
            raise ModelCacheError(
                code,
                f"GET {url} returned HTTP {response.status_code}",
                recoverable=True,
            )
        return response

    async def is_modified_since(self, url: str, last_modified: str) -> bool:
        """HEAD ``url`` with ``If-Modified-Since``. Only a 304 counts as unchanged."""
        try:
            response = await self._client.head(
                url, headers={"If-Modified-Since": last_modified}
            )
        except httpx.InvalidURL as exc:
            log.warning("freshness_check_invalid_url", url=url, error=str(exc))
            raise ModelCacheError(
                ErrorCode.MANIFEST_FETCH_FAILED, f"Cannot request {url!r}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            log.warning("freshness_check_error", url=url, error=str(exc))
            raise ModelCacheError(
                ErrorCode.MANIFEST_FETCH_FAILED,
                f"Freshness check for {url} failed: {exc}",
                recoverable=True,
            ) from exc

        log.debug("freshness_check", url=url, status=response.status_code)
        return response.status_code != httpx.codes.NOT_MODIFIED

    async def download(self, url: str, dest: Path) -> Path:
        """Fetch ``url`` and write the body to ``dest``."""
        response = await self.get(url, code=ErrorCode.SHARD_FETCH_FAILED)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(response.content)
        except OSError as exc:
            raise ModelCacheError(
                ErrorCode.CACHE_WRITE_FAILED,
                f"Could not write {dest}: {exc}",
                recoverable=False,
            ) from exc
        log.debug("shard_stored", url=url, path=str(dest), size=len(response.content))
        return dest
