"""Fetch-with-cache primitive used by the contrib registry probes.

Entries live in one JSON file per URL under the cache directory. A fresh
entry is served without touching the network. A stale entry is revalidated
with a live request and kept in memory as a fallback: if the request fails
or times out the stale body is served and the file on disk is left alone,
so the next call retries.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import re
import time
from pathlib import Path

import httpx

from guidescout.lib.cache.models import CacheEntry, CachedResponse

logger = logging.getLogger("lib.cache.fetch")

DEFAULT_TIMEOUT = 5.0  # seconds
MIN_TTL = 3600  # seconds

_MAX_AGE_RE = re.compile(r"max-age=(\d+)")

FETCH_ERRORS = (httpx.HTTPError, TimeoutError, OSError)


def _now_ms() -> int:
    return int(time.time() * 1000)


def cache_key(url: str) -> str:
    """Reversible file name for ``url`` (unpadded URL-safe base64)."""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def url_from_cache_key(key: str) -> str:
    """Inverse of ``cache_key``."""
    padding = "=" * (-len(key) % 4)
    return base64.urlsafe_b64decode(key + padding).decode("utf-8")


def ttl_from_cache_control(value: str | None) -> int:
    """TTL in seconds for a response with the given Cache-Control header.

    A ``max-age`` above ``MIN_TTL`` is honored; anything shorter, or no
    directive at all, gets ``MIN_TTL``.
    """
    if value:
        match = _MAX_AGE_RE.search(value)
        if match:
            return max(MIN_TTL, int(match.group(1)))
    return MIN_TTL


class CachedFetcher:
    """Stale-tolerant HTTP cache backed by a directory of JSON files.

    Usage::

        fetcher = CachedFetcher(Path("~/.guides-cache/urls").expanduser())
        response = await fetcher.fetch("https://pypi.org/pypi/requests/json", method="HEAD")
        if response.ok:
            ...
    """

    def __init__(
        self,
        cache_dir: str | Path,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self._transport = transport

    def cache_path(self, url: str) -> Path:
        return self.cache_dir / cache_key(url)

    def _read_entry(self, path: Path) -> CacheEntry | None:
        """Load a cache file; unreadable or corrupt files count as absent."""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry.from_json(data)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Error reading cache file %s: %s", path, e)
            return None

    def _write_entry(self, path: Path, entry: CacheEntry) -> None:
        """Save an entry atomically."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(entry.to_json()), encoding="utf-8")
        tmp.replace(path)

    async def _request(
        self, method: str, url: str, headers: dict[str, str] | None
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout,
            follow_redirects=True,
        ) as client:
            return await client.request(method, url, headers=headers)

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> CachedResponse:
        """Return the response for ``url``, from disk when fresh.

        Args:
            url: Absolute URL. The full URL (query included) is the cache key.
            method: HTTP method for the live request.
            headers: Extra request headers.

        Returns:
            CachedResponse, with ``from_cache``/``stale`` describing its origin.

        Raises:
            httpx.HTTPError, TimeoutError, OSError: If the live request fails
                and there is no stale entry to fall back on.
        """
        path = self.cache_path(url)
        stale = self._read_entry(path)

        if stale is not None and stale.is_fresh(_now_ms()):
            logger.debug("Cache hit for %s", url)
            return CachedResponse.from_entry(url, stale)

        try:
            response = await asyncio.wait_for(
                self._request(method, url, headers), timeout=self.timeout
            )
        except FETCH_ERRORS as e:
            if stale is None:
                raise
            logger.warning(
                "Fetch for %s failed, serving stale content from cache: %s", url, e
            )
            return CachedResponse.from_entry(url, stale, stale=True)

        response_headers = {k.lower(): v for k, v in response.headers.items()}
        ttl = ttl_from_cache_control(response_headers.get("cache-control"))
        entry = CacheEntry(
            expires=_now_ms() + ttl * 1000,
            body=response.text,
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=response_headers,
        )
        try:
            self._write_entry(path, entry)
        except OSError as e:
            logger.warning("Could not write cache file %s: %s", path, e)

        return CachedResponse(
            url=url,
            status=entry.status,
            body=entry.body,
            status_text=entry.status_text,
            headers=dict(entry.headers),
        )
