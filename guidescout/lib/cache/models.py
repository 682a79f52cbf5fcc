"""Data models for the URL cache."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class CacheEntry:
    """A persisted HTTP response. ``expires`` is epoch milliseconds."""

    expires: int
    body: str
    status: int
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    def is_fresh(self, now_ms: int) -> bool:
        return self.expires > now_ms

    @classmethod
    def from_json(cls, data: dict) -> CacheEntry:
        """Create a CacheEntry from its on-disk JSON form."""
        return cls(
            expires=int(data["expires"]),
            body=data.get("body", ""),
            status=int(data.get("status", 0)),
            status_text=data.get("statusText", ""),
            headers=dict(data.get("headers") or {}),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "expires": self.expires,
            "headers": self.headers,
            "body": self.body,
            "status": self.status,
            "statusText": self.status_text,
        }


@dataclass
class CachedResponse:
    """Response returned by ``CachedFetcher.fetch``, live or from disk."""

    url: str
    status: int
    body: str
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    from_cache: bool = False
    stale: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body

    def json(self) -> Any:
        return json.loads(self.body)

    @classmethod
    def from_entry(cls, url: str, entry: CacheEntry, *, stale: bool = False) -> CachedResponse:
        return cls(
            url=url,
            status=entry.status,
            body=entry.body,
            status_text=entry.status_text,
            headers=dict(entry.headers),
            from_cache=True,
            stale=stale,
        )
