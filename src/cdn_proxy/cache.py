"""TTL caches for proxied responses and GitHub directory listings."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

from .config import CacheSettings

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry stamped with its insertion time."""

    value: T
    inserted_at: float = field(default_factory=lambda: time.time())

    def is_fresh(self, ttl_seconds: float) -> bool:
        """Check if this entry is still within ``ttl_seconds``."""
        return time.time() - self.inserted_at < ttl_seconds


class TTLCache(Generic[T]):
    """Lazily expiring key/value cache driven by live settings.

    ``settings`` is called on every operation, so toggling the cache or
    changing its TTL in the configuration store applies immediately,
    including to entries inserted earlier. Expired entries are never
    returned but stay in the map until overwritten or cleared.
    """

    def __init__(self, settings: Callable[[], CacheSettings]):
        """Initialize the cache.

        Args:
            settings: Callable returning the current CacheSettings.
        """
        self._settings = settings
        self._cache: Dict[Hashable, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[T]:
        """Get a cached value.

        Returns:
            The value, or None if caching is disabled or the entry is
            missing or expired.
        """
        settings = self._settings()
        if not settings.enabled:
            return None

        with self._lock:
            entry = self._cache.get(key)

        if entry is None or not entry.is_fresh(settings.ttl_seconds):
            return None
        return entry.value

    def set(self, key: Hashable, value: T) -> None:
        """Cache a value; a no-op while caching is disabled."""
        if not self._settings().enabled:
            return
        with self._lock:
            self._cache[key] = CacheEntry(value=value)

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


@dataclass(frozen=True)
class CachedResponse:
    """Body and content type of a proxied upstream response."""

    body: bytes
    content_type: str


class ResponseCache(TTLCache[CachedResponse]):
    """Response cache keyed by the literal inbound path (query included)."""

    def set(self, key: Hashable, body: bytes, content_type: str) -> None:  # type: ignore[override]
        """Cache a response.

        Args:
            key: Inbound request path.
            body: Response body bytes.
            content_type: Upstream Content-Type.
        """
        super().set(key, CachedResponse(body=body, content_type=content_type))

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        ``total_bytes`` counts every held entry, stale ones included.
        """
        with self._lock:
            count = len(self._cache)
            total_bytes = sum(len(entry.value.body) for entry in self._cache.values())
        return {
            "count": count,
            "total_bytes": total_bytes,
            "total_size": format_bytes(total_bytes),
        }


DirectoryKey = Tuple[str, str, str]


class DirectoryCache(TTLCache[Any]):
    """GitHub contents cache keyed by ``(owner, repo, subpath)``."""

    @staticmethod
    def make_key(owner: str, repo: str, subpath: str) -> DirectoryKey:
        return (owner, repo, subpath)


def format_bytes(size: int) -> str:
    """Human readable byte count with two decimals."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.2f} MB"
    return f"{size / (1024 * 1024 * 1024):.2f} GB"
