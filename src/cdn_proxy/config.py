"""Proxy configuration and the lock-guarded store the pipeline reads from."""

from __future__ import annotations

import hmac
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from constants import Constants

from .request_parser import ResourceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheSettings:
    """Enabled flag and time-to-live for one cache."""

    enabled: bool = True
    ttl_seconds: int = Constants.RESPONSE_CACHE_TTL_SEC


@dataclass(frozen=True)
class Whitelist:
    """Allowed identifiers per resource kind."""

    npm: FrozenSet[str] = frozenset()
    github: FrozenSet[str] = frozenset()
    wordpress_plugins: FrozenSet[str] = frozenset()
    wordpress_themes: FrozenSet[str] = frozenset()

    _FIELDS = {
        ResourceKind.NPM: "npm",
        ResourceKind.GITHUB: "github",
        ResourceKind.WORDPRESS_PLUGIN: "wordpress_plugins",
        ResourceKind.WORDPRESS_THEME: "wordpress_themes",
    }

    def for_kind(self, kind: ResourceKind) -> FrozenSet[str]:
        """Return the allowed identifiers for ``kind`` (empty for unknown kinds)."""
        name = self._FIELDS.get(kind)
        if name is None:
            return frozenset()
        return getattr(self, name)

    def with_kind(self, kind: ResourceKind, items: Iterable[str]) -> "Whitelist":
        """Return a copy with the set for ``kind`` replaced."""
        name = self._FIELDS.get(kind)
        if name is None:
            raise ValueError(f"Unsupported resource kind: {kind!r}")
        return replace(self, **{name: frozenset(_clean_items(items))})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Whitelist":
        """Build from the ``jsdelivr.whitelist`` section of config.json."""
        wordpress = data.get("wordpress") or {}
        return cls(
            npm=frozenset(_clean_items(data.get("npm") or [])),
            github=frozenset(_clean_items(data.get("github") or [])),
            wordpress_plugins=frozenset(_clean_items(wordpress.get("plugins") or [])),
            wordpress_themes=frozenset(_clean_items(wordpress.get("themes") or [])),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the config.json shape."""
        return {
            "npm": sorted(self.npm),
            "github": sorted(self.github),
            "wordpress": {
                "plugins": sorted(self.wordpress_plugins),
                "themes": sorted(self.wordpress_themes),
            },
        }


def _clean_items(items: Iterable[str]) -> Iterable[str]:
    if isinstance(items, str):
        raise ValueError("Whitelist items must be a list, not a string")
    return (str(item).strip() for item in items if str(item).strip())


@dataclass
class ProxyConfig:
    """Configuration for the proxy server."""

    host: str = Constants.DEFAULT_HOST
    port: int = Constants.DEFAULT_PORT
    allow_external: bool = False
    timeout: int = Constants.REQUEST_TIMEOUT
    upstream_npm: str = Constants.JSDELIVR_NPM_BASE
    upstream_github: str = Constants.JSDELIVR_GITHUB_BASE
    upstream_wordpress: str = Constants.JSDELIVR_WORDPRESS_BASE
    github_api_base: str = Constants.GITHUB_API_BASE
    admin_key: str = Constants.DEFAULT_ADMIN_KEY
    cache: CacheSettings = field(default_factory=CacheSettings)
    github_token: str = ""
    github_api_cache: CacheSettings = field(
        default_factory=lambda: CacheSettings(True, Constants.GITHUB_API_CACHE_TTL_SEC)
    )
    whitelist: Whitelist = field(default_factory=Whitelist)
    size_limit_marker: str = Constants.SIZE_LIMIT_MARKER

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProxyConfig":
        """Create config from a parsed config.json / YAML document.

        Args:
            data: Document in the config.json layout (``port``, ``adminKey``,
                ``cache``, ``github``, ``jsdelivr``).

        Returns:
            ProxyConfig instance with defaults for missing keys.
        """
        config = cls()
        if not isinstance(data, Mapping):
            raise ValueError("Configuration document must be a mapping")

        if data.get("host"):
            config.host = str(data["host"])
        if data.get("port"):
            config.port = int(data["port"])
        if data.get("timeout"):
            config.timeout = int(data["timeout"])
        if data.get("adminKey"):
            config.admin_key = str(data["adminKey"])
        if data.get("github_api_base"):
            config.github_api_base = str(data["github_api_base"]).rstrip("/")
        if data.get("size_limit_marker"):
            config.size_limit_marker = str(data["size_limit_marker"])

        cache = data.get("cache") or {}
        config.cache = CacheSettings(
            enabled=bool(cache.get("enabled", config.cache.enabled)),
            ttl_seconds=int(cache.get("duration") or config.cache.ttl_seconds),
        )

        github = data.get("github") or {}
        config.github_token = str(github.get("token") or "")
        api_cache = github.get("apiCache") or {}
        config.github_api_cache = CacheSettings(
            enabled=bool(api_cache.get("enabled", config.github_api_cache.enabled)),
            ttl_seconds=int(api_cache.get("duration") or config.github_api_cache.ttl_seconds),
        )

        jsdelivr = data.get("jsdelivr") or {}
        if jsdelivr.get("npm_base"):
            config.upstream_npm = str(jsdelivr["npm_base"]).rstrip("/")
        if jsdelivr.get("github_base"):
            config.upstream_github = str(jsdelivr["github_base"]).rstrip("/")
        if jsdelivr.get("wordpress_base"):
            config.upstream_wordpress = str(jsdelivr["wordpress_base"]).rstrip("/")
        config.whitelist = Whitelist.from_dict(jsdelivr.get("whitelist") or {})

        return config

    def apply_args(self, args: Any) -> "ProxyConfig":
        """Override fields with CLI arguments that were provided.

        Args:
            args: Parsed CLI arguments namespace.

        Returns:
            self, for chaining.
        """
        if getattr(args, "PROXY_HOST", None):
            self.host = args.PROXY_HOST
        if getattr(args, "PROXY_PORT", None):
            self.port = int(args.PROXY_PORT)
        if getattr(args, "PROXY_TIMEOUT", None):
            self.timeout = int(args.PROXY_TIMEOUT)
        if getattr(args, "ALLOW_EXTERNAL", False):
            self.allow_external = True

        # Override upstreams if provided
        if getattr(args, "UPSTREAM_NPM", None):
            self.upstream_npm = args.UPSTREAM_NPM.rstrip("/")
        if getattr(args, "UPSTREAM_GITHUB", None):
            self.upstream_github = args.UPSTREAM_GITHUB.rstrip("/")
        if getattr(args, "UPSTREAM_WORDPRESS", None):
            self.upstream_wordpress = args.UPSTREAM_WORDPRESS.rstrip("/")
        if getattr(args, "GITHUB_API_BASE", None):
            self.github_api_base = args.GITHUB_API_BASE.rstrip("/")

        return self

    def upstreams(self) -> Dict[ResourceKind, str]:
        """Upstream base URL per resource kind."""
        return {
            ResourceKind.NPM: self.upstream_npm,
            ResourceKind.GITHUB: self.upstream_github,
            ResourceKind.WORDPRESS_PLUGIN: self.upstream_wordpress,
            ResourceKind.WORDPRESS_THEME: self.upstream_wordpress,
        }


class ConfigStore:
    """Thread-safe holder of the live ProxyConfig.

    Readers get immutable values (frozensets, frozen dataclasses); every
    mutation is a read-modify-write under a single lock.
    """

    def __init__(self, config: Optional[ProxyConfig] = None):
        self._config = config or ProxyConfig()
        self._lock = threading.RLock()

    @property
    def config(self) -> ProxyConfig:
        """The underlying configuration object (for startup wiring only)."""
        return self._config

    def get_whitelist(self, kind: ResourceKind) -> FrozenSet[str]:
        with self._lock:
            return self._config.whitelist.for_kind(kind)

    def get_whitelist_set(self) -> Whitelist:
        with self._lock:
            return self._config.whitelist

    def get_cache_config(self) -> CacheSettings:
        with self._lock:
            return self._config.cache

    def get_github_api_cache_config(self) -> CacheSettings:
        with self._lock:
            return self._config.github_api_cache

    def get_github_token(self) -> str:
        with self._lock:
            return self._config.github_token

    def set_whitelist(self, kind: ResourceKind, items: Iterable[str]) -> None:
        """Replace the whitelist for one resource kind."""
        with self._lock:
            self._config.whitelist = self._config.whitelist.with_kind(kind, items)
            count = len(self._config.whitelist.for_kind(kind))
        logger.info("Whitelist for %s updated (%d entries)", kind.value, count)

    def set_cache_config(self, enabled: bool, ttl_seconds: Optional[int] = None) -> CacheSettings:
        """Toggle the response cache; ``ttl_seconds`` keeps its value when omitted."""
        with self._lock:
            current = self._config.cache
            self._config.cache = CacheSettings(
                enabled=bool(enabled),
                ttl_seconds=int(ttl_seconds) if ttl_seconds else current.ttl_seconds,
            )
            return self._config.cache

    def set_github_api_cache_config(
        self, enabled: bool, ttl_seconds: Optional[int] = None
    ) -> CacheSettings:
        """Toggle the GitHub contents API cache."""
        with self._lock:
            current = self._config.github_api_cache
            self._config.github_api_cache = CacheSettings(
                enabled=bool(enabled),
                ttl_seconds=int(ttl_seconds) if ttl_seconds else current.ttl_seconds,
            )
            return self._config.github_api_cache

    def set_github_token(self, token: str) -> None:
        with self._lock:
            self._config.github_token = token or ""

    def verify_admin_key(self, provided: Optional[str]) -> bool:
        """Constant-time comparison of ``provided`` with the admin key."""
        if not provided:
            return False
        with self._lock:
            expected = self._config.admin_key
        return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))

    def snapshot(self) -> Dict[str, Any]:
        """Config in the config.json layout, without secrets."""
        with self._lock:
            config = self._config
            return {
                "port": config.port,
                "cache": {
                    "enabled": config.cache.enabled,
                    "duration": config.cache.ttl_seconds,
                },
                "github": {
                    "tokenConfigured": bool(config.github_token),
                    "apiCache": {
                        "enabled": config.github_api_cache.enabled,
                        "duration": config.github_api_cache.ttl_seconds,
                    },
                },
                "jsdelivr": {
                    "npm_base": config.upstream_npm,
                    "github_base": config.upstream_github,
                    "wordpress_base": config.upstream_wordpress,
                    "whitelist": config.whitelist.to_dict(),
                },
            }
