"""cdngate proxy server package.

This package provides an HTTP proxy that classifies jsDelivr-style requests
(npm, GitHub, WordPress), enforces a per-kind whitelist, caches responses,
and lists oversized GitHub repositories through the GitHub contents API.
"""

from .request_parser import RequestParser, ClassifiedRequest, ResourceKind
from .config import CacheSettings, ConfigStore, ProxyConfig, Whitelist
from .cache import DirectoryCache, ResponseCache
from .errors import (
    ClassificationError,
    DirectoryListingError,
    ProxyError,
    ResourceForbidden,
    UpstreamError,
)
from .evaluator import AccessEvaluator, is_allowed
from .github import DirectoryEntry, DirectoryLister
from .upstream import UpstreamClient, UpstreamResponse, is_size_limit_rejection
from .server import CdnProxyServer

__all__ = [
    "RequestParser",
    "ClassifiedRequest",
    "ResourceKind",
    "CacheSettings",
    "ConfigStore",
    "ProxyConfig",
    "Whitelist",
    "DirectoryCache",
    "ResponseCache",
    "ClassificationError",
    "DirectoryListingError",
    "ProxyError",
    "ResourceForbidden",
    "UpstreamError",
    "AccessEvaluator",
    "is_allowed",
    "DirectoryEntry",
    "DirectoryLister",
    "UpstreamClient",
    "UpstreamResponse",
    "is_size_limit_rejection",
    "CdnProxyServer",
]
