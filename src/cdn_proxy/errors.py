"""Exceptions raised along the proxy request pipeline.

Each error carries the HTTP status the server answers with.
"""

from __future__ import annotations

from typing import Optional


class ProxyError(Exception):
    """Base class for proxy pipeline failures."""

    status_code = 500


class ClassificationError(ProxyError):
    """The request path matches none of the supported URL grammars."""

    status_code = 400

    def __init__(self, path: str, reason: str = "unsupported path"):
        super().__init__(f"Cannot classify {path!r}: {reason}")
        self.path = path
        self.reason = reason


class ResourceForbidden(ProxyError):
    """The classified resource is not in the whitelist for its kind."""

    status_code = 403

    def __init__(self, request):
        super().__init__(
            f"{request.kind.value} resource {request.identifier!r} is not whitelisted"
        )
        self.request = request


class UpstreamError(ProxyError):
    """The CDN (or the GitHub API) failed to serve the request."""

    status_code = 500

    def __init__(self, url: str, status: Optional[int] = None, message: str = ""):
        detail = message or (f"HTTP {status}" if status is not None else "request failed")
        super().__init__(f"Upstream error for {url}: {detail}")
        self.url = url
        self.status = status


class DirectoryListingError(UpstreamError):
    """The GitHub contents API call made by the size-limit fallback failed."""

    def __init__(
        self,
        owner: str,
        repo: str,
        path: str,
        url: str,
        status: Optional[int] = None,
        message: str = "",
    ):
        super().__init__(url, status, message)
        self.owner = owner
        self.repo = repo
        self.path = path
