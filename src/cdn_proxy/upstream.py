"""Upstream client for fetching whitelisted resources from the CDN."""

from __future__ import annotations

import asyncio
import logging
import urllib.parse
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp

from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from constants import Constants

from .errors import DirectoryListingError, UpstreamError
from .github import DirectoryLister
from .pages import PageRenderer
from .request_parser import ClassifiedRequest, ResourceKind, normalize_subpath

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


def is_size_limit_rejection(
    kind: ResourceKind,
    status: int,
    body: bytes,
    marker: str = Constants.SIZE_LIMIT_MARKER,
) -> bool:
    """Return True for jsDelivr's "repository too large" refusal.

    jsDelivr answers oversized GitHub repositories with a 403 whose body
    contains ``marker``. The wording is not a documented contract, hence
    the configurable marker.
    """
    return (
        kind == ResourceKind.GITHUB
        and status == 403
        and bool(marker)
        and marker.encode("utf-8") in body
    )


@dataclass(frozen=True)
class UpstreamResponse:
    """A successful upstream result ready to be served."""

    status: int
    content_type: str
    body: bytes
    cacheable: bool = True


class UpstreamClient:
    """Client for fetching resources from the upstream CDN."""

    # Default upstream CDN URLs
    DEFAULT_UPSTREAMS = {
        ResourceKind.NPM: Constants.JSDELIVR_NPM_BASE,
        ResourceKind.GITHUB: Constants.JSDELIVR_GITHUB_BASE,
        ResourceKind.WORDPRESS_PLUGIN: Constants.JSDELIVR_WORDPRESS_BASE,
        ResourceKind.WORDPRESS_THEME: Constants.JSDELIVR_WORDPRESS_BASE,
    }

    def __init__(
        self,
        upstreams: Optional[Dict[ResourceKind, str]] = None,
        timeout: int = Constants.REQUEST_TIMEOUT,
        directory_lister: Optional[DirectoryLister] = None,
        pages: Optional[PageRenderer] = None,
        size_limit_marker: str = Constants.SIZE_LIMIT_MARKER,
    ):
        """Initialize the upstream client.

        Args:
            upstreams: Override upstream URLs by resource kind.
            timeout: Request timeout in seconds.
            directory_lister: GitHub lister for the size-limit fallback;
                without one the fallback is disabled.
            pages: Renderer for the fallback directory page.
            size_limit_marker: Body text identifying the size-limit refusal.
        """
        self._upstreams = {**self.DEFAULT_UPSTREAMS}
        if upstreams:
            self._upstreams.update({k: v.rstrip("/") for k, v in upstreams.items()})
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._lister = directory_lister
        self._pages = pages or PageRenderer()
        self._size_limit_marker = size_limit_marker

    def get_upstream(self, kind: ResourceKind) -> str:
        """Get upstream URL for a resource kind.

        Args:
            kind: Resource kind.

        Returns:
            Upstream URL.
        """
        return self._upstreams.get(kind, self.DEFAULT_UPSTREAMS.get(kind, ""))

    @property
    def upstreams(self) -> Dict[ResourceKind, str]:
        return dict(self._upstreams)

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=100)
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                connector=connector,
                headers={"User-Agent": Constants.USER_AGENT},
            )

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def build_url(self, request: ClassifiedRequest) -> str:
        """Build the upstream URL from the kind's base and the forward path."""
        base = self.get_upstream(request.kind).rstrip("/")
        path = request.forward_path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{base}{path}"

    @asynccontextmanager
    async def open_response(self, url: str):
        """Open an upstream GET response as an async context manager."""
        if self._session is None:
            await self.start()
        assert self._session is not None
        response = await self._request_with_redirects(url)
        try:
            yield response
        finally:
            response.release()

    async def fetch(self, request: ClassifiedRequest) -> UpstreamResponse:
        """Fetch a whitelisted resource from the CDN.

        Args:
            request: Classified request that passed the access check.

        Returns:
            UpstreamResponse with the full body and content type.

        Raises:
            UpstreamError: On transport failure or a non-2xx response that
                the GitHub size-limit fallback cannot turn into a listing.
        """
        url = self.build_url(request)
        logger.info("Proxying request to: %s", safe_url(url))

        with Timer() as timer:
            try:
                async with self.open_response(url) as response:
                    status = response.status
                    content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
                    body = await response.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.error("Upstream request failed for %s: %s", safe_url(url), exc)
                raise UpstreamError(url, message=str(exc) or type(exc).__name__) from exc

        if is_debug_enabled(logger):
            logger.debug(
                "Upstream response",
                extra=extra_context(
                    event="http_response",
                    component="upstream",
                    action="GET",
                    outcome="success" if 200 <= status < 300 else "error",
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                    target=safe_url(url),
                ),
            )

        if 200 <= status < 300:
            return UpstreamResponse(status=status, content_type=content_type, body=body)

        error = UpstreamError(url, status)
        if is_size_limit_rejection(request.kind, status, body, self._size_limit_marker):
            logger.info("Repository %s exceeds the CDN size limit, listing via GitHub API",
                        request.identifier)
            return await self._size_limit_fallback(request, error)

        logger.error("Upstream returned HTTP %s for %s", status, safe_url(url))
        raise error

    async def _size_limit_fallback(
        self, request: ClassifiedRequest, error: UpstreamError
    ) -> UpstreamResponse:
        """Serve a GitHub directory listing in place of the refused resource."""
        if self._lister is None:
            raise error

        owner, repo = request.identifier.split("/", 1)
        # request.subpath is still percent-encoded as received
        subpath = normalize_subpath(urllib.parse.unquote(request.subpath))

        try:
            entries = await self._lister.list_directory(owner, repo, subpath)
        except DirectoryListingError as exc:
            logger.error("GitHub API error while listing %s/%s: %s",
                         request.identifier, subpath, exc)
            raise error from exc

        if entries is None:
            logger.info("%s/%s is a file, size-limit fallback not applicable",
                        request.identifier, subpath)
            raise error

        html = self._pages.file_list(request.identifier, subpath, entries)
        return UpstreamResponse(
            status=200,
            content_type=HTML_CONTENT_TYPE,
            body=html.encode("utf-8"),
            cacheable=False,
        )

    def _is_allowed_redirect(self, source_url: str, target_url: str) -> bool:
        """Only follow redirects that stay on the source's upstream host."""
        target = urllib.parse.urlparse(target_url)
        if target.scheme not in ("http", "https"):
            return False
        if not target.hostname:
            return False

        source_host = urllib.parse.urlparse(source_url).hostname
        if not source_host:
            return False

        allowed = source_host.lower()
        target_host = target.hostname.lower()
        return target_host == allowed or target_host.endswith(f".{allowed}")

    async def _request_with_redirects(
        self,
        url: str,
        max_redirects: int = Constants.MAX_REDIRECTS,
    ) -> aiohttp.ClientResponse:
        """GET url while enforcing the redirect allowlist."""
        assert self._session is not None
        current_url = url

        for _ in range(max_redirects + 1):
            response = await self._session.request(
                "GET",
                current_url,
                allow_redirects=False,
            )

            if response.status not in (301, 302, 303, 307, 308):
                return response

            location = response.headers.get("Location")
            if not location:
                return response

            next_url = urllib.parse.urljoin(current_url, location)
            response.release()
            if not self._is_allowed_redirect(current_url, next_url):
                raise aiohttp.ClientError(f"Redirect to {safe_url(next_url)} blocked")
            current_url = next_url

        raise aiohttp.ClientError("Too many redirects")
