"""GitHub contents API client used by the size-limit fallback.

Lists a repository directory through ``/repos/{owner}/{repo}/contents/{path}``
when jsDelivr refuses to serve an oversized repository. Results are kept in
a short-lived DirectoryCache so browsing a listing does not burn through the
API rate limit.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

import aiohttp

from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from constants import Constants

from .cache import DirectoryCache
from .errors import DirectoryListingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryEntry:
    """One item of a repository directory."""

    name: str
    kind: str  # "file" or "dir"
    size: Optional[int] = None

    @classmethod
    def from_api(cls, item: Mapping[str, Any]) -> "DirectoryEntry":
        """Build from a contents API item; symlinks and submodules count as files."""
        kind = "dir" if item.get("type") == "dir" else "file"
        size = item.get("size") if kind == "file" else None
        return cls(
            name=str(item.get("name", "")),
            kind=kind,
            size=int(size) if isinstance(size, int) else None,
        )


class DirectoryLister:
    """Lists GitHub repository directories with an optional bearer token."""

    def __init__(
        self,
        cache: DirectoryCache,
        token_provider: Optional[Callable[[], str]] = None,
        api_base: str = Constants.GITHUB_API_BASE,
        timeout: int = Constants.REQUEST_TIMEOUT,
    ):
        """Initialize the lister.

        Args:
            cache: Cache for listings, keyed by (owner, repo, subpath).
            token_provider: Returns the current GitHub token, or "" for none.
            api_base: Base URL of the GitHub REST API.
            timeout: Request timeout in seconds.
        """
        self._cache = cache
        self._token_provider = token_provider or (lambda: "")
        self._api_base = api_base.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def contents_url(self, owner: str, repo: str, subpath: str = "") -> str:
        """Contents API URL for a repository path."""
        return "{}/repos/{}/{}/contents/{}".format(
            self._api_base,
            urllib.parse.quote(owner, safe=""),
            urllib.parse.quote(repo, safe=""),
            urllib.parse.quote(subpath, safe="/"),
        )

    def _get_headers(self) -> Dict[str, str]:
        """Get request headers including authorization if a token is available."""
        headers = {
            "Accept": Constants.GITHUB_API_ACCEPT,
            "User-Agent": Constants.USER_AGENT,
        }
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def list_directory(
        self, owner: str, repo: str, subpath: str = ""
    ) -> Optional[List[DirectoryEntry]]:
        """List a repository directory.

        Args:
            owner: Repository owner.
            repo: Repository name.
            subpath: Normalized path inside the repository ("" for the root).

        Returns:
            Entries in API order, or None when ``subpath`` is a file.

        Raises:
            DirectoryListingError: On transport failure or a non-2xx response.
        """
        key = DirectoryCache.make_key(owner, repo, subpath)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("GitHub contents cache hit for %s/%s/%s", owner, repo, subpath)
            return cached

        data = await self._fetch_contents(owner, repo, subpath)
        if not isinstance(data, list):
            return None

        entries = [DirectoryEntry.from_api(item) for item in data if isinstance(item, Mapping)]
        self._cache.set(key, entries)
        return entries

    async def _fetch_contents(self, owner: str, repo: str, subpath: str) -> Any:
        """GET the contents API and decode the JSON body."""
        if self._session is None:
            await self.start()
        assert self._session is not None

        url = self.contents_url(owner, repo, subpath)
        logger.info("Fetching GitHub contents: %s", safe_url(url))

        with Timer() as timer:
            try:
                response = await self._session.request("GET", url, headers=self._get_headers())
                try:
                    body = await response.read()
                    status = response.status
                finally:
                    response.release()
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.error("GitHub API request failed for %s: %s", safe_url(url), exc)
                raise DirectoryListingError(owner, repo, subpath, url, message=str(exc)) from exc

        if status == 403:
            self._log_rate_limit(response.headers)

        if is_debug_enabled(logger):
            logger.debug(
                "GitHub API response",
                extra=extra_context(
                    event="http_response",
                    component="github_contents",
                    action="GET",
                    outcome="success" if 200 <= status < 300 else "error",
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                    target=safe_url(url),
                ),
            )

        if not 200 <= status < 300:
            logger.error(
                "GitHub API error: %s %s",
                status, body[:500].decode("utf-8", errors="replace"),
            )
            raise DirectoryListingError(owner, repo, subpath, url, status=status)

        try:
            return json.loads(body)
        except ValueError as exc:
            raise DirectoryListingError(
                owner, repo, subpath, url, status=status, message="invalid JSON body"
            ) from exc

    def _log_rate_limit(self, headers: Mapping[str, str]) -> None:
        """Log remaining quota and reset time from a 403 response."""
        remaining = headers.get("X-RateLimit-Remaining") or headers.get("x-ratelimit-remaining")
        reset = headers.get("X-RateLimit-Reset") or headers.get("x-ratelimit-reset")
        reset_time = None
        if reset:
            try:
                reset_time = datetime.fromtimestamp(int(reset)).isoformat(sep=" ")
            except (TypeError, ValueError, OverflowError, OSError):
                reset_time = reset
        logger.error(
            "GitHub API rate limit info: remaining=%s reset_time=%s",
            remaining, reset_time,
        )
