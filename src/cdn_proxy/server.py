"""CDN proxy server using aiohttp."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any, Dict, Iterable, Optional

from aiohttp import web

from constants import Constants

from .cache import DirectoryCache, ResponseCache
from .config import CacheSettings, ConfigStore, ProxyConfig
from .errors import ClassificationError, ResourceForbidden, UpstreamError
from .evaluator import AccessEvaluator
from .github import DirectoryLister
from .pages import PageRenderer, official_url
from .request_parser import RequestParser, ResourceKind
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": (
        "Origin, X-Requested-With, Content-Type, Accept, X-Admin-Key"
    ),
}


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Answer preflight requests and add CORS headers to every response."""
    if request.method == "OPTIONS":
        return web.Response(status=200, headers=CORS_HEADERS)
    response = await handler(request)
    response.headers.update(CORS_HEADERS)
    return response


class CdnProxyServer:
    """HTTP proxy server for whitelisted CDN resources.

    Classifies each request path, checks it against the whitelist, serves
    it from the response cache when possible and otherwise fetches it from
    the CDN, falling back to a GitHub directory listing for repositories
    the CDN refuses as too large.
    """

    def __init__(self, config: Optional[ProxyConfig] = None):
        """Initialize the proxy server.

        Args:
            config: Server configuration.
        """
        self._config = config or ProxyConfig()
        self._store = ConfigStore(self._config)
        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None

        # Initialize caches
        self._response_cache = ResponseCache(self._store.get_cache_config)
        self._directory_cache = DirectoryCache(self._store.get_github_api_cache_config)

        self._parser = RequestParser()
        self._evaluator = AccessEvaluator(self._store)
        self._pages = PageRenderer()

        self._lister = DirectoryLister(
            cache=self._directory_cache,
            token_provider=self._store.get_github_token,
            api_base=self._config.github_api_base,
            timeout=self._config.timeout,
        )
        self._upstream = UpstreamClient(
            upstreams=self._config.upstreams(),
            timeout=self._config.timeout,
            directory_lister=self._lister,
            pages=self._pages,
            size_limit_marker=self._config.size_limit_marker,
        )

    @property
    def store(self) -> ConfigStore:
        return self._store

    def _create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application(middlewares=[cors_middleware])
        app.router.add_get(Constants.HEALTH_PATH, self._health_check)
        app.router.add_get("/{path:.*}", self._handle_request)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _health_check(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({
            "status": "ok",
            "cache": self.cache_stats(),
        })

    async def _on_startup(self, app: web.Application) -> None:
        """Called when the server starts."""
        await self._upstream.start()
        await self._lister.start()
        logger.info("Proxy server starting on %s:%s", self._config.host, self._config.port)

    async def _on_cleanup(self, app: web.Application) -> None:
        """Called when the server stops."""
        await self._upstream.stop()
        await self._lister.stop()
        logger.info("Proxy server stopped")

    async def _handle_request(self, request: web.Request) -> web.Response:
        """Handle an incoming proxy request.

        Args:
            request: Incoming HTTP request.

        Returns:
            HTTP response.
        """
        # Cache key and classification both use the path exactly as received
        raw_path = request.rel_url.raw_path_qs

        try:
            classified = self._parser.parse(raw_path)
        except ClassificationError as exc:
            logger.warning("Bad request: %s", exc)
            return self._html_response(self._pages.bad_request(), ClassificationError.status_code)

        try:
            self._evaluator.check(classified)
        except ResourceForbidden as exc:
            return self._deny_response(exc)

        cached = self._response_cache.get(raw_path)
        if cached is not None:
            logger.debug("Cache hit: %s", raw_path)
            return web.Response(body=cached.body, headers={"Content-Type": cached.content_type})

        logger.info(
            "Request: %s -> %s:%s", raw_path, classified.kind.value, classified.identifier,
        )

        try:
            result = await self._upstream.fetch(classified)
        except UpstreamError as exc:
            logger.error("Proxy error for %s: %s", raw_path, exc)
            return self._html_response(self._pages.server_error(), UpstreamError.status_code)
        except asyncio.CancelledError:
            logger.info("Client went away, cancelled upstream fetch for %s", raw_path)
            raise
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Unexpected error while proxying %s", raw_path)
            return self._html_response(self._pages.server_error(), 500)

        if result.cacheable:
            self._response_cache.set(raw_path, result.body, result.content_type)

        return web.Response(
            status=200,
            body=result.body,
            headers={"Content-Type": result.content_type},
        )

    def _html_response(self, html: str, status: int) -> web.Response:
        return web.Response(status=status, text=html, content_type="text/html")

    def _deny_response(self, exc: ResourceForbidden) -> web.Response:
        """Create a deny response for a resource outside the whitelist.

        Args:
            exc: The access-check failure, carrying the classified request.

        Returns:
            403 Forbidden response.
        """
        url = official_url(exc.request, self._upstream.upstreams)
        return self._html_response(
            self._pages.forbidden(exc.request, url), ResourceForbidden.status_code
        )

    def set_whitelist(self, kind: ResourceKind, items: Iterable[str]) -> None:
        """Replace the whitelist for one resource kind.

        Args:
            kind: Resource kind.
            items: Allowed identifiers.
        """
        self._store.set_whitelist(kind, items)

    def set_cache_config(self, enabled: bool, ttl_seconds: Optional[int] = None) -> CacheSettings:
        """Toggle the response cache.

        Entries are kept while disabled; the TTL check on read keeps stale
        ones from being served after re-enabling.
        """
        settings = self._store.set_cache_config(enabled, ttl_seconds)
        logger.info("Response cache: enabled=%s ttl=%ss", settings.enabled, settings.ttl_seconds)
        return settings

    def set_github_api_cache_config(
        self, enabled: bool, ttl_seconds: Optional[int] = None
    ) -> CacheSettings:
        """Toggle the GitHub contents cache; disabling it drops all listings."""
        settings = self._store.set_github_api_cache_config(enabled, ttl_seconds)
        if not settings.enabled:
            self._directory_cache.clear()
        logger.info(
            "GitHub API cache: enabled=%s ttl=%ss", settings.enabled, settings.ttl_seconds,
        )
        return settings

    def clear_cache(self) -> None:
        """Drop every cached response."""
        self._response_cache.clear()
        logger.info("Response cache cleared")

    def cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dict with response cache stats and the listing cache size.
        """
        return {
            "response_cache": self._response_cache.stats(),
            "github_api_cache": {"count": len(self._directory_cache)},
        }

    async def start(self) -> None:
        """Start the proxy server."""
        self._app = self._create_app()
        self._runner = web.AppRunner(self._app, handler_cancellation=True)
        await self._runner.setup()

        site = web.TCPSite(
            self._runner,
            self._config.host,
            self._config.port,
        )
        await site.start()

        logger.info(
            "CDN proxy server listening on http://%s:%s",
            self._config.host, self._config.port,
        )
        logger.info("Upstream npm: %s", self._config.upstream_npm)
        logger.info("Upstream GitHub: %s", self._config.upstream_github)
        logger.info("Upstream WordPress: %s", self._config.upstream_wordpress)
        logger.info(
            "Response cache: enabled=%s ttl=%ss",
            self._config.cache.enabled, self._config.cache.ttl_seconds,
        )

    async def stop(self) -> None:
        """Stop the proxy server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None


def run_proxy_server_sync(config: ProxyConfig) -> None:
    """Run the proxy server synchronously.

    Installs signal handlers for SIGTERM and SIGINT for clean shutdown.

    Args:
        config: Server configuration.
    """
    server = CdnProxyServer(config)
    loop = asyncio.new_event_loop()

    async def run():
        await server.start()
        stop_event = asyncio.Event()
        running_loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            running_loop.add_signal_handler(sig, stop_event.set)
        await stop_event.wait()
        logger.info("Shutdown signal received, stopping...")
        await server.stop()

    try:
        loop.run_until_complete(run())
    except KeyboardInterrupt:
        # Fallback for platforms where signal handlers don't work (Windows)
        loop.run_until_complete(server.stop())
    finally:
        loop.close()
        logger.info("Proxy server shutdown complete")
