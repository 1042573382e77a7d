"""HTML pages served by the proxy: error pages and GitHub directory listings."""

from __future__ import annotations

import logging
import os
import urllib.parse
from typing import Any, Dict, Iterable, List, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from .request_parser import ClassifiedRequest, ResourceKind, normalize_subpath

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

KIND_LABELS = {
    ResourceKind.NPM: "npm package",
    ResourceKind.GITHUB: "GitHub repository",
    ResourceKind.WORDPRESS_PLUGIN: "WordPress plugin",
    ResourceKind.WORDPRESS_THEME: "WordPress theme",
}

# Path segment under the upstream base for each kind
_OFFICIAL_PREFIXES = {
    ResourceKind.NPM: "",
    ResourceKind.GITHUB: "",
    ResourceKind.WORDPRESS_PLUGIN: "plugins/",
    ResourceKind.WORDPRESS_THEME: "themes/",
}

FORBIDDEN_FALLBACK = "Access denied: the requested resource is not in the whitelist."
BAD_REQUEST_FALLBACK = "Invalid request: the request format cannot be handled."
SERVER_ERROR_FALLBACK = "Server error: the request could not be completed."


def format_size(size: Optional[int]) -> str:
    """Human readable file size with one decimal (1024-based thresholds)."""
    if size is None:
        return ""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / (1024 * 1024 * 1024):.1f} GB"


def official_url(request: ClassifiedRequest, upstreams: Mapping[ResourceKind, str]) -> str:
    """Unproxied CDN location of the requested resource."""
    base = upstreams.get(request.kind, "").rstrip("/")
    return f"{base}/{_OFFICIAL_PREFIXES.get(request.kind, '')}{request.identifier}"


def build_file_list_context(
    repo_name: str, current_path: str, entries: Iterable[Any]
) -> Dict[str, Any]:
    """Template context for a directory listing of ``repo_name`` at ``current_path``."""
    current_path = normalize_subpath(current_path)
    parts = [part for part in current_path.split("/") if part]

    def link(path: str) -> str:
        quoted = "/".join(
            urllib.parse.quote(part, safe="") for part in normalize_subpath(path).split("/")
        )
        return f"/gh/{repo_name}/{quoted}"

    breadcrumbs = [
        {"name": part, "url": link("/".join(parts[: index + 1]))}
        for index, part in enumerate(parts[:-1])
    ]

    files: List[Dict[str, str]] = []
    for entry in entries:
        is_dir = entry.kind == "dir"
        files.append({
            "name": entry.name,
            "url": link(f"{current_path}/{entry.name}"),
            "type": "folder" if is_dir else "file",
            "size": "" if is_dir else format_size(entry.size),
        })

    return {
        "repo_name": repo_name,
        "current_path": {
            "full_path": current_path,
            "breadcrumbs": breadcrumbs,
            "name": parts[-1] if parts else "",
        } if current_path else None,
        "parent_dir": {"url": link("/".join(parts[:-1]))} if current_path else None,
        "files": files,
    }


class PageRenderer:
    """Renders the proxy's HTML pages from jinja2 templates."""

    def __init__(self, template_dir: str = TEMPLATE_DIR):
        self._env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _render_or_fallback(self, template_name: str, fallback: str, **context: Any) -> str:
        try:
            return self._env.get_template(template_name).render(**context)
        except TemplateError as exc:
            logger.error("Error rendering %s: %s", template_name, exc)
            return fallback

    def forbidden(self, request: ClassifiedRequest, url: str) -> str:
        """Page naming the blocked resource, its type and its official URL."""
        return self._render_or_fallback(
            "forbidden.html",
            FORBIDDEN_FALLBACK,
            package_name=request.identifier,
            package_type=KIND_LABELS.get(request.kind, "unknown type"),
            official_url=url,
        )

    def bad_request(self) -> str:
        return self._render_or_fallback("bad_request.html", BAD_REQUEST_FALLBACK)

    def server_error(self) -> str:
        return self._render_or_fallback("server_error.html", SERVER_ERROR_FALLBACK)

    def file_list(self, repo_name: str, current_path: str, entries: Iterable[Any]) -> str:
        """Directory listing page. Template errors propagate to the caller."""
        context = build_file_list_context(repo_name, current_path, entries)
        return self._env.get_template("file_list.html").render(**context)
