"""Request parser for classifying proxy paths into CDN resources."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .errors import ClassificationError


class ResourceKind(Enum):
    """Supported resource kinds."""

    NPM = "npm"
    GITHUB = "github"
    WORDPRESS_PLUGIN = "wordpress-plugin"
    WORDPRESS_THEME = "wordpress-theme"


@dataclass(frozen=True)
class ClassifiedRequest:
    """Result of classifying a proxy request path."""

    kind: ResourceKind
    identifier: str
    forward_path: str
    raw_path: str = ""
    version: Optional[str] = None
    subpath: str = ""


class RequestParser:
    """Parser for the three proxy URL grammars (/npm, /gh, /wp)."""

    # /npm/{name}[@version][/file]
    # /npm/@{scope}/{name}[@version][/file]
    _NPM_PATTERN = re.compile(
        r"^(?P<name>(?:@[^/@?]+/)?[^/@?]+)"
        r"(?:@(?P<version>[^/?]*))?"
        r"(?P<subpath>/[^?]*)?"
        r"(?:\?.*)?$"
    )

    # /gh/{owner}/{repo}[@version][/file]
    _GITHUB_PATTERN = re.compile(
        r"^(?P<owner>[^/@?]+)/(?P<repo>[^/@?]+)"
        r"(?:@(?P<version>[^/?]*))?"
        r"(?P<subpath>/[^?]*)?"
        r"(?:\?.*)?$"
    )

    # /wp/plugins/{slug}[@version][/file]
    # /wp/themes/{slug}[@version][/file]
    _WORDPRESS_PATTERN = re.compile(
        r"^(?P<section>plugins|themes)/(?P<slug>[^/@?]+)"
        r"(?:@(?P<version>[^/?]*))?"
        r"(?P<subpath>/[^?]*)?"
        r"(?:\?.*)?$"
    )

    _WORDPRESS_KINDS = {
        "plugins": ResourceKind.WORDPRESS_PLUGIN,
        "themes": ResourceKind.WORDPRESS_THEME,
    }

    def __init__(self) -> None:
        self._grammars: Dict[str, Callable[[str, str], ClassifiedRequest]] = {
            "/npm": self.parse_npm,
            "/gh": self.parse_github,
            "/wp": self.parse_wordpress,
        }

    def parse(self, path: str) -> ClassifiedRequest:
        """Classify a raw request path.

        Args:
            path: The path as received, query string included.

        Returns:
            ClassifiedRequest for the matching grammar.

        Raises:
            ClassificationError: If no grammar accepts the path.
        """
        if not path.startswith("/"):
            path = "/" + path

        for prefix, grammar in self._grammars.items():
            if path.startswith(prefix + "/"):
                return grammar(path, path[len(prefix):])

        raise ClassificationError(path)

    def parse_npm(self, path: str, forward_path: str) -> ClassifiedRequest:
        """Parse an npm request; ``forward_path`` is everything after ``/npm``."""
        match = self._NPM_PATTERN.match(forward_path[1:])
        if not match:
            raise ClassificationError(path, "missing npm package name")

        return ClassifiedRequest(
            kind=ResourceKind.NPM,
            identifier=match.group("name"),
            forward_path=forward_path,
            raw_path=path,
            version=match.group("version"),
            subpath=match.group("subpath") or "",
        )

    def parse_github(self, path: str, forward_path: str) -> ClassifiedRequest:
        """Parse a GitHub request; ``forward_path`` is everything after ``/gh``."""
        match = self._GITHUB_PATTERN.match(forward_path[1:])
        if not match:
            raise ClassificationError(path, "expected /gh/<owner>/<repo>")

        return ClassifiedRequest(
            kind=ResourceKind.GITHUB,
            identifier=f"{match.group('owner')}/{match.group('repo')}",
            forward_path=forward_path,
            raw_path=path,
            version=match.group("version"),
            subpath=match.group("subpath") or "",
        )

    def parse_wordpress(self, path: str, forward_path: str) -> ClassifiedRequest:
        """Parse a WordPress request; ``forward_path`` is everything after ``/wp``."""
        match = self._WORDPRESS_PATTERN.match(forward_path[1:])
        if not match:
            raise ClassificationError(path, "expected /wp/<plugins|themes>/<slug>")

        return ClassifiedRequest(
            kind=self._WORDPRESS_KINDS[match.group("section")],
            identifier=match.group("slug"),
            forward_path=forward_path,
            raw_path=path,
            version=match.group("version"),
            subpath=match.group("subpath") or "",
        )


def normalize_subpath(subpath: str) -> str:
    """Drop empty segments: ``"/lib//a/"`` becomes ``"lib/a"``."""
    return "/".join(part for part in subpath.split("/") if part)
