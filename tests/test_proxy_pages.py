"""Tests for HTML page rendering."""

import pytest

from cdn_proxy.github import DirectoryEntry
from cdn_proxy.pages import (
    BAD_REQUEST_FALLBACK,
    FORBIDDEN_FALLBACK,
    PageRenderer,
    build_file_list_context,
    format_size,
    official_url,
)
from cdn_proxy.request_parser import ClassifiedRequest, RequestParser, ResourceKind
from cdn_proxy.config import ProxyConfig

ENTRIES = [
    DirectoryEntry(name="dist", kind="dir"),
    DirectoryEntry(name="README.md", kind="file", size=2048),
    DirectoryEntry(name="tiny.txt", kind="file", size=12),
]


class TestFormatSize:
    """Tests for format_size."""

    @pytest.mark.parametrize("size,expected", [
        (0, "0 B"),
        (1023, "1023 B"),
        (2048, "2.0 KB"),
        (1536, "1.5 KB"),
        (3 * 1024 * 1024, "3.0 MB"),
        (2 * 1024 ** 3, "2.0 GB"),
        (None, ""),
    ])
    def test_format_size(self, size, expected):
        """Test human readable sizes."""
        assert format_size(size) == expected


class TestOfficialUrl:
    """Tests for the unproxied resource location."""

    def test_npm(self):
        """Test npm official URL."""
        request = RequestParser().parse("/npm/vue@3/dist/vue.js")
        assert official_url(request, ProxyConfig().upstreams()) == "https://cdn.jsdelivr.net/npm/vue"

    def test_wordpress_theme(self):
        """Test WordPress URLs include the section."""
        request = RequestParser().parse("/wp/themes/twentytwenty/style.css")
        assert official_url(request, ProxyConfig().upstreams()) == (
            "https://cdn.jsdelivr.net/wp/themes/twentytwenty"
        )


class TestFileListContext:
    """Tests for the directory listing context."""

    def test_root_listing(self):
        """Root listing has no breadcrumbs and no parent link."""
        context = build_file_list_context("owner/repo", "", ENTRIES)
        assert context["current_path"] is None
        assert context["parent_dir"] is None
        assert context["files"][0] == {
            "name": "dist",
            "url": "/gh/owner/repo/dist",
            "type": "folder",
            "size": "",
        }
        assert context["files"][1]["size"] == "2.0 KB"
        assert context["files"][2]["size"] == "12 B"

    def test_nested_listing(self):
        """Nested listing has breadcrumbs for ancestors and a parent link."""
        context = build_file_list_context("owner/repo", "a/b/c", ENTRIES)
        current = context["current_path"]
        assert current["full_path"] == "a/b/c"
        assert current["name"] == "c"
        assert current["breadcrumbs"] == [
            {"name": "a", "url": "/gh/owner/repo/a"},
            {"name": "b", "url": "/gh/owner/repo/a/b"},
        ]
        assert context["parent_dir"] == {"url": "/gh/owner/repo/a/b"}
        assert context["files"][1]["url"] == "/gh/owner/repo/a/b/c/README.md"

    def test_links_quote_each_segment(self):
        """Names with spaces, '#' or '?' produce usable links."""
        entries = [DirectoryEntry(name="x?y#z.txt", kind="file", size=1)]
        context = build_file_list_context("owner/repo", "my dir", entries)
        assert context["files"][0]["url"] == "/gh/owner/repo/my%20dir/x%3Fy%23z.txt"
        assert context["parent_dir"] == {"url": "/gh/owner/repo/"}
        assert context["current_path"]["name"] == "my dir"

    def test_entry_order_preserved(self):
        """Entries keep their input order."""
        context = build_file_list_context("owner/repo", "lib", ENTRIES)
        assert [f["name"] for f in context["files"]] == ["dist", "README.md", "tiny.txt"]


class TestPageRenderer:
    """Tests for PageRenderer."""

    def test_forbidden_page_names_resource(self):
        """Forbidden page includes name, type and official URL."""
        request = ClassifiedRequest(
            kind=ResourceKind.GITHUB, identifier="evil/repo", forward_path="/evil/repo"
        )
        html = PageRenderer().forbidden(request, "https://cdn.jsdelivr.net/gh/evil/repo")
        assert "evil/repo" in html
        assert "GitHub repository" in html
        assert "https://cdn.jsdelivr.net/gh/evil/repo" in html

    def test_forbidden_page_escapes(self):
        """Identifiers are HTML-escaped."""
        request = ClassifiedRequest(
            kind=ResourceKind.NPM, identifier="<script>", forward_path="/x"
        )
        html = PageRenderer().forbidden(request, "https://example")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_file_list_page(self):
        """Listing page renders entries and sizes."""
        html = PageRenderer().file_list("owner/repo", "lib", ENTRIES)
        assert "README.md" in html
        assert "2.0 KB" in html
        assert 'href="/gh/owner/repo/lib/dist"' in html
        assert 'href="/gh/owner/repo/"' in html

    def test_missing_templates_fall_back_to_text(self, tmp_path):
        """Error pages degrade to plain text when templates are missing."""
        renderer = PageRenderer(template_dir=str(tmp_path))
        request = ClassifiedRequest(kind=ResourceKind.NPM, identifier="x", forward_path="/x")
        assert renderer.bad_request() == BAD_REQUEST_FALLBACK
        assert renderer.forbidden(request, "https://example") == FORBIDDEN_FALLBACK

    def test_missing_file_list_template_raises(self, tmp_path):
        """Listing render failures propagate to the caller."""
        from jinja2 import TemplateError

        renderer = PageRenderer(template_dir=str(tmp_path))
        with pytest.raises(TemplateError):
            renderer.file_list("owner/repo", "", ENTRIES)
