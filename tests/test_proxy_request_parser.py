"""Tests for the proxy request parser."""

import pytest

from cdn_proxy.errors import ClassificationError
from cdn_proxy.request_parser import (
    ClassifiedRequest,
    RequestParser,
    ResourceKind,
    normalize_subpath,
)


class TestNpmParsing:
    """Tests for the /npm grammar."""

    def setup_method(self):
        """Set up test fixtures."""
        self.parser = RequestParser()

    def test_scoped_package_with_version_and_file(self):
        """Test scoped package keeps both segments in the identifier."""
        result = self.parser.parse("/npm/@scope/name@1.0.0/dist/x.js")
        assert result.kind == ResourceKind.NPM
        assert result.identifier == "@scope/name"
        assert result.forward_path == "/@scope/name@1.0.0/dist/x.js"
        assert result.version == "1.0.0"
        assert result.subpath == "/dist/x.js"

    def test_unscoped_package_uses_first_segment(self):
        """Test unscoped identifier ignores subsequent segments."""
        result = self.parser.parse("/npm/lodash/lodash.min.js")
        assert result.identifier == "lodash"
        assert result.forward_path == "/lodash/lodash.min.js"
        assert result.version is None

    def test_unscoped_package_version_stripped(self):
        """Test version suffix is kept in the forward path only."""
        result = self.parser.parse("/npm/jquery@3.6.0/dist/jquery.min.js")
        assert result.identifier == "jquery"
        assert result.version == "3.6.0"
        assert result.forward_path == "/jquery@3.6.0/dist/jquery.min.js"

    def test_bare_package(self):
        """Test a package name without version or file."""
        result = self.parser.parse("/npm/vue")
        assert result.identifier == "vue"
        assert result.subpath == ""

    def test_query_string_preserved(self):
        """Test query string is forwarded but not part of the identifier."""
        result = self.parser.parse("/npm/vue@3/dist/vue.js?v=1")
        assert result.identifier == "vue"
        assert result.forward_path == "/vue@3/dist/vue.js?v=1"
        assert result.subpath == "/dist/vue.js"

    def test_empty_name_rejected(self):
        """Test /npm/ without a package is a classification failure."""
        with pytest.raises(ClassificationError):
            self.parser.parse("/npm/")


class TestGithubParsing:
    """Tests for the /gh grammar."""

    def setup_method(self):
        """Set up test fixtures."""
        self.parser = RequestParser()

    def test_owner_repo_with_version(self):
        """Test identifier is owner/repo and forward path keeps version."""
        result = self.parser.parse("/gh/ownerX/repoY@2.0.0/lib/a.js")
        assert result.kind == ResourceKind.GITHUB
        assert result.identifier == "ownerX/repoY"
        assert result.forward_path == "/ownerX/repoY@2.0.0/lib/a.js"
        assert result.version == "2.0.0"
        assert result.subpath == "/lib/a.js"

    def test_owner_repo_without_version(self):
        """Test a directory path without version."""
        result = self.parser.parse("/gh/twbs/bootstrap/dist/")
        assert result.identifier == "twbs/bootstrap"
        assert result.version is None
        assert result.subpath == "/dist/"

    def test_single_segment_rejected(self):
        """Test a GitHub path with fewer than two segments fails."""
        with pytest.raises(ClassificationError) as exc_info:
            self.parser.parse("/gh/onlyowner")
        assert exc_info.value.path == "/gh/onlyowner"


class TestWordpressParsing:
    """Tests for the /wp grammar."""

    def setup_method(self):
        """Set up test fixtures."""
        self.parser = RequestParser()

    def test_plugin_version_stripped(self):
        """Test plugin kind and slug without version."""
        result = self.parser.parse("/wp/plugins/foo@3.1/readme.txt")
        assert result.kind == ResourceKind.WORDPRESS_PLUGIN
        assert result.identifier == "foo"
        assert result.forward_path == "/plugins/foo@3.1/readme.txt"

    def test_theme(self):
        """Test theme kind."""
        result = self.parser.parse("/wp/themes/twentytwenty/style.css")
        assert result.kind == ResourceKind.WORDPRESS_THEME
        assert result.identifier == "twentytwenty"

    def test_invalid_subtype_rejected(self):
        """Test an unknown WordPress section fails."""
        with pytest.raises(ClassificationError):
            self.parser.parse("/wp/widgets/foo")

    def test_missing_subtype_rejected(self):
        """Test /wp/ with nothing after it fails."""
        with pytest.raises(ClassificationError):
            self.parser.parse("/wp/")


class TestUnrecognizedPaths:
    """Tests for paths outside the three grammars."""

    def setup_method(self):
        """Set up test fixtures."""
        self.parser = RequestParser()

    @pytest.mark.parametrize("path", ["/foo/bar", "/", "/npm", "/ghost/a/b", "/favicon.ico"])
    def test_unrecognized_rejected(self, path):
        """Test unrecognized paths raise ClassificationError."""
        with pytest.raises(ClassificationError):
            self.parser.parse(path)

    def test_classification_error_is_client_error(self):
        """Test classification failures map to HTTP 400."""
        assert ClassificationError.status_code == 400

    def test_result_is_immutable(self):
        """Test classified requests cannot be mutated."""
        result = self.parser.parse("/npm/vue")
        assert isinstance(result, ClassifiedRequest)
        with pytest.raises(AttributeError):
            result.identifier = "other"


def test_normalize_subpath():
    """Empty segments are dropped and slashes trimmed."""
    assert normalize_subpath("/lib//a/") == "lib/a"
    assert normalize_subpath("") == ""
    assert normalize_subpath("/") == ""
