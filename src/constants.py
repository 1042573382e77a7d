"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    USAGE_ERROR = 2


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_HOST = "127.0.0.1"
    DEFAULT_PORT = 3000
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all upstream requests

    # jsDelivr upstreams
    JSDELIVR_NPM_BASE = "https://cdn.jsdelivr.net/npm"
    JSDELIVR_GITHUB_BASE = "https://cdn.jsdelivr.net/gh"
    JSDELIVR_WORDPRESS_BASE = "https://cdn.jsdelivr.net/wp"

    # Body text jsDelivr returns with a 403 for oversized GitHub repositories
    SIZE_LIMIT_MARKER = "Package size exceeded"

    # GitHub contents API
    GITHUB_API_BASE = "https://api.github.com"
    GITHUB_API_ACCEPT = "application/vnd.github.v3+json"
    ENV_GITHUB_TOKEN = "GITHUB_TOKEN"

    RESPONSE_CACHE_TTL_SEC = 24 * 60 * 60
    GITHUB_API_CACHE_TTL_SEC = 300

    DEFAULT_ADMIN_KEY = "admin"
    USER_AGENT = "cdngate-proxy/1.0"
    HEALTH_PATH = "/_cdngate/health"
    MAX_REDIRECTS = 5

    ENV_LOG_LEVEL = "CDNGATE_LOG_LEVEL"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
