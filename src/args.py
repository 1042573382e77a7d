"""Argument parsing functionality for cdngate."""

import argparse
from constants import Constants

def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="cdngate",
        description=(
            "cdngate - whitelisting proxy for jsDelivr npm, GitHub and WordPress resources"
        ),
        add_help=True,
    )

    parser.add_argument("-c", "--config",
                        dest="PROXY_CONFIG",
                        help="Path to config.json / YAML configuration file",
                        action="store",
                        type=str)
    parser.add_argument("--host",
                        dest="PROXY_HOST",
                        help=f"Address to bind (default: {Constants.DEFAULT_HOST})",
                        action="store",
                        type=str)
    parser.add_argument("-p", "--port",
                        dest="PROXY_PORT",
                        help="Port to listen on (default: config file or "
                             f"{Constants.DEFAULT_PORT})",
                        action="store",
                        type=int)
    parser.add_argument("--allow-external",
                        dest="ALLOW_EXTERNAL",
                        help="Allow binding to non-loopback addresses",
                        action="store_true")
    parser.add_argument("--timeout",
                        dest="PROXY_TIMEOUT",
                        help=f"Upstream request timeout in seconds (default: {Constants.REQUEST_TIMEOUT})",
                        action="store",
                        type=int)

    upstream_group = parser.add_argument_group("upstreams")
    upstream_group.add_argument("--upstream-npm",
                                dest="UPSTREAM_NPM",
                                help=f"npm CDN base (default: {Constants.JSDELIVR_NPM_BASE})",
                                action="store",
                                type=str)
    upstream_group.add_argument("--upstream-github",
                                dest="UPSTREAM_GITHUB",
                                help=f"GitHub CDN base (default: {Constants.JSDELIVR_GITHUB_BASE})",
                                action="store",
                                type=str)
    upstream_group.add_argument("--upstream-wordpress",
                                dest="UPSTREAM_WORDPRESS",
                                help=f"WordPress CDN base (default: {Constants.JSDELIVR_WORDPRESS_BASE})",
                                action="store",
                                type=str)
    upstream_group.add_argument("--github-api-base",
                                dest="GITHUB_API_BASE",
                                help=f"GitHub REST API base (default: {Constants.GITHUB_API_BASE})",
                                action="store",
                                type=str)

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
