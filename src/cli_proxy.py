"""CLI entry point for the cdngate proxy server.

This module provides the command-line interface for starting the proxy
server: it loads the configuration file, applies CLI overrides, sets up
logging and refuses non-local binds unless explicitly allowed.
"""

from __future__ import annotations

import ipaddress
import logging
import os
import sys
from typing import Any, Dict

import yaml

from common.logging_utils import configure_logging
from constants import Constants, ExitCodes

logger = logging.getLogger(__name__)


def _is_local_bind_host(host: str) -> bool:
    """Return True if host is a loopback/local bind target."""
    if not host:
        return False
    host_lower = host.strip().lower()
    if host_lower in ("localhost",):
        return True
    try:
        return ipaddress.ip_address(host_lower).is_loopback
    except ValueError:
        # Non-IP hostnames are treated as non-local unless explicitly allowed.
        return False


def _enforce_local_binding(host: str, allow_external: bool) -> None:
    """Enforce local-only binding unless explicitly allowed."""
    if _is_local_bind_host(host):
        return
    if not allow_external:
        sys.stderr.write(
            "ERROR: Non-local bindings require --allow-external.\n"
        )
        sys.exit(ExitCodes.USAGE_ERROR.value)
    logger.warning(
        "Binding proxy to non-local address (%s). Ensure network controls are in place.",
        host,
    )


def _load_config_file(config_path: str) -> Dict[str, Any]:
    """Load the proxy configuration document.

    Args:
        config_path: Path to a config.json or YAML file.

    Returns:
        Parsed document, or {} when the path is unset or missing.

    Raises:
        OSError, yaml.YAMLError, ValueError: If the file cannot be read or parsed.
    """
    if not config_path:
        return {}

    if not os.path.isfile(config_path):
        logger.warning("Config file not found: %s, using defaults", config_path)
        return {}

    # JSON is valid YAML, so one loader covers config.json and *.yml alike
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{config_path}: top-level document must be a mapping")
    return data


def _setup_logging(args: Any) -> None:
    """Configure logging based on CLI arguments.

    Args:
        args: Parsed CLI arguments.
    """
    # Honor CLI --loglevel
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.ENV_LOG_LEVEL] = str(args.LOG_LEVEL).upper()

    configure_logging()

    # Add file handler if --logfile specified
    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        formatter = logging.Formatter(Constants.LOG_FILE_FORMAT)
        file_handler.setFormatter(formatter)
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def build_config(args: Any):
    """Assemble the ProxyConfig: defaults < file < GITHUB_TOKEN env < CLI flags.

    Args:
        args: Parsed CLI arguments namespace.

    Returns:
        ProxyConfig instance.
    """
    from cdn_proxy.config import ProxyConfig  # pylint: disable=import-outside-toplevel

    config_path = getattr(args, "PROXY_CONFIG", None)
    try:
        document = _load_config_file(config_path)
    except (OSError, yaml.YAMLError, ValueError) as e:
        logger.error("Failed to load config %s: %s", config_path, e)
        sys.exit(ExitCodes.FILE_ERROR.value)

    try:
        config = ProxyConfig.from_dict(document)
    except (TypeError, ValueError) as e:
        logger.error("Invalid config %s: %s", config_path, e)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if document:
        logger.info("Loaded config from: %s", config_path)

    if not config.github_token:
        config.github_token = os.environ.get(Constants.ENV_GITHUB_TOKEN, "")

    return config.apply_args(args)


def run_proxy_server(args: Any) -> None:
    """Entry point for the proxy server command.

    Args:
        args: Parsed CLI arguments namespace.
    """
    _setup_logging(args)

    from cdn_proxy.server import run_proxy_server_sync  # pylint: disable=import-outside-toplevel

    config = build_config(args)
    _enforce_local_binding(config.host, config.allow_external)

    whitelist = config.whitelist
    if not any((whitelist.npm, whitelist.github,
                whitelist.wordpress_plugins, whitelist.wordpress_themes)):
        logger.warning("Whitelist is empty - every request will be denied")

    # Print startup banner
    print(
        f"\n"
        f"  cdngate CDN Proxy\n"
        f"  =================\n"
        f"  Listening: http://{config.host}:{config.port}\n"
        f"  Whitelisted: npm={len(whitelist.npm)} github={len(whitelist.github)} "
        f"wp-plugins={len(whitelist.wordpress_plugins)} "
        f"wp-themes={len(whitelist.wordpress_themes)}\n"
        f"\n"
        f"  Example:\n"
        f"    http://{config.host}:{config.port}/npm/<package>@<version>/<file>\n"
        f"\n"
        f"  Press Ctrl+C to stop\n"
    )

    # Run the server
    run_proxy_server_sync(config)
