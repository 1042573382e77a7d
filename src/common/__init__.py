"""Shared helpers used by the proxy and the CLI."""
