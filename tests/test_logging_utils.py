"""Tests for the logging helpers."""

import logging

from common.logging_utils import Timer, configure_logging, extra_context, redact, safe_url


def test_safe_url_redacts_sensitive_params():
    """Credential-like query values are masked."""
    url = safe_url("https://api.github.com/repos/o/r?access_token=abc&page=2")
    assert "abc" not in url
    assert "page=2" in url
    assert "access_token=[REDACTED]" in url


def test_safe_url_redacts_userinfo():
    """User info in the netloc is masked."""
    assert safe_url("https://user:pw@cdn.example/npm/vue") == (
        "https://[REDACTED]@cdn.example/npm/vue"
    )


def test_safe_url_leaves_plain_urls():
    """URLs without credentials are unchanged."""
    url = "https://cdn.jsdelivr.net/npm/vue@3/dist/vue.js"
    assert safe_url(url) == url


def test_redact_bearer():
    """Bearer tokens in free text are masked."""
    assert redact("Authorization: Bearer ghp_123") == "Authorization: Bearer [REDACTED]"


def test_extra_context_drops_none():
    """None values are not included in the extra mapping."""
    assert extra_context(event="x", status_code=None) == {"event": "x"}


def test_timer_measures():
    """Timer reports a non-negative duration."""
    with Timer() as timer:
        pass
    assert timer.duration_ms() >= 0


def test_configure_logging_honors_env(monkeypatch):
    """The level comes from CDNGATE_LOG_LEVEL."""
    root = logging.getLogger()
    previous = root.level
    monkeypatch.setenv("CDNGATE_LOG_LEVEL", "debug")
    try:
        configure_logging()
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous)
