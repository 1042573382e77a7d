"""Whitelist evaluator for classified proxy requests."""

from __future__ import annotations

import logging

from .config import ConfigStore, Whitelist
from .errors import ResourceForbidden
from .request_parser import ClassifiedRequest

logger = logging.getLogger(__name__)


def is_allowed(request: ClassifiedRequest, whitelist: Whitelist) -> bool:
    """Return True if the request's identifier is whitelisted for its kind.

    Exact match only; kinds without a whitelist set are denied.
    """
    return request.identifier in whitelist.for_kind(request.kind)


class AccessEvaluator:
    """Checks classified requests against the live whitelist."""

    def __init__(self, store: ConfigStore):
        """Initialize the evaluator.

        Args:
            store: Configuration store holding the whitelist.
        """
        self._store = store

    def is_allowed(self, request: ClassifiedRequest) -> bool:
        return is_allowed(request, self._store.get_whitelist_set())

    def check(self, request: ClassifiedRequest) -> None:
        """Raise ResourceForbidden unless the request is whitelisted."""
        if self.is_allowed(request):
            logger.debug("Allowed: %s:%s", request.kind.value, request.identifier)
            return
        logger.warning(
            "Blocked: %s:%s (%s) not in whitelist",
            request.kind.value, request.identifier, request.raw_path,
        )
        raise ResourceForbidden(request)
