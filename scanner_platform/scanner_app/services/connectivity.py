"""Blocking wait for network availability before model calls."""

from __future__ import annotations

import logging
import time

import requests

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SEC = 5
_NETWORK_HINTS = ("network", "fetch", "connection", "load failed", "name resolution")


class NetworkTimeoutError(RuntimeError):
    """Connectivity did not come back within the configured ceiling."""


def is_online(probe_url: str) -> bool:
    try:
        requests.head(probe_url, timeout=PROBE_TIMEOUT_SEC, allow_redirects=False)
    except (requests.ConnectionError, requests.Timeout):
        return False
    # Any HTTP answer, even an error status, proves the link is up.
    return True


def wait_for_network(
    probe_url: str,
    max_wait_sec: float = 300,
    poll_interval_sec: float = 2.0,
) -> None:
    """Return as soon as ``probe_url`` answers, or raise after ``max_wait_sec``."""
    started = time.monotonic()
    while time.monotonic() - started < max_wait_sec:
        if is_online(probe_url):
            return
        logger.warning("Network offline, waiting for connection...")
        time.sleep(poll_interval_sec)
    raise NetworkTimeoutError(f"Network connection timeout after {max_wait_sec} seconds")


def is_network_error(exc: BaseException) -> bool:
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError):
        return False
    message = str(exc).lower()
    return any(hint in message for hint in _NETWORK_HINTS)
