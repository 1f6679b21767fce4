"""
Failures that can happen during one scrape cycle.

None of these escape collect() -- they're caught there, logged,
and turned into up=0 for the cycle.
"""

from __future__ import annotations


class ScrapeError(Exception):
    """Base class for everything that can go wrong during a scrape."""


class TransportError(ScrapeError):
    """Connection, DNS, timeout or cancellation while talking to the cluster."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"failed to get nodes from cluster from {url}: {cause}")


class UnexpectedStatus(ScrapeError):
    def __init__(self, url: str, status_code: int):
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP request to {url} failed with code {status_code}")


class DecodeError(ScrapeError):
    """Body was not JSON, or didn't have the shape of a cluster state response."""


class ResourceReleaseWarning(ScrapeError):
    """Closing the response failed. Logged, never fatal."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"failed to close response from {url}: {cause}")
