"""Error taxonomy shared by the fetcher, cache layer and aggregator.

Lower layers translate library exceptions (httpx, pydantic, redis) into these
types so callers never have to know which transport or store is in use.
"""

from __future__ import annotations


class AggregatorError(Exception):
    """Base class for all service errors."""


class InvalidArgument(AggregatorError):
    """Bad pagination, filter, collection or id input. Not retried."""


class UpstreamUnavailable(AggregatorError):
    """Network/HTTP failure talking to the upstream API. Safe to retry whole.

    ``status`` is the upstream HTTP status when one was received.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class UpstreamMalformed(AggregatorError):
    """Upstream replied, but the payload does not have the expected shape."""


class NotFound(AggregatorError):
    """Entity absent upstream, or a cache-aside compute produced nothing."""


class CacheUnavailable(AggregatorError):
    """Cache store could not be reached; callers degrade to upstream fetches."""
