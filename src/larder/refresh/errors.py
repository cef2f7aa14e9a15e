"""Refresh outcomes surfaced to callers."""


class RefreshError(Exception):
    """Base class for everything refresh() can raise."""


class RefreshFailure(RefreshError):
    """The refresh did not complete; the summary keeps its previous contents."""


class SourceUnavailable(RefreshFailure):
    """The orders table could not be read."""


class AggregationOverflow(RefreshFailure):
    """An aggregate does not fit the summary's DECIMAL(18, 2) columns."""


class ConcurrentRefreshSkipped(RefreshError):
    """Another refresh was in flight, so this trigger was discarded. Not a failure."""
