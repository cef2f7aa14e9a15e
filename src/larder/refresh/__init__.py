"""Monthly sales summary refresher."""

from larder.refresh.errors import (
    RefreshError,
    RefreshFailure,
    SourceUnavailable,
    AggregationOverflow,
    ConcurrentRefreshSkipped,
)
from larder.refresh.monthly import MonthlySalesRefresher, RefreshResult, get_refresher

__all__ = [
    "RefreshError",
    "RefreshFailure",
    "SourceUnavailable",
    "AggregationOverflow",
    "ConcurrentRefreshSkipped",
    "MonthlySalesRefresher",
    "RefreshResult",
    "get_refresher",
]
