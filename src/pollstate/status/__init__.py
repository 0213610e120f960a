"""Vote and claim status lookups over the indexer and the ledger."""

from pollstate.status.cache import (
    RETENTION_WINDOW,
    STALE_WINDOW,
    CacheKey,
    StatusCache,
    is_fresh,
    select_source,
)

__all__ = [
    "CacheKey",
    "RETENTION_WINDOW",
    "STALE_WINDOW",
    "StatusCache",
    "is_fresh",
    "select_source",
]
