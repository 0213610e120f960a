"""Status sources: the secondary index and the ledger node."""

from pollstate.sources.base import IndexedQuerySource, LedgerReadSource
from pollstate.sources.indexer import IndexerClient
from pollstate.sources.ledger import LedgerClient

__all__ = [
    "IndexedQuerySource",
    "IndexerClient",
    "LedgerClient",
    "LedgerReadSource",
]
