"""
Source protocols for the status cache.

The cache talks to two collaborators: a secondary index that answers batch
membership questions, and the ledger node that answers one poll at a time
with current chain state. Both raise SourceUnavailableError subclasses on
failure and never return a guessed answer.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IndexedQuerySource(Protocol):
    """Batch and single-poll lookups against the secondary index."""

    async def query_voted_polls(
        self, index_endpoint: str, contract_address: str, address: str
    ) -> set[int]: ...

    async def query_claimed_polls(
        self, index_endpoint: str, contract_address: str, address: str
    ) -> set[int]: ...

    async def query_has_voted(
        self, index_endpoint: str, contract_address: str, address: str, poll_id: int
    ) -> bool: ...

    async def query_has_claimed(
        self, index_endpoint: str, contract_address: str, address: str, poll_id: int
    ) -> bool: ...


@runtime_checkable
class LedgerReadSource(Protocol):
    """Authoritative single-poll reads against current chain state."""

    async def read_has_voted(
        self, rpc_endpoint: str, contract_address: str, poll_id: int, address: str
    ) -> bool: ...

    async def read_has_claimed(
        self, rpc_endpoint: str, contract_address: str, poll_id: int, address: str
    ) -> bool: ...


__all__ = ["IndexedQuerySource", "LedgerReadSource"]
