"""
Type definitions for pollstate.

Enums, records and small normalization helpers shared by the status cache,
the network selector and the source adapters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeAlias, TypeVar

from pollstate.core.exceptions import ValidationError

PollId: TypeAlias = int
Address: TypeAlias = str

T = TypeVar("T")


class NetworkId(str, Enum):
    """Networks the polling contract is deployed on."""

    TESTNET = "testnet"
    MAINNET = "mainnet"

    @classmethod
    def from_string(cls, value: str) -> NetworkId:
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValidationError(
            f"Unknown network: {value}. Supported: {[n.value for n in cls]}"
        )

    def is_testnet(self) -> bool:
        return self == NetworkId.TESTNET


class QueryKind(str, Enum):
    """Kinds of status query; the first component of every cache key."""

    USER_POLL_STATUS = "userPollStatus"
    HAS_VOTED = "hasVoted"
    HAS_CLAIMED = "hasClaimed"


class SourceKind(str, Enum):
    """Backend strategy chosen for a query."""

    INDEXER = "indexer"
    LEDGER = "ledger"
    NONE = "none"


@dataclass(frozen=True)
class NetworkProfile:
    """Endpoint configuration for one network."""

    id: NetworkId
    display_name: str
    contract_address: str
    rpc_endpoint: str
    index_endpoint: str
    chain_id: int
    explorer_url: str

    @property
    def has_contract(self) -> bool:
        return bool(self.contract_address and self.contract_address.strip())


@dataclass(frozen=True)
class UserPollStatus:
    """
    Vote and claim membership for one address under one (network, contract).

    ``claimed_polls`` is not guaranteed to be a subset of ``voted_polls``:
    rewards can be claimed through flows that never emit a vote event.
    """

    voted_polls: frozenset[PollId] = field(default_factory=frozenset)
    claimed_polls: frozenset[PollId] = field(default_factory=frozenset)

    @classmethod
    def empty(cls) -> UserPollStatus:
        return cls()

    def has_voted(self, poll_id: PollId) -> bool:
        return poll_id in self.voted_polls

    def has_claimed(self, poll_id: PollId) -> bool:
        return poll_id in self.claimed_polls

    def claimed_without_vote(self) -> frozenset[PollId]:
        return self.claimed_polls - self.voted_polls


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """An immutable cached value and the monotonic time it was fetched at."""

    value: T
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at


def normalize_address(address: str | None) -> str | None:
    """Lowercase and strip an address; blank input becomes None."""
    if address is None:
        return None
    normalized = address.strip().lower()
    return normalized or None


def validate_poll_id(poll_id: object) -> PollId:
    """Return ``poll_id`` if it is a non-negative int, else raise ValidationError."""
    if isinstance(poll_id, bool) or not isinstance(poll_id, int):
        raise ValidationError(f"Poll id must be an integer, got {poll_id!r}")
    if poll_id < 0:
        raise ValidationError(f"Poll id must be non-negative, got {poll_id}")
    return poll_id


__all__ = [
    "Address",
    "CacheEntry",
    "NetworkId",
    "NetworkProfile",
    "PollId",
    "QueryKind",
    "SourceKind",
    "UserPollStatus",
    "normalize_address",
    "validate_poll_id",
]
