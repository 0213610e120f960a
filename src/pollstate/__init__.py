"""
pollstate - vote and claim status for on-chain polls.

Answers "has this wallet voted?" and "has it claimed its reward?" per poll,
from a GraphQL indexer when the fast path is enabled and from direct ledger
reads otherwise.

Usage:
    >>> from pollstate import PollStatusClient, NativeConnection
    >>>
    >>> async with PollStatusClient(
    ...     native_provider=lambda: NativeConnection(connected=True, address="0xabc"),
    ... ) as client:
    ...     result = await client.query_user_poll_status()
    ...     result.data.voted_polls
"""

from pollstate.client import PollStatusClient, QueryResult
from pollstate.core.config import Config
from pollstate.core.exceptions import (
    ConfigurationError,
    IndexerQueryError,
    LedgerReadError,
    PollStateError,
    SourceUnavailableError,
    ValidationError,
)
from pollstate.core.logging import configure_logging, get_logger
from pollstate.core.types import (
    CacheEntry,
    NetworkId,
    NetworkProfile,
    QueryKind,
    SourceKind,
    UserPollStatus,
)
from pollstate.flags import FeatureGate
from pollstate.identity import (
    EmbeddedConnection,
    IdentityResolver,
    IdentitySource,
    NativeConnection,
    ResolvedIdentity,
    resolve_identity,
)
from pollstate.network import NetworkSelector, build_network_profiles
from pollstate.sources import IndexerClient, LedgerClient
from pollstate.status import StatusCache, select_source

__version__ = "0.1.0"

__all__ = [
    "PollStatusClient",
    "QueryResult",
    "Config",
    "ConfigurationError",
    "IndexerQueryError",
    "LedgerReadError",
    "PollStateError",
    "SourceUnavailableError",
    "ValidationError",
    "configure_logging",
    "get_logger",
    "CacheEntry",
    "NetworkId",
    "NetworkProfile",
    "QueryKind",
    "SourceKind",
    "UserPollStatus",
    "FeatureGate",
    "EmbeddedConnection",
    "IdentityResolver",
    "IdentitySource",
    "NativeConnection",
    "ResolvedIdentity",
    "resolve_identity",
    "NetworkSelector",
    "build_network_profiles",
    "IndexerClient",
    "LedgerClient",
    "StatusCache",
    "select_source",
]
