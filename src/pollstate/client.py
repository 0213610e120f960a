"""PollStatusClient - main entry point."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from pollstate.core.config import Config
from pollstate.core.exceptions import SourceUnavailableError
from pollstate.core.logging import configure_logging, get_logger
from pollstate.core.types import (
    NetworkId,
    NetworkProfile,
    UserPollStatus,
    normalize_address,
    validate_poll_id,
)
from pollstate.flags import FeatureGate
from pollstate.identity.resolver import EmbeddedProvider, IdentityResolver, NativeProvider
from pollstate.identity.types import ResolvedIdentity
from pollstate.network.selector import NetworkSelector
from pollstate.resilience.retry import execute_with_retry
from pollstate.sources.base import IndexedQuerySource, LedgerReadSource
from pollstate.sources.indexer import IndexerClient
from pollstate.sources.ledger import LedgerClient
from pollstate.status.cache import StatusCache
from pollstate.storage import FileStorage, RedisStorage, get_storage
from pollstate.storage.base import StorageBackend

T = TypeVar("T")


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """
    Outcome of a status query as a UI would consume it.

    ``data`` always holds something displayable: on failure it is the last
    cached value or the empty placeholder, and ``error`` carries the failure.
    """

    data: T
    error: SourceUnavailableError | None = None
    is_placeholder: bool = False
    is_optimized: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def _build_storage(config: Config) -> StorageBackend:
    if config.storage_backend == "file":
        return FileStorage(config.storage_path)
    if config.storage_backend == "redis":
        return RedisStorage(redis_url=config.redis_url)
    return get_storage(config.storage_backend)


class PollStatusClient:
    """
    Vote and claim status for the connected user.

    Wires configuration, the persisted network selection, the wallet identity
    resolver and both status sources into one StatusCache.

    Usage:
        async with PollStatusClient(native_provider=..., embedded_provider=...) as client:
            result = await client.query_user_poll_status()
            if result.ok and 3 in result.data.claimed_polls:
                ...
    """

    def __init__(
        self,
        config: Config | None = None,
        native_provider: NativeProvider | None = None,
        embedded_provider: EmbeddedProvider | None = None,
        storage: StorageBackend | None = None,
        indexer: IndexedQuerySource | None = None,
        ledger: LedgerReadSource | None = None,
        clock: Callable[[], float] = time.monotonic,
        log_level: int | str | None = None,
    ) -> None:
        """
        Args:
            config: Configuration (default: Config.from_env())
            native_provider: Returns the native wallet adapter's connection state
            embedded_provider: Returns the embedded wallet session state
            storage: Persistence for the selected network (default from config)
            indexer: IndexedQuerySource (default: IndexerClient over httpx)
            ledger: LedgerReadSource (default: LedgerClient over httpx)
            clock: Monotonic clock used for cache freshness
            log_level: Overrides config.log_level when given
        """
        self._config = config or Config.from_env()
        configure_logging(level=log_level or self._config.log_level)
        self._logger = get_logger("client")

        self._storage = storage or _build_storage(self._config)
        self._owned_sources: list[IndexerClient | LedgerClient] = []
        if indexer is None:
            indexer = IndexerClient(timeout=self._config.request_timeout)
            self._owned_sources.append(indexer)
        if ledger is None:
            ledger = LedgerClient(timeout=self._config.request_timeout)
            self._owned_sources.append(ledger)

        self._gate = FeatureGate.from_config(self._config)
        self._network = NetworkSelector.from_config(self._config, self._storage)
        self._identity = IdentityResolver(native_provider, embedded_provider)
        self._ledger = ledger
        self._status = StatusCache(
            self._network,
            indexer,
            ledger,
            self._gate,
            identity_resolver=self._identity,
            clock=clock,
            stale_window=self._config.stale_window,
            retention_window=self._config.retention_window,
        )

        self._logger.info(
            f"Initialized poll status client (indexer: "
            f"{'enabled' if self._gate.is_enabled() else 'disabled'})"
        )

    @property
    def config(self) -> Config:
        return self._config

    @property
    def network(self) -> NetworkSelector:
        return self._network

    @property
    def status(self) -> StatusCache:
        return self._status

    @property
    def feature_gate(self) -> FeatureGate:
        return self._gate

    async def load(self) -> NetworkProfile:
        """Restore the persisted network selection."""
        profile = await self._network.load()
        self._logger.info(f"Active network: {profile.display_name}")
        if not profile.has_contract:
            self._logger.warning(
                f"No contract address configured for {profile.id.value}; "
                f"status queries will return defaults"
            )
        return profile

    async def __aenter__(self) -> PollStatusClient:
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Wait for background refreshes and close owned connections."""
        await self._status.join_background()
        for source in self._owned_sources:
            await source.close()
        await self._storage.close()

    # ─── Identity & network ──────────────────────────────────────────

    def identity(self) -> ResolvedIdentity:
        return self._identity.resolve()

    async def set_network(self, network_id: NetworkId | str) -> NetworkProfile:
        """Switch networks and refresh any retained status for the new one."""
        await self._network.set_active(network_id)
        await self._status.revalidate()
        return self._network.get_active()

    def _address(self, address: str | None) -> str | None:
        return address if address is not None else self._identity.current_address()

    # ─── Queries ─────────────────────────────────────────────────────

    async def query_user_poll_status(self, address: str | None = None) -> QueryResult[UserPollStatus]:
        """Batch status for ``address`` (default: the connected wallet)."""
        target = self._address(address)
        try:
            data = await self._status.get_user_poll_status(target)
        except SourceUnavailableError as e:
            self._logger.warning(f"Poll status query failed: {e}")
            return QueryResult(
                data=self._status.peek_user_poll_status(target),
                error=e,
                is_placeholder=True,
                is_optimized=self._gate.is_enabled(),
            )
        return QueryResult(data=data, is_optimized=self._gate.is_enabled())

    async def query_has_voted(self, poll_id: int, address: str | None = None) -> QueryResult[bool]:
        target = self._address(address)
        try:
            voted = await self._status.has_voted(poll_id, target)
        except SourceUnavailableError as e:
            self._logger.warning(f"Vote status query for poll {poll_id} failed: {e}")
            return QueryResult(
                data=self._status.peek_has_voted(poll_id, target),
                error=e,
                is_placeholder=True,
                is_optimized=self._gate.is_enabled(),
            )
        return QueryResult(data=voted, is_optimized=self._gate.is_enabled())

    async def query_has_claimed(self, poll_id: int, address: str | None = None) -> QueryResult[bool]:
        target = self._address(address)
        try:
            claimed = await self._status.has_claimed(poll_id, target)
        except SourceUnavailableError as e:
            self._logger.warning(f"Claim status query for poll {poll_id} failed: {e}")
            return QueryResult(
                data=self._status.peek_has_claimed(poll_id, target),
                error=e,
                is_placeholder=True,
                is_optimized=self._gate.is_enabled(),
            )
        return QueryResult(data=claimed, is_optimized=self._gate.is_enabled())

    async def confirm_has_claimed(
        self,
        poll_id: int,
        address: str | None = None,
        attempts: int = 3,
        backoff: float = 0.5,
    ) -> bool:
        """
        Authoritative claim check straight from the ledger, with retries.

        Bypasses the cache and the feature gate. Use before enabling a
        claim action. Raises ValidationError for a bad poll id and
        LedgerReadError if every attempt fails.
        """
        target = normalize_address(self._address(address))
        profile = self._network.get_active()
        if target is None or not profile.has_contract:
            return False
        validate_poll_id(poll_id)
        return await execute_with_retry(
            self._ledger.read_has_claimed,
            profile.rpc_endpoint,
            profile.contract_address,
            poll_id,
            target,
            attempts=attempts,
            backoff=backoff,
        )

    async def revalidate(self, force: bool = False) -> int:
        """Refresh stale status, e.g. when the app regains focus."""
        return await self._status.revalidate(force=force)

    def invalidate(self, address: str | None = None) -> int:
        """Forget cached status for ``address`` after a vote or claim."""
        target = self._address(address)
        return self._status.invalidate(target) if target else 0
