"""
Status Cache: vote and claim status over two sources.

Answers "has this address voted in / claimed from this poll" either from the
secondary index (batch membership sets, cached with stale-while-revalidate)
or from direct ledger reads (never cached), depending on the feature gate.

Key pattern: (query kind, network id, contract, address[, poll id])

Windows:
- Fresh: 60s. Fresh entries are served with no network call.
- Retention: 120s. Stale but retained entries are served immediately while a
  background refresh runs; entries older than this are evicted.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, NamedTuple

from pollstate.core.exceptions import SourceUnavailableError, ValidationError
from pollstate.core.logging import get_logger
from pollstate.core.types import (
    CacheEntry,
    NetworkProfile,
    QueryKind,
    SourceKind,
    UserPollStatus,
    normalize_address,
    validate_poll_id,
)
from pollstate.flags import FeatureGate
from pollstate.identity.resolver import IdentityResolver
from pollstate.network.selector import NetworkSelector
from pollstate.sources.base import IndexedQuerySource, LedgerReadSource

logger = get_logger("status.cache")

STALE_WINDOW = 60.0
RETENTION_WINDOW = 120.0

Fetch = Callable[[], Awaitable[Any]]


class CacheKey(NamedTuple):
    kind: QueryKind
    network: str
    contract: str
    address: str
    poll_id: int | None = None

    def __str__(self) -> str:
        parts = [self.kind.value, self.network, self.contract, self.address]
        if self.poll_id is not None:
            parts.append(str(self.poll_id))
        return ":".join(parts)


@dataclass(frozen=True)
class _QueryContext:
    """What a fetch was started under; checked again before committing."""

    profile: NetworkProfile
    address: str
    tracks_identity: bool
    generation: int = 0

    @property
    def scope(self) -> tuple[str, str, str]:
        return (self.profile.id.value, self.profile.contract_address.lower(), self.address)

    def key(self, kind: QueryKind, poll_id: int | None = None) -> CacheKey:
        return CacheKey(
            kind=kind,
            network=self.profile.id.value,
            contract=self.profile.contract_address.lower(),
            address=self.address,
            poll_id=poll_id,
        )


def select_source(indexer_enabled: bool, kind: QueryKind) -> SourceKind:
    """Pick the backend for a query kind under the current gate setting."""
    if indexer_enabled:
        return SourceKind.INDEXER
    if kind is QueryKind.USER_POLL_STATUS:
        # Batch membership only exists in the index
        return SourceKind.NONE
    return SourceKind.LEDGER


def is_fresh(entry: CacheEntry[Any], now: float, stale_window: float) -> bool:
    return entry.age(now) < stale_window


class StatusCache:
    """
    Hybrid indexer/ledger status lookups with coalescing and TTL caching.

    At most one fetch per key is in flight; concurrent callers share it.
    A result whose network, contract or tracked address changed while it was
    in flight is returned to its callers but not cached.

    Usage:
        cache = StatusCache(selector, IndexerClient(), LedgerClient(), FeatureGate(True))
        status = await cache.get_user_poll_status("0xabc")
        if await cache.has_claimed(3, "0xabc"):
            ...
    """

    def __init__(
        self,
        network_selector: NetworkSelector,
        indexed_source: IndexedQuerySource,
        ledger_source: LedgerReadSource,
        feature_gate: FeatureGate,
        identity_resolver: IdentityResolver | None = None,
        clock: Callable[[], float] = time.monotonic,
        stale_window: float = STALE_WINDOW,
        retention_window: float = RETENTION_WINDOW,
    ) -> None:
        if retention_window < stale_window:
            raise ValueError("retention_window must be >= stale_window")
        self._network = network_selector
        self._indexer = indexed_source
        self._ledger = ledger_source
        self._indexer_enabled = feature_gate.is_enabled()
        self._identity = identity_resolver
        self._clock = clock
        self._stale_window = stale_window
        self._retention_window = retention_window

        self._entries: dict[CacheKey, CacheEntry[Any]] = {}
        self._inflight: dict[CacheKey, asyncio.Task[Any]] = {}
        self._background: set[asyncio.Task[None]] = set()
        # Bumped by invalidate(); fetches started under an older generation never commit
        self._generations: dict[tuple[str, str, str], int] = {}

    @property
    def indexer_enabled(self) -> bool:
        return self._indexer_enabled

    @property
    def stale_window(self) -> float:
        """Zero on the ledger path: ledger answers are never reused."""
        return self._stale_window if self._indexer_enabled else 0.0

    # ─── Context ─────────────────────────────────────────────────────

    def _is_current_identity(self, address: str) -> bool:
        if self._identity is None:
            return False
        return normalize_address(self._identity.current_address()) == address

    def _context(self, address: str | None) -> _QueryContext | None:
        """None when there is no address or no contract to query against."""
        normalized = normalize_address(address)
        profile = self._network.get_active()
        if normalized is None or not profile.has_contract:
            return None
        scope = (profile.id.value, profile.contract_address.lower(), normalized)
        return _QueryContext(
            profile=profile,
            address=normalized,
            tracks_identity=self._is_current_identity(normalized),
            generation=self._generations.get(scope, 0),
        )

    def _still_current(self, ctx: _QueryContext) -> bool:
        if self._network.get_active() != ctx.profile:
            return False
        if ctx.tracks_identity and not self._is_current_identity(ctx.address):
            return False
        if self._generations.get(ctx.scope, 0) != ctx.generation:
            return False
        return True

    # ─── Entries ─────────────────────────────────────────────────────

    def _lookup(self, key: CacheKey, now: float) -> CacheEntry[Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.age(now) >= self._retention_window:
            del self._entries[key]
            return None
        return entry

    def prune(self) -> int:
        """Evict every entry past the retention window."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.age(now) >= self._retention_window]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def invalidate(self, address: str) -> int:
        """
        Drop every entry for ``address`` on the active network.

        For use right after the user votes or claims, so the next read
        goes back to a source. Fetches already in flight for the address
        still answer their own callers but are detached and never commit.

        Returns:
            Number of cached entries dropped
        """
        ctx = self._context(address)
        if ctx is None:
            return 0
        scope = ctx.scope
        self._generations[scope] = ctx.generation + 1
        for key in [k for k in self._inflight if _scope_of(k) == scope]:
            del self._inflight[key]
        doomed = [k for k in self._entries if _scope_of(k) == scope]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    # ─── Fetching ────────────────────────────────────────────────────

    def _start_fetch(
        self, key: CacheKey, ctx: _QueryContext, fetch: Fetch, commit: bool = True
    ) -> asyncio.Task[Any]:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_fetch(key, ctx, fetch, commit))
            self._inflight[key] = task
            task.add_done_callback(partial(self._fetch_done, key))
        return task

    def _fetch_done(self, key: CacheKey, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Fetch for {key} failed: {task.exception()}")

    async def _run_fetch(
        self, key: CacheKey, ctx: _QueryContext, fetch: Fetch, commit: bool
    ) -> Any:
        # Age counts from the request, not from when the answer arrived
        started = self._clock()
        value = await fetch()
        if not commit:
            return value
        if self._still_current(ctx):
            self._entries[key] = CacheEntry(value=value, fetched_at=started)
        else:
            logger.debug(f"Discarding result for {key}: context changed mid-fetch")
        return value

    async def _fetch_shared(
        self, key: CacheKey, ctx: _QueryContext, fetch: Fetch, commit: bool = True
    ) -> Any:
        # Shielded so one caller's cancellation does not cancel the shared fetch
        return await asyncio.shield(self._start_fetch(key, ctx, fetch, commit))

    def _refresh_in_background(self, key: CacheKey, ctx: _QueryContext, fetch: Fetch) -> None:
        if key in self._inflight:
            return
        task = self._start_fetch(key, ctx, fetch)
        waiter = asyncio.ensure_future(self._await_refresh(key, task))
        self._background.add(waiter)
        waiter.add_done_callback(self._background.discard)

    async def _await_refresh(self, key: CacheKey, task: asyncio.Task[Any]) -> None:
        try:
            await task
        except SourceUnavailableError as e:
            logger.warning(f"Background refresh of {key} failed, keeping stale entry: {e}")

    async def _cached(self, key: CacheKey, ctx: _QueryContext, fetch: Fetch) -> Any:
        now = self._clock()
        entry = self._lookup(key, now)
        if entry is None:
            return await self._fetch_shared(key, ctx, fetch)
        if not is_fresh(entry, now, self._stale_window):
            self._refresh_in_background(key, ctx, fetch)
        return entry.value

    async def join_background(self) -> None:
        """Wait for every background refresh scheduled so far."""
        while self._background:
            await asyncio.gather(*list(self._background))

    # ─── Source calls ────────────────────────────────────────────────

    async def _fetch_user_poll_status(self, ctx: _QueryContext) -> UserPollStatus:
        profile = ctx.profile
        voted, claimed = await asyncio.gather(
            self._indexer.query_voted_polls(
                profile.index_endpoint, profile.contract_address, ctx.address
            ),
            self._indexer.query_claimed_polls(
                profile.index_endpoint, profile.contract_address, ctx.address
            ),
        )
        status = UserPollStatus(voted_polls=frozenset(voted), claimed_polls=frozenset(claimed))
        orphaned = status.claimed_without_vote()
        if orphaned:
            logger.debug(f"{ctx.address} claimed polls without an indexed vote: {sorted(orphaned)}")
        return status

    def _batch_fetch(self, ctx: _QueryContext) -> Fetch:
        return partial(self._fetch_user_poll_status, ctx)

    def _single_fetch(self, kind: QueryKind, ctx: _QueryContext, poll_id: int) -> Fetch:
        profile = ctx.profile
        query = (
            self._indexer.query_has_voted
            if kind is QueryKind.HAS_VOTED
            else self._indexer.query_has_claimed
        )
        return partial(
            query, profile.index_endpoint, profile.contract_address, ctx.address, poll_id
        )

    def _ledger_fetch(self, kind: QueryKind, ctx: _QueryContext, poll_id: int) -> Fetch:
        profile = ctx.profile
        read = (
            self._ledger.read_has_voted
            if kind is QueryKind.HAS_VOTED
            else self._ledger.read_has_claimed
        )
        return partial(read, profile.rpc_endpoint, profile.contract_address, poll_id, ctx.address)

    # ─── Public queries ──────────────────────────────────────────────

    async def get_user_poll_status(self, address: str | None) -> UserPollStatus:
        """Voted and claimed poll sets for ``address`` in one logical fetch."""
        ctx = self._context(address)
        if ctx is None:
            return UserPollStatus.empty()
        if select_source(self._indexer_enabled, QueryKind.USER_POLL_STATUS) is SourceKind.NONE:
            return UserPollStatus.empty()
        key = ctx.key(QueryKind.USER_POLL_STATUS)
        return await self._cached(key, ctx, self._batch_fetch(ctx))

    async def get_voted_polls(self, address: str | None) -> frozenset[int]:
        return (await self.get_user_poll_status(address)).voted_polls

    async def get_claimed_polls(self, address: str | None) -> frozenset[int]:
        return (await self.get_user_poll_status(address)).claimed_polls

    async def has_voted(self, poll_id: int, address: str | None) -> bool:
        return await self._poll_flag(QueryKind.HAS_VOTED, poll_id, address)

    async def has_claimed(self, poll_id: int, address: str | None) -> bool:
        return await self._poll_flag(QueryKind.HAS_CLAIMED, poll_id, address)

    async def _poll_flag(self, kind: QueryKind, poll_id: int, address: str | None) -> bool:
        ctx = self._context(address)
        if ctx is None or not _is_valid_poll_id(poll_id):
            return False

        if select_source(self._indexer_enabled, kind) is SourceKind.LEDGER:
            key = ctx.key(kind, poll_id)
            return await self._fetch_shared(
                key, ctx, self._ledger_fetch(kind, ctx, poll_id), commit=False
            )

        status = await self._batch_status(ctx)
        if status is not None:
            return _membership(status, kind, poll_id)

        key = ctx.key(kind, poll_id)
        return await self._cached(key, ctx, self._single_fetch(kind, ctx, poll_id))

    async def _batch_status(self, ctx: _QueryContext) -> UserPollStatus | None:
        """The retained or in-flight batch result for this context, if any."""
        batch_key = ctx.key(QueryKind.USER_POLL_STATUS)
        now = self._clock()
        entry = self._lookup(batch_key, now)
        if entry is not None:
            if not is_fresh(entry, now, self._stale_window):
                self._refresh_in_background(batch_key, ctx, self._batch_fetch(ctx))
            return entry.value
        inflight = self._inflight.get(batch_key)
        if inflight is not None:
            return await asyncio.shield(inflight)
        return None

    # ─── Synchronous placeholders ────────────────────────────────────

    def peek_user_poll_status(self, address: str | None) -> UserPollStatus:
        """Cached status, or empty sets; never suspends and never fetches."""
        ctx = self._context(address)
        if ctx is None or not self._indexer_enabled:
            return UserPollStatus.empty()
        entry = self._lookup(ctx.key(QueryKind.USER_POLL_STATUS), self._clock())
        return entry.value if entry is not None else UserPollStatus.empty()

    def peek_has_voted(self, poll_id: int, address: str | None) -> bool:
        return self._peek_flag(QueryKind.HAS_VOTED, poll_id, address)

    def peek_has_claimed(self, poll_id: int, address: str | None) -> bool:
        return self._peek_flag(QueryKind.HAS_CLAIMED, poll_id, address)

    def _peek_flag(self, kind: QueryKind, poll_id: int, address: str | None) -> bool:
        ctx = self._context(address)
        if ctx is None or not self._indexer_enabled or not _is_valid_poll_id(poll_id):
            return False
        now = self._clock()
        batch = self._lookup(ctx.key(QueryKind.USER_POLL_STATUS), now)
        if batch is not None:
            return _membership(batch.value, kind, poll_id)
        single = self._lookup(ctx.key(kind, poll_id), now)
        return bool(single.value) if single is not None else False

    # ─── Revalidation trigger ────────────────────────────────────────

    async def revalidate(self, force: bool = False) -> int:
        """
        Refetch retained batch entries for the active network and contract.

        Call when the app regains visibility or focus. Only stale entries are
        refetched unless ``force`` is set. Failures keep the old entry.

        Returns:
            Number of entries refreshed successfully
        """
        if not self._indexer_enabled:
            return 0
        profile = self._network.get_active()
        if not profile.has_contract:
            return 0

        now = self._clock()
        network, contract = profile.id.value, profile.contract_address.lower()
        tasks: list[asyncio.Task[Any]] = []
        for key in list(self._entries):
            if key.kind is not QueryKind.USER_POLL_STATUS:
                continue
            if key.network != network or key.contract != contract:
                continue
            entry = self._lookup(key, now)
            if entry is None or (not force and is_fresh(entry, now, self._stale_window)):
                continue
            ctx = self._context(key.address)
            if ctx is not None:
                tasks.append(self._start_fetch(key, ctx, self._batch_fetch(ctx)))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        refreshed = 0
        for result in results:
            if isinstance(result, SourceUnavailableError):
                logger.warning(f"Revalidation failed, keeping stale entry: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                refreshed += 1
        return refreshed


def _scope_of(key: CacheKey) -> tuple[str, str, str]:
    return (key.network, key.contract, key.address)


def _is_valid_poll_id(poll_id: object) -> bool:
    try:
        validate_poll_id(poll_id)
    except ValidationError:
        return False
    return True


def _membership(status: UserPollStatus, kind: QueryKind, poll_id: int) -> bool:
    if kind is QueryKind.HAS_VOTED:
        return status.has_voted(poll_id)
    return status.has_claimed(poll_id)


__all__ = [
    "CacheKey",
    "RETENTION_WINDOW",
    "STALE_WINDOW",
    "StatusCache",
    "is_fresh",
    "select_source",
]
