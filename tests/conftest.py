import asyncio

import pytest

from pollstate.core.config import Config
from pollstate.flags import FeatureGate
from pollstate.identity import IdentityResolver, NativeConnection
from pollstate.network import NetworkSelector
from pollstate.status import StatusCache
from pollstate.storage.memory import InMemoryStorage


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _RecordingSource:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def _respond(self, *call) -> None:
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


class FakeIndexer(_RecordingSource):
    """IndexedQuerySource answering from the sets as they were when each query started."""

    def __init__(self, voted=(), claimed=()) -> None:
        super().__init__()
        self.voted = set(voted)
        self.claimed = set(claimed)

    async def query_voted_polls(self, index_endpoint, contract_address, address):
        voted = set(self.voted)
        await self._respond("voted", index_endpoint, contract_address, address)
        return voted

    async def query_claimed_polls(self, index_endpoint, contract_address, address):
        claimed = set(self.claimed)
        await self._respond("claimed", index_endpoint, contract_address, address)
        return claimed

    async def query_has_voted(self, index_endpoint, contract_address, address, poll_id):
        voted = poll_id in self.voted
        await self._respond("has_voted", index_endpoint, contract_address, address, poll_id)
        return voted

    async def query_has_claimed(self, index_endpoint, contract_address, address, poll_id):
        claimed = poll_id in self.claimed
        await self._respond("has_claimed", index_endpoint, contract_address, address, poll_id)
        return claimed


class FakeLedger(_RecordingSource):
    """LedgerReadSource answering from in-memory sets."""

    def __init__(self, voted=(), claimed=()) -> None:
        super().__init__()
        self.voted = set(voted)
        self.claimed = set(claimed)

    async def read_has_voted(self, rpc_endpoint, contract_address, poll_id, address):
        await self._respond("read_has_voted", rpc_endpoint, contract_address, poll_id, address)
        return poll_id in self.voted

    async def read_has_claimed(self, rpc_endpoint, contract_address, poll_id, address):
        await self._respond("read_has_claimed", rpc_endpoint, contract_address, poll_id, address)
        return poll_id in self.claimed


class MutableWallet:
    """Native wallet provider whose address a test can change mid-flight."""

    def __init__(self, address: str | None = None) -> None:
        self.address = address

    def __call__(self) -> NativeConnection:
        return NativeConnection(connected=self.address is not None, address=self.address)


@pytest.fixture
def config():
    return Config(
        testnet_contract_address="0xPOLL",
        mainnet_contract_address="0xPOLLMAIN",
    )


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def selector(config, storage):
    return NetworkSelector.from_config(config, storage)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def indexer():
    return FakeIndexer()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def wallet():
    return MutableWallet()


@pytest.fixture
def make_cache(selector, indexer, ledger, clock, wallet):
    def _make(enabled: bool = True, track_identity: bool = False) -> StatusCache:
        identity = IdentityResolver(native_provider=wallet) if track_identity else None
        return StatusCache(
            selector,
            indexer,
            ledger,
            FeatureGate(enabled),
            identity_resolver=identity,
            clock=clock,
        )

    return _make
