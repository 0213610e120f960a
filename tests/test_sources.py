"""
Tests for the indexer and ledger source clients.

Both clients run against httpx.MockTransport so request payloads and error
mapping can be checked without a network.
"""

import json

import httpx
import pytest

from pollstate.core.exceptions import IndexerQueryError, LedgerReadError
from pollstate.sources import IndexedQuerySource, IndexerClient, LedgerClient, LedgerReadSource
from pollstate.sources.indexer import GET_USER_EVENTS_QUERY, event_type_pattern
from pollstate.sources.ledger import view_function_id

INDEX_URL = "https://indexer.test/v1/graphql"
RPC_URL = "https://node.test/v1/"
CONTRACT = "0xPOLL"


def _events(*poll_ids):
    return {"data": {"events": [{"type": "x", "data": {"poll_id": p}} for p in poll_ids]}}


class _Recorder:
    """MockTransport handler that records request bodies."""

    def __init__(self, status_code=200, body=None, raw=None, exc=None):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body
        self.raw = raw
        self.exc = exc

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def payload(self):
        return json.loads(self.requests[-1].content)


def _client(recorder):
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


# ─────────────────────────────────────────────────────────────────
# Indexer
# ─────────────────────────────────────────────────────────────────


class TestIndexerClient:
    def test_satisfies_protocol(self):
        assert isinstance(IndexerClient(), IndexedQuerySource)

    def test_event_type_pattern(self):
        assert event_type_pattern("0x1") == "0x1::poll::%"

    @pytest.mark.asyncio
    async def test_voted_polls_request_and_result(self):
        recorder = _Recorder(body=_events("1", "2", "5", "2"))
        indexer = IndexerClient(http_client=_client(recorder))

        result = await indexer.query_voted_polls(INDEX_URL, CONTRACT, "0xabc")

        assert result == {1, 2, 5}
        assert str(recorder.requests[0].url) == INDEX_URL
        payload = recorder.payload
        assert payload["query"] == GET_USER_EVENTS_QUERY
        assert payload["variables"] == {
            "eventTypePattern": "0xPOLL::poll::%",
            "eventKind": "%VoteCast%",
            "match": {"voter": "0xabc"},
        }

    @pytest.mark.asyncio
    async def test_claimed_polls_match_on_claimer(self):
        recorder = _Recorder(body=_events(2))
        indexer = IndexerClient(http_client=_client(recorder))

        assert await indexer.query_claimed_polls(INDEX_URL, CONTRACT, "0xabc") == {2}
        assert recorder.payload["variables"]["eventKind"] == "%RewardClaimed%"
        assert recorder.payload["variables"]["match"] == {"claimer": "0xabc"}

    @pytest.mark.asyncio
    async def test_single_poll_queries_filter_on_poll_id(self):
        recorder = _Recorder(body=_events("7"))
        indexer = IndexerClient(http_client=_client(recorder))

        assert await indexer.query_has_voted(INDEX_URL, CONTRACT, "0xabc", 7) is True
        assert recorder.payload["variables"]["match"] == {"voter": "0xabc", "poll_id": "7"}

        recorder.body = _events()
        assert await indexer.query_has_claimed(INDEX_URL, CONTRACT, "0xabc", 7) is False
        assert recorder.payload["variables"]["match"] == {"claimer": "0xabc", "poll_id": "7"}

    @pytest.mark.asyncio
    async def test_missing_events_is_empty(self):
        indexer = IndexerClient(http_client=_client(_Recorder(body={"data": {}})))
        assert await indexer.query_voted_polls(INDEX_URL, CONTRACT, "0xabc") == set()

    @pytest.mark.asyncio
    async def test_malformed_poll_ids_are_skipped(self):
        body = {"data": {"events": [{"data": {"poll_id": "x"}}, {"data": {}}, {"data": {"poll_id": 4}}]}}
        indexer = IndexerClient(http_client=_client(_Recorder(body=body)))
        assert await indexer.query_voted_polls(INDEX_URL, CONTRACT, "0xabc") == {4}

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        indexer = IndexerClient(http_client=_client(_Recorder(status_code=503, body={})))

        with pytest.raises(IndexerQueryError) as exc_info:
            await indexer.query_voted_polls(INDEX_URL, CONTRACT, "0xabc")

        assert exc_info.value.status_code == 503
        assert exc_info.value.url == INDEX_URL
        assert exc_info.value.is_transient()

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        body = {"errors": [{"message": "field 'events' not found"}]}
        indexer = IndexerClient(http_client=_client(_Recorder(body=body)))

        with pytest.raises(IndexerQueryError) as exc_info:
            await indexer.query_claimed_polls(INDEX_URL, CONTRACT, "0xabc")

        assert exc_info.value.details["errors"] == ["field 'events' not found"]
        assert not exc_info.value.is_transient()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        recorder = _Recorder(exc=httpx.ConnectError("connection refused"))
        indexer = IndexerClient(http_client=_client(recorder))

        with pytest.raises(IndexerQueryError) as exc_info:
            await indexer.query_voted_polls(INDEX_URL, CONTRACT, "0xabc")

        assert exc_info.value.is_transient()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw", [b"not json", b"[1, 2]", b'{"data": {"events": {"poll_id": 1}}}']
    )
    async def test_malformed_payload_raises(self, raw):
        indexer = IndexerClient(http_client=_client(_Recorder(raw=raw)))
        with pytest.raises(IndexerQueryError):
            await indexer.query_voted_polls(INDEX_URL, CONTRACT, "0xabc")

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        http_client = _client(_Recorder(body=_events()))
        indexer = IndexerClient(http_client=http_client)

        await indexer.close()

        assert not http_client.is_closed
        await http_client.aclose()


# ─────────────────────────────────────────────────────────────────
# Ledger
# ─────────────────────────────────────────────────────────────────


class TestLedgerClient:
    def test_satisfies_protocol(self):
        assert isinstance(LedgerClient(), LedgerReadSource)

    def test_view_function_id(self):
        assert view_function_id("0x1", "has_voted") == "0x1::poll::has_voted"

    @pytest.mark.asyncio
    async def test_has_voted_payload(self):
        recorder = _Recorder(body=[True])
        ledger = LedgerClient(http_client=_client(recorder))

        assert await ledger.read_has_voted(RPC_URL, CONTRACT, 3, "0xabc") is True
        assert str(recorder.requests[0].url) == "https://node.test/v1/view"
        assert recorder.payload == {
            "function": "0xPOLL::poll::has_voted",
            "type_arguments": [],
            "arguments": ["0xPOLL", "3", "0xabc"],
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body,expected", [([False], False), (["true"], True), (["false"], False)])
    async def test_has_claimed_result_forms(self, body, expected):
        recorder = _Recorder(body=body)
        ledger = LedgerClient(http_client=_client(recorder))

        assert await ledger.read_has_claimed(RPC_URL, CONTRACT, 3, "0xabc") is expected
        assert recorder.payload["function"] == "0xPOLL::poll::has_claimed"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        ledger = LedgerClient(http_client=_client(_Recorder(status_code=429, body={})))

        with pytest.raises(LedgerReadError) as exc_info:
            await ledger.read_has_voted(RPC_URL, CONTRACT, 3, "0xabc")

        assert exc_info.value.is_rate_limited()
        assert "[ledger]" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_client_error_is_not_transient(self):
        ledger = LedgerClient(http_client=_client(_Recorder(status_code=400, body={})))

        with pytest.raises(LedgerReadError) as exc_info:
            await ledger.read_has_voted(RPC_URL, CONTRACT, 3, "0xabc")

        assert not exc_info.value.is_transient()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [[], {"result": True}])
    async def test_unexpected_result_raises(self, body):
        ledger = LedgerClient(http_client=_client(_Recorder(body=body)))
        with pytest.raises(LedgerReadError):
            await ledger.read_has_claimed(RPC_URL, CONTRACT, 3, "0xabc")

    @pytest.mark.asyncio
    async def test_timeout_raises_transient(self):
        recorder = _Recorder(exc=httpx.ReadTimeout("timed out"))
        ledger = LedgerClient(http_client=_client(recorder))

        with pytest.raises(LedgerReadError) as exc_info:
            await ledger.read_has_claimed(RPC_URL, CONTRACT, 3, "0xabc")

        assert exc_info.value.is_transient()
