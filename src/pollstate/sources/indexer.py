"""
GraphQL indexer client.

Reads VoteCast and RewardClaimed events emitted by the poll module from the
indexer's ``events`` table and reduces them to sets of poll ids.

Unlike a best-effort reader, every failure raises IndexerQueryError: an
empty set returned on failure would read as "not claimed" to the caller.
"""

from __future__ import annotations

from typing import Any

import httpx

from pollstate.core.exceptions import IndexerQueryError
from pollstate.core.logging import get_logger

logger = get_logger("sources.indexer")

VOTE_EVENT = "VoteCast"
CLAIM_EVENT = "RewardClaimed"

_EVENTS_QUERY = """
  query {name}($eventTypePattern: String!, $eventKind: String!, $match: jsonb!) {{
    events(
      where: {{
        indexed_type: {{ _like: $eventTypePattern }},
        type: {{ _like: $eventKind }},
        data: {{ _contains: $match }}
      }},
      order_by: {{ transaction_block_height: desc }}
    ) {{
      type
      data
      transaction_version
    }}
  }}
"""

GET_USER_EVENTS_QUERY = _EVENTS_QUERY.format(name="GetUserPollEvents")


def event_type_pattern(contract_address: str) -> str:
    return f"{contract_address}::poll::%"


class IndexerClient:
    """
    IndexedQuerySource backed by an indexer GraphQL endpoint.

    Usage:
        indexer = IndexerClient(timeout=5.0)
        voted = await indexer.query_voted_polls(profile.index_endpoint, contract, "0xabc")
        await indexer.close()
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._http_client = http_client
        self._timeout = timeout
        self._owns_client = False

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy-init HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _fetch_events(
        self,
        index_endpoint: str,
        contract_address: str,
        event_kind: str,
        match: dict[str, str],
    ) -> list[dict[str, Any]]:
        client = await self._get_client()
        payload = {
            "query": GET_USER_EVENTS_QUERY,
            "variables": {
                "eventTypePattern": event_type_pattern(contract_address),
                "eventKind": f"%{event_kind}%",
                "match": match,
            },
        }

        try:
            response = await client.post(index_endpoint, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise IndexerQueryError(
                f"Indexer returned HTTP {e.response.status_code}",
                url=index_endpoint,
                status_code=e.response.status_code,
            ) from e
        except httpx.TransportError as e:
            raise IndexerQueryError(
                f"Indexer request failed: {e}",
                url=index_endpoint,
                details={"transport": type(e).__name__},
            ) from e
        except ValueError as e:
            raise IndexerQueryError("Indexer returned invalid JSON", url=index_endpoint) from e

        if not isinstance(body, dict):
            raise IndexerQueryError("Indexer returned a non-object response", url=index_endpoint)

        errors = body.get("errors")
        if errors:
            messages = [err.get("message", str(err)) for err in errors if isinstance(err, dict)]
            raise IndexerQueryError(
                "Indexer query returned errors",
                url=index_endpoint,
                details={"errors": messages or errors},
            )

        events = (body.get("data") or {}).get("events")
        if events is None:
            return []
        if not isinstance(events, list):
            raise IndexerQueryError("Indexer events field is not a list", url=index_endpoint)
        return events

    @staticmethod
    def _poll_ids(events: list[dict[str, Any]]) -> set[int]:
        poll_ids: set[int] = set()
        for event in events:
            raw = (event.get("data") or {}).get("poll_id")
            if raw is None or raw == "":
                continue
            try:
                poll_ids.add(int(raw))
            except (TypeError, ValueError):
                logger.warning(f"Skipping event with malformed poll_id {raw!r}")
        return poll_ids

    async def query_voted_polls(
        self, index_endpoint: str, contract_address: str, address: str
    ) -> set[int]:
        """All poll ids ``address`` has cast a vote in."""
        events = await self._fetch_events(
            index_endpoint, contract_address, VOTE_EVENT, {"voter": address}
        )
        return self._poll_ids(events)

    async def query_claimed_polls(
        self, index_endpoint: str, contract_address: str, address: str
    ) -> set[int]:
        """All poll ids ``address`` has claimed a reward from."""
        events = await self._fetch_events(
            index_endpoint, contract_address, CLAIM_EVENT, {"claimer": address}
        )
        return self._poll_ids(events)

    async def query_has_voted(
        self, index_endpoint: str, contract_address: str, address: str, poll_id: int
    ) -> bool:
        events = await self._fetch_events(
            index_endpoint,
            contract_address,
            VOTE_EVENT,
            {"voter": address, "poll_id": str(poll_id)},
        )
        return poll_id in self._poll_ids(events)

    async def query_has_claimed(
        self, index_endpoint: str, contract_address: str, address: str, poll_id: int
    ) -> bool:
        events = await self._fetch_events(
            index_endpoint,
            contract_address,
            CLAIM_EVENT,
            {"claimer": address, "poll_id": str(poll_id)},
        )
        return poll_id in self._poll_ids(events)


__all__ = ["IndexerClient", "GET_USER_EVENTS_QUERY", "event_type_pattern"]
