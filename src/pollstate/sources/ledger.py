"""
Ledger view-function client.

Calls the poll module's ``has_voted`` / ``has_claimed`` view functions on a
full node through its REST ``/view`` endpoint. Results always reflect chain
state at call time.
"""

from __future__ import annotations

from typing import Any

import httpx

from pollstate.core.exceptions import LedgerReadError
from pollstate.core.logging import get_logger

logger = get_logger("sources.ledger")


def view_function_id(contract_address: str, name: str) -> str:
    return f"{contract_address}::poll::{name}"


class LedgerClient:
    """
    LedgerReadSource backed by a full node's view endpoint.

    Usage:
        ledger = LedgerClient()
        voted = await ledger.read_has_voted(profile.rpc_endpoint, contract, 3, "0xabc")
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

    async def _view(
        self,
        rpc_endpoint: str,
        function: str,
        arguments: list[str],
    ) -> list[Any]:
        client = await self._get_client()
        url = f"{rpc_endpoint.rstrip('/')}/view"
        payload = {
            "function": function,
            "type_arguments": [],
            "arguments": arguments,
        }

        try:
            response = await client.post(url, json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            raise LedgerReadError(
                f"View call {function} returned HTTP {e.response.status_code}",
                url=url,
                status_code=e.response.status_code,
            ) from e
        except httpx.TransportError as e:
            raise LedgerReadError(
                f"View call {function} failed: {e}",
                url=url,
                details={"transport": type(e).__name__},
            ) from e
        except ValueError as e:
            raise LedgerReadError(f"View call {function} returned invalid JSON", url=url) from e

        if not isinstance(result, list):
            raise LedgerReadError(
                f"View call {function} returned unexpected payload",
                url=url,
                details={"payload": result},
            )
        return result

    async def _read_flag(
        self,
        name: str,
        rpc_endpoint: str,
        contract_address: str,
        poll_id: int,
        address: str,
    ) -> bool:
        function = view_function_id(contract_address, name)
        result = await self._view(
            rpc_endpoint, function, [contract_address, str(poll_id), address]
        )
        if not result:
            raise LedgerReadError(f"View call {function} returned no values", url=rpc_endpoint)
        value = result[0]
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)

    async def read_has_voted(
        self, rpc_endpoint: str, contract_address: str, poll_id: int, address: str
    ) -> bool:
        return await self._read_flag("has_voted", rpc_endpoint, contract_address, poll_id, address)

    async def read_has_claimed(
        self, rpc_endpoint: str, contract_address: str, poll_id: int, address: str
    ) -> bool:
        return await self._read_flag(
            "has_claimed", rpc_endpoint, contract_address, poll_id, address
        )


__all__ = ["LedgerClient", "view_function_id"]
