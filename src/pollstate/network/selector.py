"""
Active network selection.

Holds which network the app is pointed at and persists that choice through a
StorageBackend so it survives a restart. Cached status is never purged on a
switch: the network id is part of every status cache key, so entries from the
previous network simply stop matching.
"""

from __future__ import annotations

from typing import Callable

from pollstate.core.config import Config
from pollstate.core.logging import get_logger
from pollstate.core.types import NetworkId, NetworkProfile
from pollstate.storage.base import StorageBackend

logger = get_logger("network.selector")

SETTINGS_COLLECTION = "settings"
STORAGE_KEY = "pollstate_network"
DEFAULT_NETWORK = NetworkId.TESTNET

NetworkListener = Callable[[NetworkProfile, NetworkProfile], None]


def build_network_profiles(config: Config) -> dict[NetworkId, NetworkProfile]:
    """Build the known network profiles from configuration."""
    return {
        NetworkId.TESTNET: NetworkProfile(
            id=NetworkId.TESTNET,
            display_name="Testnet",
            contract_address=config.testnet_contract_address,
            rpc_endpoint=config.testnet_rpc_url,
            index_endpoint=config.testnet_indexer_url,
            chain_id=config.testnet_chain_id,
            explorer_url=config.explorer_url,
        ),
        NetworkId.MAINNET: NetworkProfile(
            id=NetworkId.MAINNET,
            display_name="Mainnet",
            contract_address=config.mainnet_contract_address,
            rpc_endpoint=config.mainnet_rpc_url,
            index_endpoint=config.mainnet_indexer_url,
            chain_id=config.mainnet_chain_id,
            explorer_url=config.explorer_url,
        ),
    }


class NetworkSelector:
    """
    Selects and persists the active network.

    Call ``load()`` once at startup to restore the persisted choice; until
    then (or when nothing usable is stored) the default network is active.
    """

    def __init__(
        self,
        profiles: dict[NetworkId, NetworkProfile],
        storage: StorageBackend,
        default: NetworkId = DEFAULT_NETWORK,
    ) -> None:
        if default not in profiles:
            raise ValueError(f"Default network {default.value} has no profile")
        self._profiles = dict(profiles)
        self._storage = storage
        self._default = default
        self._active = default
        self._listeners: list[NetworkListener] = []

    @classmethod
    def from_config(cls, config: Config, storage: StorageBackend) -> NetworkSelector:
        return cls(build_network_profiles(config), storage, default=config.default_network)

    def _lookup(self, network_id: NetworkId | str) -> NetworkId | None:
        for known in self._profiles:
            if known == network_id or known.value == str(network_id).strip().lower():
                return known
        return None

    async def load(self) -> NetworkProfile:
        """Restore the persisted selection, falling back to the default."""
        record = await self._storage.get(SETTINGS_COLLECTION, STORAGE_KEY)
        stored = record.get("network") if record else None
        resolved = self._lookup(stored) if isinstance(stored, str) else None
        if stored is not None and resolved is None:
            logger.warning(f"Ignoring unknown persisted network {stored!r}")
        self._active = resolved or self._default
        return self.get_active()

    def get_active(self) -> NetworkProfile:
        return self._profiles[self._active]

    def get_all(self) -> dict[NetworkId, NetworkProfile]:
        return dict(self._profiles)

    async def set_active(self, network_id: NetworkId | str) -> None:
        """
        Switch to ``network_id`` and persist it.

        Unknown ids are ignored: neither the active network nor the
        persisted value changes.
        """
        resolved = self._lookup(network_id)
        if resolved is None:
            logger.warning(f"Ignoring switch to unknown network {network_id!r}")
            return

        previous = self.get_active()
        await self._storage.save(SETTINGS_COLLECTION, STORAGE_KEY, {"network": resolved.value})
        self._active = resolved

        if previous.id != resolved:
            logger.info(f"Switched network {previous.id.value} -> {resolved.value}")
            current = self.get_active()
            for listener in list(self._listeners):
                listener(previous, current)

    def add_listener(self, listener: NetworkListener) -> None:
        """Call ``listener(previous, current)`` after every network switch."""
        self._listeners.append(listener)
