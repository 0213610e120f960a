"""
Configuration management for pollstate.

Handles loading configuration from environment variables and validation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any

from pollstate.core.exceptions import ConfigurationError
from pollstate.core.types import NetworkId

_TRUTHY = {"1", "true", "yes", "on"}


def _get_env_var(name: str, default: str | None = None) -> str | None:
    """Get environment variable with optional default."""
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def parse_bool(value: str | None) -> bool:
    return value is not None and value.strip().lower() in _TRUTHY


def _parse_number(name: str, value: str | None, cast: type) -> Any:
    if value is None:
        return None
    try:
        return cast(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None


@dataclass(frozen=True)
class Config:
    """Process configuration."""

    # Network endpoints
    default_network: NetworkId = NetworkId.TESTNET
    testnet_contract_address: str = ""
    testnet_rpc_url: str = "https://testnet.movementnetwork.xyz/v1"
    testnet_indexer_url: str = "https://indexer.testnet.movementnetwork.xyz/v1/graphql"
    testnet_chain_id: int = 250
    mainnet_contract_address: str = ""
    mainnet_rpc_url: str = "https://full.mainnet.movementinfra.xyz/v1"
    mainnet_indexer_url: str = "https://indexer.mainnet.movementnetwork.xyz/v1/graphql"
    mainnet_chain_id: int = 126
    explorer_url: str = "https://explorer.movementnetwork.xyz"

    # Indexer fast path; fixed for the lifetime of the process
    use_indexer: bool = False

    # Status cache windows (seconds)
    stale_window: float = 60.0
    retention_window: float = 120.0

    # Persistence for the selected network
    storage_backend: str = "memory"
    storage_path: str | None = None
    redis_url: str | None = None

    # Timeouts (seconds)
    request_timeout: float = 10.0

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.stale_window < 0:
            raise ConfigurationError("stale_window must be non-negative")
        if self.retention_window < self.stale_window:
            raise ConfigurationError("retention_window must be >= stale_window")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Load configuration from environment variables."""
        env: dict[str, Any] = {}

        network_str = _get_env_var("POLLSTATE_NETWORK")
        if network_str:
            env["default_network"] = NetworkId.from_string(network_str)

        for prefix in ("testnet", "mainnet"):
            upper = prefix.upper()
            for suffix in ("contract_address", "rpc_url", "indexer_url"):
                value = _get_env_var(f"POLLSTATE_{upper}_{suffix.upper()}")
                if value is not None:
                    env[f"{prefix}_{suffix}"] = value
            chain_id = _parse_number(
                f"POLLSTATE_{upper}_CHAIN_ID",
                _get_env_var(f"POLLSTATE_{upper}_CHAIN_ID"),
                int,
            )
            if chain_id is not None:
                env[f"{prefix}_chain_id"] = chain_id

        explorer_url = _get_env_var("POLLSTATE_EXPLORER_URL")
        if explorer_url:
            env["explorer_url"] = explorer_url

        env["use_indexer"] = parse_bool(_get_env_var("POLLSTATE_USE_INDEXER"))

        for name, var in (
            ("stale_window", "POLLSTATE_STALE_WINDOW"),
            ("retention_window", "POLLSTATE_RETENTION_WINDOW"),
            ("request_timeout", "POLLSTATE_REQUEST_TIMEOUT"),
        ):
            value = _parse_number(var, _get_env_var(var), float)
            if value is not None:
                env[name] = value

        env["storage_backend"] = _get_env_var("POLLSTATE_STORAGE_BACKEND", default="memory")
        env["storage_path"] = _get_env_var("POLLSTATE_STORAGE_PATH")
        env["redis_url"] = _get_env_var("POLLSTATE_REDIS_URL")
        env["log_level"] = _get_env_var("POLLSTATE_LOG_LEVEL", default="INFO")

        env.update(overrides)
        return cls(**env)

    def with_updates(self, **updates: Any) -> Config:
        """Create a new Config with updated values."""
        known = {f.name for f in fields(self)}
        unknown = set(updates) - known
        if unknown:
            raise ConfigurationError(f"Unknown config fields: {sorted(unknown)}")
        return replace(self, **updates)
