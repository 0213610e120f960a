"""
Wallet connection types.

A user can be signed in through a natively-connected wallet adapter, through
an embedded (custodial) wallet, or through neither. These records describe the
raw state reported by each backend and the single identity derived from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class IdentitySource(str, Enum):
    """Which wallet backend produced the current address."""

    EMBEDDED = "embedded"
    NATIVE = "native"
    NONE = "none"


@dataclass(frozen=True)
class NativeConnection:
    """State reported by the native wallet adapter."""

    connected: bool = False
    address: str | None = None


@dataclass(frozen=True)
class EmbeddedConnection:
    """
    State reported by the embedded wallet provider.

    ``active`` means the session is authenticated and has a wallet. The address
    can still be None while the wallet is being provisioned.
    """

    active: bool = False
    address: str | None = None

    @classmethod
    def from_session(
        cls,
        ready: bool,
        authenticated: bool,
        has_wallet: bool,
        address: str | None = None,
    ) -> EmbeddedConnection:
        """Build from the provider's ready/authenticated/wallet flags."""
        return cls(active=ready and authenticated and has_wallet, address=address)


@dataclass(frozen=True)
class ResolvedIdentity:
    """The one canonical connection state for the current user."""

    is_connected: bool
    address: str | None
    source_kind: IdentitySource

    @property
    def is_embedded(self) -> bool:
        return self.source_kind == IdentitySource.EMBEDDED

    @property
    def is_native(self) -> bool:
        return self.source_kind == IdentitySource.NATIVE

    @property
    def is_pending(self) -> bool:
        """Connected but without an address yet; not the same as disconnected."""
        return self.is_connected and self.address is None

    @classmethod
    def disconnected(cls) -> ResolvedIdentity:
        return cls(is_connected=False, address=None, source_kind=IdentitySource.NONE)


__all__ = [
    "EmbeddedConnection",
    "IdentitySource",
    "NativeConnection",
    "ResolvedIdentity",
]
