"""
Wallet identity resolution.

Merges the native wallet adapter and the embedded wallet provider into one
current address. An active embedded session always wins: it is an explicit
sign-in, and a native adapter left connected in the background must not
override it.
"""

from __future__ import annotations

from typing import Callable

from pollstate.core.logging import get_logger
from pollstate.identity.types import (
    EmbeddedConnection,
    IdentitySource,
    NativeConnection,
    ResolvedIdentity,
)

logger = get_logger("identity.resolver")

NativeProvider = Callable[[], NativeConnection | None]
EmbeddedProvider = Callable[[], EmbeddedConnection | None]


def resolve_identity(
    native: NativeConnection | None,
    embedded: EmbeddedConnection | None,
) -> ResolvedIdentity:
    """
    Resolve the current identity from both connection states.

    An active embedded session is reported as connected even when its address
    is still None; the native address is never used in that case.
    """
    if embedded is not None and embedded.active:
        return ResolvedIdentity(
            is_connected=True,
            address=embedded.address,
            source_kind=IdentitySource.EMBEDDED,
        )
    if native is not None and native.connected:
        return ResolvedIdentity(
            is_connected=True,
            address=native.address,
            source_kind=IdentitySource.NATIVE,
        )
    return ResolvedIdentity.disconnected()


def _disconnected_native() -> NativeConnection:
    return NativeConnection()


def _inactive_embedded() -> EmbeddedConnection:
    return EmbeddedConnection()


class IdentityResolver:
    """
    Reads both wallet backends on every call and resolves them.

    Holds no state of its own, so the answer always reflects what the
    providers report right now.

    Usage:
        resolver = IdentityResolver(
            native_provider=lambda: NativeConnection(adapter.connected, adapter.address),
            embedded_provider=lambda: EmbeddedConnection(session.active, session.address),
        )
        identity = resolver.resolve()
    """

    def __init__(
        self,
        native_provider: NativeProvider | None = None,
        embedded_provider: EmbeddedProvider | None = None,
    ) -> None:
        self._native_provider = native_provider or _disconnected_native
        self._embedded_provider = embedded_provider or _inactive_embedded

    def resolve(self) -> ResolvedIdentity:
        identity = resolve_identity(self._native_provider(), self._embedded_provider())
        if identity.is_pending:
            logger.debug("Embedded wallet active but address not yet provisioned")
        return identity

    def current_address(self) -> str | None:
        return self.resolve().address


__all__ = ["IdentityResolver", "resolve_identity"]
