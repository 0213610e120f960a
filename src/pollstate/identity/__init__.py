"""Identity module: one current address from two wallet backends."""

from pollstate.identity.resolver import IdentityResolver, resolve_identity
from pollstate.identity.types import (
    EmbeddedConnection,
    IdentitySource,
    NativeConnection,
    ResolvedIdentity,
)

__all__ = [
    "IdentityResolver",
    "resolve_identity",
    "EmbeddedConnection",
    "IdentitySource",
    "NativeConnection",
    "ResolvedIdentity",
]
