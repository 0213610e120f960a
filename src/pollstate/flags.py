"""
Feature gate for the indexer fast path.

Read once when the process starts and then fixed. Flipping it requires a
restart so the status cache never holds entries fetched under both the
indexer and the ledger consistency models at once.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from pollstate.core.config import Config, parse_bool

FLAG_ENV_VAR = "POLLSTATE_USE_INDEXER"


@dataclass(frozen=True)
class FeatureGate:
    """Whether status queries may use the secondary index."""

    use_indexer: bool = False

    @classmethod
    def from_config(cls, config: Config) -> FeatureGate:
        return cls(use_indexer=config.use_indexer)

    @classmethod
    def from_env(cls) -> FeatureGate:
        return cls(use_indexer=parse_bool(os.environ.get(FLAG_ENV_VAR)))

    def is_enabled(self) -> bool:
        return self.use_indexer


__all__ = ["FeatureGate", "FLAG_ENV_VAR"]
