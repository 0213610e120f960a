"""Network selection and persisted network profiles."""

from pollstate.network.selector import (
    DEFAULT_NETWORK,
    NetworkSelector,
    build_network_profiles,
)

__all__ = ["DEFAULT_NETWORK", "NetworkSelector", "build_network_profiles"]
