"""Service layer helpers"""

from .networks import (
    NetworkConfig,
    NetworkKey,
    NetworkRegistry,
    get_network_registry,
)

__all__ = [
    "NetworkConfig",
    "NetworkKey",
    "NetworkRegistry",
    "get_network_registry",
]
