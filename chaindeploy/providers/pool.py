"""
Provider pool - one cached connection per network key.
"""

import logging
from typing import Callable, Dict, Optional

from ..config import Settings, settings as default_settings
from ..services.networks import NetworkConfig, NetworkRegistry, get_network_registry
from .base import ChainProvider
from .json_rpc import JsonRpcProvider


logger = logging.getLogger(__name__)

ProviderFactory = Callable[[NetworkConfig], ChainProvider]


class ProviderPool:
    """
    Lazily creates and caches a ChainProvider per network.

    Entries are only ever inserted, never replaced or evicted, so the pool
    can be shared across concurrent deployments without locking.
    """

    def __init__(
        self,
        registry: Optional[NetworkRegistry] = None,
        factory: Optional[ProviderFactory] = None,
        settings: Optional[Settings] = None,
    ):
        self.registry = registry if registry is not None else get_network_registry()
        settings = settings or default_settings
        self._factory = factory or (
            lambda network: JsonRpcProvider(network, timeout_s=settings.rpc_timeout_seconds)
        )
        self._providers: Dict[str, ChainProvider] = {}

    def get(self, network: str) -> ChainProvider:
        """Return the cached provider for a network, creating it on first use."""
        config = self.registry.resolve(network)
        provider = self._providers.get(config.key)
        if provider is None:
            provider = self._providers.setdefault(config.key, self._factory(config))
            logger.debug(f"Created provider for {config.key} ({config.rpc_url})")
        return provider

    def __contains__(self, network: object) -> bool:
        return network in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    async def close(self) -> None:
        """Close every cached provider."""
        for provider in self._providers.values():
            await provider.close()
        self._providers.clear()
