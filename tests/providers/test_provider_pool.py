"""
Tests for the provider pool.
"""

import pytest

from chaindeploy.core.recovery import UnsupportedNetworkError
from chaindeploy.providers import JsonRpcProvider, ProviderPool
from chaindeploy.services import NetworkRegistry


class TestProviderPool:
    """Tests for lazy, insert-if-absent provider caching."""

    def test_creates_one_provider_per_network(self, registry, provider_factory):
        created = []

        def factory(network):
            created.append(network.key)
            return provider_factory(chain_id=network.chain_id)

        pool = ProviderPool(registry=registry, factory=factory)

        first = pool.get("sepolia")
        second = pool.get("sepolia")
        other = pool.get("arbitrum")

        assert first is second
        assert other is not first
        assert created == ["sepolia", "arbitrum"]
        assert len(pool) == 2
        assert "sepolia" in pool

    def test_empty_injected_registry_is_kept(self, provider_factory):
        registry = NetworkRegistry(networks=[])

        pool = ProviderPool(registry=registry, factory=lambda network: provider_factory())

        assert pool.registry is registry
        with pytest.raises(UnsupportedNetworkError):
            pool.get("sepolia")

    def test_unknown_network_raises(self, registry, provider_factory):
        pool = ProviderPool(registry=registry, factory=lambda network: provider_factory())

        with pytest.raises(UnsupportedNetworkError):
            pool.get("solana")
        assert len(pool) == 0

    def test_default_factory_builds_json_rpc(self, registry, test_settings):
        pool = ProviderPool(registry=registry, settings=test_settings)

        provider = pool.get("optimism")

        assert isinstance(provider, JsonRpcProvider)
        assert provider.network.key == "optimism"
        assert provider.timeout_s == test_settings.rpc_timeout_seconds

    @pytest.mark.asyncio
    async def test_close_releases_providers(self, registry, provider_factory):
        providers = []

        def factory(network):
            provider = provider_factory(chain_id=network.chain_id)
            providers.append(provider)
            return provider

        pool = ProviderPool(registry=registry, factory=factory)
        pool.get("ethereum")
        pool.get("polygon")

        await pool.close()

        assert all(p.closed for p in providers)
        assert len(pool) == 0
