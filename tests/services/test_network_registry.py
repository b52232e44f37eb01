"""
Tests for the network registry.
"""

from dataclasses import FrozenInstanceError

import pytest

from chaindeploy.config import Settings
from chaindeploy.core.recovery import UnsupportedNetworkError, ValidationError
from chaindeploy.services.networks import (
    NETWORK_METADATA,
    NetworkConfig,
    NetworkKey,
    NetworkRegistry,
)


def _config(key: str, chain_id: int) -> NetworkConfig:
    return NetworkConfig(
        key=key,
        display_name=key.title(),
        chain_id=chain_id,
        rpc_url=f"https://{key}.example",
        explorer_url=f"https://{key}.explorer",
    )


class TestNetworkRegistry:
    """Tests for network lookup."""

    def test_closed_key_set(self, registry):
        assert set(registry.keys()) == {key.value for key in NetworkKey}
        assert len(registry) == 8

    @pytest.mark.parametrize("key", [key.value for key in NetworkKey])
    def test_resolve_every_key(self, registry, key):
        config = registry.resolve(key)

        assert config.key == key
        assert config.chain_id == NETWORK_METADATA[NetworkKey(key)]["chain_id"]
        assert config.rpc_url

    def test_resolve_accepts_enum(self, registry):
        assert registry.resolve(NetworkKey.POLYGON).chain_id == 137

    def test_unknown_network_raises(self, registry):
        with pytest.raises(UnsupportedNetworkError) as exc_info:
            registry.resolve("solana")

        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.network == "solana"
        assert "sepolia" in exc_info.value.details["supported"]

    def test_rpc_url_from_settings(self):
        registry = NetworkRegistry(settings=Settings(sepolia_rpc="https://my-node.example"))
        assert registry.resolve("sepolia").rpc_url == "https://my-node.example"

    def test_rpc_url_from_env(self, monkeypatch):
        monkeypatch.setenv("ARBITRUM_RPC", "https://arb-env.example")
        registry = NetworkRegistry(settings=Settings())
        assert registry.resolve("arbitrum").rpc_url == "https://arb-env.example"

    def test_duplicate_chain_id_rejected(self):
        with pytest.raises(ValueError, match="share chain id"):
            NetworkRegistry(networks=[_config("one", 5), _config("two", 5)])

    def test_duplicate_key_rejected(self):
        with pytest.raises(ValueError, match="Duplicate network key"):
            NetworkRegistry(networks=[_config("one", 5), _config("one", 6)])

    def test_get_by_chain_id(self, registry):
        assert registry.get_by_chain_id(42161).key == "arbitrum"
        assert registry.get_by_chain_id(999999) is None

    def test_contains(self, registry):
        assert "optimism" in registry
        assert NetworkKey.MUMBAI in registry
        assert "solana" not in registry

    def test_list_networks(self, registry):
        networks = {n["key"]: n for n in registry.list_networks()}

        assert networks["sepolia"]["chainId"] == 11155111
        assert networks["sepolia"]["testnet"] is True
        assert networks["ethereum"]["testnet"] is False
        assert networks["polygon"]["nativeSymbol"] == "MATIC"


class TestGasPolicy:
    """Per-network gas buffers, floors and fallbacks."""

    @pytest.mark.parametrize("key", ["ethereum", "sepolia", "polygon", "mumbai"])
    def test_l1_buffer(self, registry, key):
        config = registry.resolve(key)
        assert config.is_l2 is False
        assert config.gas_buffer_percent == 20
        assert config.fallback_gas_limit == 3_000_000

    @pytest.mark.parametrize("key", ["arbitrum", "arbitrum_sepolia", "optimism", "optimism_sepolia"])
    def test_l2_buffer(self, registry, key):
        config = registry.resolve(key)
        assert config.is_l2 is True
        assert config.gas_buffer_percent == 50

    def test_arbitrum_floor_and_fallback(self, registry):
        config = registry.resolve("arbitrum")
        assert config.min_gas_limit == 500_000
        assert config.fallback_gas_limit == 5_000_000


class TestNetworkConfig:
    """Tests for NetworkConfig helpers."""

    def test_explorer_urls(self, registry):
        config = registry.resolve("sepolia")
        tx_hash = "0x" + "12" * 32

        assert config.tx_url(tx_hash) == f"https://sepolia.etherscan.io/tx/{tx_hash}"
        assert config.address_url("0xabc") == "https://sepolia.etherscan.io/address/0xabc"

    def test_frozen(self, registry):
        config = registry.resolve("sepolia")
        with pytest.raises(FrozenInstanceError):
            config.chain_id = 1
