"""
Network registry - static table of supported EVM networks.

Each network key maps to an immutable NetworkConfig carrying chain id, RPC
endpoint, explorer and the gas policy used when deploying to it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..config import Settings, settings as default_settings
from ..core.recovery.errors import UnsupportedNetworkError


class NetworkKey(str, Enum):
    """Closed set of network keys accepted by the deployer."""
    ETHEREUM = "ethereum"
    SEPOLIA = "sepolia"
    ARBITRUM = "arbitrum"
    ARBITRUM_SEPOLIA = "arbitrum_sepolia"
    POLYGON = "polygon"
    MUMBAI = "mumbai"
    OPTIMISM = "optimism"
    OPTIMISM_SEPOLIA = "optimism_sepolia"


@dataclass(frozen=True)
class NetworkConfig:
    """Immutable network configuration."""
    key: str
    display_name: str
    chain_id: int
    rpc_url: str
    explorer_url: str
    native_symbol: str = "ETH"
    is_testnet: bool = False
    is_l2: bool = False

    # Gas policy
    gas_buffer_percent: int = 20
    min_gas_limit: int = 100_000
    fallback_gas_limit: int = 3_000_000

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.display_name,
            "chainId": self.chain_id,
            "explorer": self.explorer_url,
            "testnet": self.is_testnet,
            "l2": self.is_l2,
            "nativeSymbol": self.native_symbol,
        }


# Static metadata; RPC URLs are filled from settings at registry construction.
# L2 rollups price calldata into their gas units, so estimates drift more and
# get the larger buffer.
NETWORK_METADATA: Dict[NetworkKey, Dict[str, Any]] = {
    NetworkKey.ETHEREUM: {
        "display_name": "Ethereum Mainnet",
        "chain_id": 1,
        "explorer_url": "https://etherscan.io",
    },
    NetworkKey.SEPOLIA: {
        "display_name": "Ethereum Sepolia Testnet",
        "chain_id": 11155111,
        "explorer_url": "https://sepolia.etherscan.io",
        "is_testnet": True,
    },
    NetworkKey.ARBITRUM: {
        "display_name": "Arbitrum One",
        "chain_id": 42161,
        "explorer_url": "https://arbiscan.io",
        "is_l2": True,
        "gas_buffer_percent": 50,
        "min_gas_limit": 500_000,
        "fallback_gas_limit": 5_000_000,
    },
    NetworkKey.ARBITRUM_SEPOLIA: {
        "display_name": "Arbitrum Sepolia Testnet",
        "chain_id": 421614,
        "explorer_url": "https://sepolia.arbiscan.io",
        "is_testnet": True,
        "is_l2": True,
        "gas_buffer_percent": 50,
        "min_gas_limit": 500_000,
        "fallback_gas_limit": 5_000_000,
    },
    NetworkKey.POLYGON: {
        "display_name": "Polygon Mainnet",
        "chain_id": 137,
        "explorer_url": "https://polygonscan.com",
        "native_symbol": "MATIC",
    },
    NetworkKey.MUMBAI: {
        "display_name": "Polygon Mumbai Testnet",
        "chain_id": 80001,
        "explorer_url": "https://mumbai.polygonscan.com",
        "native_symbol": "MATIC",
        "is_testnet": True,
    },
    NetworkKey.OPTIMISM: {
        "display_name": "Optimism",
        "chain_id": 10,
        "explorer_url": "https://optimistic.etherscan.io",
        "is_l2": True,
        "gas_buffer_percent": 50,
        "min_gas_limit": 150_000,
    },
    NetworkKey.OPTIMISM_SEPOLIA: {
        "display_name": "Optimism Sepolia Testnet",
        "chain_id": 11155420,
        "explorer_url": "https://sepolia-optimism.etherscan.io",
        "is_testnet": True,
        "is_l2": True,
        "gas_buffer_percent": 50,
        "min_gas_limit": 150_000,
    },
}


class NetworkRegistry:
    """
    Pure lookup from network key to NetworkConfig.

    Built once from settings; entries never change afterwards.
    """

    def __init__(
        self,
        networks: Optional[List[NetworkConfig]] = None,
        settings: Optional[Settings] = None,
    ):
        if networks is None:
            networks = self._from_settings(settings or default_settings)

        self._networks: Dict[str, NetworkConfig] = {}
        chain_ids: Dict[int, str] = {}
        for config in networks:
            if config.key in self._networks:
                raise ValueError(f"Duplicate network key: {config.key}")
            if config.chain_id in chain_ids:
                raise ValueError(
                    f"Networks {chain_ids[config.chain_id]} and {config.key} "
                    f"share chain id {config.chain_id}"
                )
            chain_ids[config.chain_id] = config.key
            self._networks[config.key] = config

    @staticmethod
    def _from_settings(settings: Settings) -> List[NetworkConfig]:
        return [
            NetworkConfig(
                key=key.value,
                rpc_url=settings.rpc_url_for(key.value),
                **metadata,
            )
            for key, metadata in NETWORK_METADATA.items()
        ]

    def resolve(self, network: str) -> NetworkConfig:
        """Return the config for a network key or raise UnsupportedNetworkError."""
        key = network.value if isinstance(network, NetworkKey) else network
        config = self._networks.get(key) if isinstance(key, str) else None
        if config is None:
            raise UnsupportedNetworkError(str(network), supported=self.keys())
        return config

    def get_by_chain_id(self, chain_id: int) -> Optional[NetworkConfig]:
        for config in self._networks.values():
            if config.chain_id == chain_id:
                return config
        return None

    def keys(self) -> List[str]:
        return list(self._networks.keys())

    def list_networks(self) -> List[Dict[str, Any]]:
        """Supported networks in a display-friendly shape."""
        return [config.to_dict() for config in self._networks.values()]

    def __contains__(self, network: object) -> bool:
        key = network.value if isinstance(network, NetworkKey) else network
        return key in self._networks

    def __len__(self) -> int:
        return len(self._networks)


# Singleton instance
_registry: Optional[NetworkRegistry] = None


def get_network_registry() -> NetworkRegistry:
    """Get the default registry built from global settings."""
    global _registry
    if _registry is None:
        _registry = NetworkRegistry()
    return _registry
