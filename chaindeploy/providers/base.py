from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 30

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class ChainProvider(Provider):
    """Connection handle for one EVM network.

    Quantities come back as ints; receipts, transactions and blocks come back
    as the raw JSON-RPC objects (hex-encoded fields), or None when unknown.
    """

    @abstractmethod
    async def chain_id(self) -> int:
        pass

    @abstractmethod
    async def block_number(self) -> int:
        pass

    @abstractmethod
    async def get_balance(self, address: str, block: str = "latest") -> int:
        pass

    @abstractmethod
    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        pass

    @abstractmethod
    async def gas_price(self) -> int:
        pass

    @abstractmethod
    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        pass

    @abstractmethod
    async def send_raw_transaction(self, raw_tx: str) -> str:
        """Broadcast a signed transaction and return its hash"""
        pass

    @abstractmethod
    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_code(self, address: str, block: str = "latest") -> str:
        pass

    @abstractmethod
    async def get_block(self, block_number: int) -> Optional[Dict[str, Any]]:
        pass

    async def close(self) -> None:
        """Release underlying resources"""
        return None
