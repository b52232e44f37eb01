"""Shared pytest fixtures for chaindeploy tests."""

import logging
from typing import Any, Dict, List, Optional

import pytest
import structlog
from eth_utils import keccak

from chaindeploy.config import Settings
from chaindeploy.core.execution.monitor import TransactionMonitor
from chaindeploy.providers.base import ChainProvider
from chaindeploy.providers.pool import ProviderPool
from chaindeploy.services.networks import NetworkRegistry


TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
CONTRACT_ADDRESS = "0x" + "ab" * 20
DEPLOYED_CODE = "0x6080604052600080fdfea2646970667358"
TOKEN_BYTECODE = "0x6080604052348015600f57600080fd5b50603f80601d6000396000f3fe"
TOKEN_ABI = [
    {
        "type": "constructor",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "name", "type": "string"},
            {"name": "supply", "type": "uint256"},
        ],
    },
    {
        "type": "function",
        "name": "totalSupply",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


def make_receipt(
    tx_hash: str,
    block_number: int,
    status: int = 1,
    contract_address: Optional[str] = CONTRACT_ADDRESS,
    gas_used: int = 500_000,
    effective_gas_price: int = 2_000_000_000,
) -> Dict[str, Any]:
    return {
        "transactionHash": tx_hash,
        "blockNumber": hex(block_number),
        "blockHash": "0x" + "11" * 32,
        "transactionIndex": "0x0",
        "status": hex(status),
        "gasUsed": hex(gas_used),
        "cumulativeGasUsed": hex(gas_used),
        "effectiveGasPrice": hex(effective_gas_price),
        "contractAddress": contract_address,
        "logs": [],
    }


class FakeChainProvider(ChainProvider):
    """In-memory chain. Records every RPC-style call in ``calls``."""

    name = "fake"

    def __init__(
        self,
        chain_id: int = 11155111,
        head: int = 100,
        balance: int = 10**18,
        gas_price: int = 2_000_000_000,
        estimate: Any = 1_000_000,
    ):
        self._chain_id = chain_id
        self.head = head
        self.heads: List[int] = []          # Consumed by block_number() before falling back to head
        self.balance = balance
        self._gas_price = gas_price
        self.estimate = estimate            # int result or Exception to raise
        self.nonce = 0
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.code: Dict[str, str] = {}
        self.blocks: Dict[int, Dict[str, Any]] = {}
        self.sent: List[str] = []
        self.calls: List[str] = []
        self.receipt_error: Optional[Exception] = None

        # Deployment behaviour on send_raw_transaction
        self.auto_mine = True
        self.mined_status = 1
        self.mined_contract: Optional[str] = CONTRACT_ADDRESS
        self.mined_code = DEPLOYED_CODE
        self.blocks_after_mine = 1
        self.closed = False

    async def ready(self) -> bool:
        return True

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "block_number": self.head}

    async def chain_id(self) -> int:
        self.calls.append("eth_chainId")
        return self._chain_id

    async def block_number(self) -> int:
        self.calls.append("eth_blockNumber")
        if self.heads:
            return self.heads.pop(0)
        return self.head

    async def get_balance(self, address: str, block: str = "latest") -> int:
        self.calls.append("eth_getBalance")
        return self.balance

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        self.calls.append("eth_getTransactionCount")
        return self.nonce

    async def gas_price(self) -> int:
        self.calls.append("eth_gasPrice")
        return self._gas_price

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        self.calls.append("eth_estimateGas")
        if isinstance(self.estimate, Exception):
            raise self.estimate
        return self.estimate

    async def send_raw_transaction(self, raw_tx: str) -> str:
        self.calls.append("eth_sendRawTransaction")
        tx_hash = "0x" + keccak(hexstr=raw_tx).hex()
        self.sent.append(raw_tx)
        self.transactions[tx_hash] = {"hash": tx_hash, "nonce": hex(self.nonce), "gas": hex(3_000_000)}
        if self.auto_mine:
            self.receipts[tx_hash] = make_receipt(
                tx_hash,
                self.head,
                status=self.mined_status,
                contract_address=self.mined_contract,
            )
            if self.mined_contract:
                self.code[self.mined_contract] = self.mined_code
            self.head += self.blocks_after_mine
        return tx_hash

    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        self.calls.append("eth_getTransactionByHash")
        return self.transactions.get(tx_hash)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        self.calls.append("eth_getTransactionReceipt")
        if self.receipt_error is not None:
            raise self.receipt_error
        return self.receipts.get(tx_hash)

    async def get_code(self, address: str, block: str = "latest") -> str:
        self.calls.append("eth_getCode")
        return self.code.get(address, "0x")

    async def get_block(self, block_number: int) -> Optional[Dict[str, Any]]:
        self.calls.append("eth_getBlockByNumber")
        return self.blocks.get(block_number)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short polling windows."""
    return Settings(
        monitor_poll_interval_seconds=0.01,
        monitor_timeout_seconds=2.0,
        wait_timeout_seconds=2.0,
        rpc_timeout_seconds=1.0,
    )


@pytest.fixture
def registry(test_settings: Settings) -> NetworkRegistry:
    return NetworkRegistry(settings=test_settings)


@pytest.fixture
def fake_provider() -> FakeChainProvider:
    return FakeChainProvider()


@pytest.fixture
def pool(registry: NetworkRegistry, fake_provider: FakeChainProvider, test_settings: Settings) -> ProviderPool:
    """Pool that hands out the same fake provider for every network."""
    return ProviderPool(registry=registry, factory=lambda network: fake_provider, settings=test_settings)


@pytest.fixture
def monitor(pool: ProviderPool, test_settings: Settings) -> TransactionMonitor:
    return TransactionMonitor(pool, network="sepolia", settings=test_settings)


@pytest.fixture
def tx_hash() -> str:
    return "0x" + "a1" * 32


@pytest.fixture
def receipt_factory():
    return make_receipt


@pytest.fixture
def provider_factory():
    return FakeChainProvider


@pytest.fixture
def private_key() -> str:
    return TEST_PRIVATE_KEY


@pytest.fixture
def token_bytecode() -> str:
    return TOKEN_BYTECODE


@pytest.fixture
def token_abi() -> List[Dict[str, Any]]:
    return [dict(item) for item in TOKEN_ABI]


@pytest.fixture
def contract_address() -> str:
    return CONTRACT_ADDRESS


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging()'s changes to the root logger and structlog."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
