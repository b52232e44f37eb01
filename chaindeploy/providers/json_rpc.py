import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.recovery.errors import NetworkError, RpcError
from ..services.networks import NetworkConfig
from .base import ChainProvider


logger = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    raise ValueError(f"Unexpected quantity: {value!r}")


class JsonRpcProvider(ChainProvider):
    """EVM JSON-RPC over HTTP.

    Every call carries its own timeout; transport failures surface as
    NetworkError and node error responses as RpcError with the node's code.
    """

    name = "json_rpc"

    def __init__(
        self,
        network: NetworkConfig,
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.network = network
        self.timeout_s = timeout_s
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._ids = itertools.count(1)

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make an RPC call to the network."""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        try:
            response = await self._client.post(
                self.network.rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            result = response.json()
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"{method} timed out after {self.timeout_s:g}s on {self.network.key}",
                network=self.network.key,
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(
                f"{method} failed on {self.network.key}: {e}",
                network=self.network.key,
            ) from e
        except ValueError as e:
            raise NetworkError(
                f"{method} returned a non-JSON response on {self.network.key}",
                network=self.network.key,
            ) from e

        if "error" in result:
            error = result["error"] or {}
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise RpcError(
                error.get("message", "unknown error"),
                code=error.get("code"),
                data=error.get("data"),
                method=method,
            )

        return result.get("result")

    async def ready(self) -> bool:
        return bool(self.network.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "RPC URL not configured"}

        try:
            block = await self.block_number()
            return {"status": "healthy", "block_number": block}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def chain_id(self) -> int:
        return _to_int(await self._rpc_call("eth_chainId", []))

    async def block_number(self) -> int:
        return _to_int(await self._rpc_call("eth_blockNumber", []))

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return _to_int(await self._rpc_call("eth_getBalance", [address, block]))

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return _to_int(await self._rpc_call("eth_getTransactionCount", [address, block]))

    async def gas_price(self) -> int:
        return _to_int(await self._rpc_call("eth_gasPrice", []))

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        call_obj = {k: hex(v) if isinstance(v, int) else v for k, v in tx.items()}
        return _to_int(await self._rpc_call("eth_estimateGas", [call_obj]))

    async def send_raw_transaction(self, raw_tx: str) -> str:
        tx_hash = await self._rpc_call("eth_sendRawTransaction", [raw_tx])
        logger.info(f"Transaction submitted on {self.network.key}: {tx_hash}")
        return tx_hash

    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self._rpc_call("eth_getTransactionByHash", [tx_hash])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self._rpc_call("eth_getTransactionReceipt", [tx_hash])

    async def get_code(self, address: str, block: str = "latest") -> str:
        return await self._rpc_call("eth_getCode", [address, block]) or "0x"

    async def get_block(self, block_number: int) -> Optional[Dict[str, Any]]:
        return await self._rpc_call("eth_getBlockByNumber", [hex(block_number), False])

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
