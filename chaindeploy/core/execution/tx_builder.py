"""
Transaction builder for contract-creation transactions.
"""

import secrets
from typing import Any, Dict, List, Tuple

from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import is_address, to_checksum_address

from ..recovery.errors import ValidationError


def _abi_type(param: Dict[str, Any]) -> str:
    """Canonical type string for an ABI input, expanding tuples."""
    abi_type = param.get("type", "")
    if abi_type.startswith("tuple"):
        components = ",".join(_abi_type(c) for c in param.get("components", []))
        return f"({components}){abi_type[len('tuple'):]}"
    return abi_type


def _coerce(param: Dict[str, Any], value: Any) -> Any:
    """Convert JSON-friendly values into what eth_abi expects."""
    abi_type = param.get("type", "")
    if abi_type.endswith("]"):
        inner = dict(param, type=abi_type[: abi_type.rindex("[")])
        if not isinstance(value, (list, tuple)):
            raise TypeError(f"expected a list for {abi_type}")
        return [_coerce(inner, v) for v in value]

    if abi_type == "tuple":
        components = param.get("components", [])
        if isinstance(value, dict):
            value = [value.get(c.get("name")) for c in components]
        if not isinstance(value, (list, tuple)) or len(value) != len(components):
            raise TypeError(f"expected {len(components)} tuple components")
        return tuple(_coerce(c, v) for c, v in zip(components, value))

    if abi_type.startswith(("uint", "int")):
        if isinstance(value, bool):
            raise TypeError(f"expected an integer for {abi_type}")
        if isinstance(value, str):
            return int(value, 0)
        return int(value)

    if abi_type == "address":
        if not isinstance(value, str) or not is_address(value):
            raise TypeError("expected a 20-byte hex address")
        return to_checksum_address(value)

    if abi_type == "bool":
        if isinstance(value, str):
            lowered = value.lower()
            if lowered not in ("true", "false"):
                raise TypeError("expected true or false")
            return lowered == "true"
        if not isinstance(value, bool):
            raise TypeError("expected a boolean")
        return value

    if abi_type.startswith("bytes"):
        if isinstance(value, str):
            if not value.startswith("0x"):
                raise TypeError(f"expected a 0x-prefixed hex string for {abi_type}")
            return bytes.fromhex(value[2:])
        return bytes(value)

    return value


class TransactionBuilder:
    """
    Builds contract-creation transactions.

    Handles:
    - Constructor argument ABI encoding
    - Creation calldata assembly
    - Legacy (gasPrice) transaction dicts and signing
    """

    @staticmethod
    def generate_deployment_id() -> str:
        """Generate a unique deployment ID."""
        return f"deploy_{secrets.token_hex(8)}"

    @staticmethod
    def encode_constructor_args(
        inputs: List[Dict[str, Any]],
        params: List[Any],
    ) -> bytes:
        """
        ABI-encode constructor arguments.

        Raises:
            ValidationError: naming the first parameter that fails to encode
        """
        if not inputs:
            return b""

        types = [_abi_type(inp) for inp in inputs]
        values = []
        for position, (inp, abi_type, value) in enumerate(zip(inputs, types, params)):
            name = inp.get("name") or f"arg{position}"
            try:
                values.append(_coerce(inp, value))
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    f"Constructor parameter {name} ({abi_type}) is invalid: {e}",
                    suggestions=[f"Ensure parameter {name} matches type {abi_type}"],
                ) from e

        try:
            return abi_encode(types, values)
        except Exception as e:
            raise ValidationError(
                f"Constructor arguments could not be ABI-encoded: {e}",
                suggestions=["Check constructor parameter types and value ranges"],
            ) from e

    @staticmethod
    def build_deploy_data(bytecode: str, encoded_args: bytes = b"") -> str:
        """Creation calldata: bytecode followed by encoded constructor args."""
        return bytecode + encoded_args.hex()

    @staticmethod
    def build_deploy_call(
        from_address: str,
        data: str,
        value: int = 0,
    ) -> Dict[str, Any]:
        """Call object for eth_estimateGas (no `to` for contract creation)."""
        call_obj: Dict[str, Any] = {"from": from_address, "data": data}
        if value > 0:
            call_obj["value"] = value
        return call_obj

    @staticmethod
    def build_deploy_transaction(
        chain_id: int,
        nonce: int,
        data: str,
        gas_limit: int,
        gas_price: int,
        value: int = 0,
    ) -> Dict[str, Any]:
        """Unsigned legacy contract-creation transaction."""
        return {
            "chainId": chain_id,
            "nonce": nonce,
            "gas": gas_limit,
            "gasPrice": gas_price,
            "value": value,
            "data": data,
        }

    @staticmethod
    def address_for(credential: str) -> str:
        return Account.from_key(credential).address

    @staticmethod
    def sign(tx: Dict[str, Any], credential: str) -> Tuple[str, str]:
        """Sign a transaction; returns (raw_tx_hex, tx_hash_hex)."""
        signed = Account.sign_transaction(tx, credential)
        return "0x" + bytes(signed.raw_transaction).hex(), "0x" + bytes(signed.hash).hex()

    @staticmethod
    def random_address() -> str:
        """Throwaway sender used for keyless cost estimates."""
        return Account.create().address

