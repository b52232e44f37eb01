"""
Pure validation for deployment requests.

Nothing in here touches the network. Every failure raises ValidationError
so malformed input is rejected before a provider is ever contacted.
"""

import re
from typing import Any, Dict, List, Optional

from ..recovery.errors import ValidationError
from .models import DeploymentRequest


HEX_RE = re.compile(r"^[0-9a-fA-F]*$")
TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")

DEFAULT_MIN_BYTECODE_BYTES = 10


def validate_bytecode(bytecode: Any, min_bytes: int = DEFAULT_MIN_BYTECODE_BYTES) -> str:
    """
    Check creation bytecode and return it unchanged.

    Accepts iff the string is 0x-prefixed, strictly hex after the prefix,
    even length and at least ``min_bytes`` long. Odd length means the payload
    was truncated upstream; it is rejected, never padded.
    """
    if not isinstance(bytecode, str) or not bytecode:
        raise ValidationError(
            "Bytecode is required",
            suggestions=["Ensure the contract was compiled successfully"],
        )
    if not bytecode.startswith("0x"):
        raise ValidationError(
            "Bytecode must start with 0x",
            suggestions=["Ensure bytecode is a properly formatted hex string"],
        )

    hex_part = bytecode[2:]
    if not hex_part:
        raise ValidationError(
            "Bytecode is empty",
            suggestions=["Ensure the contract was compiled successfully"],
        )
    if not HEX_RE.match(hex_part):
        raise ValidationError(
            "Bytecode contains non-hexadecimal characters",
            suggestions=["Use compiled bytecode, not source code or linked placeholders"],
        )
    if len(hex_part) % 2 != 0:
        raise ValidationError(
            f"Bytecode has an odd number of hex characters ({len(hex_part)}); "
            "the payload is truncated or corrupted",
            suggestions=["Recompile the contract and pass the complete bytecode"],
        )
    if len(hex_part) // 2 < min_bytes:
        raise ValidationError(
            f"Bytecode too short: {len(hex_part) // 2} bytes, minimum is {min_bytes}",
            suggestions=["Ensure you are using compiled creation bytecode"],
        )
    return bytecode


def find_constructor(abi: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for item in abi:
        if isinstance(item, dict) and item.get("type") == "constructor":
            return item
    return None


def describe_params(inputs: List[Dict[str, Any]]) -> str:
    return ", ".join(
        f"{inp.get('name') or f'arg{i}'} ({inp.get('type', '?')})"
        for i, inp in enumerate(inputs)
    )


def validate_abi(abi: Any) -> List[Dict[str, Any]]:
    if not isinstance(abi, list):
        raise ValidationError("ABI must be a list of descriptors")
    for i, item in enumerate(abi):
        if not isinstance(item, dict) or "type" not in item:
            raise ValidationError(f"ABI entry {i} is not a valid descriptor")
    return abi


def validate_constructor_args(abi: List[Dict[str, Any]], params: List[Any]) -> List[Dict[str, Any]]:
    """
    Check constructor arity and return the constructor inputs.

    A mismatch names every expected parameter and its type, in order.
    """
    constructor = find_constructor(abi)
    inputs = (constructor or {}).get("inputs") or []
    params = list(params or [])

    if len(inputs) != len(params):
        if constructor is None:
            message = (
                f"Constructor parameters provided ({len(params)}) "
                "but no constructor found in ABI"
            )
            suggestions = ["Remove constructor parameters or verify the ABI includes the constructor"]
        else:
            expected = describe_params(inputs) or "none"
            message = (
                f"Constructor expects {len(inputs)} parameters but {len(params)} provided. "
                f"Expected: {expected}"
            )
            suggestions = [f"Required parameters: {expected}"]
        raise ValidationError(
            message,
            suggestions=suggestions,
            details={
                "expected": [
                    {"name": inp.get("name", ""), "type": inp.get("type", "")}
                    for inp in inputs
                ],
                "provided": len(params),
            },
        )
    return inputs


def validate_private_key(credential: Any) -> str:
    if not isinstance(credential, str) or not PRIVATE_KEY_RE.match(credential):
        raise ValidationError(
            "Signing key must be 32 bytes of hex (64 characters, optional 0x prefix)",
            suggestions=["Check the signing key format"],
        )
    return credential if credential.startswith("0x") else f"0x{credential}"


def validate_tx_hash(tx_hash: Any) -> str:
    if not isinstance(tx_hash, str) or not TX_HASH_RE.match(tx_hash):
        raise ValidationError(f"Invalid transaction hash: {tx_hash!r}")
    return tx_hash.lower()


def validate_request(
    request: DeploymentRequest,
    min_bytecode_bytes: int = DEFAULT_MIN_BYTECODE_BYTES,
) -> List[Dict[str, Any]]:
    """Validate every locally checkable field; returns constructor inputs."""
    if not request.network:
        raise ValidationError("Network is required")
    validate_private_key(request.credential)
    validate_bytecode(request.bytecode, min_bytecode_bytes)
    validate_abi(request.abi)

    if request.gas_limit is not None and request.gas_limit <= 0:
        raise ValidationError("gas_limit must be positive")
    if request.gas_price is not None and request.gas_price <= 0:
        raise ValidationError("gas_price must be positive")
    if request.value < 0:
        raise ValidationError("value must not be negative")
    if request.confirmations is not None and request.confirmations < 0:
        raise ValidationError("confirmations must not be negative")

    return validate_constructor_args(request.abi, request.constructor_params)
