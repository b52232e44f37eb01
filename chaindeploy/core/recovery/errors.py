"""
Error Classification

Defines the exception hierarchy for deployment and confirmation tracking, and
maps raw provider errors into a closed set of error types with remediation
hints. Structured JSON-RPC codes are consulted before message text.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import httpx
from eth_abi import decode as abi_decode


class ErrorType(str, Enum):
    """Closed taxonomy surfaced to callers."""

    INSUFFICIENT_FUNDS = "insufficient_funds"
    GAS_PRICE_TOO_LOW = "gas_price_too_low"
    NETWORK_ERROR = "network_error"
    CONTRACT_REVERT = "contract_revert"
    GAS_ERROR = "gas_error"
    INVALID_ARGUMENT = "invalid_argument"
    UNKNOWN = "unknown"


SUGGESTIONS: Dict[ErrorType, List[str]] = {
    ErrorType.INSUFFICIENT_FUNDS: [
        "Ensure your wallet has enough native currency for gas fees",
        "Use a different wallet with sufficient funds",
    ],
    ErrorType.GAS_PRICE_TOO_LOW: [
        "Increase the gas price for faster confirmation",
    ],
    ErrorType.NETWORK_ERROR: [
        "Check your internet connection and RPC endpoint",
        "Retry the request once the endpoint is reachable",
    ],
    ErrorType.CONTRACT_REVERT: [
        "Check constructor parameters and contract logic",
        "Verify constructor require statements can be satisfied",
    ],
    ErrorType.GAS_ERROR: [
        "Increase gas limit or check for infinite loops",
    ],
    ErrorType.INVALID_ARGUMENT: [
        "Review the deployment request fields",
    ],
    ErrorType.UNKNOWN: [
        "Inspect the error message and retry if the cause was transient",
    ],
}

# Solidity Error(string) and Panic(uint256) selectors
REVERT_SELECTOR = "0x08c379a0"
PANIC_SELECTOR = "0x4e487b71"

# JSON-RPC error codes with a fixed meaning across clients
RPC_CODE_EXECUTION_REVERTED = 3
RPC_CODE_TYPES: Dict[int, ErrorType] = {
    RPC_CODE_EXECUTION_REVERTED: ErrorType.CONTRACT_REVERT,
    -32700: ErrorType.INVALID_ARGUMENT,   # Parse error
    -32600: ErrorType.INVALID_ARGUMENT,   # Invalid request
    -32602: ErrorType.INVALID_ARGUMENT,   # Invalid params
    -32601: ErrorType.NETWORK_ERROR,      # Method not supported by endpoint
    -32005: ErrorType.NETWORK_ERROR,      # Limit exceeded
    -32010: ErrorType.GAS_PRICE_TOO_LOW,  # Gas price too low (OpenEthereum/Nethermind)
}


@dataclass
class ClassifiedError:
    """Machine-readable description of a failure."""

    type: ErrorType = ErrorType.UNKNOWN
    message: str = ""
    suggestions: List[str] = field(default_factory=list)
    recoverable: bool = False
    code: Optional[Union[int, str]] = None
    revert_reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.suggestions:
            self.suggestions = list(SUGGESTIONS[self.type])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "suggestions": list(self.suggestions),
            "recoverable": self.recoverable,
            "code": self.code,
            "revert_reason": self.revert_reason,
            "details": dict(self.details),
        }


class DeploymentError(Exception):
    """Base class for every error raised by chaindeploy."""

    error_type: ErrorType = ErrorType.UNKNOWN
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        suggestions: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.suggestions = suggestions or list(SUGGESTIONS[self.error_type])
        self.details = details or {}

    def to_classified(self) -> ClassifiedError:
        return ClassifiedError(
            type=self.error_type,
            message=self.message,
            suggestions=list(self.suggestions),
            recoverable=self.recoverable,
            details=dict(self.details),
        )


class ValidationError(DeploymentError):
    """Malformed input. Raised before any network call, never retried."""

    error_type = ErrorType.INVALID_ARGUMENT


class UnsupportedNetworkError(ValidationError):
    """Network key is not in the registry."""

    def __init__(self, network: str, supported: Optional[List[str]] = None):
        supported = supported or []
        super().__init__(
            f"Unsupported network: {network}",
            suggestions=[f"Use one of: {', '.join(supported)}"] if supported else None,
            details={"network": network, "supported": supported},
        )
        self.network = network


class InsufficientFundsError(DeploymentError):
    """Wallet cannot pay for the deployment."""

    error_type = ErrorType.INSUFFICIENT_FUNDS

    def __init__(
        self,
        message: str = "Insufficient funds",
        address: Optional[str] = None,
        balance_wei: Optional[int] = None,
    ):
        super().__init__(
            message,
            details={"address": address, "balance_wei": balance_wei},
        )
        self.address = address
        self.balance_wei = balance_wei


class ContractRevertError(DeploymentError):
    """Contract creation reverted (or would revert)."""

    error_type = ErrorType.CONTRACT_REVERT

    def __init__(
        self,
        message: str = "Contract creation reverted",
        reason: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ):
        if reason and reason not in message:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            details={"revert_reason": reason, "tx_hash": tx_hash},
        )
        self.reason = reason
        self.tx_hash = tx_hash

    def to_classified(self) -> ClassifiedError:
        classified = super().to_classified()
        classified.revert_reason = self.reason
        return classified


class NetworkError(DeploymentError):
    """RPC endpoint unreachable or timed out. Surfaced, never auto-retried."""

    error_type = ErrorType.NETWORK_ERROR
    recoverable = True

    def __init__(self, message: str = "Network error", network: Optional[str] = None):
        super().__init__(message, details={"network": network} if network else None)
        self.network = network


class RpcError(DeploymentError):
    """JSON-RPC error response carrying the node's structured code."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Any = None,
        method: Optional[str] = None,
    ):
        super().__init__(
            f"RPC error {code}: {message}" if code is not None else f"RPC error: {message}",
            details={"method": method, "rpc_message": message},
        )
        self.rpc_message = message
        self.code = code
        self.data = data
        self.method = method


class GasEstimationError(DeploymentError):
    """Gas could not be determined."""

    error_type = ErrorType.GAS_ERROR


class ConfirmationTimeoutError(DeploymentError):
    """
    Local confirmation wait hit its deadline.

    This is not a deployment failure: the transaction may still be mined.
    Callers should re-query by hash.
    """

    error_type = ErrorType.NETWORK_ERROR
    recoverable = True

    def __init__(
        self,
        tx_hash: str,
        timeout_seconds: float,
        confirmations: int = 0,
    ):
        super().__init__(
            f"Confirmation timed out after {timeout_seconds:g}s for {tx_hash}",
            suggestions=[
                "The transaction may still confirm; re-query its status by hash",
                "Wait longer or check the transaction on a block explorer",
            ],
            details={
                "tx_hash": tx_hash,
                "timeout_seconds": timeout_seconds,
                "confirmations": confirmations,
            },
        )
        self.tx_hash = tx_hash
        self.timeout_seconds = timeout_seconds
        self.confirmations = confirmations


class MonitoringStoppedError(DeploymentError):
    """Local polling was stopped or replaced before a terminal state."""

    recoverable = True

    def __init__(self, tx_hash: str):
        super().__init__(
            f"Monitoring stopped for {tx_hash}",
            suggestions=["Local polling was aborted; re-query the transaction by hash"],
            details={"tx_hash": tx_hash},
        )
        self.tx_hash = tx_hash


def decode_revert_reason(data: Any) -> Optional[str]:
    """
    Decode revert data returned by a node.

    Handles Error(string), Panic(uint256) and bare custom-error selectors.
    Returns None when there is nothing to decode.
    """
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, str) or not data.startswith("0x") or len(data) < 10:
        return None

    selector = data[:10].lower()
    try:
        payload = bytes.fromhex(data[10:])
    except ValueError:
        return None

    if selector == REVERT_SELECTOR:
        try:
            (reason,) = abi_decode(["string"], payload)
        except Exception:
            return None
        return reason
    if selector == PANIC_SELECTOR:
        try:
            (code,) = abi_decode(["uint256"], payload)
        except Exception:
            return None
        return f"Panic(0x{code:02x})"
    return f"custom error {selector}"


def extract_revert_reason(error: Exception) -> Optional[str]:
    """Pull a revert reason out of an RPC error, preferring revert data."""
    if isinstance(error, ContractRevertError):
        return error.reason
    if isinstance(error, RpcError):
        reason = decode_revert_reason(error.data)
        if reason:
            return reason
        text = error.rpc_message
    else:
        text = str(error)
    marker = "execution reverted:"
    idx = text.lower().find(marker)
    if idx >= 0:
        reason = text[idx + len(marker):].strip()
        return reason or None
    return None


def is_revert_error(error: Exception) -> bool:
    """True when the error says execution itself would revert."""
    if isinstance(error, ContractRevertError):
        return True
    if isinstance(error, RpcError):
        if error.code == RPC_CODE_EXECUTION_REVERTED:
            return True
        if decode_revert_reason(error.data) is not None:
            return True
        return "revert" in error.rpc_message.lower()
    if isinstance(error, DeploymentError):
        return False
    return "revert" in str(error).lower()


def _classify_message(message: str) -> ErrorType:
    """Last-resort substring inspection."""
    text = message.lower()

    if "insufficient funds" in text or "exceeds balance" in text:
        return ErrorType.INSUFFICIENT_FUNDS
    if any(p in text for p in ("underpriced", "fee too low", "gas price too low", "max fee per gas less than")):
        return ErrorType.GAS_PRICE_TOO_LOW
    if "revert" in text:
        return ErrorType.CONTRACT_REVERT
    if any(p in text for p in ("timeout", "timed out", "connection", "network", "unreachable", "refused")):
        return ErrorType.NETWORK_ERROR
    if "gas" in text:
        return ErrorType.GAS_ERROR
    if "invalid" in text:
        return ErrorType.INVALID_ARGUMENT
    return ErrorType.UNKNOWN


def classify_error(error: Exception) -> ClassifiedError:
    """
    Classify an exception and return a ClassifiedError.

    Order of precedence: chaindeploy's own hierarchy, httpx transport
    exception types, structured JSON-RPC codes, then message text.
    """
    if isinstance(error, RpcError):
        error_type = RPC_CODE_TYPES.get(error.code) if error.code is not None else None
        if error_type is None:
            error_type = _classify_message(error.rpc_message)
        return ClassifiedError(
            type=error_type,
            message=error.message,
            recoverable=error_type == ErrorType.NETWORK_ERROR,
            code=error.code,
            revert_reason=extract_revert_reason(error) if error_type == ErrorType.CONTRACT_REVERT else None,
            details=dict(error.details),
        )

    if isinstance(error, DeploymentError):
        return error.to_classified()

    if isinstance(error, (httpx.TransportError, httpx.HTTPStatusError, asyncio.TimeoutError)):
        return ClassifiedError(
            type=ErrorType.NETWORK_ERROR,
            message=str(error) or error.__class__.__name__,
            recoverable=True,
            code=error.__class__.__name__,
        )

    message = str(error)
    error_type = _classify_message(message)
    return ClassifiedError(
        type=error_type,
        message=message,
        recoverable=error_type == ErrorType.NETWORK_ERROR,
        revert_reason=extract_revert_reason(error) if error_type == ErrorType.CONTRACT_REVERT else None,
    )
