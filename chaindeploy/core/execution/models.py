"""
Deployment and confirmation models.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from ..recovery.errors import SUGGESTIONS, ErrorType


WEI_PER_ETHER = Decimal(10) ** 18
WEI_PER_GWEI = Decimal(10) ** 9


def format_units(value: int, unit: Decimal = WEI_PER_ETHER) -> str:
    """Render a wei amount in a larger unit without float rounding."""
    return format((Decimal(value) / unit).normalize(), "f")


def hex_to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16) if value.startswith("0x") else int(value)


class DeploymentStage(str, Enum):
    """Deployment lifecycle stages, in order. FAILED is reachable from any stage."""
    VALIDATING = "validating"
    WALLET_READY = "wallet_ready"
    BALANCE_CHECKED = "balance_checked"
    BYTECODE_VALIDATED = "bytecode_validated"
    CONSTRUCTOR_VALIDATED = "constructor_validated"
    GAS_ESTIMATED = "gas_estimated"
    SUBMITTED = "submitted"
    AWAITING_RECEIPT = "awaiting_receipt"
    COMPLETED = "completed"
    FAILED = "failed"


DEPLOYMENT_STAGE_ORDER: List[DeploymentStage] = [
    stage for stage in DeploymentStage if stage != DeploymentStage.FAILED
]


class TransactionState(str, Enum):
    """Confirmation monitor states."""
    PENDING = "pending"          # No receipt yet
    CONFIRMING = "confirming"    # Mined, below threshold
    CONFIRMED = "confirmed"      # Threshold reached, status success
    FAILED = "failed"            # Receipt status != success
    ERROR = "error"              # Poll raised
    TIMED_OUT = "timed_out"      # Deadline elapsed

    @property
    def is_terminal(self) -> bool:
        return self not in (TransactionState.PENDING, TransactionState.CONFIRMING)


@dataclass
class DeploymentRequest:
    """Everything needed to deploy one contract. Consumed once."""
    bytecode: str
    abi: List[Dict[str, Any]]
    network: str
    credential: str                               # Hex private key used for signing
    constructor_params: List[Any] = field(default_factory=list)
    gas_limit: Optional[int] = None
    gas_price: Optional[int] = None               # Wei
    value: int = 0                                # Wei sent to the constructor
    confirmations: Optional[int] = None           # Defaults to settings.deployment_confirmations

    def __repr__(self) -> str:
        return (
            f"DeploymentRequest(network={self.network!r}, "
            f"bytecode_len={len(self.bytecode or '')}, "
            f"constructor_params={self.constructor_params!r}, credential=***)"
        )


@dataclass
class GasEstimate:
    """Gas limit and price chosen for a deployment."""
    gas_limit: int
    gas_price: int
    raw_estimate: Optional[int] = None            # Node estimate before buffer
    buffer_percent: int = 0
    fallback_used: bool = False
    fallback_reason: Optional[str] = None
    estimated_cost_wei: int = 0

    def __post_init__(self):
        if self.estimated_cost_wei == 0:
            self.estimated_cost_wei = self.gas_limit * self.gas_price

    @property
    def gas_price_gwei(self) -> str:
        return format_units(self.gas_price, WEI_PER_GWEI)

    @property
    def estimated_cost_native(self) -> str:
        return format_units(self.estimated_cost_wei)


@dataclass
class Receipt:
    """Parsed transaction receipt."""
    tx_hash: str
    block_number: int
    status: int
    gas_used: int
    effective_gas_price: Optional[int] = None
    contract_address: Optional[str] = None
    block_hash: Optional[str] = None
    transaction_index: Optional[int] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    cumulative_gas_used: Optional[int] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "Receipt":
        return cls(
            tx_hash=data.get("transactionHash", ""),
            block_number=hex_to_int(data["blockNumber"]),
            # Pre-Byzantium receipts carry no status; treat as success
            status=hex_to_int(data.get("status", "0x1")),
            gas_used=hex_to_int(data.get("gasUsed", "0x0")),
            effective_gas_price=hex_to_int(data.get("effectiveGasPrice")),
            contract_address=data.get("contractAddress"),
            block_hash=data.get("blockHash"),
            transaction_index=hex_to_int(data.get("transactionIndex")),
            from_address=data.get("from"),
            to_address=data.get("to"),
            cumulative_gas_used=hex_to_int(data.get("cumulativeGasUsed")),
            logs=data.get("logs") or [],
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "transactionHash": self.tx_hash,
            "blockNumber": self.block_number,
            "blockHash": self.block_hash,
            "transactionIndex": self.transaction_index,
            "from": self.from_address,
            "to": self.to_address,
            "contractAddress": self.contract_address,
            "gasUsed": str(self.gas_used),
            "cumulativeGasUsed": (
                str(self.cumulative_gas_used) if self.cumulative_gas_used is not None else None
            ),
            "effectiveGasPrice": (
                str(self.effective_gas_price) if self.effective_gas_price is not None else None
            ),
            "status": self.status,
            "logs": [
                {
                    "address": log.get("address"),
                    "topics": log.get("topics", []),
                    "data": log.get("data"),
                    "blockNumber": hex_to_int(log.get("blockNumber")),
                    "transactionIndex": hex_to_int(log.get("transactionIndex")),
                    "logIndex": hex_to_int(log.get("logIndex")),
                }
                for log in self.logs
            ],
        }


@dataclass
class TransactionStatus:
    """One observation of a transaction's progress."""
    tx_hash: str
    state: TransactionState
    confirmations: int = 0
    message: str = ""
    explorer_url: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None
    contract_address: Optional[str] = None
    receipt_summary: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    found: bool = True
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_final(self) -> bool:
        return self.state.is_terminal

    @property
    def is_success(self) -> bool:
        return self.state == TransactionState.CONFIRMED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "status": self.state.value,
            "confirmations": self.confirmations,
            "message": self.message,
            "explorerUrl": self.explorer_url,
            "blockNumber": self.block_number,
            "gasUsed": str(self.gas_used) if self.gas_used is not None else None,
            "effectiveGasPrice": (
                str(self.effective_gas_price) if self.effective_gas_price is not None else None
            ),
            "contractAddress": self.contract_address,
            "receipt": self.receipt_summary,
            "error": self.error,
            "errorType": self.error_type,
            "suggestions": list(self.suggestions),
            "found": self.found,
        }


@dataclass
class DeploymentResult:
    """Outcome of one deploy() call."""
    success: bool
    message: str
    network: Optional[str] = None
    stage: DeploymentStage = DeploymentStage.VALIDATING
    contract_address: Optional[str] = None
    tx_hash: Optional[str] = None
    gas_used: Optional[int] = None
    gas_price: Optional[int] = None
    deployment_cost_native: Optional[str] = None
    block_number: Optional[int] = None
    explorer_url: Optional[str] = None
    contract_explorer_url: Optional[str] = None
    gas_fallback_used: bool = False
    confirmation_timed_out: bool = False
    deployment_time_ms: int = 0
    receipt: Optional[Dict[str, Any]] = None

    # Error info
    error_type: Optional[str] = None
    error_class: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    revert_reason: Optional[str] = None

    def __post_init__(self):
        # A "success" without both identifiers is not a success
        if self.success and not (self.contract_address and self.tx_hash):
            self.success = False
            self.error_type = self.error_type or ErrorType.UNKNOWN.value
            self.error_class = self.error_class or "DeploymentError"
            if not self.suggestions:
                self.suggestions = list(SUGGESTIONS[ErrorType.UNKNOWN])
            self.message = f"Deployment incomplete: missing contract address or transaction hash ({self.message})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "network": self.network,
            "stage": self.stage.value,
            "contractAddress": self.contract_address,
            "transactionHash": self.tx_hash,
            "gasUsed": str(self.gas_used) if self.gas_used is not None else None,
            "gasPrice": str(self.gas_price) if self.gas_price is not None else None,
            "deploymentCost": self.deployment_cost_native,
            "blockNumber": self.block_number,
            "explorerUrl": self.explorer_url,
            "contractExplorerUrl": self.contract_explorer_url,
            "gasFallbackUsed": self.gas_fallback_used,
            "confirmationTimedOut": self.confirmation_timed_out,
            "deploymentTime": self.deployment_time_ms,
            "receipt": self.receipt,
            "errorType": self.error_type,
            "errorClass": self.error_class,
            "suggestions": list(self.suggestions),
            "revertReason": self.revert_reason,
        }
