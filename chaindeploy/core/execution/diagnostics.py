"""
Post-mortem analysis for failed deployments.

Collects every issue it can find instead of stopping at the first one, so
the troubleshooting report lists all likely causes at once.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from eth_utils import is_address

from ...config import settings
from ...providers.base import ChainProvider
from .models import Receipt, hex_to_int
from .monitor import format_transaction
from .validation import HEX_RE, describe_params, find_constructor


logger = logging.getLogger(__name__)

# Receipts above this share of the gas limit most likely ran out of gas
OUT_OF_GAS_THRESHOLD_PERCENT = 95

COMMON_FIXES: Dict[str, List[str]] = {
    "out of gas": [
        "Increase gas limit",
        "Optimize contract code to reduce deployment cost",
        "Split complex constructor logic into separate functions",
    ],
    "constructor reverted": [
        "Check constructor parameter types and values",
        "Verify constructor logic does not have failing require statements",
        "Ensure any external contract calls in constructor are valid",
    ],
    "invalid bytecode": [
        "Recompile contract with correct compiler version",
        "Ensure bytecode is from successful compilation",
        "Check for compilation errors or warnings",
    ],
    "insufficient funds": [
        "Add more native currency to the wallet for gas fees",
        "Reduce gas price if network allows",
        "Use a different wallet with sufficient funds",
    ],
}

NEXT_STEPS = [
    "Review the issues and suggestions above",
    "Check transaction on block explorer if hash is available",
    "Verify contract compiles without errors",
    "Test deployment on a testnet first",
]


@dataclass
class Diagnostics:
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    transaction_details: Optional[Dict[str, Any]] = None

    def add(self, issue: str, suggestion: Optional[str] = None) -> None:
        self.issues.append(issue)
        if suggestion:
            self.suggestions.append(suggestion)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
            "transactionDetails": self.transaction_details,
        }


class DeploymentDiagnostics:
    """Finds likely causes of a failed deployment."""

    @classmethod
    async def analyze_failed_deployment(
        cls,
        provider: Optional[ChainProvider] = None,
        tx_hash: Optional[str] = None,
        bytecode: Optional[str] = None,
        abi: Optional[List[Dict[str, Any]]] = None,
        constructor_params: Optional[List[Any]] = None,
        min_bytecode_bytes: Optional[int] = None,
    ) -> Diagnostics:
        """
        Analyze a failed deployment.

        Args:
            provider: Connection used to fetch the transaction and receipt
            tx_hash: Hash of the failed deployment, if one was broadcast
            bytecode: Creation bytecode that was deployed
            abi: Contract ABI
            constructor_params: Constructor arguments that were supplied
            min_bytecode_bytes: Shortest plausible bytecode (default: settings.min_bytecode_bytes)

        Returns:
            Diagnostics; lookup failures are recorded as issues
        """
        diagnostics = Diagnostics()

        if provider is not None and tx_hash:
            try:
                await cls._analyze_transaction(provider, tx_hash, diagnostics)
            except Exception as e:
                logger.warning(f"Could not fetch {tx_hash} for diagnostics: {e}")
                diagnostics.add(f"Diagnostic analysis failed: {e}")

        if bytecode is not None:
            cls.analyze_bytecode(bytecode, diagnostics, min_bytecode_bytes)

        if abi is not None:
            cls.analyze_constructor_params(abi, constructor_params or [], diagnostics)

        return diagnostics

    @staticmethod
    async def _analyze_transaction(provider: ChainProvider, tx_hash: str, diagnostics: Diagnostics) -> None:
        transaction = await provider.get_transaction(tx_hash)
        raw_receipt = await provider.get_transaction_receipt(tx_hash)
        receipt = Receipt.from_rpc(raw_receipt) if raw_receipt else None
        gas_limit = hex_to_int(transaction.get("gas")) if transaction else None

        diagnostics.transaction_details = {
            "transaction": format_transaction(transaction) if transaction else None,
            "receipt": receipt.summary() if receipt else None,
            "gasUsed": str(receipt.gas_used) if receipt else None,
            "gasLimit": str(gas_limit) if gas_limit is not None else None,
            "status": receipt.status if receipt else None,
        }

        if receipt is None or not gas_limit:
            return

        if receipt.gas_used * 100 > gas_limit * OUT_OF_GAS_THRESHOLD_PERCENT:
            diagnostics.add(
                f"Transaction used more than {OUT_OF_GAS_THRESHOLD_PERCENT}% of gas limit, likely out of gas",
                "Increase gas limit or optimize contract code",
            )
        if not receipt.succeeded:
            diagnostics.add(
                "Transaction was reverted",
                "Check constructor logic and parameter types",
            )

    @staticmethod
    def analyze_bytecode(
        bytecode: str,
        diagnostics: Diagnostics,
        min_bytes: Optional[int] = None,
    ) -> Diagnostics:
        if min_bytes is None:
            min_bytes = settings.min_bytecode_bytes
        if not bytecode.startswith("0x"):
            diagnostics.add(
                "Bytecode does not start with 0x",
                "Ensure bytecode is properly formatted hex string",
            )
            return diagnostics

        hex_part = bytecode[2:]
        if not hex_part:
            diagnostics.add("Empty bytecode", "Ensure contract was compiled successfully")
            return diagnostics

        if not HEX_RE.match(hex_part):
            diagnostics.add(
                "Bytecode contains non-hexadecimal characters",
                "Link libraries and remove placeholders before deploying",
            )
        if len(hex_part) % 2 != 0:
            diagnostics.add(
                "Bytecode has odd number of hex characters",
                "Bytecode must have even number of hex characters",
            )
        if len(hex_part) < min_bytes * 2:
            diagnostics.add(
                "Bytecode is too short to be valid contract bytecode",
                "Ensure you are using compiled bytecode, not source code",
            )
        # PUSH1/PUSH2 open virtually every compiled contract
        if "60" not in hex_part and "61" not in hex_part:
            diagnostics.add(
                "Bytecode does not contain common EVM opcodes",
                "Verify bytecode is from a valid compilation",
            )
        return diagnostics

    @classmethod
    def analyze_constructor_params(
        cls,
        abi: List[Dict[str, Any]],
        constructor_params: List[Any],
        diagnostics: Diagnostics,
    ) -> Diagnostics:
        constructor = find_constructor(abi)

        if constructor is None:
            if constructor_params:
                diagnostics.add(
                    "Constructor parameters provided but no constructor found in ABI",
                    "Remove constructor parameters or verify ABI includes constructor",
                )
            return diagnostics

        inputs = constructor.get("inputs") or []
        if len(inputs) != len(constructor_params):
            diagnostics.add(
                f"Constructor expects {len(inputs)} parameters but {len(constructor_params)} provided",
                f"Required parameters: {describe_params(inputs)}",
            )
            return diagnostics

        for position, (expected, value) in enumerate(zip(inputs, constructor_params)):
            name = expected.get("name") or f"arg{position}"
            problem = cls.validate_param_type(expected.get("type", ""), value, name)
            if problem:
                diagnostics.add(problem, f"Ensure parameter {name} matches type {expected.get('type', '')}")
        return diagnostics

    @staticmethod
    def validate_param_type(expected_type: str, value: Any, name: str) -> Optional[str]:
        """Return a description of the mismatch, or None when the value fits."""
        if expected_type.endswith("]"):
            if not isinstance(value, (list, tuple)):
                return f"Parameter {name} should be a list for type {expected_type}"
            return None
        if expected_type.startswith(("uint", "int")):
            if isinstance(value, bool) or not isinstance(value, (int, str)):
                return f"Parameter {name} should be a number for type {expected_type}"
        elif expected_type == "address":
            if not isinstance(value, str) or not is_address(value):
                return f"Parameter {name} should be a valid address"
        elif expected_type == "bool":
            if not isinstance(value, bool):
                return f"Parameter {name} should be a boolean for type {expected_type}"
        elif expected_type.startswith("bytes"):
            if not isinstance(value, str) or not value.startswith("0x"):
                return f"Parameter {name} should be a hex string for type {expected_type}"
        return None

    @staticmethod
    def common_fixes() -> Dict[str, List[str]]:
        return {problem: list(fixes) for problem, fixes in COMMON_FIXES.items()}

    @classmethod
    def generate_troubleshooting_report(
        cls,
        diagnostics: Diagnostics,
        error: Optional[BaseException] = None,
    ) -> Dict[str, Any]:
        report = {
            "summary": "Deployment Failed",
            "error": str(error) if error else "Unknown error",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "issues": list(diagnostics.issues),
            "suggestions": list(diagnostics.suggestions),
            "commonFixes": cls.common_fixes(),
            "transactionDetails": diagnostics.transaction_details,
            "nextSteps": list(NEXT_STEPS),
        }
        logger.info(f"Generated deployment troubleshooting report with {len(report['issues'])} issues")
        return report
