"""
Deployment Execution Layer

Provides the infrastructure for deploying contracts and tracking them to finality:
- ContractDeployer: Runs a deployment end to end and reports progress
- TransactionMonitor: Polls receipts and counts confirmations per tx hash
- GasEstimator: Buffered gas estimates with per-network fallbacks
- TransactionBuilder: Constructor encoding and contract-creation transactions
- DeploymentDiagnostics: Post-mortem analysis of failed deployments

Usage:
    from chaindeploy.core.execution import (
        ContractDeployer,
        DeploymentRequest,
        get_contract_deployer,
    )

    deployer = get_contract_deployer()
    result = await deployer.deploy(
        DeploymentRequest(
            bytecode="0x6080...",
            abi=abi,
            network="sepolia",
            credential="0x...",
            constructor_params=["My Token", 1000],
        ),
        on_progress=lambda event: print(event.stage.value, event.message),
    )
"""

from .models import (
    DeploymentStage,
    DEPLOYMENT_STAGE_ORDER,
    TransactionState,
    DeploymentRequest,
    DeploymentResult,
    GasEstimate,
    Receipt,
    TransactionStatus,
)

from .events import (
    ProgressEvent,
    ProgressEmitter,
    ProgressListener,
)

from .validation import (
    validate_bytecode,
    validate_constructor_args,
    validate_request,
    validate_tx_hash,
)

from .tx_builder import (
    TransactionBuilder,
)

from .gas import (
    GasEstimator,
)

from .monitor import (
    MonitorSession,
    TransactionMonitor,
)

from .deployer import (
    ContractDeployer,
    get_contract_deployer,
)

from .diagnostics import (
    Diagnostics,
    DeploymentDiagnostics,
)

__all__ = [
    # Models
    "DeploymentStage",
    "DEPLOYMENT_STAGE_ORDER",
    "TransactionState",
    "DeploymentRequest",
    "DeploymentResult",
    "GasEstimate",
    "Receipt",
    "TransactionStatus",
    # Events
    "ProgressEvent",
    "ProgressEmitter",
    "ProgressListener",
    # Validation
    "validate_bytecode",
    "validate_constructor_args",
    "validate_request",
    "validate_tx_hash",
    # Builder
    "TransactionBuilder",
    # Gas
    "GasEstimator",
    # Monitor
    "MonitorSession",
    "TransactionMonitor",
    # Deployer
    "ContractDeployer",
    "get_contract_deployer",
    # Diagnostics
    "Diagnostics",
    "DeploymentDiagnostics",
]
