"""
Error Recovery Module

Provides the deployment error hierarchy and the classifier that maps raw
provider errors into machine-readable types with remediation hints. No
automatic retries are performed; retry policy belongs to the caller.
"""

from .errors import (
    ErrorType,
    ClassifiedError,
    DeploymentError,
    ValidationError,
    UnsupportedNetworkError,
    InsufficientFundsError,
    ContractRevertError,
    NetworkError,
    RpcError,
    GasEstimationError,
    ConfirmationTimeoutError,
    MonitoringStoppedError,
    classify_error,
    decode_revert_reason,
    extract_revert_reason,
    is_revert_error,
)

__all__ = [
    "ErrorType",
    "ClassifiedError",
    # Errors
    "DeploymentError",
    "ValidationError",
    "UnsupportedNetworkError",
    "InsufficientFundsError",
    "ContractRevertError",
    "NetworkError",
    "RpcError",
    "GasEstimationError",
    "ConfirmationTimeoutError",
    "MonitoringStoppedError",
    # Classification
    "classify_error",
    "decode_revert_reason",
    "extract_revert_reason",
    "is_revert_error",
]
