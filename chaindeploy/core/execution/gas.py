"""
Gas estimation for contract deployments.

Applies a per-network safety buffer and floor to node estimates. When the
node cannot estimate for reasons other than a revert, a static per-network
default is used and the estimate is flagged as a fallback.
"""

import logging
from typing import Any, Dict, Optional

from ...services.networks import NetworkConfig
from ...providers.base import ChainProvider
from ..recovery.errors import (
    ContractRevertError,
    GasEstimationError,
    extract_revert_reason,
    is_revert_error,
)
from .models import GasEstimate


logger = logging.getLogger(__name__)


class GasEstimator:
    """
    Computes gas limit and price for a deployment transaction.

    - L1 networks add 20% to the node estimate, L2 rollups 50%
    - The result never drops below the network's minimum gas limit
    - Reverts propagate as ContractRevertError; no fallback can fix them
    - Other estimation failures fall back to the network default
    """

    @staticmethod
    def apply_buffer(raw_estimate: int, network: NetworkConfig) -> int:
        buffered = raw_estimate + (raw_estimate * network.gas_buffer_percent) // 100
        return max(buffered, network.min_gas_limit)

    async def estimate(
        self,
        provider: ChainProvider,
        network: NetworkConfig,
        call: Dict[str, Any],
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> GasEstimate:
        """
        Estimate gas for a contract-creation call.

        Args:
            provider: Connection for the target network
            network: Network config carrying buffer, floor and fallback
            call: eth_estimateGas call object (from, data, value)
            gas_limit: Explicit limit; skips the node estimate
            gas_price: Explicit price in wei; skips the fee lookup

        Returns:
            GasEstimate

        Raises:
            ContractRevertError: constructor execution would revert
        """
        raw_estimate: Optional[int] = None
        fallback_reason: Optional[str] = None
        buffer_percent = 0

        if gas_limit is not None:
            final_limit = max(gas_limit, network.min_gas_limit)
            if final_limit != gas_limit:
                logger.warning(
                    f"Requested gas limit {gas_limit} below {network.key} floor, "
                    f"using {final_limit}"
                )
        else:
            try:
                raw_estimate = await provider.estimate_gas(call)
                buffer_percent = network.gas_buffer_percent
                final_limit = self.apply_buffer(raw_estimate, network)
                logger.info(f"Estimated gas: {raw_estimate}, using: {final_limit}")
            except Exception as e:
                if is_revert_error(e):
                    reason = extract_revert_reason(e)
                    logger.error(f"Gas estimation reverted on {network.key}: {reason or e}")
                    raise ContractRevertError(
                        "Contract creation would revert",
                        reason=reason,
                    ) from e

                fallback_reason = str(e) or e.__class__.__name__
                final_limit = max(network.fallback_gas_limit, network.min_gas_limit)
                logger.warning(
                    f"Gas estimation failed on {network.key}, using default "
                    f"{final_limit}: {fallback_reason}"
                )

        if gas_price is None:
            try:
                gas_price = await provider.gas_price()
            except Exception as e:
                logger.error(f"Gas price lookup failed on {network.key}: {e}")
                raise GasEstimationError(
                    f"Could not fetch gas price on {network.key}: {e}",
                    details={"network": network.key},
                ) from e
            logger.info(f"Using gas price: {gas_price} wei on {network.key}")

        return GasEstimate(
            gas_limit=final_limit,
            gas_price=gas_price,
            raw_estimate=raw_estimate,
            buffer_percent=buffer_percent,
            fallback_used=fallback_reason is not None,
            fallback_reason=fallback_reason,
        )
