"""
Tests for gas estimation with buffers and fallbacks.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import encode

from chaindeploy.core.execution.gas import GasEstimator
from chaindeploy.core.recovery import (
    ContractRevertError,
    ErrorType,
    GasEstimationError,
    NetworkError,
    RpcError,
    classify_error,
)


CALL = {"from": "0x" + "11" * 20, "data": "0x6080"}


def _provider(estimate=None, side_effect=None, gas_price=1_000_000_000):
    provider = MagicMock()
    provider.estimate_gas = AsyncMock(return_value=estimate, side_effect=side_effect)
    provider.gas_price = AsyncMock(return_value=gas_price)
    return provider


class TestBuffer:
    """Tests for buffer and floor arithmetic."""

    def test_l1_adds_twenty_percent(self, registry):
        assert GasEstimator.apply_buffer(1_000_000, registry.resolve("sepolia")) == 1_200_000

    def test_l2_adds_fifty_percent(self, registry):
        assert GasEstimator.apply_buffer(1_000_000, registry.resolve("arbitrum")) == 1_500_000

    def test_floor_applies(self, registry):
        assert GasEstimator.apply_buffer(21_000, registry.resolve("sepolia")) == 100_000
        assert GasEstimator.apply_buffer(21_000, registry.resolve("arbitrum")) == 500_000


class TestEstimate:
    """Tests for GasEstimator.estimate."""

    @pytest.mark.asyncio
    async def test_buffered_estimate(self, registry):
        provider = _provider(estimate=1_000_000, gas_price=3_000_000_000)

        estimate = await GasEstimator().estimate(provider, registry.resolve("sepolia"), CALL)

        assert estimate.raw_estimate == 1_000_000
        assert estimate.gas_limit == 1_200_000
        assert estimate.buffer_percent == 20
        assert estimate.gas_price == 3_000_000_000
        assert estimate.estimated_cost_wei == 1_200_000 * 3_000_000_000
        assert estimate.gas_price_gwei == "3"
        assert estimate.fallback_used is False
        provider.estimate_gas.assert_awaited_once_with(CALL)

    @pytest.mark.asyncio
    async def test_non_revert_failure_falls_back(self, registry, caplog):
        provider = _provider(side_effect=NetworkError("eth_estimateGas timed out after 30s on sepolia"))

        with caplog.at_level("WARNING"):
            estimate = await GasEstimator().estimate(provider, registry.resolve("sepolia"), CALL)

        assert estimate.fallback_used is True
        assert estimate.gas_limit == 3_000_000
        assert estimate.raw_estimate is None
        assert estimate.fallback_reason == "eth_estimateGas timed out after 30s on sepolia"
        assert "Gas estimation failed" in caplog.text

    @pytest.mark.asyncio
    async def test_fallback_is_per_network(self, registry):
        provider = _provider(side_effect=RpcError("method not found", code=-32601))

        estimate = await GasEstimator().estimate(provider, registry.resolve("arbitrum"), CALL)

        assert estimate.gas_limit == 5_000_000

    @pytest.mark.asyncio
    async def test_revert_raises_without_fallback(self, registry):
        data = "0x08c379a0" + encode(["string"], ["Supply must be positive"]).hex()
        provider = _provider(side_effect=RpcError("execution reverted", code=3, data=data))

        with pytest.raises(ContractRevertError) as exc_info:
            await GasEstimator().estimate(provider, registry.resolve("sepolia"), CALL)

        assert exc_info.value.reason == "Supply must be positive"
        provider.gas_price.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_revert_detected_from_message(self, registry):
        provider = _provider(side_effect=ValueError("execution reverted: Not owner"))

        with pytest.raises(ContractRevertError, match="Not owner"):
            await GasEstimator().estimate(provider, registry.resolve("sepolia"), CALL)

    @pytest.mark.asyncio
    async def test_explicit_gas_limit_skips_estimate(self, registry):
        provider = _provider(estimate=1)

        estimate = await GasEstimator().estimate(
            provider, registry.resolve("sepolia"), CALL, gas_limit=2_500_000
        )

        assert estimate.gas_limit == 2_500_000
        provider.estimate_gas.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_explicit_gas_limit_raised_to_floor(self, registry):
        provider = _provider()

        estimate = await GasEstimator().estimate(
            provider, registry.resolve("arbitrum"), CALL, gas_limit=100_000
        )

        assert estimate.gas_limit == 500_000

    @pytest.mark.asyncio
    async def test_explicit_gas_price_skips_lookup(self, registry):
        provider = _provider(estimate=200_000)

        estimate = await GasEstimator().estimate(
            provider, registry.resolve("sepolia"), CALL, gas_price=7
        )

        assert estimate.gas_price == 7
        provider.gas_price.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gas_price_failure_raises_gas_error(self, registry):
        provider = _provider(estimate=200_000)
        provider.gas_price = AsyncMock(side_effect=NetworkError("eth_gasPrice timed out"))

        with pytest.raises(GasEstimationError, match="Could not fetch gas price on sepolia") as exc_info:
            await GasEstimator().estimate(provider, registry.resolve("sepolia"), CALL)

        assert classify_error(exc_info.value).type == ErrorType.GAS_ERROR
        assert isinstance(exc_info.value.__cause__, NetworkError)
