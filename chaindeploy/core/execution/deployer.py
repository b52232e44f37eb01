"""
Contract deployer.

Drives one deployment through its stages:
- Request validation (pure, before any network call)
- Wallet derivation and balance check
- Gas estimation
- Signing and broadcast
- Confirmation via TransactionMonitor
- Code-presence check at the new contract address
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import structlog

from ...config import Settings, settings as default_settings
from ...providers.pool import ProviderPool
from ...services.networks import NetworkConfig
from ..recovery.errors import (
    ConfirmationTimeoutError,
    ContractRevertError,
    DeploymentError,
    InsufficientFundsError,
    NetworkError,
    ValidationError,
    classify_error,
)
from .events import ProgressEmitter, ProgressEvent, ProgressListener
from .gas import GasEstimator
from .models import (
    WEI_PER_GWEI,
    DeploymentRequest,
    DeploymentResult,
    DeploymentStage,
    TransactionState,
    format_units,
)
from .monitor import TransactionMonitor
from .tx_builder import TransactionBuilder
from .validation import validate_abi, validate_bytecode, validate_constructor_args, validate_private_key, validate_request


logger = logging.getLogger(__name__)

# Headroom reported on top of the estimated cost
MAX_COST_MARGIN_PERCENT = 20


class ContractDeployer:
    """
    Deploys compiled contracts to EVM networks.

    Usage:
        deployer = ContractDeployer()
        deployer.on_progress(lambda event: print(event.stage, event.message))
        result = await deployer.deploy(DeploymentRequest(...))

    Malformed requests raise ValidationError. Every other failure comes back
    as a DeploymentResult with a classified error type and suggestions.
    """

    def __init__(
        self,
        pool: Optional[ProviderPool] = None,
        monitor: Optional[TransactionMonitor] = None,
        gas_estimator: Optional[GasEstimator] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.pool = pool if pool is not None else ProviderPool(settings=self.settings)
        self.monitor = monitor if monitor is not None else TransactionMonitor(self.pool, settings=self.settings)
        self.gas_estimator = gas_estimator or GasEstimator()
        self._listeners: List[ProgressListener] = []

    def on_progress(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener for every deployment; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def deploy(
        self,
        request: DeploymentRequest,
        on_progress: Optional[ProgressListener] = None,
    ) -> DeploymentResult:
        """
        Deploy a contract.

        Args:
            request: Bytecode, ABI, constructor params, network and signing key
            on_progress: Listener for this deployment only

        Returns:
            DeploymentResult; success requires a contract address and tx hash

        Raises:
            ValidationError: request rejected before any network call
        """
        listeners = list(self._listeners)
        if on_progress is not None:
            listeners.append(on_progress)
        emitter = ProgressEmitter(listeners)
        deployment_id = TransactionBuilder.generate_deployment_id()

        structlog.contextvars.bind_contextvars(network=request.network, deployment_id=deployment_id)
        try:
            return await self._deploy(request, emitter)
        finally:
            structlog.contextvars.unbind_contextvars("network", "deployment_id")

    async def _deploy(self, request: DeploymentRequest, emitter: ProgressEmitter) -> DeploymentResult:
        started = time.monotonic()
        emitter.emit(ProgressEvent(DeploymentStage.VALIDATING, "Validating deployment request..."))

        try:
            network = self.pool.registry.resolve(request.network)
            inputs = validate_request(request, self.settings.min_bytecode_bytes)
            encoded_args = TransactionBuilder.encode_constructor_args(inputs, request.constructor_params)
            credential = validate_private_key(request.credential)
            try:
                from_address = TransactionBuilder.address_for(credential)
            except ValueError as e:
                raise ValidationError(f"Invalid signing key: {e}") from e
        except ValidationError as e:
            logger.warning(f"Deployment request rejected: {e.message}")
            emitter.emit(ProgressEvent(
                DeploymentStage.FAILED,
                e.message,
                data={"errorType": e.error_type.value, "stage": DeploymentStage.VALIDATING.value},
            ))
            raise

        data = TransactionBuilder.build_deploy_data(request.bytecode, encoded_args)
        confirmations = (
            request.confirmations
            if request.confirmations is not None
            else self.settings.deployment_confirmations
        )
        stage = DeploymentStage.WALLET_READY
        tx_hash: Optional[str] = None
        gas_fallback_used = False

        logger.info(f"Deploying contract to {network.display_name} from {from_address}")

        try:
            provider = self.pool.get(network.key)
            emitter.emit(ProgressEvent(
                DeploymentStage.WALLET_READY,
                f"Wallet connected: {from_address}",
                data={"address": from_address},
            ))

            stage = DeploymentStage.BALANCE_CHECKED
            balance = await provider.get_balance(from_address)
            if balance == 0:
                raise InsufficientFundsError(
                    f"Wallet {from_address} has no {network.native_symbol} on {network.display_name}",
                    address=from_address,
                    balance_wei=0,
                )
            emitter.emit(ProgressEvent(
                DeploymentStage.BALANCE_CHECKED,
                f"Wallet balance: {format_units(balance)} {network.native_symbol}",
                data={"balance": str(balance)},
            ))

            emitter.emit(ProgressEvent(
                DeploymentStage.BYTECODE_VALIDATED,
                f"Bytecode validated ({(len(request.bytecode) - 2) // 2} bytes)",
            ))
            emitter.emit(ProgressEvent(
                DeploymentStage.CONSTRUCTOR_VALIDATED,
                f"Constructor parameters validated ({len(inputs)})",
                data={"parameters": len(inputs)},
            ))

            stage = DeploymentStage.GAS_ESTIMATED
            gas = await self.gas_estimator.estimate(
                provider,
                network,
                TransactionBuilder.build_deploy_call(from_address, data, request.value),
                gas_limit=request.gas_limit,
                gas_price=request.gas_price,
            )
            gas_fallback_used = gas.fallback_used
            required = gas.estimated_cost_wei + request.value
            if required > balance:
                raise InsufficientFundsError(
                    f"Insufficient funds: deployment needs up to {format_units(required)} "
                    f"{network.native_symbol}, wallet has {format_units(balance)}",
                    address=from_address,
                    balance_wei=balance,
                )
            emitter.emit(ProgressEvent(
                DeploymentStage.GAS_ESTIMATED,
                f"Gas estimated: {gas.gas_limit} at {gas.gas_price_gwei} gwei",
                data={
                    "gasLimit": gas.gas_limit,
                    "gasPrice": str(gas.gas_price),
                    "estimatedCost": gas.estimated_cost_native,
                    "fallbackUsed": gas.fallback_used,
                },
            ))

            stage = DeploymentStage.SUBMITTED
            chain_id = await provider.chain_id()
            if chain_id != network.chain_id:
                raise NetworkError(
                    f"RPC endpoint for {network.key} reports chain id {chain_id}, "
                    f"expected {network.chain_id}",
                    network=network.key,
                )
            nonce = await provider.get_transaction_count(from_address, "pending")
            tx = TransactionBuilder.build_deploy_transaction(
                chain_id=network.chain_id,
                nonce=nonce,
                data=data,
                gas_limit=gas.gas_limit,
                gas_price=gas.gas_price,
                value=request.value,
            )
            raw_tx, signed_hash = TransactionBuilder.sign(tx, credential)
            tx_hash = await provider.send_raw_transaction(raw_tx)
            if tx_hash.lower() != signed_hash.lower():
                logger.warning(f"Node returned hash {tx_hash}, signed hash was {signed_hash}")

            logger.info(f"Deployment transaction sent: {tx_hash}")
            emitter.emit(ProgressEvent(
                DeploymentStage.SUBMITTED,
                "Transaction submitted",
                tx_hash=tx_hash,
                data={"explorerUrl": network.tx_url(tx_hash), "nonce": nonce},
            ))

            stage = DeploymentStage.AWAITING_RECEIPT
            emitter.emit(ProgressEvent(
                DeploymentStage.AWAITING_RECEIPT,
                f"Waiting for {confirmations} confirmation(s)...",
                tx_hash=tx_hash,
            ))
            try:
                status = await self.monitor.wait_for_confirmation(
                    tx_hash,
                    confirmations,
                    network=network.key,
                )
            except ConfirmationTimeoutError as e:
                return self._timed_out(e, network, tx_hash, gas_fallback_used, started, emitter)

            if status.state == TransactionState.FAILED:
                raise ContractRevertError("Contract creation reverted on-chain", tx_hash=tx_hash)

            contract_address = status.contract_address
            if not contract_address:
                raise DeploymentError(
                    "Receipt does not name a contract address",
                    suggestions=["Verify the transaction on the block explorer"],
                    details={"tx_hash": tx_hash},
                )

            code = await provider.get_code(contract_address)
            if not code or code == "0x":
                raise ContractRevertError(
                    f"No contract code found at {contract_address}",
                    tx_hash=tx_hash,
                )

            gas_used = status.gas_used or 0
            gas_price = status.effective_gas_price or gas.gas_price
            cost = format_units(gas_used * gas_price)

            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.info(f"Contract deployed at {contract_address} in {elapsed_ms}ms")
            emitter.emit(ProgressEvent(
                DeploymentStage.COMPLETED,
                f"Contract deployed at {contract_address}",
                tx_hash=tx_hash,
                data={"contractAddress": contract_address, "gasUsed": str(gas_used)},
            ))

            return DeploymentResult(
                success=True,
                message="Contract deployed successfully",
                network=network.key,
                stage=DeploymentStage.COMPLETED,
                contract_address=contract_address,
                tx_hash=tx_hash,
                gas_used=gas_used,
                gas_price=gas_price,
                deployment_cost_native=cost,
                block_number=status.block_number,
                explorer_url=network.tx_url(tx_hash),
                contract_explorer_url=network.address_url(contract_address),
                gas_fallback_used=gas_fallback_used,
                deployment_time_ms=elapsed_ms,
                receipt=status.receipt_summary,
            )

        except Exception as e:
            return self._failed(e, stage, network, tx_hash, gas_fallback_used, started, emitter)

    def _failed(
        self,
        error: Exception,
        stage: DeploymentStage,
        network: NetworkConfig,
        tx_hash: Optional[str],
        gas_fallback_used: bool,
        started: float,
        emitter: ProgressEmitter,
    ) -> DeploymentResult:
        classified = classify_error(error)
        logger.error(f"Deployment failed at {stage.value}: {classified.message}")
        emitter.emit(ProgressEvent(
            DeploymentStage.FAILED,
            classified.message,
            tx_hash=tx_hash,
            data={"errorType": classified.type.value, "stage": stage.value},
        ))
        return DeploymentResult(
            success=False,
            message=classified.message,
            network=network.key,
            stage=stage,
            tx_hash=tx_hash,
            explorer_url=network.tx_url(tx_hash) if tx_hash else None,
            gas_fallback_used=gas_fallback_used,
            deployment_time_ms=int((time.monotonic() - started) * 1000),
            error_type=classified.type.value,
            error_class=error.__class__.__name__,
            suggestions=list(classified.suggestions),
            revert_reason=classified.revert_reason,
        )

    def _timed_out(
        self,
        error: ConfirmationTimeoutError,
        network: NetworkConfig,
        tx_hash: str,
        gas_fallback_used: bool,
        started: float,
        emitter: ProgressEmitter,
    ) -> DeploymentResult:
        logger.warning(f"Deployment {tx_hash} not confirmed within {error.timeout_seconds:g}s")
        emitter.emit(ProgressEvent(
            DeploymentStage.FAILED,
            error.message,
            tx_hash=tx_hash,
            data={
                "errorType": error.error_type.value,
                "stage": DeploymentStage.AWAITING_RECEIPT.value,
                "confirmationTimedOut": True,
            },
        ))
        return DeploymentResult(
            success=False,
            message=f"{error.message}; the transaction may still confirm",
            network=network.key,
            stage=DeploymentStage.AWAITING_RECEIPT,
            tx_hash=tx_hash,
            explorer_url=network.tx_url(tx_hash),
            gas_fallback_used=gas_fallback_used,
            confirmation_timed_out=True,
            deployment_time_ms=int((time.monotonic() - started) * 1000),
            error_type=error.error_type.value,
            error_class=error.__class__.__name__,
            suggestions=list(error.suggestions),
        )

    def get_supported_networks(self) -> List[Dict[str, Any]]:
        return self.pool.registry.list_networks()

    async def check_network_status(self, network: str) -> Dict[str, Any]:
        """Check a network's RPC endpoint: chain id, head block and gas price."""
        config = self.pool.registry.resolve(network)
        provider = self.pool.get(config.key)

        try:
            chain_id = await provider.chain_id()
            block_number = await provider.block_number()
            gas_price = await provider.gas_price()
        except Exception as e:
            classified = classify_error(e)
            logger.warning(f"Network {config.key} unreachable: {classified.message}")
            return {
                "network": config.display_name,
                "status": "error",
                "error": classified.message,
                "errorType": classified.type.value,
            }

        return {
            "network": config.display_name,
            "status": "connected",
            "chainId": chain_id,
            "expectedChainId": config.chain_id,
            "chainIdMismatch": chain_id != config.chain_id,
            "blockNumber": block_number,
            "gasPrice": format_units(gas_price, WEI_PER_GWEI),
        }

    async def estimate_deployment_cost(
        self,
        bytecode: str,
        abi: List[Dict[str, Any]],
        network: str,
        constructor_params: Optional[List[Any]] = None,
        value: int = 0,
    ) -> Dict[str, Any]:
        """
        Estimate deployment cost without a signing key.

        Raises:
            ValidationError: malformed bytecode, ABI or constructor params
        """
        config = self.pool.registry.resolve(network)
        validate_bytecode(bytecode, self.settings.min_bytecode_bytes)
        validate_abi(abi)
        inputs = validate_constructor_args(abi, constructor_params or [])
        encoded_args = TransactionBuilder.encode_constructor_args(inputs, constructor_params or [])
        data = TransactionBuilder.build_deploy_data(bytecode, encoded_args)

        try:
            gas = await self.gas_estimator.estimate(
                self.pool.get(config.key),
                config,
                TransactionBuilder.build_deploy_call(TransactionBuilder.random_address(), data, value),
            )
        except Exception as e:
            classified = classify_error(e)
            logger.error(f"Cost estimation failed on {config.key}: {classified.message}")
            return {
                "success": False,
                "network": config.display_name,
                "error": classified.message,
                "errorType": classified.type.value,
                "suggestions": list(classified.suggestions),
                "revertReason": classified.revert_reason,
            }

        max_cost_wei = gas.estimated_cost_wei * (100 + MAX_COST_MARGIN_PERCENT) // 100
        return {
            "success": True,
            "network": config.display_name,
            "gasLimit": gas.gas_limit,
            "gasPrice": gas.gas_price_gwei,
            "estimatedCost": gas.estimated_cost_native,
            "maxCost": format_units(max_cost_wei),
            "currency": config.native_symbol,
            "fallbackUsed": gas.fallback_used,
        }

    async def close(self) -> None:
        self.monitor.stop_all_monitoring()
        await self.pool.close()


# Singleton instance
_deployer: Optional[ContractDeployer] = None


def get_contract_deployer() -> ContractDeployer:
    """Get the singleton deployer instance."""
    global _deployer
    if _deployer is None:
        _deployer = ContractDeployer()
    return _deployer
