"""
Transaction confirmation monitor.

Each monitored transaction hash gets one session driven by a single asyncio
task. A session polls for the receipt, counts confirmations and stops at the
first terminal state: confirmed, failed, error or timed out.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from ...config import Settings, settings as default_settings
from ...providers.base import ChainProvider
from ...providers.pool import ProviderPool
from ...services.networks import NetworkConfig, NetworkKey
from ..recovery.errors import (
    ConfirmationTimeoutError,
    DeploymentError,
    MonitoringStoppedError,
    NetworkError,
    ValidationError,
    classify_error,
)
from .models import Receipt, TransactionState, TransactionStatus, hex_to_int
from .validation import validate_tx_hash


logger = logging.getLogger(__name__)

StatusListener = Callable[[TransactionStatus], None]


class MonitorSession:
    """
    Handle for one monitoring session.

    The session owns its polling task. Once a terminal status is delivered,
    or the session is cancelled, no further updates are emitted.
    """

    def __init__(
        self,
        tx_hash: str,
        network: NetworkConfig,
        confirmation_threshold: int,
        poll_interval: float,
        timeout: float,
        on_update: Optional[StatusListener] = None,
    ):
        loop = asyncio.get_running_loop()
        self.tx_hash = tx_hash
        self.network = network
        self.confirmation_threshold = confirmation_threshold
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.started_at = loop.time()
        self.deadline = self.started_at + timeout
        self.state = TransactionState.PENDING
        self.confirmations = 0
        self.last_status: Optional[TransactionStatus] = None
        self.error: Optional[Exception] = None
        self.closed = False

        self._on_update = on_update
        self._result: asyncio.Future = loop.create_future()
        self._task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self._result.done()

    def emit(self, status: TransactionStatus) -> None:
        if self.closed:
            return
        self.state = status.state
        self.last_status = status
        if self._on_update is None:
            return
        try:
            self._on_update(status)
        except Exception as e:
            logger.error(f"Status listener failed for {self.tx_hash}: {e}")

    def finish(self, status: TransactionStatus) -> None:
        """Deliver the terminal status exactly once and close the session."""
        if self.closed:
            return
        self.emit(status)
        self.closed = True
        if not self._result.done():
            self._result.set_result(status)

    def cancel(self) -> None:
        """Abort local polling. The on-chain transaction is unaffected."""
        self.closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if not self._result.done():
            self._result.set_result(None)

    async def wait(self) -> TransactionStatus:
        """
        Wait for the terminal status.

        Raises:
            MonitoringStoppedError: the session was stopped or replaced first
        """
        status = await asyncio.shield(self._result)
        if status is None:
            raise MonitoringStoppedError(self.tx_hash)
        return status


class TransactionMonitor:
    """
    Polls networks for transaction receipts and confirmation counts.

    Usage:
        monitor = TransactionMonitor(pool, network="sepolia")
        status = await monitor.wait_for_confirmation(tx_hash, confirmations=2)

    At most one session exists per transaction hash; starting a new one
    cancels the previous session first.
    """

    def __init__(
        self,
        pool: Optional[ProviderPool] = None,
        network: str = NetworkKey.SEPOLIA.value,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.pool = pool if pool is not None else ProviderPool(settings=self.settings)
        self.network = network
        self._sessions: Dict[str, MonitorSession] = {}

    def _network(self, network: Optional[str]) -> NetworkConfig:
        return self.pool.registry.resolve(network or self.network)

    @property
    def active_sessions(self) -> Dict[str, MonitorSession]:
        return dict(self._sessions)

    def is_monitoring(self, tx_hash: str) -> bool:
        return tx_hash.lower() in self._sessions

    def start_monitoring(
        self,
        tx_hash: str,
        on_update: Optional[StatusListener] = None,
        *,
        network: Optional[str] = None,
        confirmations: Optional[int] = None,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> MonitorSession:
        """
        Start monitoring a transaction.

        Args:
            tx_hash: Transaction hash to monitor
            on_update: Called with every status, ending with the terminal one
            network: Network key (default: the monitor's network)
            confirmations: Threshold (default: settings.confirmation_threshold)
            poll_interval: Seconds between polls
            timeout: Overall deadline in seconds

        Returns:
            MonitorSession handle; await ``session.wait()`` for the outcome
        """
        tx_hash = validate_tx_hash(tx_hash)
        config = self._network(network)
        threshold = self.settings.confirmation_threshold if confirmations is None else confirmations
        interval = poll_interval if poll_interval is not None else self.settings.monitor_poll_interval_seconds
        deadline = timeout if timeout is not None else self.settings.monitor_timeout_seconds

        if threshold < 0:
            raise ValidationError("confirmations must not be negative")
        if interval <= 0 or deadline <= 0:
            raise ValidationError("poll_interval and timeout must be positive")

        previous = self._sessions.pop(tx_hash, None)
        if previous is not None:
            previous.cancel()
            logger.info(f"Replaced existing monitoring session for {tx_hash}")

        session = MonitorSession(
            tx_hash=tx_hash,
            network=config,
            confirmation_threshold=threshold,
            poll_interval=interval,
            timeout=deadline,
            on_update=on_update,
        )
        self._sessions[tx_hash] = session
        session._task = asyncio.create_task(self._run(session))

        logger.info(
            f"Starting transaction monitoring for {tx_hash} on {config.key} "
            f"(confirmations={threshold}, interval={interval:g}s, timeout={deadline:g}s)"
        )
        return session

    async def wait_for_confirmation(
        self,
        tx_hash: str,
        confirmations: Optional[int] = None,
        on_progress: Optional[StatusListener] = None,
        *,
        network: Optional[str] = None,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> TransactionStatus:
        """
        Wait until the transaction is confirmed or fails on-chain.

        Returns:
            The terminal status (confirmed or failed)

        Raises:
            ConfirmationTimeoutError: deadline passed first; the transaction
                may still confirm later
            MonitoringStoppedError: local polling was stopped or replaced
            DeploymentError: polling itself failed
        """
        session = self.start_monitoring(
            tx_hash,
            on_progress,
            network=network,
            confirmations=confirmations,
            poll_interval=poll_interval,
            timeout=timeout if timeout is not None else self.settings.wait_timeout_seconds,
        )
        tx_hash = session.tx_hash
        logger.info(f"Waiting for {session.confirmation_threshold} confirmations for transaction {tx_hash}")

        try:
            status = await session.wait()
        except asyncio.CancelledError:
            if self._sessions.get(tx_hash) is session:
                self.stop_monitoring(tx_hash)
            raise

        if status.state == TransactionState.TIMED_OUT:
            raise ConfirmationTimeoutError(tx_hash, session.timeout, status.confirmations)
        if status.state == TransactionState.ERROR:
            if isinstance(session.error, DeploymentError):
                raise session.error
            raise NetworkError(status.error or "Transaction monitoring failed", network=session.network.key)
        return status

    async def _run(self, session: MonitorSession) -> None:
        loop = asyncio.get_running_loop()
        provider = self.pool.get(session.network.key)
        rpc_timeout = self.settings.rpc_timeout_seconds

        while True:
            remaining = session.deadline - loop.time()
            if remaining <= 0:
                status = self._timed_out(session)
            else:
                try:
                    # Individual RPC calls may not push the session past deadline + interval
                    status = await asyncio.wait_for(
                        self._observe(provider, session),
                        timeout=min(rpc_timeout, remaining + session.poll_interval),
                    )
                except asyncio.TimeoutError:
                    if loop.time() >= session.deadline:
                        status = self._timed_out(session)
                    else:
                        status = self._error(
                            session,
                            NetworkError(
                                f"RPC call timed out after {rpc_timeout:g}s",
                                network=session.network.key,
                            ),
                        )
                except Exception as e:
                    status = self._error(session, e)

            if status.state.is_terminal:
                self._complete(session, status)
                return

            session.emit(status)
            await asyncio.sleep(max(0.0, min(session.poll_interval, session.deadline - loop.time())))

    async def _observe(self, provider: ChainProvider, session: MonitorSession) -> TransactionStatus:
        """One poll tick."""
        tx_hash = session.tx_hash
        explorer_url = session.network.tx_url(tx_hash)

        raw_receipt = await provider.get_transaction_receipt(tx_hash)
        if not raw_receipt:
            return TransactionStatus(
                tx_hash=tx_hash,
                state=TransactionState.PENDING,
                confirmations=session.confirmations,
                message="Transaction submitted, waiting to be mined...",
                explorer_url=explorer_url,
            )

        receipt = Receipt.from_rpc(raw_receipt)
        if not receipt.succeeded:
            return self._receipt_status(
                tx_hash,
                receipt,
                TransactionState.FAILED,
                session.confirmations,
                "Transaction failed during execution",
                explorer_url,
            )

        current_block = await provider.block_number()
        session.confirmations = max(session.confirmations, current_block - receipt.block_number, 0)
        confirmations = session.confirmations

        if confirmations >= session.confirmation_threshold:
            return self._receipt_status(
                tx_hash,
                receipt,
                TransactionState.CONFIRMED,
                confirmations,
                f"Transaction confirmed with {confirmations} confirmations",
                explorer_url,
            )

        return self._receipt_status(
            tx_hash,
            receipt,
            TransactionState.CONFIRMING,
            confirmations,
            f"Transaction mined, waiting for confirmations "
            f"({confirmations}/{session.confirmation_threshold})",
            explorer_url,
            include_summary=False,
        )

    @staticmethod
    def _receipt_status(
        tx_hash: str,
        receipt: Receipt,
        state: TransactionState,
        confirmations: int,
        message: str,
        explorer_url: str,
        include_summary: bool = True,
    ) -> TransactionStatus:
        return TransactionStatus(
            tx_hash=tx_hash,
            state=state,
            confirmations=confirmations,
            message=message,
            explorer_url=explorer_url,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
            effective_gas_price=receipt.effective_gas_price,
            contract_address=receipt.contract_address,
            receipt_summary=receipt.summary() if include_summary else None,
        )

    def _timed_out(self, session: MonitorSession) -> TransactionStatus:
        logger.warning(f"Transaction monitoring timed out after {session.timeout:g}s for {session.tx_hash}")
        return TransactionStatus(
            tx_hash=session.tx_hash,
            state=TransactionState.TIMED_OUT,
            confirmations=session.confirmations,
            message=(
                f"Confirmation timed out after {session.timeout:g}s; "
                "the transaction may still confirm"
            ),
            explorer_url=session.network.tx_url(session.tx_hash),
            error_type=ConfirmationTimeoutError.error_type.value,
            suggestions=["Re-query the transaction status by hash"],
        )

    def _error(self, session: MonitorSession, error: Exception) -> TransactionStatus:
        logger.error(f"Error monitoring transaction {session.tx_hash}: {error}")
        session.error = error
        classified = classify_error(error)
        return TransactionStatus(
            tx_hash=session.tx_hash,
            state=TransactionState.ERROR,
            confirmations=session.confirmations,
            message=f"Error monitoring transaction: {classified.message}",
            explorer_url=session.network.tx_url(session.tx_hash),
            error=classified.message,
            error_type=classified.type.value,
            suggestions=list(classified.suggestions),
        )

    def _complete(self, session: MonitorSession, status: TransactionStatus) -> None:
        if self._sessions.get(session.tx_hash) is session:
            del self._sessions[session.tx_hash]
        session.finish(status)
        logger.info(f"Monitoring finished for {session.tx_hash}: {status.state.value}")

    def stop_monitoring(self, tx_hash: str) -> bool:
        """Stop monitoring a transaction. Unknown hashes are ignored."""
        tx_hash = tx_hash.lower()
        session = self._sessions.pop(tx_hash, None)
        if session is None:
            return False
        session.cancel()
        logger.info(f"Stopped monitoring transaction {tx_hash}")
        return True

    def stop_all_monitoring(self) -> None:
        """Stop all active monitoring"""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            session.cancel()
        logger.info("Stopped all transaction monitoring")

    async def get_transaction_status(
        self,
        tx_hash: str,
        network: Optional[str] = None,
        confirmations: Optional[int] = None,
    ) -> TransactionStatus:
        """
        Get the current status of a transaction with a single observation.

        Provider failures come back as an ERROR status rather than raising.
        """
        tx_hash = validate_tx_hash(tx_hash)
        config = self._network(network)
        provider = self.pool.get(config.key)
        threshold = self.settings.confirmation_threshold if confirmations is None else confirmations
        explorer_url = config.tx_url(tx_hash)

        try:
            transaction, raw_receipt = await asyncio.gather(
                provider.get_transaction(tx_hash),
                provider.get_transaction_receipt(tx_hash),
            )

            if not transaction and not raw_receipt:
                return TransactionStatus(
                    tx_hash=tx_hash,
                    state=TransactionState.PENDING,
                    message="Transaction not found on blockchain",
                    explorer_url=explorer_url,
                    found=False,
                )

            if not raw_receipt:
                return TransactionStatus(
                    tx_hash=tx_hash,
                    state=TransactionState.PENDING,
                    message="Transaction is pending confirmation",
                    explorer_url=explorer_url,
                )

            receipt = Receipt.from_rpc(raw_receipt)
            current_block = await provider.block_number()
            count = max(current_block - receipt.block_number, 0)
        except Exception as e:
            logger.error(f"Failed to get transaction status for {tx_hash}: {e}")
            classified = classify_error(e)
            return TransactionStatus(
                tx_hash=tx_hash,
                state=TransactionState.ERROR,
                message=f"Failed to get transaction status: {classified.message}",
                explorer_url=explorer_url,
                error=classified.message,
                error_type=classified.type.value,
                suggestions=list(classified.suggestions),
            )

        if not receipt.succeeded:
            state, message = TransactionState.FAILED, "Transaction failed during execution"
        elif count >= threshold:
            state, message = TransactionState.CONFIRMED, f"Transaction confirmed with {count} confirmations"
        else:
            state, message = (
                TransactionState.CONFIRMING,
                f"Transaction mined, waiting for confirmations ({count}/{threshold})",
            )
        return self._receipt_status(tx_hash, receipt, state, count, message, explorer_url)

    async def get_transaction_details(
        self,
        tx_hash: str,
        network: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Detailed transaction, receipt and block info; None when unknown."""
        tx_hash = validate_tx_hash(tx_hash)
        config = self._network(network)
        provider = self.pool.get(config.key)

        transaction, raw_receipt = await asyncio.gather(
            provider.get_transaction(tx_hash),
            provider.get_transaction_receipt(tx_hash),
        )
        if not transaction:
            return None

        receipt = Receipt.from_rpc(raw_receipt) if raw_receipt else None
        block = None
        block_number = hex_to_int(transaction.get("blockNumber"))
        if block_number is not None:
            block = await provider.get_block(block_number)

        confirmations = 0
        if receipt is not None:
            confirmations = max(await provider.block_number() - receipt.block_number, 0)

        if receipt is None:
            status = "pending"
        else:
            status = "success" if receipt.succeeded else "failed"

        return {
            "hash": tx_hash,
            "status": status,
            "confirmations": confirmations,
            "block": {
                "number": hex_to_int(block.get("number")),
                "timestamp": hex_to_int(block.get("timestamp")),
                "hash": block.get("hash"),
            } if block else None,
            "transaction": format_transaction(transaction),
            "receipt": receipt.summary() if receipt else None,
            "network": config.display_name,
            "explorerUrl": config.tx_url(tx_hash),
            "contractAddress": receipt.contract_address if receipt else None,
        }


def format_transaction(transaction: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize a raw JSON-RPC transaction object."""
    def as_str(key: str) -> Optional[str]:
        value = hex_to_int(transaction.get(key))
        return str(value) if value is not None else None

    return {
        "hash": transaction.get("hash"),
        "to": transaction.get("to"),
        "from": transaction.get("from"),
        "value": as_str("value"),
        "gasLimit": as_str("gas"),
        "gasPrice": as_str("gasPrice"),
        "maxFeePerGas": as_str("maxFeePerGas"),
        "maxPriorityFeePerGas": as_str("maxPriorityFeePerGas"),
        "nonce": hex_to_int(transaction.get("nonce")),
        "data": transaction.get("input"),
        "chainId": hex_to_int(transaction.get("chainId")),
    }
