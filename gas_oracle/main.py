"""
Gas Price Oracle - Main Orchestrator

Coordinates the control loop that keeps the L2 gas price on target:
1. Check that the signing key owns the gas price oracle contract
2. Seed the pricer from the on-chain price and the epoch from the chain tip
3. Once per epoch, run the updater (read, compute, gate, write)
4. Stop cleanly between epochs when asked to
"""

import asyncio
from typing import Optional
import logging

from .config import OracleConfig, signer_address_from_key
from .chain import ChainObserver, PriceSubmitter, JsonRpcClient, RpcChainObserver, RpcPriceSubmitter
from .errors import InvalidConfigurationError, UnauthorizedSignerError
from .models.update import UpdateResult
from .pricing import EpochTracker, GasPricer, GasPriceUpdater

logger = logging.getLogger(__name__)


class GasPriceOracle:
    """
    Main gas price oracle orchestrator.

    Owns the epoch timer and the lifecycle of the update loop. Only one
    tick runs at a time; a slow tick delays the next one.
    """

    def __init__(
        self,
        config: OracleConfig,
        observer: ChainObserver,
        submitter: PriceSubmitter,
        signer_address: Optional[str] = None,
    ):
        """
        Initialize gas price oracle.

        Args:
            config: Validated oracle configuration
            observer: Chain read collaborator
            submitter: Price write collaborator
            signer_address: Address of the hot key (derived from config.private_key if omitted)
        """
        self.config = config
        self.observer = observer
        self.submitter = submitter

        if signer_address is None:
            signer_address = signer_address_from_key(config.private_key)
        self.signer_address = signer_address

        self.epoch_length_seconds = float(config.epoch.epoch_length_seconds)
        self._target_gas_per_second = float(config.pricer.target_gas_per_second)

        # Built in start()
        self.pricer: Optional[GasPricer] = None
        self.tracker: Optional[EpochTracker] = None
        self.updater: Optional[GasPriceUpdater] = None

        # State
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._fatal_error: Optional[BaseException] = None
        self._tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def target_gas_per_second(self) -> float:
        return self._target_gas_per_second

    def set_target_gas_per_second(self, target: float):
        """Change the target; applied at the next epoch"""
        if target is None or target <= 0:
            raise InvalidConfigurationError(f"target gas per second must be positive, got {target}")
        if target != self._target_gas_per_second:
            logger.info(f"Target gas per second changed: {self._target_gas_per_second} -> {target}")
        self._target_gas_per_second = float(target)

    async def start(self):
        """
        Verify ownership, seed state from the chain and launch the loop.

        Returns as soon as the loop task is scheduled.

        Raises:
            UnauthorizedSignerError: if the signer does not own the contract
        """
        if self._task is not None:
            raise RuntimeError("oracle already started")

        logger.info(f"Starting Gas Price Oracle: signer={self.signer_address}")

        if not await self.observer.verify_authority(self.signer_address):
            raise UnauthorizedSignerError(self.signer_address)

        on_chain_price = await self.observer.read_on_chain_price()
        logger.info(f"Starting gas price: {on_chain_price}")

        tip = await self.observer.read_latest_height()

        self.pricer = GasPricer(
            initial_price=on_chain_price,
            floor_price=self.config.pricer.floor_price,
            get_target_gas_per_second=lambda: self._target_gas_per_second,
            max_percent_change_per_epoch=self.config.pricer.max_percent_change_per_epoch,
        )
        self.tracker = EpochTracker(
            epoch_start_block_number=tip,
            epoch_length_seconds=self.epoch_length_seconds,
            average_block_gas_limit=self.config.epoch.average_block_gas_limit_per_epoch,
        )
        self.updater = GasPriceUpdater(
            pricer=self.pricer,
            tracker=self.tracker,
            observer=self.observer,
            submitter=self.submitter,
            significant_factor=self.config.pricer.significant_factor,
        )

        logger.info(
            f"Epoch tracking from block {tip}: "
            f"length={self.epoch_length_seconds}s target={self._target_gas_per_second} gas/s"
        )

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())

    def stop(self):
        """Ask the loop to exit at the next epoch boundary"""
        if self._stop_event is not None and not self._stop_event.is_set():
            logger.info("Stopping Gas Price Oracle")
            self._stop_event.set()

    async def wait(self):
        """
        Wait for the loop to finish.

        Raises:
            InvalidConfigurationError: if the loop stopped on a fatal error
        """
        if self._task is None:
            return
        await self._task
        if self._fatal_error is not None:
            raise self._fatal_error

    async def run(self):
        """Start and block until stopped"""
        await self.start()
        await self.wait()

    async def close(self):
        """Stop the loop and release the chain collaborators"""
        self.stop()
        if self._task is not None and not self._task.done():
            await asyncio.wait([self._task])
        await self.observer.close()
        await self.submitter.close()

    async def _loop(self):
        """Tick once per epoch until stopped"""
        loop = asyncio.get_running_loop()
        interval = self.epoch_length_seconds
        next_tick = loop.time() + interval

        try:
            while not self._stop_event.is_set():
                delay = next_tick - loop.time()
                if delay > 0:
                    try:
                        await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                        break
                    except asyncio.TimeoutError:
                        pass

                await self._tick()

                # Drop deadlines missed by a slow tick instead of bunching them up
                next_tick += interval
                now = loop.time()
                if next_tick <= now:
                    missed = int((now - next_tick) // interval) + 1
                    logger.warning(f"Epoch tick overran, skipping {missed} timer fire(s)")
                    next_tick += missed * interval

        except InvalidConfigurationError as e:
            logger.critical(f"Fatal pricing error, stopping: {e}")
            self._fatal_error = e
        finally:
            self._stop_event.set()
            logger.info("Gas Price Oracle stopped")

    async def _tick(self) -> Optional[UpdateResult]:
        """Single update cycle"""
        self._tick_count += 1
        logger.debug(f"Polling, tick {self._tick_count}")

        try:
            result = await self.updater.update_gas_price()
        except InvalidConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Update failed: {e}", exc_info=True)
            return None

        self._log_update(result)
        return result

    def _log_update(self, result: UpdateResult):
        """Log oracle update"""
        if not result.outcome.advanced_epoch:
            return

        observation = result.observation
        logger.info(
            f"[{self._tick_count}] {result.outcome.value} | "
            f"previous: {result.on_chain_price} | current: {result.new_price} | "
            f"blocks: {observation.block_count} | gas/s: {observation.gas_per_second:,.0f}"
            + (f" | tx: {result.tx_hash}" if result.tx_hash else "")
        )

    def get_state(self) -> dict:
        """
        Get current oracle state for debugging/monitoring.
        """
        last_result = self.updater.last_result if self.updater else None
        return {
            "is_running": self.is_running,
            "signer": self.signer_address,
            "gas_price": self.pricer.current_price if self.pricer else None,
            "epoch_start_block_number": self.tracker.epoch_start_block_number if self.tracker else None,
            "update_state": self.updater.state.value if self.updater else None,
            "target_gas_per_second": self._target_gas_per_second,
            "tick_count": self._tick_count,
            "last_result": last_result.to_dict() if last_result else None,
            "observer": self.observer.get_status(),
            "submitter": self.submitter.get_status(),
        }


async def create_oracle(config: OracleConfig) -> GasPriceOracle:
    """
    Build a GasPriceOracle talking JSON-RPC to the configured node.

    Waits until the node answers and fetches the chain id if it is unset.
    """
    signer_address = signer_address_from_key(config.private_key)
    logger.info(f"Signer address: {signer_address}")

    chain = config.chain
    client = JsonRpcClient(
        chain.ethereum_http_url,
        name="sequencer",
        timeout=chain.rpc_timeout_seconds,
        max_retries=chain.max_retries,
        retry_delay=chain.retry_delay,
    )

    remote_chain_id = await client.wait_until_connected(poll_interval=chain.connect_retry_seconds)
    chain_id = chain.chain_id
    if chain_id is None:
        logger.info(f"Chain id unset, using remote chain id {remote_chain_id}")
        chain_id = remote_chain_id
    elif chain_id != remote_chain_id:
        logger.warning(f"Configured chain id {chain_id} differs from node chain id {remote_chain_id}")

    observer = RpcChainObserver(client, chain.gas_price_oracle_address)
    submitter = RpcPriceSubmitter(
        client,
        chain.gas_price_oracle_address,
        private_key=config.private_key,
        chain_id=chain_id,
        transaction_gas_price=chain.transaction_gas_price,
        wait_for_receipt=chain.wait_for_receipt,
        receipt_timeout=chain.receipt_timeout_seconds,
    )

    return GasPriceOracle(config, observer, submitter, signer_address=submitter.address)
