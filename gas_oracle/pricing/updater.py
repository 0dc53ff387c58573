"""
Per-epoch gas price update.

One call to update_gas_price() closes an epoch:
1. Read the chain tip and the on-chain price
2. Derive gas per second for the elapsed epoch
3. Run the pricer and advance the epoch checkpoint
4. Write the new price only if it differs significantly from on-chain

Transient failures are returned as an UpdateResult so the caller can log
and retry next epoch. InvalidConfigurationError from the pricer is not
recoverable and propagates.
"""

from typing import Optional
import logging

from ..chain.base import ChainObserver, PriceSubmitter
from ..errors import ChainError, InvalidInputError, OutOfOrderEpochError
from ..models.update import UpdateOutcome, UpdateResult, UpdateState
from .epoch import EpochTracker
from .pricer import GasPricer
from .significance import is_difference_significant

logger = logging.getLogger(__name__)


class GasPriceUpdater:
    """
    Runs a single epoch's read / compute / write cycle.

    Not safe for concurrent calls; the oracle drives it from one task.
    """

    def __init__(
        self,
        pricer: GasPricer,
        tracker: EpochTracker,
        observer: ChainObserver,
        submitter: PriceSubmitter,
        significant_factor: float = 0.05,
    ):
        self.pricer = pricer
        self.tracker = tracker
        self.observer = observer
        self.submitter = submitter
        self.significant_factor = significant_factor

        self.state = UpdateState.IDLE
        self.last_result: Optional[UpdateResult] = None

    @property
    def gas_price(self) -> float:
        """Price committed by the pricer"""
        return self.pricer.current_price

    async def update_gas_price(self) -> UpdateResult:
        """Run one epoch update and return its result"""
        try:
            result = await self._update()
        finally:
            self.state = UpdateState.IDLE

        self.last_result = result
        return result

    async def _update(self) -> UpdateResult:
        self.state = UpdateState.READING_CHAIN
        try:
            latest_block_number = await self.observer.read_latest_height()
            on_chain_price = await self.observer.read_on_chain_price()
        except ChainError as e:
            logger.error(f"Cannot read chain state: {e}")
            return UpdateResult(outcome=UpdateOutcome.READ_FAILED, error=str(e))

        self.state = UpdateState.COMPUTING
        try:
            observation = self.tracker.observe(latest_block_number)
            new_price = self.pricer.complete_epoch(observation.gas_per_second)
        except OutOfOrderEpochError as e:
            logger.warning(f"Skipping epoch: {e}")
            return UpdateResult(
                outcome=UpdateOutcome.OUT_OF_ORDER,
                latest_block_number=latest_block_number,
                on_chain_price=on_chain_price,
                error=str(e),
            )
        except InvalidInputError as e:
            logger.error(f"Pricer rejected observed rate: {e}")
            return UpdateResult(
                outcome=UpdateOutcome.INVALID_INPUT,
                latest_block_number=latest_block_number,
                on_chain_price=on_chain_price,
                error=str(e),
            )

        self.tracker.advance(latest_block_number)

        result = UpdateResult(
            outcome=UpdateOutcome.GATED,
            latest_block_number=latest_block_number,
            on_chain_price=on_chain_price,
            new_price=new_price,
            observation=observation,
        )

        # The contract stores whole wei, so gate on the value that would be written
        written_price = float(int(new_price))
        if not is_difference_significant(on_chain_price, written_price, self.significant_factor):
            self.state = UpdateState.GATED
            logger.debug(
                f"Non significant gas price change: on-chain={on_chain_price} "
                f"new={new_price} written={written_price}"
            )
            return result

        self.state = UpdateState.SUBMITTING
        try:
            result.tx_hash = await self.submitter.submit_price_update(new_price)
            result.outcome = UpdateOutcome.SUBMITTED
        except ChainError as e:
            logger.error(f"Cannot submit gas price update: {e}")
            result.outcome = UpdateOutcome.SUBMIT_FAILED
            result.error = str(e)

        return result
