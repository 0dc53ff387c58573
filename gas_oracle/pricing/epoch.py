"""
Epoch bookkeeping.

Gas usage is estimated from the number of blocks produced in an epoch
multiplied by an assumed average block gas limit, so closing an epoch
needs a single block height read.
"""

from ..errors import InvalidConfigurationError, OutOfOrderEpochError
from ..models.epoch import EpochObservation


def average_gas_per_second(
    epoch_start_block_number: int,
    latest_block_number: int,
    epoch_length_seconds: float,
    average_block_gas_limit: float,
) -> float:
    """
    Estimate gas per second over an epoch.

    Args:
        epoch_start_block_number: First block of the epoch
        latest_block_number: Current chain tip
        epoch_length_seconds: Epoch duration
        average_block_gas_limit: Assumed gas per block

    Returns:
        (latest - start) * average_block_gas_limit / epoch_length_seconds
    """
    if latest_block_number < epoch_start_block_number:
        raise OutOfOrderEpochError(epoch_start_block_number, latest_block_number)

    blocks = latest_block_number - epoch_start_block_number
    return blocks * average_block_gas_limit / epoch_length_seconds


class EpochTracker:
    """
    Tracks the block number the current epoch started at.

    The checkpoint only moves forward, and only through advance().
    """

    def __init__(
        self,
        epoch_start_block_number: int,
        epoch_length_seconds: float,
        average_block_gas_limit: float,
    ):
        if epoch_start_block_number < 0:
            raise InvalidConfigurationError("epoch start block number must be non-negative")
        if average_block_gas_limit < 1:
            raise InvalidConfigurationError("average block gas limit cannot be less than 1 gas")
        if epoch_length_seconds <= 0:
            raise InvalidConfigurationError("epoch length must be positive")

        self._epoch_start_block_number = int(epoch_start_block_number)
        self.epoch_length_seconds = float(epoch_length_seconds)
        self.average_block_gas_limit = float(average_block_gas_limit)

    @property
    def epoch_start_block_number(self) -> int:
        return self._epoch_start_block_number

    def observe(self, latest_block_number: int) -> EpochObservation:
        """Compute the rate for the epoch ending at latest_block_number"""
        rate = average_gas_per_second(
            self._epoch_start_block_number,
            latest_block_number,
            self.epoch_length_seconds,
            self.average_block_gas_limit,
        )
        return EpochObservation(
            epoch_start_block_number=self._epoch_start_block_number,
            latest_block_number=latest_block_number,
            epoch_length_seconds=self.epoch_length_seconds,
            average_block_gas_limit=self.average_block_gas_limit,
            gas_per_second=rate,
        )

    def advance(self, latest_block_number: int):
        """Start the next epoch at latest_block_number"""
        if latest_block_number < self._epoch_start_block_number:
            raise OutOfOrderEpochError(self._epoch_start_block_number, latest_block_number)
        self._epoch_start_block_number = int(latest_block_number)
