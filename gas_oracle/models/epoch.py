"""Epoch observation data model"""

from dataclasses import dataclass


@dataclass(frozen=True)
class EpochObservation:
    """
    Gas usage derived for one elapsed epoch.

    Attributes:
        epoch_start_block_number: Checkpoint the epoch started from
        latest_block_number: Chain tip when the epoch was closed
        epoch_length_seconds: Wall-clock length of the epoch
        average_block_gas_limit: Assumed gas used per block
        gas_per_second: Derived consumption rate
    """
    epoch_start_block_number: int
    latest_block_number: int
    epoch_length_seconds: float
    average_block_gas_limit: float
    gas_per_second: float

    @property
    def block_count(self) -> int:
        """Blocks produced during the epoch"""
        return self.latest_block_number - self.epoch_start_block_number

    def to_dict(self) -> dict:
        return {
            "epoch_start_block_number": self.epoch_start_block_number,
            "latest_block_number": self.latest_block_number,
            "block_count": self.block_count,
            "epoch_length_seconds": self.epoch_length_seconds,
            "average_block_gas_limit": self.average_block_gas_limit,
            "gas_per_second": self.gas_per_second,
        }
