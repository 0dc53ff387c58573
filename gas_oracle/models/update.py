"""Update loop data models"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import time

from .epoch import EpochObservation


class UpdateState(Enum):
    """States of a single update tick"""
    IDLE = "idle"
    READING_CHAIN = "reading_chain"
    COMPUTING = "computing"
    GATED = "gated"
    SUBMITTING = "submitting"


class UpdateOutcome(Enum):
    """How a tick ended"""
    SUBMITTED = "submitted"          # Price written on-chain
    GATED = "gated"                  # Change too small to write
    SUBMIT_FAILED = "submit_failed"  # Computed, but the write failed
    READ_FAILED = "read_failed"      # Chain read failed, tick skipped
    OUT_OF_ORDER = "out_of_order"    # Latest block behind checkpoint
    INVALID_INPUT = "invalid_input"  # Pricer rejected the observed rate

    @property
    def advanced_epoch(self) -> bool:
        """True if the tick moved the epoch checkpoint"""
        return self in (UpdateOutcome.SUBMITTED, UpdateOutcome.GATED, UpdateOutcome.SUBMIT_FAILED)


@dataclass
class UpdateResult:
    """
    Result of one update tick.

    Attributes:
        outcome: How the tick ended
        latest_block_number: Chain tip read this tick, if any
        on_chain_price: Price recorded on-chain before the tick, if read
        new_price: Price computed by the pricer, if computed
        observation: Epoch observation, if computed
        tx_hash: Transaction hash when a write was sent
        error: Error message for failed ticks
        timestamp: Unix timestamp of the tick
    """
    outcome: UpdateOutcome
    latest_block_number: Optional[int] = None
    on_chain_price: Optional[float] = None
    new_price: Optional[float] = None
    observation: Optional[EpochObservation] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    timestamp: int = field(default_factory=lambda: int(time.time()))

    @property
    def wrote_to_chain(self) -> bool:
        return self.outcome == UpdateOutcome.SUBMITTED

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "outcome": self.outcome.value,
            "latest_block_number": self.latest_block_number,
            "on_chain_price": self.on_chain_price,
            "new_price": self.new_price,
            "observation": self.observation.to_dict() if self.observation else None,
            "tx_hash": self.tx_hash,
            "error": self.error,
            "timestamp": self.timestamp,
        }
