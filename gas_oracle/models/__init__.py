"""Data models for the gas price oracle"""

from .epoch import EpochObservation
from .update import UpdateState, UpdateOutcome, UpdateResult

__all__ = [
    "EpochObservation",
    "UpdateState",
    "UpdateOutcome",
    "UpdateResult",
]
