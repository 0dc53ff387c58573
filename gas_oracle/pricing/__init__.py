"""Gas pricing control loop components"""

from .pricer import GasPricer
from .epoch import EpochTracker, average_gas_per_second
from .significance import is_difference_significant
from .updater import GasPriceUpdater

__all__ = [
    "GasPricer",
    "EpochTracker",
    "average_gas_per_second",
    "is_difference_significant",
    "GasPriceUpdater",
]
