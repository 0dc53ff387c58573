"""
Gas pricer: the control law of the oracle.

Each completed epoch moves the price by the ratio of observed gas usage to
the target, with the move bounded to +/- max_percent_change_per_epoch and
the result never falling below the floor price.
"""

from typing import Callable

import numpy as np

from ..errors import InvalidConfigurationError, InvalidInputError

TargetGasPerSecondFn = Callable[[], float]


class GasPricer:
    """
    Bounded multiplicative gas price controller.

    The target rate is read through a zero-argument callable on every
    epoch so it can be changed without rebuilding the pricer.
    """

    def __init__(
        self,
        initial_price: float,
        floor_price: float,
        get_target_gas_per_second: TargetGasPerSecondFn,
        max_percent_change_per_epoch: float,
    ):
        """
        Initialize pricer.

        Args:
            initial_price: Starting price, normally the on-chain gas price
            floor_price: Lower bound for every computed price
            get_target_gas_per_second: Accessor for the current target rate
            max_percent_change_per_epoch: Max fractional move per epoch, in [0, 1]
        """
        if not np.isfinite(initial_price) or initial_price < 0:
            raise InvalidConfigurationError(
                f"initial price must be a non-negative number, got {initial_price}"
            )
        if not np.isfinite(floor_price) or floor_price < 0:
            raise InvalidConfigurationError(
                f"floor price must be a non-negative number, got {floor_price}"
            )
        if not 0 <= max_percent_change_per_epoch <= 1:
            raise InvalidConfigurationError(
                "max percent change per epoch must be in [0, 1], "
                f"got {max_percent_change_per_epoch}"
            )

        self._cur_price = float(initial_price)
        self.floor_price = float(floor_price)
        self.get_target_gas_per_second = get_target_gas_per_second
        self.max_percent_change_per_epoch = float(max_percent_change_per_epoch)

    @property
    def current_price(self) -> float:
        """Price committed by the last completed epoch"""
        return self._cur_price

    def calc_next_epoch_gas_price(self, avg_gas_per_second: float) -> float:
        """
        Compute the next price without committing it.

        Args:
            avg_gas_per_second: Observed gas usage over the last epoch

        Returns:
            Bounded price for the next epoch
        """
        if not np.isfinite(avg_gas_per_second) or avg_gas_per_second < 0:
            raise InvalidInputError(
                f"observed gas per second must be a non-negative number, got {avg_gas_per_second}"
            )

        target = self.get_target_gas_per_second()
        if not np.isfinite(target) or target <= 0:
            raise InvalidConfigurationError(
                f"target gas per second must be positive, got {target}"
            )

        proportion_of_target = np.clip(
            avg_gas_per_second / target,
            1 - self.max_percent_change_per_epoch,
            1 + self.max_percent_change_per_epoch,
        )
        updated = self._cur_price * float(proportion_of_target)

        return max(updated, self.floor_price)

    def complete_epoch(self, avg_gas_per_second: float) -> float:
        """
        Close the current epoch and commit the new price.

        State is left untouched if the computation raises.
        """
        new_price = self.calc_next_epoch_gas_price(avg_gas_per_second)
        self._cur_price = new_price
        return new_price
