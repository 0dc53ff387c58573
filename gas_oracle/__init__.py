"""
Gas Price Oracle - L2 gas price controller

Watches block production on the sequencer, estimates gas used per second
over each epoch and moves the on-chain gas price towards a target rate,
writing only when the change is significant.
"""

__version__ = "1.0.0"

from .main import GasPriceOracle, create_oracle
from .config import OracleConfig, load_config
from .pricing import (
    GasPricer,
    EpochTracker,
    GasPriceUpdater,
    average_gas_per_second,
    is_difference_significant,
)
from .models import EpochObservation, UpdateOutcome, UpdateResult, UpdateState
from .errors import (
    GasOracleError,
    InvalidInputError,
    InvalidConfigurationError,
    ConfigError,
    UnauthorizedSignerError,
    OutOfOrderEpochError,
    ChainError,
)

__all__ = [
    # Core oracle
    "GasPriceOracle",
    "create_oracle",
    "OracleConfig",
    "load_config",
    # Pricing
    "GasPricer",
    "EpochTracker",
    "GasPriceUpdater",
    "average_gas_per_second",
    "is_difference_significant",
    # Models
    "EpochObservation",
    "UpdateOutcome",
    "UpdateResult",
    "UpdateState",
    # Errors
    "GasOracleError",
    "InvalidInputError",
    "InvalidConfigurationError",
    "ConfigError",
    "UnauthorizedSignerError",
    "OutOfOrderEpochError",
    "ChainError",
]
