"""
Exceptions raised by the gas price oracle.

Transient chain failures (ChainError) skip a tick and are retried next
epoch. Configuration errors (InvalidConfigurationError and subclasses) are
fatal and stop the process.
"""


class GasOracleError(Exception):
    """Base exception for gas oracle errors"""
    pass


class InvalidInputError(GasOracleError):
    """Raised when the pricer is given a negative or non-finite rate"""
    pass


class InvalidConfigurationError(GasOracleError):
    """Raised when pricing parameters cannot produce a bounded price"""
    pass


class ConfigError(InvalidConfigurationError):
    """Raised when configuration loading or validation fails"""

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class UnauthorizedSignerError(InvalidConfigurationError):
    """Raised when the signing key is not the contract owner"""

    def __init__(self, signer: str, owner: str = ""):
        message = f"signing key {signer} does not match contract owner"
        if owner:
            message += f" {owner}"
        super().__init__(message)
        self.signer = signer
        self.owner = owner


class OutOfOrderEpochError(GasOracleError):
    """Raised when the latest block is behind the epoch start"""

    def __init__(self, epoch_start_block_number: int, latest_block_number: int):
        super().__init__(
            f"latest block number {latest_block_number} is less than "
            f"epoch start block number {epoch_start_block_number}"
        )
        self.epoch_start_block_number = epoch_start_block_number
        self.latest_block_number = latest_block_number


class ChainError(GasOracleError):
    """Raised when a chain read or write fails"""
    pass


class RpcResponseError(ChainError):
    """Raised when the node answers with a JSON-RPC error object"""

    def __init__(self, method: str, code: int, message: str):
        super().__init__(f"{method}: RPC error {code}: {message}")
        self.method = method
        self.code = code
        self.rpc_message = message
