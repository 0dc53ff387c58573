"""
Configuration for the gas price oracle

Supports:
- YAML/JSON file loading
- Environment variable overrides (GAS_PRICE_ORACLE_*)
- Validation, with required pricing parameters left unset by default
"""

from dataclasses import dataclass, field, fields, asdict
from typing import Dict, List, Optional, Any, Union
from pathlib import Path
import os
import json
import logging

import yaml
from dotenv import load_dotenv
from eth_account import Account

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Load .env file if present
load_dotenv()

DEFAULT_GAS_PRICE_ORACLE_ADDRESS = "0x420000000000000000000000000000000000000F"
ENV_PREFIX = "GAS_PRICE_ORACLE_"


def signer_address_from_key(private_key: str) -> str:
    """
    Derive the signer address from a hex private key.

    Raises:
        ConfigError: if the key is empty or malformed
    """
    if not private_key:
        raise ConfigError("no private key provided")
    try:
        return Account.from_key(private_key).address
    except Exception as e:
        # The key itself is never logged
        raise ConfigError(f"invalid private_key: {type(e).__name__}") from e


# ============ Sub-Configurations ============

@dataclass
class PricerConfig:
    """Gas pricer configuration"""
    # Lower bound for the gas price
    floor_price: float = 0.0

    # Set-point; required
    target_gas_per_second: Optional[float] = None

    # Max fractional move per epoch, e.g. 0.1 = 10%; required
    max_percent_change_per_epoch: Optional[float] = None

    # Only write when the price moves by more than this factor
    significant_factor: float = 0.05

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors"""
        errors = []
        if self.target_gas_per_second is None:
            errors.append("missing required option: target_gas_per_second")
        elif self.target_gas_per_second <= 0:
            errors.append("target_gas_per_second must be positive")
        if self.max_percent_change_per_epoch is None:
            errors.append("missing required option: max_percent_change_per_epoch")
        elif not 0 <= self.max_percent_change_per_epoch <= 1:
            errors.append("max_percent_change_per_epoch must be in [0, 1]")
        if self.floor_price < 0:
            errors.append("floor_price must be non-negative")
        if self.significant_factor < 0:
            errors.append("significant_factor must be non-negative")
        return errors


@dataclass
class EpochConfig:
    """Epoch configuration"""
    # Length of an epoch in seconds; required
    epoch_length_seconds: Optional[float] = None

    # Assumed gas used per block; required
    average_block_gas_limit_per_epoch: Optional[float] = None

    def validate(self) -> List[str]:
        errors = []
        if self.epoch_length_seconds is None:
            errors.append("missing required option: epoch_length_seconds")
        elif self.epoch_length_seconds <= 0:
            errors.append("epoch_length_seconds must be positive")
        if self.average_block_gas_limit_per_epoch is None:
            errors.append("missing required option: average_block_gas_limit_per_epoch")
        elif self.average_block_gas_limit_per_epoch < 1:
            errors.append("average_block_gas_limit_per_epoch cannot be less than 1 gas")
        return errors


@dataclass
class ChainConfig:
    """Sequencer connection and transaction settings"""
    ethereum_http_url: str = "http://127.0.0.1:8545"

    # Fetched from the node when unset
    chain_id: Optional[int] = None

    gas_price_oracle_address: str = DEFAULT_GAS_PRICE_ORACLE_ADDRESS

    # Hardcoded tx.gasPrice; node suggestion when unset
    transaction_gas_price: Optional[int] = None

    # Confirmation settings
    wait_for_receipt: bool = False
    receipt_timeout_seconds: float = 120.0

    # RPC settings
    rpc_timeout_seconds: float = 10.0
    max_retries: int = 3
    retry_delay: float = 1.0
    connect_retry_seconds: float = 5.0

    def validate(self) -> List[str]:
        errors = []
        if not self.ethereum_http_url:
            errors.append("ethereum_http_url is required")
        if self.chain_id is not None and self.chain_id <= 0:
            errors.append("chain_id must be positive")
        if not self.gas_price_oracle_address:
            errors.append("gas_price_oracle_address is required")
        if self.transaction_gas_price is not None and self.transaction_gas_price < 0:
            errors.append("transaction_gas_price must be non-negative")
        if self.rpc_timeout_seconds <= 0:
            errors.append("rpc_timeout_seconds must be positive")
        if self.max_retries < 1:
            errors.append("max_retries must be at least 1")
        return errors


# ============ Main Configuration ============

@dataclass
class OracleConfig:
    """Main oracle configuration"""
    # Sub-configs
    pricer: PricerConfig = field(default_factory=PricerConfig)
    epoch: EpochConfig = field(default_factory=EpochConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)

    # Signer config (loaded from env)
    private_key: str = field(default_factory=lambda: os.getenv(ENV_PREFIX + "PRIVATE_KEY", ""))

    # Logging
    log_level: str = "INFO"

    def validate(self) -> List[str]:
        """Validate entire configuration"""
        errors = []

        errors.extend(self.pricer.validate())
        errors.extend(self.epoch.validate())
        errors.extend(self.chain.validate())

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"unknown log_level: {self.log_level}")

        # Format only; a missing key is reported when the oracle is built
        if self.private_key:
            try:
                signer_address_from_key(self.private_key)
            except ConfigError as e:
                errors.append(str(e))

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (for serialization)"""
        return asdict(self)


# ============ Configuration Loading ============

ENV_MAPPINGS = {
    "ETHEREUM_HTTP_URL": ("chain", "ethereum_http_url"),
    "CHAIN_ID": ("chain", "chain_id"),
    "GAS_PRICE_ORACLE_ADDRESS": ("chain", "gas_price_oracle_address"),
    "TRANSACTION_GAS_PRICE": ("chain", "transaction_gas_price"),
    "WAIT_FOR_RECEIPT": ("chain", "wait_for_receipt"),
    "FLOOR_PRICE": ("pricer", "floor_price"),
    "TARGET_GAS_PER_SECOND": ("pricer", "target_gas_per_second"),
    "MAX_PERCENT_CHANGE_PER_EPOCH": ("pricer", "max_percent_change_per_epoch"),
    "SIGNIFICANT_FACTOR": ("pricer", "significant_factor"),
    "AVERAGE_BLOCK_GAS_LIMIT_PER_EPOCH": ("epoch", "average_block_gas_limit_per_epoch"),
    "EPOCH_LENGTH_SECONDS": ("epoch", "epoch_length_seconds"),
    "PRIVATE_KEY": ("private_key",),
    "LOG_LEVEL": ("log_level",),
}

_SECTIONS = {
    "pricer": PricerConfig,
    "epoch": EpochConfig,
    "chain": ChainConfig,
}

# Declared field types, keyed by (section, field)
_FIELD_TYPES = {
    (section, f.name): f.type
    for section, cls in _SECTIONS.items()
    for f in fields(cls)
}


def _coerce(section: Optional[str], name: str, value: Any) -> Any:
    """Convert a string override to the type of the target field"""
    if not isinstance(value, str) or section is None:
        return value

    field_type = str(_FIELD_TYPES.get((section, name), "str"))
    if "bool" in field_type:
        return value.strip().lower() in ("1", "true", "yes", "on")
    if "int" in field_type:
        return int(value, 0)
    if "float" in field_type:
        return float(value)
    return value


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """Deep merge two dictionaries"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config_dict: Dict) -> Dict:
    """Apply environment variable overrides to config"""
    for suffix, path in ENV_MAPPINGS.items():
        value = os.getenv(ENV_PREFIX + suffix)
        # Plain LOG_LEVEL is honoured too
        if value is None and suffix == "LOG_LEVEL":
            value = os.getenv("LOG_LEVEL")
        if value is None:
            continue

        if len(path) == 1:
            config_dict[path[0]] = value
        else:
            section, name = path
            config_dict.setdefault(section, {})[name] = _coerce(section, name, value)

    return config_dict


def _dict_to_config(d: Dict) -> OracleConfig:
    """Convert dictionary to OracleConfig"""
    try:
        pricer = PricerConfig(**d.get("pricer", {}))
        epoch = EpochConfig(**d.get("epoch", {}))
        chain = ChainConfig(**d.get("chain", {}))
    except TypeError as e:
        raise ConfigError(f"Unknown configuration option: {e}") from e

    return OracleConfig(
        pricer=pricer,
        epoch=epoch,
        chain=chain,
        private_key=d.get("private_key", os.getenv(ENV_PREFIX + "PRIVATE_KEY", "")),
        log_level=d.get("log_level", "INFO"),
    )


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> OracleConfig:
    """
    Load configuration from file or environment.

    Priority (highest to lowest):
    1. Explicit overrides (command line flags)
    2. Environment variables
    3. Config file (YAML/JSON)
    4. Default values

    Args:
        config_path: Path to config file. If None, looks for:
            - GAS_PRICE_ORACLE_CONFIG_PATH env var
            - ./gas-oracle.yaml
            - ./gas-oracle.json
            - ./config/gas-oracle.yaml
        overrides: Nested dict merged over everything else

    Returns:
        OracleConfig instance

    Raises:
        ConfigError: if a required option is missing or a value is invalid
    """
    config_dict: Dict[str, Any] = {}

    # Determine config file path
    if config_path is None:
        config_path = os.getenv(ENV_PREFIX + "CONFIG_PATH")

    if config_path is None:
        search_paths = [
            Path("gas-oracle.yaml"),
            Path("gas-oracle.json"),
            Path("config/gas-oracle.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    # Load from file if found
    if config_path is not None:
        config_path = Path(config_path)
        if config_path.exists():
            logger.info(f"Loading config from {config_path}")

            with open(config_path, 'r') as f:
                if config_path.suffix in ['.yaml', '.yml']:
                    config_dict = yaml.safe_load(f) or {}
                elif config_path.suffix == '.json':
                    config_dict = json.load(f)
                else:
                    raise ConfigError(f"Unsupported config file format: {config_path.suffix}")
        else:
            logger.warning(f"Config file not found: {config_path}")

    try:
        config_dict = _apply_env_overrides(config_dict)
    except ValueError as e:
        raise ConfigError(f"Invalid environment override: {e}") from e

    if overrides:
        config_dict = _deep_merge(config_dict, overrides)

    config = _dict_to_config(config_dict)

    # Validate
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config validation error: {error}")
        raise ConfigError(f"Configuration validation failed with {len(errors)} errors", errors)

    return config


def save_config(config: OracleConfig, path: Union[str, Path], format: str = "yaml") -> None:
    """
    Save configuration to file.

    Args:
        config: OracleConfig to save
        path: Output file path
        format: "yaml" or "json"
    """
    path = Path(path)
    config_dict = config.to_dict()

    # Remove sensitive fields
    config_dict.pop("private_key", None)

    with open(path, 'w') as f:
        if format == "yaml":
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
        elif format == "json":
            json.dump(config_dict, f, indent=2)
        else:
            raise ValueError(f"Unsupported format: {format}")

    logger.info(f"Config saved to {path}")


def generate_default_config(path: Union[str, Path], format: str = "yaml") -> None:
    """Generate a configuration template; required options are left empty"""
    config = OracleConfig()
    save_config(config, path, format)
