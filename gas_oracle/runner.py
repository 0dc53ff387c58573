"""
Gas Price Oracle Runner

Runs the oracle against a sequencer node until interrupted.

Usage:
    python -m gas_oracle.runner --config gas-oracle.yaml
    python -m gas_oracle.runner --target-gas-per-second 11000000 \\
        --max-percent-change-per-epoch 0.1 --epoch-length-seconds 10 \\
        --average-block-gas-limit-per-epoch 11000000
    python -m gas_oracle.runner --generate-config gas-oracle.yaml

SIGINT/SIGTERM stop the oracle between epochs. SIGHUP reloads the config
and applies the new target gas per second.
"""

import asyncio
import argparse
import logging
import signal
import sys
from typing import Any, Dict, Optional

from .config import OracleConfig, load_config, generate_default_config
from .errors import ConfigError, GasOracleError
from .main import GasPriceOracle, create_oracle

logger = logging.getLogger(__name__)

# Flag name -> (section, field); section None means top level
FLAG_MAPPINGS = {
    "ethereum_http_url": ("chain", "ethereum_http_url"),
    "chain_id": ("chain", "chain_id"),
    "gas_price_oracle_address": ("chain", "gas_price_oracle_address"),
    "transaction_gas_price": ("chain", "transaction_gas_price"),
    "wait_for_receipt": ("chain", "wait_for_receipt"),
    "floor_price": ("pricer", "floor_price"),
    "target_gas_per_second": ("pricer", "target_gas_per_second"),
    "max_percent_change_per_epoch": ("pricer", "max_percent_change_per_epoch"),
    "significant_factor": ("pricer", "significant_factor"),
    "average_block_gas_limit_per_epoch": ("epoch", "average_block_gas_limit_per_epoch"),
    "epoch_length_seconds": ("epoch", "epoch_length_seconds"),
    "private_key": (None, "private_key"),
    "log_level": (None, "log_level"),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="L2 gas price oracle")
    parser.add_argument("--config", "-c", help="Path to YAML/JSON config file")
    parser.add_argument(
        "--generate-config",
        metavar="PATH",
        help="Write a config template to PATH and exit"
    )
    parser.add_argument("--ethereum-http-url", help="Sequencer HTTP endpoint")
    parser.add_argument("--chain-id", type=int, help="L2 chain id")
    parser.add_argument("--gas-price-oracle-address", help="Address of the gas price oracle contract")
    parser.add_argument("--private-key", help="Private key of the gas price oracle owner")
    parser.add_argument("--transaction-gas-price", type=int, help="Hardcoded tx.gasPrice")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: INFO)"
    )
    parser.add_argument("--floor-price", type=float, help="Gas price floor")
    parser.add_argument("--target-gas-per-second", type=float, help="Target gas per second")
    parser.add_argument(
        "--max-percent-change-per-epoch",
        type=float,
        help="Max fractional change of the gas price per epoch"
    )
    parser.add_argument(
        "--average-block-gas-limit-per-epoch",
        type=float,
        help="Average block gas limit per epoch"
    )
    parser.add_argument("--epoch-length-seconds", type=float, help="Length of epochs in seconds")
    parser.add_argument(
        "--significant-factor",
        type=float,
        help="Only update when the gas price changes by more than this factor (default: 0.05)"
    )
    parser.add_argument(
        "--wait-for-receipt",
        action="store_true",
        default=None,
        help="Wait for receipts when sending transactions"
    )
    return parser


def args_to_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Turn the flags that were given into a nested config dict"""
    overrides: Dict[str, Any] = {}
    for flag, (section, name) in FLAG_MAPPINGS.items():
        value = getattr(args, flag, None)
        if value is None:
            continue
        if section is None:
            overrides[name] = value
        else:
            overrides.setdefault(section, {})[name] = value
    return overrides


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%H:%M:%S',
        force=True,
    )


def reload_target(oracle: GasPriceOracle, config_path: Optional[str], overrides: Dict[str, Any]):
    """Re-read the config and apply the target gas per second"""
    try:
        config = load_config(config_path, overrides)
        oracle.set_target_gas_per_second(config.pricer.target_gas_per_second)
    except GasOracleError as e:
        logger.error(f"Config reload failed, keeping current target: {e}")


async def run(config: OracleConfig, config_path: Optional[str], overrides: Dict[str, Any]):
    """Build the oracle, install signal handlers and run until stopped"""
    oracle = await create_oracle(config)
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, oracle.stop)
    if hasattr(signal, "SIGHUP"):
        loop.add_signal_handler(signal.SIGHUP, reload_target, oracle, config_path, overrides)

    try:
        await oracle.run()
    finally:
        await oracle.close()


def main(argv=None) -> int:
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level or "INFO")

    if args.generate_config:
        generate_default_config(args.generate_config)
        return 0

    overrides = args_to_overrides(args)

    try:
        config = load_config(args.config, overrides)
    except ConfigError as e:
        for error in e.errors:
            logger.critical(f"Missing or invalid config option: {error}")
        logger.critical(f"{e}")
        return 1

    setup_logging(config.log_level)

    try:
        asyncio.run(run(config, args.config, overrides))
    except GasOracleError as e:
        logger.critical(f"Gas Price Oracle failed: {e}")
        return 1
    except KeyboardInterrupt:
        pass

    return 0


if __name__ == "__main__":
    sys.exit(main())
