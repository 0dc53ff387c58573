"""
Chain collaborators for the gas price oracle

Usage:
    from gas_oracle.chain import JsonRpcClient, RpcChainObserver, RpcPriceSubmitter

    async def main():
        client = JsonRpcClient("http://127.0.0.1:8545")
        observer = RpcChainObserver(client, GAS_PRICE_ORACLE_ADDRESS)
        height = await observer.read_latest_height()
        price = await observer.read_on_chain_price()
"""

from .base import ChainObserver, PriceSubmitter
from .rpc import JsonRpcClient
from .observer import RpcChainObserver
from .submitter import RpcPriceSubmitter, encode_set_gas_price

__all__ = [
    "ChainObserver",
    "PriceSubmitter",
    "JsonRpcClient",
    "RpcChainObserver",
    "RpcPriceSubmitter",
    "encode_set_gas_price",
]
