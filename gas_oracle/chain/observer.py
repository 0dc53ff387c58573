"""
Chain observer backed by JSON-RPC.

Reads the chain tip and the gas price oracle contract state. One call
per value, so closing an epoch costs a single eth_blockNumber.
"""

from typing import Any, Dict
import logging

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, function_signature_to_4byte_selector, to_checksum_address, to_hex

from ..errors import ChainError
from .base import ChainObserver
from .rpc import JsonRpcClient

logger = logging.getLogger(__name__)

GAS_PRICE_SELECTOR = function_signature_to_4byte_selector("gasPrice()")
OWNER_SELECTOR = function_signature_to_4byte_selector("owner()")


class RpcChainObserver(ChainObserver):
    """
    Reads block height and contract state from a node.

    Args:
        client: JSON-RPC client for the node
        contract_address: Address of the gas price oracle contract
    """

    def __init__(self, client: JsonRpcClient, contract_address: str):
        self.client = client
        self.contract_address = to_checksum_address(contract_address)

    async def _eth_call(self, selector: bytes, output_types: list) -> tuple:
        result = await self.client.call(
            "eth_call",
            [{"to": self.contract_address, "data": to_hex(selector)}, "latest"],
        )
        data = decode_hex(result)
        if not data:
            raise ChainError(f"empty eth_call result from {self.contract_address}")
        try:
            return decode(output_types, data)
        except DecodingError as e:
            raise ChainError(f"cannot decode eth_call result {result!r}: {e}") from e

    async def read_latest_height(self) -> int:
        result = await self.client.call("eth_blockNumber")
        return int(result, 16)

    async def read_chain_id(self) -> int:
        result = await self.client.call("eth_chainId")
        return int(result, 16)

    async def read_on_chain_price(self) -> float:
        (price,) = await self._eth_call(GAS_PRICE_SELECTOR, ["uint256"])
        return float(price)

    async def read_owner(self) -> str:
        (owner,) = await self._eth_call(OWNER_SELECTOR, ["address"])
        return to_checksum_address(owner)

    async def verify_authority(self, signer_address: str) -> bool:
        owner = await self.read_owner()
        authorized = owner == to_checksum_address(signer_address)
        if not authorized:
            logger.error(f"Signing key does not match contract owner: signer={signer_address} owner={owner}")
        return authorized

    async def close(self):
        await self.client.close()

    def get_status(self) -> Dict[str, Any]:
        status = self.client.get_status()
        status["contract_address"] = self.contract_address
        return status
