"""
Price submitter backed by JSON-RPC.

Builds a setGasPrice(uint256) transaction, signs it locally with the
oracle's hot key and broadcasts it. Optionally waits for the receipt.
"""

import asyncio
import time
from typing import Any, Dict, Optional
import logging

from eth_abi import encode
from eth_account import Account
from eth_utils import function_signature_to_4byte_selector, to_checksum_address, to_hex

from ..errors import ChainError, RpcResponseError
from .base import PriceSubmitter
from .rpc import JsonRpcClient

logger = logging.getLogger(__name__)

SET_GAS_PRICE_SELECTOR = function_signature_to_4byte_selector("setGasPrice(uint256)")

# Node answer when a broadcast transaction is already in its pool
ALREADY_KNOWN = "already known"


def encode_set_gas_price(gas_price: int) -> bytes:
    """Calldata for setGasPrice(gas_price)"""
    return SET_GAS_PRICE_SELECTOR + encode(["uint256"], [gas_price])


class RpcPriceSubmitter(PriceSubmitter):
    """
    Signs and sends gas price updates.

    Args:
        client: JSON-RPC client for the node
        contract_address: Address of the gas price oracle contract
        private_key: Hex private key of the contract owner
        chain_id: Chain id used for replay protection
        transaction_gas_price: Fixed tx gas price; node suggestion if None
        wait_for_receipt: Block until the transaction is included
        receipt_timeout: Seconds to wait for a receipt
        receipt_poll_interval: Seconds between receipt polls
    """

    def __init__(
        self,
        client: JsonRpcClient,
        contract_address: str,
        private_key: str,
        chain_id: int,
        transaction_gas_price: Optional[int] = None,
        wait_for_receipt: bool = False,
        receipt_timeout: float = 120.0,
        receipt_poll_interval: float = 1.0,
    ):
        self.client = client
        self.contract_address = to_checksum_address(contract_address)
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.transaction_gas_price = transaction_gas_price
        self.wait_for_receipt = wait_for_receipt
        self.receipt_timeout = receipt_timeout
        self.receipt_poll_interval = receipt_poll_interval

        self._submitted = 0
        self._last_tx_hash: Optional[str] = None

    @property
    def address(self) -> str:
        """Address of the signing key"""
        return self.account.address

    async def _gas_price(self) -> int:
        if self.transaction_gas_price is not None:
            return int(self.transaction_gas_price)
        return int(await self.client.call("eth_gasPrice"), 16)

    async def build_transaction(self, new_price: float) -> Dict[str, Any]:
        """Assemble an unsigned legacy transaction setting new_price"""
        # Contract stores whole wei
        data = to_hex(encode_set_gas_price(int(new_price)))

        nonce = int(await self.client.call(
            "eth_getTransactionCount", [self.address, "pending"]
        ), 16)
        gas_price = await self._gas_price()
        gas = int(await self.client.call(
            "eth_estimateGas",
            [{"from": self.address, "to": self.contract_address, "data": data}],
        ), 16)

        return {
            "chainId": self.chain_id,
            "nonce": nonce,
            "gasPrice": gas_price,
            "gas": gas,
            "to": self.contract_address,
            "value": 0,
            "data": data,
        }

    async def submit_price_update(self, new_price: float) -> Optional[str]:
        tx = await self.build_transaction(new_price)
        signed = self.account.sign_transaction(tx)

        tx_hash = await self.send_raw_transaction(signed)
        self._submitted += 1
        self._last_tx_hash = tx_hash
        logger.info(
            f"Sent gas price update: price={int(new_price)} nonce={tx['nonce']} "
            f"tx_gas_price={tx['gasPrice']} tx={tx_hash}"
        )

        if self.wait_for_receipt:
            receipt = await self.wait_for_transaction_receipt(tx_hash)
            logger.info(f"Gas price update included in block {int(receipt['blockNumber'], 16)}")

        return tx_hash

    async def send_raw_transaction(self, signed) -> str:
        """
        Broadcast a signed transaction exactly once.

        A node that already holds the transaction answers "already known";
        that counts as sent.
        """
        local_hash = to_hex(signed.hash)
        try:
            return await self.client.call(
                "eth_sendRawTransaction", [to_hex(signed.raw_transaction)], max_retries=1
            )
        except RpcResponseError as e:
            if ALREADY_KNOWN in e.rpc_message.lower():
                logger.warning(f"Transaction {local_hash} already known to the node")
                return local_hash
            raise

    async def wait_for_transaction_receipt(self, tx_hash: str) -> Dict[str, Any]:
        """
        Poll until the transaction is included.

        Raises:
            ChainError: on timeout or a reverted transaction
        """
        deadline = time.monotonic() + self.receipt_timeout
        while True:
            receipt = await self.client.call("eth_getTransactionReceipt", [tx_hash])
            if receipt is not None:
                if int(receipt.get("status", "0x1"), 16) == 0:
                    raise ChainError(f"transaction {tx_hash} reverted")
                return receipt

            if time.monotonic() >= deadline:
                raise ChainError(f"timed out waiting for receipt of {tx_hash}")
            await asyncio.sleep(self.receipt_poll_interval)

    async def close(self):
        await self.client.close()

    def get_status(self) -> Dict[str, Any]:
        status = self.client.get_status()
        status.update({
            "signer": self.address,
            "submitted": self._submitted,
            "last_tx_hash": self._last_tx_hash,
            "wait_for_receipt": self.wait_for_receipt,
        })
        return status
