"""
Tests for the JSON-RPC chain collaborators.

The node is an in-memory stand-in wired in place of
JsonRpcClient._request, except for TestHttpTransport which runs a real
aiohttp server on localhost.
"""

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from eth_abi import decode, encode
from eth_account import Account
from eth_utils import decode_hex, function_signature_to_4byte_selector, keccak, to_hex

from gas_oracle.chain import JsonRpcClient, RpcChainObserver, RpcPriceSubmitter, encode_set_gas_price
from gas_oracle.errors import ChainError, RpcResponseError

OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
CONTRACT = "0x420000000000000000000000000000000000000F"

GAS_PRICE = "0x" + function_signature_to_4byte_selector("gasPrice()").hex()
OWNER = "0x" + function_signature_to_4byte_selector("owner()").hex()


class FakeNode:
    """Answers the handful of JSON-RPC methods the oracle uses"""

    def __init__(self, height=0, gas_price=1_000, owner=OWNER_ADDRESS, chain_id=420):
        self.height = height
        self.gas_price = gas_price
        self.owner = owner
        self.chain_id = chain_id
        self.nonce = 3
        self.calls = []
        self.raw_transactions = []
        self.receipt_polls_before_inclusion = 0
        self.receipt_status = "0x1"

    async def handle(self, method, params):
        self.calls.append((method, params))

        if method == "eth_blockNumber":
            return hex(self.height)
        if method == "eth_chainId":
            return hex(self.chain_id)
        if method == "eth_call":
            data = params[0]["data"]
            if data == GAS_PRICE:
                return "0x" + encode(["uint256"], [self.gas_price]).hex()
            if data == OWNER:
                return "0x" + encode(["address"], [self.owner]).hex()
            return "0x"
        if method == "eth_getTransactionCount":
            return hex(self.nonce)
        if method == "eth_gasPrice":
            return hex(15)
        if method == "eth_estimateGas":
            return hex(30_000)
        if method == "eth_sendRawTransaction":
            self.raw_transactions.append(params[0])
            return "0x" + "ab" * 32
        if method == "eth_getTransactionReceipt":
            if self.receipt_polls_before_inclusion > 0:
                self.receipt_polls_before_inclusion -= 1
                return None
            return {"blockNumber": hex(self.height + 1), "status": self.receipt_status}

        raise RpcResponseError(method, -32601, "method not found")

    def methods(self):
        return [method for method, _ in self.calls]


async def _result(value):
    return value


def make_client(node, **kwargs):
    kwargs.setdefault("retry_delay", 0)
    client = JsonRpcClient("http://127.0.0.1:8545", **kwargs)
    client._request = node.handle
    return client


@pytest.mark.asyncio
class TestRpcChainObserver:
    async def test_latest_height_tracks_inserted_blocks(self):
        node = FakeNode(height=0)
        observer = RpcChainObserver(make_client(node), CONTRACT)

        assert await observer.read_latest_height() == 0
        for i in range(10):
            node.height += 1
            assert await observer.read_latest_height() == i + 1

    async def test_read_on_chain_price(self):
        node = FakeNode(gas_price=676_167_759)
        observer = RpcChainObserver(make_client(node), CONTRACT)

        assert await observer.read_on_chain_price() == 676_167_759.0
        method, params = node.calls[0]
        assert method == "eth_call"
        assert params[0]["to"] == CONTRACT
        assert params[1] == "latest"

    async def test_verify_authority(self):
        node = FakeNode()
        observer = RpcChainObserver(make_client(node), CONTRACT)

        assert await observer.verify_authority(OWNER_ADDRESS) is True
        assert await observer.verify_authority(OWNER_ADDRESS.lower()) is True
        assert await observer.verify_authority("0x70997970C51812dc3A010C7d01b50e0d17dc79C8") is False

    async def test_read_chain_id(self):
        observer = RpcChainObserver(make_client(FakeNode(chain_id=1337)), CONTRACT)
        assert await observer.read_chain_id() == 1337

    async def test_empty_call_result_is_chain_error(self):
        # No contract deployed at the address
        observer = RpcChainObserver(make_client(FakeNode()), "0x0000000000000000000000000000000000000001")
        observer.client._request = lambda method, params: _result("0x")

        with pytest.raises(ChainError):
            await observer.read_on_chain_price()


@pytest.mark.asyncio
class TestRpcPriceSubmitter:
    async def test_submit_signs_set_gas_price(self):
        node = FakeNode()
        submitter = RpcPriceSubmitter(make_client(node), CONTRACT, OWNER_KEY, chain_id=420)

        tx_hash = await submitter.submit_price_update(1234.9)

        assert tx_hash == "0x" + "ab" * 32
        assert node.methods() == [
            "eth_getTransactionCount",
            "eth_gasPrice",
            "eth_estimateGas",
            "eth_sendRawTransaction",
        ]
        raw = node.raw_transactions[0]
        assert Account.recover_transaction(raw) == OWNER_ADDRESS

        estimate = dict(node.calls)["eth_estimateGas"][0]
        data = decode_hex(estimate["data"])
        assert data[:4] == function_signature_to_4byte_selector("setGasPrice(uint256)")
        assert decode(["uint256"], data[4:]) == (1234,)

    async def test_fixed_transaction_gas_price(self):
        node = FakeNode()
        submitter = RpcPriceSubmitter(
            make_client(node), CONTRACT, OWNER_KEY, chain_id=420, transaction_gas_price=676_167_759
        )

        tx = await submitter.build_transaction(10)

        assert tx["gasPrice"] == 676_167_759
        assert tx["nonce"] == 3
        assert tx["gas"] == 30_000
        assert tx["chainId"] == 420
        assert "eth_gasPrice" not in node.methods()

    async def test_wait_for_receipt(self):
        node = FakeNode()
        node.receipt_polls_before_inclusion = 2
        submitter = RpcPriceSubmitter(
            make_client(node), CONTRACT, OWNER_KEY, chain_id=420,
            wait_for_receipt=True, receipt_poll_interval=0,
        )

        await submitter.submit_price_update(10)

        assert node.methods().count("eth_getTransactionReceipt") == 3
        assert submitter.get_status()["submitted"] == 1

    async def test_reverted_receipt_is_chain_error(self):
        node = FakeNode()
        node.receipt_status = "0x0"
        submitter = RpcPriceSubmitter(
            make_client(node), CONTRACT, OWNER_KEY, chain_id=420,
            wait_for_receipt=True, receipt_poll_interval=0,
        )

        with pytest.raises(ChainError):
            await submitter.submit_price_update(10)

    async def test_send_is_not_retried(self):
        node = FakeNode()
        client = make_client(node, max_retries=3)
        sends = []

        async def drop_sends(method, params):
            if method == "eth_sendRawTransaction":
                sends.append(params[0])
                raise aiohttp.ServerDisconnectedError()
            return await node.handle(method, params)

        client._request = drop_sends
        submitter = RpcPriceSubmitter(client, CONTRACT, OWNER_KEY, chain_id=420)

        with pytest.raises(ChainError):
            await submitter.submit_price_update(10)
        assert len(sends) == 1

    async def test_already_known_counts_as_sent(self):
        node = FakeNode()
        client = make_client(node)
        sends = []

        async def known(method, params):
            if method == "eth_sendRawTransaction":
                sends.append(params[0])
                raise RpcResponseError(method, -32000, "already known")
            return await node.handle(method, params)

        client._request = known
        submitter = RpcPriceSubmitter(client, CONTRACT, OWNER_KEY, chain_id=420)

        tx_hash = await submitter.submit_price_update(10)

        assert tx_hash == to_hex(keccak(hexstr=sends[0]))
        assert submitter.get_status()["submitted"] == 1

    async def test_other_send_errors_propagate(self):
        node = FakeNode()
        client = make_client(node)

        async def rejected(method, params):
            if method == "eth_sendRawTransaction":
                raise RpcResponseError(method, -32000, "nonce too low")
            return await node.handle(method, params)

        client._request = rejected
        submitter = RpcPriceSubmitter(client, CONTRACT, OWNER_KEY, chain_id=420)

        with pytest.raises(RpcResponseError):
            await submitter.submit_price_update(10)

    async def test_receipt_timeout(self):
        node = FakeNode()
        node.receipt_polls_before_inclusion = 1_000_000
        submitter = RpcPriceSubmitter(
            make_client(node), CONTRACT, OWNER_KEY, chain_id=420,
            wait_for_receipt=True, receipt_timeout=0.05, receipt_poll_interval=0.01,
        )

        with pytest.raises(ChainError):
            await submitter.submit_price_update(10)


def test_encode_set_gas_price():
    data = encode_set_gas_price(1)
    assert data[:4] == function_signature_to_4byte_selector("setGasPrice(uint256)")
    assert len(data) == 4 + 32
    assert data[-1] == 1


@pytest.mark.asyncio
class TestJsonRpcClient:
    async def test_retries_transport_errors(self):
        node = FakeNode(height=7)
        client = make_client(node, max_retries=3)
        failures = {"left": 2}

        async def flaky(method, params):
            if failures["left"]:
                failures["left"] -= 1
                raise aiohttp.ClientConnectionError("connection reset")
            return await node.handle(method, params)

        client._request = flaky
        assert await client.call("eth_blockNumber") == "0x7"
        assert client.get_status()["error_count"] == 0
        assert client.is_healthy

    async def test_gives_up_after_retries(self):
        client = JsonRpcClient("http://127.0.0.1:8545", max_retries=2, retry_delay=0)
        attempts = []

        async def down(method, params):
            attempts.append(method)
            raise aiohttp.ClientConnectionError("connection refused")

        client._request = down
        with pytest.raises(ChainError):
            await client.call("eth_blockNumber")
        assert len(attempts) == 2
        assert not client.is_healthy

    async def test_per_call_retry_override(self):
        client = JsonRpcClient("http://127.0.0.1:8545", max_retries=3, retry_delay=0)
        attempts = []

        async def down(method, params):
            attempts.append(method)
            raise aiohttp.ClientConnectionError("connection refused")

        client._request = down
        with pytest.raises(ChainError):
            await client.call("eth_blockNumber", max_retries=1)
        assert len(attempts) == 1

    async def test_rpc_errors_not_retried(self):
        node = FakeNode()
        client = make_client(node, max_retries=3)

        with pytest.raises(RpcResponseError) as exc_info:
            await client.call("eth_unknownMethod")

        assert exc_info.value.code == -32601
        assert node.methods() == ["eth_unknownMethod"]

    async def test_wait_until_connected(self):
        node = FakeNode(chain_id=10)
        client = make_client(node)
        assert await client.wait_until_connected(poll_interval=0) == 10

    async def test_wait_until_connected_gives_up(self):
        client = JsonRpcClient("http://127.0.0.1:8545", max_retries=1, retry_delay=0)

        async def down(method, params):
            raise aiohttp.ClientConnectionError("connection refused")

        client._request = down
        with pytest.raises(ChainError):
            await client.wait_until_connected(poll_interval=0, max_attempts=3)


@pytest.mark.asyncio
class TestHttpTransport:
    async def _serve(self, handler):
        app = web.Application()
        app.router.add_post("/", handler)
        server = TestServer(app)
        await server.start_server()
        return server

    async def test_round_trip(self):
        async def handler(request):
            body = await request.json()
            assert body["jsonrpc"] == "2.0"
            return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": "0x2a"})

        server = await self._serve(handler)
        client = JsonRpcClient(str(server.make_url("/")), retry_delay=0)
        try:
            assert await client.call("eth_blockNumber") == "0x2a"
        finally:
            await client.close()
            await server.close()

    async def test_error_object(self):
        async def handler(request):
            body = await request.json()
            return web.json_response({
                "jsonrpc": "2.0",
                "id": body["id"],
                "error": {"code": -32000, "message": "execution reverted"},
            })

        server = await self._serve(handler)
        client = JsonRpcClient(str(server.make_url("/")), retry_delay=0)
        try:
            with pytest.raises(RpcResponseError) as exc_info:
                await client.call("eth_call", [{}, "latest"])
            assert "execution reverted" in str(exc_info.value)
        finally:
            await client.close()
            await server.close()

    async def test_http_error_status(self):
        async def handler(request):
            return web.Response(status=503, text="unavailable")

        server = await self._serve(handler)
        client = JsonRpcClient(str(server.make_url("/")), max_retries=2, retry_delay=0)
        try:
            with pytest.raises(ChainError):
                await client.call("eth_blockNumber")
        finally:
            await client.close()
            await server.close()
