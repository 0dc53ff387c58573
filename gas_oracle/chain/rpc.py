"""
JSON-RPC client for the sequencer endpoint.

Every request carries a timeout so an unresponsive node cannot stall the
update loop. Failed requests are retried with a linear backoff and then
surface as ChainError.
"""

import asyncio
import itertools
import time
from collections import deque
from typing import Any, Dict, List, Optional
import logging

import aiohttp

from ..errors import ChainError, RpcResponseError

logger = logging.getLogger(__name__)


class JsonRpcClient:
    """
    Minimal async JSON-RPC 2.0 client.

    Provides:
    - Per-request timeout
    - Retries with backoff
    - Health monitoring
    """

    def __init__(
        self,
        url: str,
        name: str = "rpc",
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.url = url
        self.name = name
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

        self._session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)
        self._error_count = 0
        self._last_success: Optional[float] = None
        self._request_times: deque = deque(maxlen=100)

    @property
    def is_healthy(self) -> bool:
        """Check if the node answered recently"""
        if self._last_success is None:
            return False
        return time.time() - self._last_success < 300

    @property
    def avg_latency_ms(self) -> float:
        """Average request latency in milliseconds"""
        if not self._request_times:
            return 0
        return sum(self._request_times) / len(self._request_times) * 1000

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, params: List[Any]) -> Any:
        """Send a single request and unwrap the result"""
        session = await self._get_session()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        async with session.post(self.url, json=payload) as resp:
            if resp.status != 200:
                text = await resp.text()
                raise ChainError(f"{self.name}: HTTP {resp.status} for {method}: {text}")
            body = await resp.json(content_type=None)

        if "error" in body and body["error"] is not None:
            error = body["error"]
            raise RpcResponseError(method, error.get("code", 0), error.get("message", ""))
        if "result" not in body:
            raise ChainError(f"{self.name}: malformed response for {method}: {body}")

        return body["result"]

    async def call(
        self,
        method: str,
        params: Optional[List[Any]] = None,
        max_retries: Optional[int] = None,
    ) -> Any:
        """
        Call a JSON-RPC method with retries.

        RPC error objects are not retried; the node has already answered.

        Args:
            method: JSON-RPC method name
            params: Positional parameters
            max_retries: Attempts for this call (client default if None)
        """
        params = params or []
        attempts = max(1, max_retries) if max_retries is not None else self.max_retries
        last_error = None

        for attempt in range(attempts):
            try:
                start = time.monotonic()
                result = await self._request(method, params)
                elapsed = time.monotonic() - start

                self._request_times.append(elapsed)
                self._last_success = time.time()
                self._error_count = 0

                return result

            except RpcResponseError:
                self._error_count += 1
                raise

            except (aiohttp.ClientError, asyncio.TimeoutError, ChainError, ValueError) as e:
                last_error = e
                self._error_count += 1
                logger.warning(
                    f"{self.name}: {method} attempt {attempt + 1}/{attempts} failed: {e!r}"
                )

                if attempt < attempts - 1:
                    await asyncio.sleep(self.retry_delay * (attempt + 1))

        raise ChainError(f"{self.name}: {method} failed after {attempts} attempts: {last_error!r}")

    async def wait_until_connected(
        self,
        poll_interval: float = 5.0,
        max_attempts: int = 0,
    ) -> int:
        """
        Block until the node answers eth_chainId.

        Args:
            poll_interval: Seconds between attempts
            max_attempts: Give up after this many attempts (0 = unlimited)

        Returns:
            The chain id reported by the node
        """
        attempts = 0
        while True:
            attempts += 1
            try:
                chain_id = int(await self.call("eth_chainId"), 16)
                logger.info(f"{self.name}: connected to {self.url} (chain id {chain_id})")
                return chain_id
            except ChainError as e:
                if max_attempts and attempts >= max_attempts:
                    raise
                logger.warning(f"{self.name}: waiting for node at {self.url}: {e}")
                await asyncio.sleep(poll_interval)

    def get_status(self) -> Dict[str, Any]:
        """Get client status for monitoring"""
        return {
            "name": self.name,
            "url": self.url,
            "healthy": self.is_healthy,
            "error_count": self._error_count,
            "avg_latency_ms": self.avg_latency_ms,
            "last_success": self._last_success,
        }
