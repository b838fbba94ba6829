"""
Bitcoin node JSON-RPC client.
Provides the chain tip and block hash lookups the endorsement jobs run on.
"""

import asyncio
import itertools
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from endorser.core.config import BitcoinConfig
from endorser.core.exceptions import BitcoinRpcError
from endorser.services.endorsement.types import BlockRef


logger = structlog.get_logger(__name__)


class BitcoinRpcClient:
    """
    Async client for a Bitcoin Core compatible JSON-RPC endpoint.

    Every failure (transport, HTTP status, RPC error object) surfaces as
    BitcoinRpcError so that callers only deal with one exception type.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        config = BitcoinConfig.get_rpc_config()
        self.url = url or config["url"]
        self.username = config["username"] if username is None else username
        self.password = config["password"] if password is None else password
        self.timeout = aiohttp.ClientTimeout(total=timeout or config["timeout"])
        self._session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)
        self.logger = logger.bind(service="bitcoin_rpc")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            auth = None
            if self.username:
                auth = aiohttp.BasicAuth(self.username, self.password)
            self._session = aiohttp.ClientSession(auth=auth, timeout=self.timeout)
        return self._session

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._get_session()
        async with session.post(self.url, json=payload) as response:
            # bitcoind answers RPC errors with HTTP 500 and a JSON body
            if response.status >= 400 and response.content_type != "application/json":
                text = await response.text()
                raise BitcoinRpcError(
                    f"HTTP {response.status} from Bitcoin RPC",
                    {"status": response.status, "body": text[:200]}
                )
            return await response.json(content_type=None)

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Execute one JSON-RPC call and return its result."""
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            body = await self._post(payload)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.error("Bitcoin RPC request failed", method=method, error=str(e))
            raise BitcoinRpcError(
                f"Bitcoin RPC {method} failed: {e}",
                {"method": method}
            ) from e

        if not isinstance(body, dict):
            raise BitcoinRpcError(
                f"Bitcoin RPC {method} returned a malformed response",
                {"method": method, "body": str(body)[:200]}
            )

        error = body.get("error")
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise BitcoinRpcError(
                f"Bitcoin RPC {method} returned error: {message}",
                {"method": method, "error": error}
            )

        result = body.get("result")
        if result is None:
            raise BitcoinRpcError(
                f"Bitcoin RPC {method} returned no result",
                {"method": method}
            )
        return result

    async def get_block_count(self) -> int:
        """Get the height of the most-work fully validated chain."""
        result = await self.call("getblockcount")
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise BitcoinRpcError(
                f"Bitcoin RPC getblockcount returned a non-numeric height: {result!r}",
                {"method": "getblockcount"}
            ) from e

    async def get_block_hash(self, height: int) -> str:
        """Get the block hash at the given height."""
        return str(await self.call("getblockhash", [height]))

    async def get_chain_tip(self) -> BlockRef:
        """Get height and hash of the current chain tip."""
        height = await self.get_block_count()
        block_hash = await self.get_block_hash(height)
        return BlockRef(height=height, hash=block_hash)
