"""
Ledger chain API client with endpoint failover.

This service provides:
- Table reads through get_table_rows
- Signing and pushing single-action transactions
- Failover across the configured API endpoints with per-endpoint backoff
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import aiohttp
import structlog

from endorser.core.config import LedgerConfig, settings
from endorser.core.exceptions import ConfigurationError, LedgerError, LedgerTransportError

from .serializer import Action, PermissionLevel, Transaction, expiration_from, reference_block
from .signer import signing_digest

if TYPE_CHECKING:
    from endorser.services.keystore import AccountIdentity


logger = structlog.get_logger(__name__)


@dataclass
class LedgerEndpoint:
    """One chain API endpoint and its recent error history."""
    url: str
    priority: int
    error_count: int = 0
    success_count: int = 0
    last_error_time: Optional[datetime] = None

    def backoff_active(self, now: datetime) -> bool:
        if not self.last_error_time:
            return False
        backoff = timedelta(seconds=2 ** min(self.error_count, 6))
        return now - self.last_error_time < backoff


def _error_message(body: Dict[str, Any]) -> str:
    """Flatten a chain API error body into one message."""
    error = body.get("error") or {}
    details = [d.get("message", "") for d in error.get("details", []) if d.get("message")]
    if details:
        return "; ".join(details)
    return error.get("what") or body.get("message") or "unknown ledger error"


class LedgerClient:
    """
    Async client for the ledger chain API.

    Transport failures are retried on the next healthy endpoint; API
    rejections are raised at once as LedgerError since repeating them
    elsewhere gives the same answer.
    """

    def __init__(
        self,
        identity: Optional["AccountIdentity"] = None,
        endpoints: Optional[List[str]] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_delay: float = 1.0,
    ):
        config = LedgerConfig.get_rpc_config()
        urls = endpoints if endpoints is not None else config["endpoints"]
        if not urls:
            raise ConfigurationError("No ledger API endpoints configured (EXSAT_RPC_URLS)")

        self.identity = identity
        self.endpoints = [
            LedgerEndpoint(url=url.rstrip("/"), priority=i) for i, url in enumerate(urls)
        ]
        self.timeout = aiohttp.ClientTimeout(total=timeout or config["timeout"])
        self.max_retries = max(1, max_retries or config["max_retries"])
        self.retry_delay = retry_delay
        self.expiration = config["expiration"]
        self.chain_id: Optional[str] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self.logger = logger.bind(service="ledger_client")

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        """Fetch the chain id, verifying at least one endpoint is reachable."""
        info = await self.get_info()
        self.chain_id = info["chain_id"]
        self.logger.info(
            "Ledger client initialized",
            chain_id=self.chain_id,
            head_block_num=info.get("head_block_num"),
            endpoints=len(self.endpoints)
        )

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    def _select_endpoint(self) -> LedgerEndpoint:
        now = datetime.utcnow()
        available = [ep for ep in self.endpoints if not ep.backoff_active(now)]
        if not available:
            # All endpoints are backing off, use the preferred one anyway
            return self.endpoints[0]
        available.sort(key=lambda ep: (ep.error_count, ep.priority))
        return available[0]

    async def _post(self, url: str, body: Optional[Dict[str, Any]]) -> Any:
        session = self._get_session()
        async with session.post(url, json=body or {}) as response:
            payload = await response.json(content_type=None)
            if response.status >= 400:
                raise LedgerError(
                    _error_message(payload if isinstance(payload, dict) else {}),
                    {"status": response.status, "url": url}
                )
            return payload

    async def request(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        """POST to a chain API path, failing over between endpoints."""
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            endpoint = self._select_endpoint()
            try:
                result = await self._post(f"{endpoint.url}{path}", body)
                endpoint.success_count += 1
                endpoint.error_count = max(0, endpoint.error_count - 1)
                return result
            except LedgerError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                endpoint.error_count += 1
                endpoint.last_error_time = datetime.utcnow()
                last_error = e
                self.logger.warning(
                    "Ledger request failed",
                    path=path,
                    endpoint=endpoint.url,
                    attempt=attempt + 1,
                    error=str(e)
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * (attempt + 1))

        raise LedgerTransportError(
            f"All ledger requests to {path} failed: {last_error}",
            {"path": path, "attempts": self.max_retries}
        )

    async def get_info(self) -> Dict[str, Any]:
        return await self.request("/v1/chain/get_info")

    async def get_account(self, account_name: str) -> Dict[str, Any]:
        return await self.request("/v1/chain/get_account", {"account_name": account_name})

    async def get_table_rows(
        self,
        code: str,
        scope: Any,
        table: str,
        index_position: Optional[int] = None,
        key_type: Optional[str] = None,
        lower_bound: Optional[str] = None,
        upper_bound: Optional[str] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        """Read rows of a contract table."""
        body: Dict[str, Any] = {
            "json": True,
            "code": code,
            "scope": str(scope),
            "table": table,
            "limit": limit,
        }
        if index_position is not None:
            body["index_position"] = index_position
        if key_type:
            body["key_type"] = key_type
        if lower_bound is not None:
            body["lower_bound"] = lower_bound
        if upper_bound is not None:
            body["upper_bound"] = upper_bound

        response = await self.request("/v1/chain/get_table_rows", body)
        return response.get("rows", [])

    async def execute_action(self, account: str, name: str, data: bytes) -> Dict[str, Any]:
        """
        Sign and push a transaction holding one action.

        Args:
            account: Contract account
            name: Action name
            data: Packed action arguments

        Returns:
            Push response, including `transaction_id`
        """
        if self.identity is None:
            raise LedgerError("Cannot execute actions without an account identity")
        if self.chain_id is None:
            await self.initialize()

        info = await self.get_info()
        try:
            reference_id = info["last_irreversible_block_id"]
            head_block_time = info["head_block_time"]
        except (KeyError, TypeError) as e:
            raise LedgerError(
                f"Chain info is missing transaction reference fields: {e}",
                {"info": info}
            ) from e
        ref_block_num, ref_block_prefix = reference_block(reference_id)
        transaction = Transaction(
            expiration=expiration_from(head_block_time, self.expiration),
            ref_block_num=ref_block_num,
            ref_block_prefix=ref_block_prefix,
            actions=[
                Action(
                    account=account,
                    name=name,
                    authorization=[
                        PermissionLevel(self.identity.account_name, self.identity.permission)
                    ],
                    data=data,
                )
            ],
        )
        packed = transaction.pack()
        signature = self.identity.private_key.sign_digest(signing_digest(self.chain_id, packed))

        return await self.request("/v1/chain/push_transaction", {
            "signatures": [signature],
            "compression": "none",
            "packed_context_free_data": "",
            "packed_trx": packed.hex(),
        })


def create_ledger_client(identity: Optional["AccountIdentity"] = None) -> LedgerClient:
    """Build a ledger client from settings."""
    return LedgerClient(identity=identity, endpoints=list(settings.exsat_rpc_urls))
