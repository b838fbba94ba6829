"""
Typed reads of the contract tables the validator depends on.
"""

from typing import Optional

import structlog

from endorser.core.config import settings
from endorser.core.exceptions import LedgerError, LedgerTransportError
from endorser.services.endorsement.types import ChainState, EndorsementRecord
from .client import LedgerClient


logger = structlog.get_logger(__name__)


class TableApi:
    """Endorsement, chain state and network launch reads over a LedgerClient."""

    def __init__(self, client: LedgerClient):
        self.client = client
        self.logger = logger.bind(service="table_api")

    async def get_endorsement(self, height: int, block_hash: str) -> Optional[EndorsementRecord]:
        """Get the endorsement record for a block, or None if nobody endorsed it yet."""
        rows = await self.client.get_table_rows(
            settings.endorse_contract,
            height,
            settings.endorsement_table,
            index_position=2,
            key_type="sha256",
            lower_bound=block_hash,
            upper_bound=block_hash,
            limit=1,
        )
        for row in rows:
            if row.get("hash") == block_hash:
                return EndorsementRecord.from_row(height, row)
        return None

    async def get_chainstate(self) -> Optional[ChainState]:
        rows = await self.client.get_table_rows(
            settings.chainstate_contract,
            settings.chainstate_contract,
            settings.chainstate_table,
            limit=1,
        )
        if not rows:
            return None
        return ChainState.from_row(rows[0])

    async def get_startup_status(self) -> bool:
        """The network counts as launched once its startup config row exists."""
        rows = await self.client.get_table_rows(
            settings.startup_contract,
            settings.startup_contract,
            settings.startup_table,
            limit=1,
        )
        return bool(rows)

    async def account_exists(self, account_name: str) -> bool:
        try:
            account = await self.client.get_account(account_name)
        except LedgerTransportError:
            raise
        except LedgerError as e:
            # Unknown accounts are reported as an API error
            self.logger.warning("Account lookup failed", account=account_name, error=str(e))
            return False
        return account.get("account_name") == account_name
