"""
Ledger write boundary for endorse actions.

Ledger rejections are classified here, once, into an EndorsementOutcome so
callers never inspect error text themselves.
"""

from typing import Optional

from endorser.core.config import LedgerConfig, settings
from endorser.core.exceptions import LedgerError
from endorser.services.endorsement.types import EndorsementOutcome, SubmitResult
from .client import LedgerClient
from .serializer import pack_endorse_data


def classify_ledger_error(message: str) -> EndorsementOutcome:
    """Map a ledger rejection message onto an outcome tag."""
    if LedgerConfig.ENDORSE_PARSED_MESSAGE in message:
        return EndorsementOutcome.ALREADY_SETTLED
    if LedgerConfig.ENDORSE_DISABLED_MESSAGE in message:
        return EndorsementOutcome.ENDORSEMENT_DISABLED
    return EndorsementOutcome.FAILED


class EndorsementLedger:
    """Submits endorse actions and returns a tagged SubmitResult."""

    def __init__(
        self,
        client: LedgerClient,
        contract: Optional[str] = None,
        action: Optional[str] = None,
    ):
        self.client = client
        self.contract = contract or settings.endorse_contract
        self.action = action or settings.endorse_action

    async def endorse(self, validator: str, height: int, block_hash: str) -> SubmitResult:
        try:
            data = pack_endorse_data(validator, height, block_hash)
            response = await self.client.execute_action(self.contract, self.action, data)
        except LedgerError as e:
            return SubmitResult(
                outcome=classify_ledger_error(e.message),
                height=height,
                hash=block_hash,
                detail=e.message,
            )
        except ValueError as e:
            # Malformed name or hash, the action could not even be built
            return SubmitResult(
                outcome=EndorsementOutcome.FAILED,
                height=height,
                hash=block_hash,
                detail=str(e),
            )

        transaction_id = response.get("transaction_id") if isinstance(response, dict) else None
        if not transaction_id:
            return SubmitResult(
                outcome=EndorsementOutcome.FAILED,
                height=height,
                hash=block_hash,
                detail="push response carried no transaction id",
            )
        return SubmitResult(
            outcome=EndorsementOutcome.SUCCESS,
            height=height,
            hash=block_hash,
            transaction_id=transaction_id,
        )
