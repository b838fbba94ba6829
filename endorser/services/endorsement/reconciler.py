"""
Decides whether a block needs our endorsement and submits it if so.
"""

from typing import Optional, Protocol

import structlog

from .qualification import is_qualified
from .submitter import EndorsementSubmitter
from .types import EndorsementProgress, EndorsementRecord, SubmitResult


logger = structlog.get_logger(__name__)


class EndorsementReader(Protocol):
    async def get_endorsement(self, height: int, block_hash: str) -> Optional[EndorsementRecord]:
        ...


def needs_endorsement(record: Optional[EndorsementRecord], account_name: str) -> bool:
    """
    A block needs our endorsement when nobody has endorsed it yet, or when we
    are requested for it and have not provided ours.
    """
    if record is None:
        return True
    return (
        is_qualified(record.requested_validators, account_name)
        and not is_qualified(record.provider_validators, account_name)
    )


class EndorsementReconciler:
    """Reconciles one height/hash pair against its endorsement record."""

    def __init__(
        self,
        reader: EndorsementReader,
        submitter: EndorsementSubmitter,
        progress: EndorsementProgress,
    ):
        self.reader = reader
        self.submitter = submitter
        self.progress = progress
        self.logger = logger.bind(service="endorsement_reconciler")

    async def check_and_submit(
        self,
        account_name: str,
        height: int,
        block_hash: str,
    ) -> Optional[SubmitResult]:
        """
        Submit an endorsement for the block if one is needed.

        Returns:
            The submission result, or None when no submission was needed
        """
        record = await self.reader.get_endorsement(height, block_hash)
        if not needs_endorsement(record, account_name):
            self.logger.debug(
                "No endorsement needed",
                height=height,
                hash=block_hash,
                record_found=record is not None
            )
            return None

        result = await self.submitter.submit(account_name, height, block_hash)
        if result.succeeded:
            self.progress.record_submitted(height)
        return result
