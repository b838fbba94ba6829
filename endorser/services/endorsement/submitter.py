"""
Endorsement submission and outcome logging.
"""

from typing import Protocol

import structlog

from .types import EndorsementOutcome, EndorsementProgress, SubmitResult


logger = structlog.get_logger(__name__)


class EndorsementWriter(Protocol):
    async def endorse(self, validator: str, height: int, block_hash: str) -> SubmitResult:
        ...


class EndorsementSubmitter:
    """
    Issues one endorse action per call.

    Failures never raise out of `submit`: benign rejections are logged at
    info level and anything else at error level, and the next scheduled
    cycle retries.
    """

    def __init__(self, writer: EndorsementWriter, progress: EndorsementProgress):
        self.writer = writer
        self.progress = progress
        self.logger = logger.bind(service="endorsement_submitter")

    async def submit(self, validator: str, height: int, block_hash: str) -> SubmitResult:
        result = await self.writer.endorse(validator, height, block_hash)

        if result.outcome is EndorsementOutcome.SUCCESS:
            self.progress.record_endorsed(height)
            self.logger.info(
                "Submit endorsement success",
                account=validator,
                height=height,
                hash=block_hash,
                transaction_id=result.transaction_id
            )
        elif result.outcome is EndorsementOutcome.ALREADY_SETTLED:
            self.logger.info(
                "The block has been parsed and does not need to be endorsed",
                height=height,
                hash=block_hash
            )
        elif result.outcome is EndorsementOutcome.ENDORSEMENT_DISABLED:
            self.logger.info(
                "Wait for network endorsement to be enabled",
                height=height,
                hash=block_hash
            )
        else:
            self.logger.error(
                "Submit endorsement failed",
                account=validator,
                height=height,
                hash=block_hash,
                error=result.detail
            )
        return result
