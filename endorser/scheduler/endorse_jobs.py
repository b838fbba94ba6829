"""
The two periodic validator jobs: tip endorsement and catch-up check.
"""

from typing import Protocol

import structlog

from endorser.core.config import settings
from endorser.services.endorsement import (
    BlockRef,
    CatchUpScanner,
    EndorsementReconciler,
    StartupGate,
)
from .task_scheduler import TaskScheduler

logger = structlog.get_logger(__name__)

ENDORSE_TASK = "endorse"
ENDORSE_CHECK_TASK = "endorse_check"


class ChainTipSource(Protocol):
    async def get_chain_tip(self) -> BlockRef:
        ...


class EndorseJobs:
    """Binds the reconciliation engine to the scheduler."""

    def __init__(
        self,
        account_name: str,
        tips: ChainTipSource,
        reconciler: EndorsementReconciler,
        scanner: CatchUpScanner,
        gate: StartupGate,
    ):
        self.account_name = account_name
        self.tips = tips
        self.reconciler = reconciler
        self.scanner = scanner
        self.gate = gate

    async def endorse(self):
        """Endorse the current chain tip if needed."""
        if not await self.gate.is_open():
            return
        logger.info("Endorse task is running")
        tip = await self.tips.get_chain_tip()
        await self.reconciler.check_and_submit(self.account_name, tip.height, tip.hash)

    async def endorse_check(self):
        """Catch up on heights missed since the last irreversible block."""
        # The scanner checks the startup gate itself
        processed = await self.scanner.run_check(self.account_name)
        if processed:
            logger.info(
                "Endorse check finished",
                first_height=processed[0],
                last_height=processed[-1]
            )

    def register(self, scheduler: TaskScheduler) -> None:
        retry_delay = settings.retry_interval_seconds
        scheduler.register_task(
            ENDORSE_TASK,
            self.endorse,
            interval_seconds=settings.validator_jobs_endorse,
            run_immediately=True,
            error_delay_seconds=retry_delay,
        )
        scheduler.register_task(
            ENDORSE_CHECK_TASK,
            self.endorse_check,
            interval_seconds=settings.validator_jobs_endorse_check,
            error_delay_seconds=retry_delay,
            log_skips=False,
        )
