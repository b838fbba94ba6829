"""
Catch-up scan over heights that may have been missed.
"""

from typing import List, Optional, Protocol

import structlog

from endorser.core.config import settings
from .gate import StartupGate
from .reconciler import EndorsementReconciler
from .types import ChainState, EndorsementProgress


logger = structlog.get_logger(__name__)


class ChainStateReader(Protocol):
    async def get_chainstate(self) -> Optional[ChainState]:
        ...


class BlockSource(Protocol):
    async def get_block_count(self) -> int:
        ...

    async def get_block_hash(self, height: int) -> str:
        ...


def compute_start_height(
    irreversible_height: int,
    last_endorse_height: int,
    tip: int,
    resume_window: int = 6,
) -> int:
    """
    First height of a catch-up scan.

    Normally the block right after the irreversible height. The last endorsed
    height is used instead when it lies beyond that point while still more
    than `resume_window` blocks below the tip.
    """
    start = irreversible_height + 1
    if start < last_endorse_height < tip - resume_window:
        return last_endorse_height
    return start


class CatchUpScanner:
    """Walks every height from the computed start to the tip, in order."""

    def __init__(
        self,
        reconciler: EndorsementReconciler,
        chainstate_reader: ChainStateReader,
        blocks: BlockSource,
        gate: StartupGate,
        progress: EndorsementProgress,
        resume_window: Optional[int] = None,
    ):
        self.reconciler = reconciler
        self.chainstate_reader = chainstate_reader
        self.blocks = blocks
        self.gate = gate
        self.progress = progress
        self.resume_window = (
            settings.catchup_resume_window if resume_window is None else resume_window
        )
        self.logger = logger.bind(service="catchup_scanner")

    async def run_check(self, account_name: str) -> List[int]:
        """
        Reconcile every pending height.

        Any exception aborts the remaining heights and propagates; heights
        already reconciled stay done.

        Returns:
            Heights processed during this cycle, ascending
        """
        if not await self.gate.is_open():
            return []
        self.logger.info("Endorse check task is running")

        chainstate = await self.chainstate_reader.get_chainstate()
        if chainstate is None:
            self.logger.error("Get chainstate error")
            return []

        tip = await self.blocks.get_block_count()
        start = compute_start_height(
            chainstate.irreversible_height,
            self.progress.last_endorse_height,
            tip,
            self.resume_window,
        )

        processed: List[int] = []
        for height in range(start, tip + 1):
            block_hash = await self.blocks.get_block_hash(height)
            self.logger.info(f"Check endorsement for block {height}/{tip}")
            await self.reconciler.check_and_submit(account_name, height, block_hash)
            processed.append(height)

        return processed
