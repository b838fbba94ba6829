"""
Endorsement reconciliation components.
"""

from .types import (
    BlockRef,
    ChainState,
    EndorsementOutcome,
    EndorsementProgress,
    EndorsementRecord,
    SubmitResult,
    ValidatorEntry,
)
from .qualification import is_qualified
from .submitter import EndorsementSubmitter
from .reconciler import EndorsementReconciler, needs_endorsement
from .gate import StartupGate
from .catchup import CatchUpScanner, compute_start_height

__all__ = [
    "BlockRef",
    "ChainState",
    "EndorsementOutcome",
    "EndorsementProgress",
    "EndorsementRecord",
    "SubmitResult",
    "ValidatorEntry",
    "is_qualified",
    "EndorsementSubmitter",
    "EndorsementReconciler",
    "needs_endorsement",
    "StartupGate",
    "CatchUpScanner",
    "compute_start_height",
]
