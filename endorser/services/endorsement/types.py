"""
Types for endorsement reconciliation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class BlockRef:
    """One Bitcoin block identified by height and hash."""
    height: int
    hash: str


@dataclass(frozen=True)
class ValidatorEntry:
    """Validator account listed on an endorsement record."""
    account: str
    staking: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ValidatorEntry":
        return cls(account=row["account"], staking=int(row.get("staking", 0) or 0))


@dataclass
class EndorsementRecord:
    """On-chain bookkeeping of who must endorse a block and who already has."""
    height: int
    hash: str
    requested_validators: List[ValidatorEntry] = field(default_factory=list)
    provider_validators: List[ValidatorEntry] = field(default_factory=list)

    @classmethod
    def from_row(cls, height: int, row: Dict[str, Any]) -> "EndorsementRecord":
        return cls(
            height=height,
            hash=row["hash"],
            requested_validators=[
                ValidatorEntry.from_row(v) for v in row.get("requested_validators", [])
            ],
            provider_validators=[
                ValidatorEntry.from_row(v) for v in row.get("provider_validators", [])
            ],
        )


@dataclass
class ChainState:
    """Snapshot of ledger finality progress."""
    irreversible_height: int
    head_height: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ChainState":
        head = row.get("head_height")
        return cls(
            irreversible_height=int(row["irreversible_height"]),
            head_height=int(head) if head is not None else None,
            raw=row,
        )


class EndorsementOutcome(Enum):
    """Classified result of one endorse action."""
    SUCCESS = "success"
    ALREADY_SETTLED = "already_settled"
    ENDORSEMENT_DISABLED = "endorsement_disabled"
    FAILED = "failed"


@dataclass
class SubmitResult:
    """Outcome of submitting one endorsement."""
    outcome: EndorsementOutcome
    height: int
    hash: str
    transaction_id: Optional[str] = None
    detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is EndorsementOutcome.SUCCESS

    @property
    def benign(self) -> bool:
        """Nothing left to do for this block, whether or not we endorsed it."""
        return self.outcome in (
            EndorsementOutcome.SUCCESS,
            EndorsementOutcome.ALREADY_SETTLED,
            EndorsementOutcome.ENDORSEMENT_DISABLED,
        )


@dataclass
class EndorsementProgress:
    """
    Advisory heights used to bound catch-up scans.

    Losing these values only widens the next scan.
    """
    last_endorse_height: int = 0
    last_submitted_height: int = 0

    def record_endorsed(self, height: int) -> None:
        self.last_endorse_height = height

    def record_submitted(self, height: int) -> None:
        if height > self.last_submitted_height:
            self.last_submitted_height = height
