"""
Shared fixtures and in-memory collaborators for validator tests.
"""

from typing import Dict, List, Optional, Tuple

import pytest

from endorser.services.endorsement import (
    ChainState,
    EndorsementOutcome,
    EndorsementProgress,
    EndorsementReconciler,
    EndorsementRecord,
    EndorsementSubmitter,
    StartupGate,
    SubmitResult,
    ValidatorEntry,
)
from endorser.services.keystore import encrypt_keystore, save_keystore

# Well-known development key pair
DEV_PRIVATE_KEY = "5KQwrPbwdL6PhXujxW37FSSQZ1JiwsST4cqQzDeyXtP79zkvFD3"
DEV_PUBLIC_KEY = "EOS6MRyAjQq8ud7hVNYcfnVPJqcVpscN5So8BhtHuGYqET5GDW5CV"

ACCOUNT = "validator1"
HASH_A = "00000000000000000002a7c4c1e48d76c5a37902165a270156b7a8d72728a054"


def block_hash(height: int) -> str:
    return f"{height:064x}"


class FakeLedger:
    """
    Endorsement table and endorse action in one object.

    Successful endorsements are reflected in the table, like the contract does.
    """

    def __init__(self):
        self.records: Dict[Tuple[int, str], EndorsementRecord] = {}
        self.calls: List[Tuple[str, int, str]] = []
        self.reads: List[Tuple[int, str]] = []
        self.outcomes: List[SubmitResult] = []
        self.reflect_submissions = True

    def add_record(self, height, block_hash, requested=(), provider=()):
        self.records[(height, block_hash)] = EndorsementRecord(
            height=height,
            hash=block_hash,
            requested_validators=[ValidatorEntry(a) for a in requested],
            provider_validators=[ValidatorEntry(a) for a in provider],
        )

    def fail_next(self, outcome: EndorsementOutcome, detail: str = "rejected"):
        self.outcomes.append(SubmitResult(outcome=outcome, height=0, hash="", detail=detail))

    async def get_endorsement(self, height: int, block_hash: str) -> Optional[EndorsementRecord]:
        self.reads.append((height, block_hash))
        return self.records.get((height, block_hash))

    async def endorse(self, validator: str, height: int, block_hash: str) -> SubmitResult:
        self.calls.append((validator, height, block_hash))
        if self.outcomes:
            queued = self.outcomes.pop(0)
            return SubmitResult(
                outcome=queued.outcome, height=height, hash=block_hash, detail=queued.detail
            )

        if self.reflect_submissions:
            record = self.records.get((height, block_hash))
            if record is None:
                self.add_record(height, block_hash, requested=[validator], provider=[validator])
            else:
                record.provider_validators.append(ValidatorEntry(validator))
        return SubmitResult(
            outcome=EndorsementOutcome.SUCCESS,
            height=height,
            hash=block_hash,
            transaction_id=f"tx-{height}",
        )


class FakeBitcoin:
    """Bitcoin node with a fixed tip and optional failing heights."""

    def __init__(self, tip: int, fail_at: Optional[int] = None):
        self.tip = tip
        self.fail_at = fail_at
        self.hash_requests: List[int] = []

    async def get_block_count(self) -> int:
        return self.tip

    async def get_block_hash(self, height: int) -> str:
        self.hash_requests.append(height)
        if height == self.fail_at:
            raise ConnectionError(f"node unreachable at {height}")
        return block_hash(height)

    async def get_chain_tip(self):
        from endorser.services.endorsement import BlockRef
        return BlockRef(height=self.tip, hash=await self.get_block_hash(self.tip))


class FakeChainState:
    def __init__(self, irreversible_height: Optional[int]):
        self.irreversible_height = irreversible_height
        self.reads = 0

    async def get_chainstate(self) -> Optional[ChainState]:
        self.reads += 1
        if self.irreversible_height is None:
            return None
        return ChainState(irreversible_height=self.irreversible_height)


class FakeLaunchStatus:
    def __init__(self, *answers: bool):
        self.answers = list(answers)
        self.calls = 0

    async def __call__(self) -> bool:
        self.calls += 1
        if len(self.answers) > 1:
            return self.answers.pop(0)
        return self.answers[0]


@pytest.fixture
def progress():
    return EndorsementProgress()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def submitter(ledger, progress):
    return EndorsementSubmitter(ledger, progress)


@pytest.fixture
def reconciler(ledger, submitter, progress):
    return EndorsementReconciler(ledger, submitter, progress)


@pytest.fixture
def open_gate():
    return StartupGate(FakeLaunchStatus(True))


@pytest.fixture
def keystore_file(tmp_path):
    """Keystore for the development key, with a cheap KDF."""
    document = encrypt_keystore(ACCOUNT, DEV_PRIVATE_KEY, "s3cret", iterations=1000)
    return save_keystore(tmp_path / "keystore.json", document)
