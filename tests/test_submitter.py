"""
Test endorsement submission outcomes and ledger error classification.
"""

import pytest
from structlog.testing import capture_logs

from endorser.core.exceptions import LedgerError, LedgerTransportError
from endorser.services.endorsement import EndorsementOutcome, EndorsementSubmitter
from endorser.services.ledger import EndorsementLedger, classify_ledger_error

from conftest import ACCOUNT, HASH_A

PARSED = (
    "assertion failure with message: blkendt.xsat::endorse: "
    "the block has been parsed and does not need to be endorsed"
)
DISABLED = (
    "assertion failure with message: blkendt.xsat::endorse: "
    "the current endorsement status is disabled"
)


class StubLedgerClient:
    """Ledger client whose execute_action returns or raises a preset value."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.actions = []

    async def execute_action(self, account, name, data):
        self.actions.append((account, name, data))
        if self.error:
            raise self.error
        return self.response


def test_classify_ledger_error():
    assert classify_ledger_error(PARSED) is EndorsementOutcome.ALREADY_SETTLED
    assert classify_ledger_error(DISABLED) is EndorsementOutcome.ENDORSEMENT_DISABLED
    assert classify_ledger_error("billed CPU time exceeded") is EndorsementOutcome.FAILED


@pytest.mark.asyncio
async def test_endorsement_ledger_success_carries_transaction_id():
    client = StubLedgerClient(response={"transaction_id": "f00d"})
    ledger = EndorsementLedger(client)

    result = await ledger.endorse(ACCOUNT, 840000, HASH_A)

    assert result.outcome is EndorsementOutcome.SUCCESS
    assert result.transaction_id == "f00d"
    account, name, data = client.actions[0]
    assert (account, name) == ("blkendt.xsat", "endorse")
    assert len(data) == 8 + 8 + 32


@pytest.mark.asyncio
@pytest.mark.parametrize("error, expected", [
    (LedgerError(PARSED), EndorsementOutcome.ALREADY_SETTLED),
    (LedgerError(DISABLED), EndorsementOutcome.ENDORSEMENT_DISABLED),
    (LedgerError("missing authority of validator1"), EndorsementOutcome.FAILED),
    (LedgerTransportError("all endpoints down"), EndorsementOutcome.FAILED),
])
async def test_endorsement_ledger_classifies_rejections(error, expected):
    ledger = EndorsementLedger(StubLedgerClient(error=error))

    result = await ledger.endorse(ACCOUNT, 840000, HASH_A)

    assert result.outcome is expected
    assert result.detail == error.message


@pytest.mark.asyncio
async def test_endorsement_ledger_rejects_bad_hash_without_pushing():
    client = StubLedgerClient(response={"transaction_id": "f00d"})

    result = await EndorsementLedger(client).endorse(ACCOUNT, 1, "abcd")

    assert result.outcome is EndorsementOutcome.FAILED
    assert client.actions == []


@pytest.mark.asyncio
async def test_endorsement_ledger_without_transaction_id_is_failure():
    ledger = EndorsementLedger(StubLedgerClient(response={"processed": {}}))

    result = await ledger.endorse(ACCOUNT, 1, HASH_A)

    assert result.outcome is EndorsementOutcome.FAILED


@pytest.mark.asyncio
async def test_submit_success_records_endorse_height(submitter, ledger, progress):
    result = await submitter.submit(ACCOUNT, 100, "abcd")

    assert result.succeeded
    assert ledger.calls == [(ACCOUNT, 100, "abcd")]
    assert progress.last_endorse_height == 100


@pytest.mark.asyncio
async def test_disabled_endorsement_is_benign(progress):
    """A paused network is logged, not raised, and moves no heights."""
    submitter = EndorsementSubmitter(
        EndorsementLedger(StubLedgerClient(error=LedgerError(DISABLED))), progress
    )

    result = await submitter.submit(ACCOUNT, 100, HASH_A)

    assert result.outcome is EndorsementOutcome.ENDORSEMENT_DISABLED
    assert result.benign
    assert progress.last_endorse_height == 0


@pytest.mark.asyncio
async def test_unknown_failure_does_not_raise(progress):
    submitter = EndorsementSubmitter(
        EndorsementLedger(StubLedgerClient(error=LedgerTransportError("timeout"))), progress
    )

    result = await submitter.submit(ACCOUNT, 100, HASH_A)

    assert result.outcome is EndorsementOutcome.FAILED
    assert not result.benign
    assert progress.last_endorse_height == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("error, level", [
    (LedgerError(DISABLED), "info"),
    (LedgerError(PARSED), "info"),
    (LedgerError("missing authority of validator1"), "error"),
])
async def test_submit_outcome_log_level(progress, error, level):
    with capture_logs() as logs:
        submitter = EndorsementSubmitter(EndorsementLedger(StubLedgerClient(error=error)), progress)
        await submitter.submit(ACCOUNT, 100, HASH_A)

    submit_logs = [entry for entry in logs if entry.get("height") == 100]
    assert [entry["log_level"] for entry in submit_logs] == [level]
