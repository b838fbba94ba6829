"""
Test catch-up scan start height and ordering.
"""

import pytest

from endorser.services.endorsement import CatchUpScanner, StartupGate, compute_start_height

from conftest import ACCOUNT, FakeBitcoin, FakeChainState, FakeLaunchStatus, block_hash


def make_scanner(reconciler, progress, bitcoin, chainstate, gate):
    return CatchUpScanner(
        reconciler=reconciler,
        chainstate_reader=chainstate,
        blocks=bitcoin,
        gate=gate,
        progress=progress,
        resume_window=6,
    )


@pytest.mark.parametrize("irreversible, last_endorse, tip, expected", [
    (500, 0, 510, 501),
    (500, 505, 520, 505),
    (500, 505, 510, 501),   # too close to the tip
    (500, 501, 520, 501),   # not beyond the default start
    (500, 514, 520, 501),   # exactly at tip - window
    (500, 513, 520, 513),
    (500, 400, 520, 501),
])
def test_compute_start_height(irreversible, last_endorse, tip, expected):
    assert compute_start_height(irreversible, last_endorse, tip, 6) == expected


@pytest.mark.asyncio
async def test_scan_runs_ascending_to_tip(reconciler, ledger, progress, open_gate):
    bitcoin = FakeBitcoin(tip=510)
    scanner = make_scanner(reconciler, progress, bitcoin, FakeChainState(500), open_gate)

    processed = await scanner.run_check(ACCOUNT)

    assert processed == list(range(501, 511))
    assert bitcoin.hash_requests == list(range(501, 511))
    assert [call[1] for call in ledger.calls] == list(range(501, 511))
    assert all(call[2] == block_hash(call[1]) for call in ledger.calls)


@pytest.mark.asyncio
async def test_scan_resumes_from_last_endorsed_height(reconciler, ledger, progress, open_gate):
    progress.record_endorsed(505)
    scanner = make_scanner(reconciler, progress, FakeBitcoin(tip=520), FakeChainState(500), open_gate)

    processed = await scanner.run_check(ACCOUNT)

    assert processed[0] == 505
    assert processed[-1] == 520


@pytest.mark.asyncio
async def test_scan_error_aborts_remaining_heights(reconciler, ledger, progress, open_gate):
    bitcoin = FakeBitcoin(tip=510, fail_at=505)
    scanner = make_scanner(reconciler, progress, bitcoin, FakeChainState(500), open_gate)

    with pytest.raises(ConnectionError):
        await scanner.run_check(ACCOUNT)

    # Heights before the failure stay reconciled
    assert [call[1] for call in ledger.calls] == [501, 502, 503, 504]
    assert bitcoin.hash_requests[-1] == 505


@pytest.mark.asyncio
async def test_next_scan_after_error_covers_remaining_heights(reconciler, ledger, progress, open_gate):
    bitcoin = FakeBitcoin(tip=510, fail_at=505)
    scanner = make_scanner(reconciler, progress, bitcoin, FakeChainState(500), open_gate)
    with pytest.raises(ConnectionError):
        await scanner.run_check(ACCOUNT)

    bitcoin.fail_at = None
    await scanner.run_check(ACCOUNT)

    # Already endorsed heights are recognised and not submitted twice
    assert sorted(call[1] for call in ledger.calls) == list(range(501, 511))


@pytest.mark.asyncio
async def test_scan_skipped_until_network_launches(reconciler, ledger, progress):
    status = FakeLaunchStatus(False, True)
    gate = StartupGate(status)
    chainstate = FakeChainState(500)
    scanner = make_scanner(reconciler, progress, FakeBitcoin(tip=502), chainstate, gate)

    assert await scanner.run_check(ACCOUNT) == []
    assert chainstate.reads == 0

    assert await scanner.run_check(ACCOUNT) == [501, 502]
    await scanner.run_check(ACCOUNT)
    # Latched open, launch status is not polled again
    assert status.calls == 2


@pytest.mark.asyncio
async def test_scan_without_chainstate_does_nothing(reconciler, ledger, progress, open_gate):
    bitcoin = FakeBitcoin(tip=510)
    scanner = make_scanner(reconciler, progress, bitcoin, FakeChainState(None), open_gate)

    assert await scanner.run_check(ACCOUNT) == []
    assert bitcoin.hash_requests == []
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_scan_with_tip_at_irreversible_height_is_empty(reconciler, ledger, progress, open_gate):
    scanner = make_scanner(reconciler, progress, FakeBitcoin(tip=500), FakeChainState(500), open_gate)

    assert await scanner.run_check(ACCOUNT) == []
