"""
Test startup validation of the validator service.
"""

import pytest

from endorser.core.config import settings
from endorser.core.exceptions import ConfigurationError, KeystoreDecryptionError, LedgerError
from endorser.scheduler.endorse_jobs import ENDORSE_CHECK_TASK, ENDORSE_TASK
from endorser.scheduler.main import ValidatorMain, env_check
from endorser.services.credentials import ConfiguredPasswordProvider, InteractivePasswordProvider, UnlockAborted
from endorser.services.ledger import LedgerClient

from conftest import ACCOUNT


@pytest.fixture
def configured(monkeypatch, keystore_file):
    monkeypatch.setattr(settings, "validator_keystore_file", str(keystore_file))
    monkeypatch.setattr(settings, "exsat_rpc_urls", ["http://ledger:8888"])
    monkeypatch.setattr(settings, "btc_rpc_url", "http://bitcoin:8332")
    return settings


def test_env_check_passes_when_configured(configured):
    env_check()


@pytest.mark.parametrize("field, value", [
    ("validator_keystore_file", ""),
    ("validator_keystore_file", "/nonexistent/keystore.json"),
    ("exsat_rpc_urls", []),
    ("btc_rpc_url", ""),
])
def test_env_check_rejects_missing_settings(configured, monkeypatch, field, value):
    monkeypatch.setattr(settings, field, value)

    with pytest.raises(ConfigurationError):
        env_check()


@pytest.mark.asyncio
async def test_wrong_configured_password_stops_startup(configured):
    validator = ValidatorMain(credentials=ConfiguredPasswordProvider("wrong"))

    with pytest.raises(KeystoreDecryptionError):
        await validator.initialize()
    assert validator.ledger_client is None
    assert validator.task_scheduler.tasks == {}


@pytest.mark.asyncio
async def test_operator_quit_stops_startup(configured):
    validator = ValidatorMain(credentials=InteractivePasswordProvider(read=lambda prompt: "q"))

    with pytest.raises(UnlockAborted):
        await validator.initialize()
    assert validator.task_scheduler.tasks == {}


@pytest.mark.asyncio
async def test_initialize_connects_configured_ledger_and_registers_jobs(configured, monkeypatch):
    async def fake_post(self, url, body):
        if url.endswith("/get_info"):
            return {"chain_id": "ab" * 32, "head_block_num": 1}
        if url.endswith("/get_account"):
            return {"account_name": body["account_name"]}
        return {"rows": []}

    monkeypatch.setattr(LedgerClient, "_post", fake_post)
    validator = ValidatorMain(credentials=ConfiguredPasswordProvider("s3cret"))

    await validator.initialize()

    assert [ep.url for ep in validator.ledger_client.endpoints] == ["http://ledger:8888"]
    assert validator.ledger_client.identity.account_name == ACCOUNT
    assert validator.ledger_client.chain_id == "ab" * 32
    assert set(validator.task_scheduler.tasks) == {ENDORSE_TASK, ENDORSE_CHECK_TASK}
    await validator.stop()


@pytest.mark.asyncio
async def test_unknown_account_stops_startup(configured, monkeypatch):
    async def fake_post(self, url, body):
        if url.endswith("/get_info"):
            return {"chain_id": "ab" * 32}
        raise LedgerError("unknown key (eosio::chain::name): validator1")

    monkeypatch.setattr(LedgerClient, "_post", fake_post)
    validator = ValidatorMain(credentials=ConfiguredPasswordProvider("s3cret"))

    with pytest.raises(ConfigurationError):
        await validator.initialize()
    assert validator.task_scheduler.tasks == {}
    await validator.stop()
