"""
Main entry point for the validator service.
Unlocks the keystore, connects to both chains and runs the endorsement jobs.
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import List, Optional

import structlog
import uvicorn

from endorser.core.config import settings
from endorser.core.exceptions import ConfigurationError, EndorserException
from endorser.core.logging import setup_logging
from endorser.main import create_app
from endorser.services.bitcoin_client import BitcoinRpcClient
from endorser.services.credentials import (
    CredentialProvider,
    UnlockAborted,
    credential_provider_from_settings,
    unlock_keystore,
)
from endorser.services.endorsement import (
    CatchUpScanner,
    EndorsementProgress,
    EndorsementReconciler,
    EndorsementSubmitter,
    StartupGate,
)
from endorser.services.keystore import AccountIdentity
from endorser.services.ledger import EndorsementLedger, LedgerClient, TableApi, create_ledger_client
from .endorse_jobs import EndorseJobs
from .task_scheduler import TaskScheduler

logger = structlog.get_logger(__name__)


def env_check() -> None:
    """Fail fast on configuration the validator cannot start without."""
    if not settings.validator_keystore_file:
        raise ConfigurationError("VALIDATOR_KEYSTORE_FILE is not configured")
    if not Path(settings.validator_keystore_file).is_file():
        raise ConfigurationError(
            f"Keystore file not found: {settings.validator_keystore_file}",
            {"path": settings.validator_keystore_file}
        )
    if not settings.exsat_rpc_urls:
        raise ConfigurationError("EXSAT_RPC_URLS is not configured")
    if not settings.btc_rpc_url:
        raise ConfigurationError("BTC_RPC_URL is not configured")


class ValidatorMain:
    """Validator service coordinator."""

    def __init__(self, credentials: Optional[CredentialProvider] = None):
        self.credentials = credentials
        self.identity: Optional[AccountIdentity] = None
        self.ledger_client: Optional[LedgerClient] = None
        self.bitcoin_client: Optional[BitcoinRpcClient] = None
        self.progress = EndorsementProgress()
        self.gate: Optional[StartupGate] = None
        self.task_scheduler = TaskScheduler()
        self.health_server: Optional[uvicorn.Server] = None
        self.running = False
        self.tasks: List[asyncio.Task] = []

    async def initialize(self):
        """
        Unlock the keystore and connect to both chains.

        Any error here is fatal: the scheduler is never started.
        """
        logger.info("Initializing validator service", version=settings.app_version)
        env_check()

        provider = self.credentials or credential_provider_from_settings(
            settings.validator_keystore_password
        )
        # Prompting blocks, keep it off the event loop
        self.identity = await asyncio.to_thread(
            unlock_keystore, settings.validator_keystore_file, provider
        )

        self.ledger_client = create_ledger_client(self.identity)
        await self.ledger_client.initialize()
        table_api = TableApi(self.ledger_client)
        await self.check_client(table_api)

        self.bitcoin_client = BitcoinRpcClient()
        self.gate = StartupGate(table_api.get_startup_status)

        submitter = EndorsementSubmitter(EndorsementLedger(self.ledger_client), self.progress)
        reconciler = EndorsementReconciler(table_api, submitter, self.progress)
        scanner = CatchUpScanner(
            reconciler=reconciler,
            chainstate_reader=table_api,
            blocks=self.bitcoin_client,
            gate=self.gate,
            progress=self.progress,
        )
        EndorseJobs(
            account_name=self.identity.account_name,
            tips=self.bitcoin_client,
            reconciler=reconciler,
            scanner=scanner,
            gate=self.gate,
        ).register(self.task_scheduler)

        logger.info(
            "Validator service initialized",
            account=self.identity.account_name,
            public_key=self.identity.public_key
        )

    async def check_client(self, table_api: TableApi):
        """The validator account must exist on the ledger."""
        if not await table_api.account_exists(self.identity.account_name):
            raise ConfigurationError(
                f"Account {self.identity.account_name} does not exist on the ledger",
                {"account": self.identity.account_name}
            )

    async def start(self):
        """Start the scheduled jobs and the liveness probe."""
        logger.info("Starting validator service")
        self.running = True

        self.tasks.append(asyncio.create_task(self.task_scheduler.start()))

        if settings.health_enabled:
            app = create_app(
                self.progress,
                gate=self.gate,
                scheduler=self.task_scheduler,
                account_name=self.identity.account_name if self.identity else None,
            )
            config = uvicorn.Config(
                app,
                host=settings.health_host,
                port=settings.health_port,
                log_config=None,
                access_log=False,
            )
            self.health_server = uvicorn.Server(config)
            # Signals are handled by the service, not by uvicorn
            self.health_server.install_signal_handlers = lambda: None
            self.tasks.append(asyncio.create_task(self.health_server.serve()))
            logger.info(f"Health server running on http://{settings.health_host}:{settings.health_port}")

        await asyncio.gather(*self.tasks, return_exceptions=True)

    async def stop(self):
        """Stop the validator service."""
        if not self.running and not self.tasks:
            await self._close_clients()
            return
        logger.info("Stopping validator service")
        self.running = False

        await self.task_scheduler.stop()
        if self.health_server:
            self.health_server.should_exit = True

        for task in self.tasks:
            if not task.done():
                task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks.clear()

        await self._close_clients()
        logger.info("Validator service stopped")

    async def _close_clients(self):
        if self.ledger_client:
            await self.ledger_client.close()
        if self.bitcoin_client:
            await self.bitcoin_client.close()


async def main() -> int:
    """Run the validator service, returning the process exit code."""
    setup_logging(service="validator")

    validator = ValidatorMain()
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        logger.info(f"Received signal {signum}, shutting down...")
        asyncio.create_task(validator.stop())

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, signal_handler, signum)

    try:
        await validator.initialize()
    except UnlockAborted:
        logger.info("Keystore unlock aborted by operator")
        await validator.stop()
        return 0
    except EndorserException as e:
        logger.error("Validator startup failed", error=e.message, code=e.code, details=e.details)
        await validator.stop()
        return 1

    try:
        await validator.start()
    finally:
        await validator.stop()
    return 0


def run():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
