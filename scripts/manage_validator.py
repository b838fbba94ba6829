#!/usr/bin/env python3
"""
Management commands for the validator: keystore creation and status checks.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import typer
from rich.console import Console
from rich.table import Table

from endorser.core.config import settings
from endorser.core.exceptions import EndorserException
from endorser.core.logging import setup_logging
from endorser.services.bitcoin_client import BitcoinRpcClient
from endorser.services.keystore import encrypt_keystore, load_account_identity, save_keystore
from endorser.services.ledger import LedgerClient, TableApi

console = Console()
app = typer.Typer(help="Validator management commands")


@app.command()
def create_keystore(
    output: Path = typer.Option(Path("validator_keystore.json"), help="Keystore file to write"),
    permission: str = typer.Option("active", help="Permission used to sign endorsements"),
):
    """Encrypt a validator private key into a keystore file."""
    if output.exists() and not typer.confirm(f"{output} exists, overwrite?"):
        raise typer.Exit(1)

    account_name = typer.prompt("Validator account name")
    private_key = typer.prompt("Private key", hide_input=True)
    password = typer.prompt("Keystore password", hide_input=True, confirmation_prompt=True)

    try:
        document = encrypt_keystore(account_name, private_key, password, permission=permission)
    except ValueError as e:
        console.print(f"❌ Invalid private key: {e}")
        raise typer.Exit(1)

    save_keystore(output, document)
    console.print(f"✅ Keystore written to {output}")
    console.print(f"   Account: {account_name}")
    console.print(f"   Public key: {document['address']}")


@app.command()
def verify_keystore(
    path: Path = typer.Argument(None, help="Keystore file, defaults to VALIDATOR_KEYSTORE_FILE"),
):
    """Decrypt a keystore and show the account it holds."""
    keystore = path or Path(settings.validator_keystore_file)
    password = typer.prompt("Keystore password", hide_input=True)
    try:
        identity = load_account_identity(keystore, password)
    except EndorserException as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(1)

    console.print(f"✅ Keystore OK: {identity.account_name} ({identity.public_key})")


@app.command()
def status():
    """Show connectivity and endorsement state for the current chain tip."""

    table = Table(title="Validator Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")

    async def _status():
        setup_logging()

        async with BitcoinRpcClient() as bitcoin:
            try:
                tip = await bitcoin.get_chain_tip()
                table.add_row("Bitcoin tip", f"{tip.height} {tip.hash}")
            except EndorserException as e:
                tip = None
                table.add_row("Bitcoin tip", f"❌ {e.message}")

        try:
            async with LedgerClient() as ledger:
                table_api = TableApi(ledger)
                table.add_row("Ledger chain id", ledger.chain_id)

                launched = await table_api.get_startup_status()
                table.add_row("Network launched", "✅ yes" if launched else "⏳ not yet")

                chainstate = await table_api.get_chainstate()
                table.add_row(
                    "Irreversible height",
                    str(chainstate.irreversible_height) if chainstate else "❌ missing"
                )

                if tip is not None:
                    record = await table_api.get_endorsement(tip.height, tip.hash)
                    if record is None:
                        table.add_row("Tip endorsement", "no record yet")
                    else:
                        table.add_row(
                            "Tip endorsement",
                            f"{len(record.provider_validators)}/{len(record.requested_validators)} provided"
                        )
        except EndorserException as e:
            table.add_row("Ledger", f"❌ {e.message}")

        console.print(table)

    asyncio.run(_status())


if __name__ == "__main__":
    app()
