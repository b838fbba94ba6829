"""
Ledger chain API access: table reads and endorse actions.
"""

from .client import LedgerClient, create_ledger_client
from .table_api import TableApi
from .endorsement_ledger import EndorsementLedger, classify_ledger_error

__all__ = [
    "LedgerClient",
    "create_ledger_client",
    "TableApi",
    "EndorsementLedger",
    "classify_ledger_error",
]
