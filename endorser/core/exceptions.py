"""
Custom exception classes for the validator client.
Provides structured error handling across all modules.
"""

from typing import Any, Optional, Dict


class EndorserException(Exception):
    """Base exception class for the validator client."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(EndorserException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class KeystoreError(EndorserException):
    """Raised when the keystore file cannot be read or is malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "KEYSTORE_ERROR", details)


class KeystoreDecryptionError(KeystoreError):
    """Raised when the keystore password is wrong or the data is corrupted."""

    def __init__(self, path: str, reason: str = "invalid password"):
        super().__init__(
            f"Failed to decrypt keystore {path}: {reason}",
            {"path": path, "reason": reason}
        )
        self.code = "KEYSTORE_DECRYPTION_ERROR"


class BitcoinRpcError(EndorserException):
    """Raised when a Bitcoin node RPC call fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "BITCOIN_RPC_ERROR", details)


class LedgerError(EndorserException):
    """Raised when the ledger chain API rejects a request."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "LEDGER_ERROR", details)


class LedgerTransportError(LedgerError):
    """Raised when no ledger endpoint could be reached."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "LEDGER_TRANSPORT_ERROR"


class SchedulerError(EndorserException):
    """Raised when there's a scheduler error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SCHEDULER_ERROR", details)
