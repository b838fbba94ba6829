"""
Keystore password providers and the unlock loop.
"""

import getpass
from typing import Callable, Optional, Protocol, Union
from pathlib import Path

import structlog

from endorser.core.exceptions import KeystoreDecryptionError
from .keystore import AccountIdentity, load_account_identity


logger = structlog.get_logger(__name__)

QUIT_INPUT = "q"


class UnlockAborted(Exception):
    """Raised when the operator chooses to quit at the password prompt."""


class CredentialProvider(Protocol):
    interactive: bool

    def get_password(self) -> str:
        ...


class ConfiguredPasswordProvider:
    """Password supplied through configuration, tried exactly once."""

    interactive = False

    def __init__(self, password: str):
        self._password = password.strip()

    def get_password(self) -> str:
        return self._password


class InteractivePasswordProvider:
    """Prompts the operator; entering `q` aborts."""

    interactive = True

    def __init__(
        self,
        prompt: str = "Enter your password (enter 'q' to exit): ",
        read: Callable[[str], str] = getpass.getpass,
    ):
        self.prompt = prompt
        self._read = read

    def get_password(self) -> str:
        password = self._read(self.prompt)
        if password.strip() == QUIT_INPUT:
            raise UnlockAborted()
        return password


def credential_provider_from_settings(configured_password: Optional[str]) -> CredentialProvider:
    if configured_password:
        return ConfiguredPasswordProvider(configured_password)
    return InteractivePasswordProvider()


def unlock_keystore(
    keystore_path: Union[str, Path],
    provider: CredentialProvider,
) -> AccountIdentity:
    """
    Decrypt the keystore with passwords from `provider`.

    Interactive providers are re-prompted after a wrong password until they
    abort; a configured password gets a single attempt.

    Raises:
        UnlockAborted: operator quit at the prompt
        KeystoreDecryptionError: configured password is wrong
        KeystoreError: keystore missing or malformed
    """
    while True:
        password = provider.get_password()
        try:
            return load_account_identity(keystore_path, password)
        except KeystoreDecryptionError as e:
            if not provider.interactive:
                raise
            logger.warning("Keystore unlock failed, try again", error=e.message)
