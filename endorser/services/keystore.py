"""
Password-protected keystore for the validator account.

The keystore is a JSON document holding the account name and its private
key encrypted with AES-256-GCM under a PBKDF2-HMAC-SHA256 derived key.
"""

import json
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from endorser.core.exceptions import KeystoreDecryptionError, KeystoreError
from endorser.services.ledger.signer import K1PrivateKey

logger = structlog.get_logger(__name__)

KEY_SIZE = 32
SALT_SIZE = 32
NONCE_SIZE = 12
PBKDF2_ITERATIONS = 600000


@dataclass
class AccountIdentity:
    """Validator account and its signing key, held in memory only."""
    account_name: str
    private_key: K1PrivateKey
    permission: str = "active"

    @property
    def public_key(self) -> str:
        return self.private_key.public_key

    def __repr__(self) -> str:
        return f"AccountIdentity(account_name={self.account_name!r}, permission={self.permission!r})"


def derive_key(password: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt_keystore(
    account_name: str,
    private_key: str,
    password: str,
    permission: str = "active",
    iterations: int = PBKDF2_ITERATIONS,
) -> Dict[str, Any]:
    """Build a keystore document for the given account and key."""
    key = K1PrivateKey.from_string(private_key)
    salt = secrets.token_bytes(SALT_SIZE)
    nonce = secrets.token_bytes(NONCE_SIZE)
    ciphertext = AESGCM(derive_key(password, salt, iterations)).encrypt(
        nonce, private_key.strip().encode("utf-8"), account_name.encode("utf-8")
    )
    return {
        "username": account_name,
        "permission": permission,
        "address": key.public_key,
        "crypto": {
            "cipher": "aes-256-gcm",
            "kdf": "pbkdf2",
            "iterations": iterations,
            "salt": salt.hex(),
            "nonce": nonce.hex(),
            "ciphertext": ciphertext.hex(),
        },
    }


def save_keystore(path: Union[str, Path], document: Dict[str, Any]) -> Path:
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(json.dumps(document, indent=2))
    file_path.chmod(0o600)
    return file_path


def _read_keystore(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise KeystoreError(f"Keystore file not found: {path}", {"path": str(path)})
    try:
        document = json.loads(path.read_text())
        crypto = document["crypto"]
        for field in ("salt", "nonce", "ciphertext"):
            bytes.fromhex(crypto[field])
        document["username"]
    except (ValueError, KeyError, TypeError) as e:
        raise KeystoreError(f"Malformed keystore file {path}: {e}", {"path": str(path)}) from e
    if crypto.get("cipher", "aes-256-gcm") != "aes-256-gcm" or crypto.get("kdf", "pbkdf2") != "pbkdf2":
        raise KeystoreError(
            f"Unsupported keystore cipher in {path}",
            {"cipher": crypto.get("cipher"), "kdf": crypto.get("kdf")}
        )
    return document


def load_account_identity(keystore_path: Union[str, Path], password: str) -> AccountIdentity:
    """
    Decrypt the keystore and return the validator identity.

    Raises:
        KeystoreError: file missing or malformed
        KeystoreDecryptionError: wrong password or tampered data
    """
    path = Path(keystore_path)
    document = _read_keystore(path)
    crypto = document["crypto"]
    account_name = document["username"]

    key = derive_key(
        password,
        bytes.fromhex(crypto["salt"]),
        int(crypto.get("iterations", PBKDF2_ITERATIONS)),
    )
    try:
        plaintext = AESGCM(key).decrypt(
            bytes.fromhex(crypto["nonce"]),
            bytes.fromhex(crypto["ciphertext"]),
            account_name.encode("utf-8"),
        )
    except InvalidTag as e:
        raise KeystoreDecryptionError(str(path)) from e

    try:
        private_key = K1PrivateKey.from_string(plaintext.decode("utf-8"))
    except ValueError as e:
        raise KeystoreDecryptionError(str(path), f"invalid private key: {e}") from e

    address = document.get("address")
    if address and address not in (private_key.public_key, private_key.legacy_public_key):
        raise KeystoreDecryptionError(str(path), "public key does not match keystore address")

    logger.info("Keystore loaded", account=account_name, public_key=private_key.public_key)
    return AccountIdentity(
        account_name=account_name,
        private_key=private_key,
        permission=document.get("permission", "active"),
    )
