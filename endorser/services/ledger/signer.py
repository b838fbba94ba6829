"""
secp256k1 (K1) keys and canonical transaction signatures.
"""

import hashlib
from typing import List, Optional

import base58
import ecdsa
from ecdsa.util import sigdecode_string

CURVE = ecdsa.SECP256k1
ORDER = CURVE.order
LEGACY_PUBLIC_PREFIX = "EOS"


def ripemd160(data: bytes) -> bytes:
    return hashlib.new("ripemd160", data).digest()


def _double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def _encode_k1(prefix: str, payload: bytes) -> str:
    checksum = ripemd160(payload + b"K1")[:4]
    return prefix + base58.b58encode(payload + checksum).decode("ascii")


def _decode_k1(prefix: str, text: str) -> bytes:
    raw = base58.b58decode(text[len(prefix):])
    payload, checksum = raw[:-4], raw[-4:]
    if ripemd160(payload + b"K1")[:4] != checksum:
        raise ValueError("Key checksum mismatch")
    return payload


def _is_canonical(sig: bytes) -> bool:
    """Both r and s must encode as positive 32-byte DER integers."""
    return (
        not (sig[1] & 0x80)
        and not (sig[1] == 0 and not (sig[2] & 0x80))
        and not (sig[33] & 0x80)
        and not (sig[33] == 0 and not (sig[34] & 0x80))
    )


def recover_public_keys(digest: bytes, signature: bytes) -> List[bytes]:
    """
    Compressed public keys able to verify a raw 64-byte `r || s` signature.

    The list is indexed by recovery id.
    """
    candidates = ecdsa.VerifyingKey.from_public_key_recovery_with_digest(
        signature, digest, CURVE, hashfunc=hashlib.sha256, sigdecode=sigdecode_string
    )
    return [key.to_string("compressed") for key in candidates]


class K1PrivateKey:
    """Private key able to produce chain-acceptable signatures."""

    def __init__(self, secret: bytes):
        if len(secret) != 32:
            raise ValueError("Private key must be 32 bytes")
        self._signing_key = ecdsa.SigningKey.from_string(secret, curve=CURVE)
        self._public = self._signing_key.get_verifying_key().to_string("compressed")

    @classmethod
    def from_string(cls, text: str) -> "K1PrivateKey":
        """Parse a `PVT_K1_` key or a legacy WIF key."""
        text = text.strip()
        if text.startswith("PVT_K1_"):
            return cls(_decode_k1("PVT_K1_", text))

        raw = base58.b58decode(text)
        payload, checksum = raw[:-4], raw[-4:]
        if _double_sha256(payload)[:4] != checksum:
            raise ValueError("WIF checksum mismatch")
        if payload[0] != 0x80:
            raise ValueError("Unsupported WIF version byte")
        return cls(payload[1:33])

    @property
    def public_key_bytes(self) -> bytes:
        return self._public

    @property
    def public_key(self) -> str:
        return _encode_k1("PUB_K1_", self._public)

    @property
    def legacy_public_key(self) -> str:
        checksum = ripemd160(self._public)[:4]
        return LEGACY_PUBLIC_PREFIX + base58.b58encode(self._public + checksum).decode("ascii")

    def sign_digest(self, digest: bytes, max_attempts: int = 64) -> str:
        """Sign a 32-byte digest, returning a `SIG_K1_` string."""
        for attempt in range(max_attempts):
            entropy = attempt.to_bytes(32, "big") if attempt else b""
            r, s = self._signing_key.sign_digest_deterministic(
                digest,
                hashfunc=hashlib.sha256,
                sigencode=lambda r, s, order: (r, s),
                extra_entropy=entropy,
            )
            if s > ORDER // 2:
                s = ORDER - s

            rs = r.to_bytes(32, "big") + s.to_bytes(32, "big")
            recovery_id = self._recovery_id(digest, rs)
            if recovery_id is None:
                continue
            sig = bytes([recovery_id + 27 + 4]) + rs
            if _is_canonical(sig):
                return _encode_k1("SIG_K1_", sig)
        raise ValueError("Could not produce a canonical signature")

    def _recovery_id(self, digest: bytes, rs: bytes) -> Optional[int]:
        candidates = recover_public_keys(digest, rs)
        if self._public in candidates:
            return candidates.index(self._public)
        return None


def decode_signature(text: str) -> bytes:
    """Decode a `SIG_K1_` string to its 65 raw bytes."""
    if not text.startswith("SIG_K1_"):
        raise ValueError("Unsupported signature type")
    return _decode_k1("SIG_K1_", text)


def signing_digest(chain_id: str, packed_trx: bytes) -> bytes:
    """Digest a packed transaction is signed over (no context free data)."""
    return hashlib.sha256(bytes.fromhex(chain_id) + packed_trx + bytes(32)).digest()
