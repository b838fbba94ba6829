"""
Binary packing for the one transaction shape the validator pushes.

Only what an `endorse` action needs is covered: account names, varuints,
fixed-width integers, checksum256 and the transaction envelope.
"""

import struct
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

NAME_CHARS = ".12345abcdefghijklmnopqrstuvwxyz"


def _char_to_symbol(c: str) -> int:
    if "a" <= c <= "z":
        return ord(c) - ord("a") + 6
    if "1" <= c <= "5":
        return ord(c) - ord("1") + 1
    if c == ".":
        return 0
    raise ValueError(f"Invalid character {c!r} in account name")


def name_to_int(name: str) -> int:
    """Encode an account or action name into its 64-bit value."""
    if len(name) > 13:
        raise ValueError(f"Account name too long: {name}")
    value = 0
    for i, c in enumerate(name[:12]):
        value |= (_char_to_symbol(c) & 0x1F) << (64 - 5 * (i + 1))
    if len(name) == 13:
        last = _char_to_symbol(name[12])
        if last > 0x0F:
            raise ValueError(f"Invalid 13th character in account name: {name}")
        value |= last
    return value


def int_to_name(value: int) -> str:
    """Decode a 64-bit name value back to its string form."""
    chars = []
    for i in range(13):
        if i == 0:
            c = NAME_CHARS[value & 0x0F]
            value >>= 4
        else:
            c = NAME_CHARS[value & 0x1F]
            value >>= 5
        chars.append(c)
    return "".join(reversed(chars)).rstrip(".")


def pack_name(name: str) -> bytes:
    return struct.pack("<Q", name_to_int(name))


def pack_varuint32(value: int) -> bytes:
    if value < 0 or value > 0xFFFFFFFF:
        raise ValueError(f"varuint32 out of range: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def pack_checksum256(hex_digest: str) -> bytes:
    raw = bytes.fromhex(hex_digest)
    if len(raw) != 32:
        raise ValueError(f"checksum256 must be 32 bytes, got {len(raw)}")
    return raw


def pack_endorse_data(validator: str, height: int, block_hash: str) -> bytes:
    """Pack the `endorse(name validator, uint64 height, checksum256 hash)` arguments."""
    return pack_name(validator) + struct.pack("<Q", height) + pack_checksum256(block_hash)


@dataclass
class PermissionLevel:
    actor: str
    permission: str = "active"

    def pack(self) -> bytes:
        return pack_name(self.actor) + pack_name(self.permission)


@dataclass
class Action:
    account: str
    name: str
    authorization: List[PermissionLevel]
    data: bytes

    def pack(self) -> bytes:
        out = pack_name(self.account) + pack_name(self.name)
        out += pack_varuint32(len(self.authorization))
        for level in self.authorization:
            out += level.pack()
        out += pack_varuint32(len(self.data)) + self.data
        return out


@dataclass
class Transaction:
    expiration: int
    ref_block_num: int
    ref_block_prefix: int
    actions: List[Action] = field(default_factory=list)
    max_net_usage_words: int = 0
    max_cpu_usage_ms: int = 0
    delay_sec: int = 0

    def pack(self) -> bytes:
        out = struct.pack(
            "<IHI",
            self.expiration,
            self.ref_block_num & 0xFFFF,
            self.ref_block_prefix,
        )
        out += pack_varuint32(self.max_net_usage_words)
        out += struct.pack("<B", self.max_cpu_usage_ms)
        out += pack_varuint32(self.delay_sec)
        out += pack_varuint32(0)  # context free actions
        out += pack_varuint32(len(self.actions))
        for action in self.actions:
            out += action.pack()
        out += pack_varuint32(0)  # transaction extensions
        return out


def reference_block(block_id: str) -> Tuple[int, int]:
    """Derive (ref_block_num, ref_block_prefix) from a block id."""
    raw = bytes.fromhex(block_id)
    block_num = int.from_bytes(raw[0:4], "big")
    prefix = struct.unpack("<I", raw[8:12])[0]
    return block_num & 0xFFFF, prefix


def expiration_from(head_block_time: str, seconds: int) -> int:
    """Expiration timestamp `seconds` after the given head block time."""
    head = datetime.fromisoformat(head_block_time.rstrip("Z")).replace(tzinfo=timezone.utc)
    return int((head + timedelta(seconds=seconds)).timestamp())
