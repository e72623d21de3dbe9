"""Bounds-checked readers for fixed-offset Anchor account layouts."""

import struct

import base58
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from pool_watcher.decoders.constants import DISCRIMINATOR_SIZE, PUBKEY_SIZE
from pool_watcher.exceptions import ShortPayload, UnrecognizedLayout


def require_length(program_kind: str, data: bytes, minimum: int) -> None:
    if len(data) < minimum:
        raise ShortPayload(program_kind, len(data), minimum)


def require_discriminator(program_kind: str, data: bytes, expected: bytes) -> None:
    actual = bytes(data[:DISCRIMINATOR_SIZE])
    if actual != expected:
        raise UnrecognizedLayout(program_kind, actual)


def discriminator_filter(discriminator: bytes) -> dict:
    """memcmp filter for getProgramAccounts / programSubscribe."""
    return {"memcmp": {"offset": 0, "bytes": base58.b58encode(discriminator).decode()}}


def read_pubkey(data: bytes, offset: int) -> str:
    return str(Pubkey.from_bytes(bytes(data[offset:offset + PUBKEY_SIZE])))


def read_u8(data: bytes, offset: int) -> int:
    return data[offset]


def read_u16(data: bytes, offset: int) -> int:
    return struct.unpack_from("<H", data, offset)[0]


def read_i32(data: bytes, offset: int) -> int:
    return struct.unpack_from("<i", data, offset)[0]


def read_u64(data: bytes, offset: int) -> int:
    return struct.unpack_from("<Q", data, offset)[0]


def read_u128(data: bytes, offset: int) -> int:
    lo, hi = struct.unpack_from("<2Q", data, offset)
    return lo | (hi << 64)
