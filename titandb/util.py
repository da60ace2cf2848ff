"""Identifiers, clocks, bit counting and sortable float encoding."""

from __future__ import annotations

import math
import struct
import time
import uuid as _uuid

_SIGN_BIT = 1 << 63
_MASK64 = (1 << 64) - 1
_FLOAT = struct.Struct(">d")
_UINT64 = struct.Struct(">Q")


def uuid() -> bytes:
    """Allocate a unique 16-byte object ID."""
    return _uuid.uuid4().bytes


def uuid_string(object_id: bytes) -> str:
    """Return the canonical text form of an ID, or the nil UUID if it is invalid."""
    try:
        return str(_uuid.UUID(bytes=bytes(object_id)))
    except (ValueError, TypeError):
        return str(_uuid.UUID(int=0))


def now() -> int:
    """Return the current unix time in nanoseconds."""
    return time.time_ns()


def redis_popcount(data: bytes) -> int:
    """Count the bits set in ``data``."""
    return bin(int.from_bytes(bytes(data), "big")).count("1")


def init_cursor(begin: int, end: int, length: int) -> tuple[int, int]:
    """Normalise a possibly negative ``[begin, end]`` range over ``length`` bytes."""
    if begin < 0:
        begin += length
    if end < 0:
        end += length
    begin = max(begin, 0)
    end = max(end, 0)
    if end >= length:
        end = length - 1
    return begin, end


def redis_bitpos(data: bytes, bit: int) -> int:
    """Return the position of the first bit equal to ``bit``, or -1 if no 1 is found."""
    padded = bytes(data) + bytes(-len(data) % 4)
    skip = 0xFF if bit == 0 else 0x00
    pos = next((i for i, byte in enumerate(padded) if byte != skip), len(padded))
    if pos == len(padded):
        return -1 if bit == 1 else pos * 8
    want_set = bit == 1
    word = padded[pos]
    offset = next(
        (i for i in range(8) if bool(word & (0x80 >> i)) == want_set),
        8,
    )
    return pos * 8 + offset


def encode_float64(value: float) -> bytes:
    """Encode a float into 8 bytes whose byte order matches numeric order."""
    value = float(value)
    if math.isnan(value):
        raise ValueError("cannot encode NaN")
    (bits,) = _UINT64.unpack(_FLOAT.pack(value))
    bits = (bits ^ _MASK64) if bits & _SIGN_BIT else (bits | _SIGN_BIT)
    return _UINT64.pack(bits)


def decode_float64(data: bytes) -> float:
    """Decode 8 bytes produced by :func:`encode_float64`."""
    data = bytes(data)
    if len(data) != 8:
        raise ValueError(f"expected 8 bytes, got {len(data)}")
    (bits,) = _UINT64.unpack(data)
    bits = (bits ^ _SIGN_BIT) if bits & _SIGN_BIT else (bits ^ _MASK64)
    (value,) = _FLOAT.unpack(_UINT64.pack(bits))
    return value