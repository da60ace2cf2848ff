"""String values stored inline with their object meta data."""

from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Optional

from titandb.object import (
    OBJECT_ENCODING_LENGTH,
    IntegerError,
    KeyNotFoundError,
    Object,
    ObjectEncoding,
    ObjectType,
    OutOfRangeError,
    TypeMismatchError,
    expire_at,
    unexpire_at,
)
from titandb.store import NotFoundError, Transaction, meta_key
from titandb.util import init_cursor, now, redis_bitpos, redis_popcount, uuid

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_INT_PATTERN = re.compile(rb"[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(rb"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_SPECIAL_FLOAT = re.compile(rb"[+-]?(?:inf|infinity|nan)", re.IGNORECASE)


def _parse_int(raw: bytes) -> int:
    if not _INT_PATTERN.fullmatch(raw):
        raise IntegerError()
    number = int(raw)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise IntegerError()
    return number


def _parse_float(raw: bytes) -> float:
    if _SPECIAL_FLOAT.fullmatch(raw):
        return float(raw)
    if not _FLOAT_PATTERN.fullmatch(raw):
        raise IntegerError()
    number = float(raw)
    if math.isinf(number):
        raise IntegerError()
    return number


def _wrap_int64(number: int) -> int:
    return ((number - _INT64_MIN) % (1 << 64)) + _INT64_MIN


def _format_float(number: float) -> str:
    """Shortest round-trip representation in exponent form, e.g. ``1.5e+00``."""
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    sign, digits, exponent = Decimal(repr(number)).as_tuple()
    digits = list(digits)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    power = 0 if number == 0 else exponent + len(digits) - 1
    mantissa = str(digits[0])
    rest = "".join(str(d) for d in digits[1:])
    if rest:
        mantissa += "." + rest
    return f"{'-' if sign else ''}{mantissa}e{power:+03d}"


class String:
    """A string value kept together with its meta data under the meta key."""

    def __init__(self, txn: Transaction, key: bytes) -> None:
        self.txn = txn
        self.key = bytes(key)
        ts = now()
        self.meta = Object(
            id=uuid(),
            type=ObjectType.STRING,
            encoding=ObjectEncoding.RAW,
            created_at=ts,
            updated_at=ts,
            expire_at=0,
        )
        self.value: Optional[bytes] = None

    @property
    def _meta_key(self) -> bytes:
        return meta_key(self.txn.db, self.key)

    def _load(self, raw: bytes) -> None:
        obj = Object.decode(raw)
        if obj.is_expired(now()):
            return
        if obj.type is not ObjectType.STRING or obj.encoding is not ObjectEncoding.RAW:
            raise TypeMismatchError()
        self.meta = obj
        self.value = bytes(raw[OBJECT_ENCODING_LENGTH:])

    def _save(self) -> None:
        self.txn.raw.set(self._meta_key, self.meta.encode() + (self.value or b""))

    def get(self) -> bytes:
        """Return the value; raise KeyNotFoundError if the key does not exist."""
        if not self.exists():
            raise KeyNotFoundError()
        return self.value

    def set(self, value: bytes, expire: Optional[int] = None) -> None:
        """Store ``value``; a positive ``expire`` (nanoseconds) sets a deadline, otherwise it is cleared."""
        timestamp = now()
        mkey = self._meta_key
        if expire is not None and expire > 0:
            old = self.meta.expire_at
            self.meta.expire_at = timestamp + expire
            expire_at(self.txn.raw, mkey, self.meta.id, self.meta.type, old, self.meta.expire_at)
        else:
            if self.meta.expire_at > 0:
                unexpire_at(self.txn.raw, mkey, self.meta.expire_at)
            self.meta.expire_at = 0
        self.value = bytes(value)
        self._save()

    def length(self) -> int:
        """Return the length of the value, 0 if the key does not exist."""
        return len(self.value or b"")

    def exists(self) -> bool:
        return self.value is not None

    def append(self, value: bytes) -> int:
        """Append ``value`` and return the new length."""
        self.value = (self.value or b"") + bytes(value)
        self._save()
        return len(self.value)

    def get_set(self, value: bytes) -> Optional[bytes]:
        """Replace the value and return the old one (None if there was none)."""
        old = self.value
        self.set(value)
        return old

    def get_range(self, start: int, end: int) -> Optional[bytes]:
        """Return the bytes between ``start`` and ``end`` inclusive, or None for an empty range."""
        current = self.value or b""
        size = len(current)
        if end < 0:
            end += size
        if start < 0:
            start += size
        if start > end or start > size or end < 0:
            return None
        if end > size:
            end = size - 1
        start = max(start, 0)
        return current[start:end + 1]

    def set_range(self, offset: int, value: bytes) -> bytes:
        """Overwrite from ``offset`` with ``value``, zero padding as needed; return the new value."""
        if offset < 0:
            raise OutOfRangeError("offset is out of range")
        value = bytes(value)
        current = bytearray(self.value or b"")
        needed = offset + len(value)
        if len(current) < needed:
            current.extend(bytes(needed - len(current)))
        current[offset:offset + len(value)] = value
        result = bytes(current)
        self.set(result)
        return result

    def incr(self, delta: int) -> int:
        """Add ``delta`` to the integer value and return the result."""
        if self.value is not None:
            delta = _wrap_int64(_parse_int(self.value) + delta)
        self.set(str(delta).encode())
        return delta

    def incrf(self, delta: float) -> float:
        """Add ``delta`` to the float value and return the result."""
        delta = float(delta)
        if self.value is not None:
            delta = _parse_float(self.value) + delta
        self.set(_format_float(delta).encode())
        return delta

    def set_bit(self, offset: int, on: int) -> int:
        """Set the bit at ``offset`` to ``on`` and return the old bit, masked in place."""
        if offset < 0:
            raise OutOfRangeError("bit offset is out of range")
        current = bytearray(self.value or b"")
        byte_index = offset >> 3
        if byte_index >= len(current):
            current.extend(bytes(byte_index - len(current) + 1))
        mask = 1 << (7 - (offset & 0x7))
        old = current[byte_index] & mask
        current[byte_index] = (current[byte_index] & ~mask & 0xFF) | (mask if on & 0x1 else 0)
        self.set(bytes(current))
        return old

    def get_bit(self, offset: int) -> int:
        """Return the bit at ``offset``, masked in place; 0 beyond the value."""
        if offset < 0:
            raise OutOfRangeError("bit offset is out of range")
        current = self.value or b""
        byte_index = offset >> 3
        if byte_index > len(current) - 1:
            return 0
        return current[byte_index] & (1 << (7 - (offset & 0x7)))

    def bit_count(self, begin: int, end: int) -> int:
        """Count the set bits between byte ``begin`` and ``end`` inclusive."""
        current = self.value or b""
        begin, end = init_cursor(begin, end, len(current))
        if begin > end:
            return 0
        return redis_popcount(current[begin:end + 1])

    def bit_pos(self, bit: int, begin: int, end: int) -> int:
        """Find the first bit equal to ``bit`` between byte ``begin`` and ``end``."""
        current = self.value or b""
        begin, end = init_cursor(begin, end, len(current))
        if begin > end:
            return -1
        return redis_bitpos(current[begin:end + 1], bit)


def new_string(txn: Transaction, key: bytes) -> String:
    """Create a string object without looking at the storage."""
    return String(txn, key)


def get_string(txn: Transaction, key: bytes) -> String:
    """Load the string stored at ``key``, or a fresh one if absent or expired."""
    string = new_string(txn, key)
    try:
        raw = txn.raw.get(meta_key(txn.db, key))
    except NotFoundError:
        return string
    string._load(raw)
    string.meta.updated_at = now()
    return string