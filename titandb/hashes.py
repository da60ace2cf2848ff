"""Hash tables mapping byte-string fields to byte-string values."""

from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Iterable, Iterator, Optional

from titandb.object import (
    IntegerError,
    Object,
    ObjectEncoding,
    ObjectType,
    TitanError,
    TypeMismatchError,
)
from titandb.store import (
    NotFoundError,
    Transaction,
    batch_get_values,
    data_key,
    meta_key,
    prefix_next,
)
from titandb.util import now, uuid

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_INT_PATTERN = re.compile(rb"[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(rb"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_SPECIAL_FLOAT = re.compile(rb"[+-]?(?:inf|infinity|nan)", re.IGNORECASE)


def _parse_int(raw: bytes) -> int:
    if not _INT_PATTERN.fullmatch(raw):
        raise IntegerError("hash value is not an integer")
    number = int(raw)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise IntegerError("hash value is not an integer")
    return number


def _parse_float(raw: bytes) -> float:
    if _SPECIAL_FLOAT.fullmatch(raw):
        return float(raw)
    if not _FLOAT_PATTERN.fullmatch(raw):
        raise TitanError("hash value is not a float")
    number = float(raw)
    if math.isinf(number):
        raise TitanError("hash value is not a float")
    return number


def _wrap_int64(number: int) -> int:
    return ((number - _INT64_MIN) % (1 << 64)) + _INT64_MIN


def _format_float(number: float) -> str:
    """Shortest round-trip representation without an exponent, e.g. ``10.6`` or ``3``."""
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    return format(Decimal(repr(number)).normalize(), "f")


class Hash:
    """A hash whose fields are stored as keys under the object's data prefix."""

    def __init__(self, txn: Transaction, key: bytes) -> None:
        ts = now()
        self.txn = txn
        self.key = bytes(key)
        self.meta = Object(
            id=uuid(),
            type=ObjectType.HASH,
            encoding=ObjectEncoding.HT,
            created_at=ts,
            updated_at=ts,
            expire_at=0,
        )
        self._exists = False

    def _prefix(self) -> bytes:
        return data_key(self.txn.db, self.meta.id) + b":"

    def _item_key(self, field: bytes) -> bytes:
        return self._prefix() + bytes(field)

    def _set_meta(self) -> None:
        self.txn.raw.set(meta_key(self.txn.db, self.key), self.meta.encode())
        self._exists = True

    def _del_meta(self) -> None:
        self.txn.raw.delete(meta_key(self.txn.db, self.key))
        self._exists = False

    def _lookup(self, item_key: bytes) -> Optional[bytes]:
        try:
            return self.txn.raw.get(item_key)
        except NotFoundError:
            return None

    def exists(self) -> bool:
        return self._exists

    def hdel(self, fields: Iterable[bytes]) -> int:
        """Remove the given fields and return how many were removed."""
        if not self._exists:
            return 0
        prefix = self._prefix()
        targets = {prefix + bytes(f) for f in fields}
        removed = 0
        retain_meta = False
        for key, _ in self.txn.raw.iter(prefix, prefix_next(prefix)):
            if key in targets:
                self.txn.raw.delete(key)
                removed += 1
                continue
            retain_meta = True
            if removed == len(targets):
                break
        if not retain_meta:
            self._del_meta()
        return removed

    def hset(self, field: bytes, value: bytes) -> int:
        """Set ``field`` to ``value``; return 1 if the field is new, else 0."""
        item_key = self._item_key(field)
        is_new = self._lookup(item_key) is None
        self.txn.raw.set(item_key, value)
        if not self._exists:
            self._set_meta()
        return 1 if is_new else 0

    def hsetnx(self, field: bytes, value: bytes) -> int:
        """Set ``field`` only if it does not exist; return 1 if it was set."""
        item_key = self._item_key(field)
        if self._lookup(item_key) is not None:
            return 0
        self.txn.raw.set(item_key, value)
        if not self._exists:
            self._set_meta()
        return 1

    def hget(self, field: bytes) -> Optional[bytes]:
        """Return the value of ``field``, or None if it is absent."""
        if not self._exists:
            return None
        return self._lookup(self._item_key(field))

    def hgetall(self) -> dict[bytes, bytes]:
        """Return every field and value, ordered by field."""
        return dict(self.hscan(b"")) if self._exists else {}

    def hexists(self, field: bytes) -> bool:
        """Return whether ``field`` is present."""
        if not self._exists:
            return False
        return self._lookup(self._item_key(field)) is not None

    def hincrby(self, field: bytes, delta: int) -> int:
        """Add ``delta`` to the integer stored at ``field`` and return the result."""
        item_key = self._item_key(field)
        number = 0
        if self._exists:
            current = self._lookup(item_key)
            if current is not None:
                number = _parse_int(current)
        number = _wrap_int64(number + delta)
        self.txn.raw.set(item_key, str(number).encode())
        if not self._exists:
            self._set_meta()
        return number

    def hincrbyfloat(self, field: bytes, delta: float) -> float:
        """Add ``delta`` to the float stored at ``field`` and return the result."""
        item_key = self._item_key(field)
        number = 0.0
        if self._exists:
            current = self._lookup(item_key)
            if current is not None:
                number = _parse_float(current)
        number += float(delta)
        self.txn.raw.set(item_key, _format_float(number).encode())
        if not self._exists:
            self._set_meta()
        return number

    def hlen(self) -> int:
        """Return the number of fields."""
        if not self._exists:
            return 0
        prefix = self._prefix()
        return sum(1 for _ in self.txn.raw.iter(prefix, prefix_next(prefix)))

    def hmget(self, fields: Iterable[bytes]) -> list[Optional[bytes]]:
        """Return the values of ``fields`` in order, None where a field is absent."""
        fields = list(fields)
        if not self._exists:
            return [None] * len(fields)
        return batch_get_values(self.txn, [self._item_key(f) for f in fields])

    def hmset(self, fields: Iterable[bytes], values: Iterable[bytes]) -> None:
        """Set each field to the value at the same position."""
        fields = list(fields)
        values = list(values)
        if len(fields) != len(values):
            raise ValueError("fields and values must have the same length")
        old_values = self.hmget(fields)
        added = 0
        for field, value, old in zip(fields, values, old_values):
            self.txn.raw.set(self._item_key(field), value)
            if old is None:
                added += 1
        if added and not self._exists:
            self._set_meta()

    def hscan(self, cursor: bytes) -> Iterator[tuple[bytes, bytes]]:
        """Yield ``(field, value)`` pairs in field order, starting at ``cursor``."""
        if not self._exists:
            return
        prefix = self._prefix()
        for key, value in self.txn.raw.iter(prefix + bytes(cursor), prefix_next(prefix)):
            yield key[len(prefix):], value


def get_hash(txn: Transaction, key: bytes) -> Hash:
    """Load the hash stored at ``key``, or a fresh one if absent or expired."""
    result = Hash(txn, key)
    try:
        raw = txn.raw.get(meta_key(txn.db, key))
    except NotFoundError:
        return result
    obj = Object.decode(raw)
    if obj.is_expired(now()):
        return result
    if obj.type is not ObjectType.HASH:
        raise TypeMismatchError()
    result.meta = obj
    result._exists = True
    return result