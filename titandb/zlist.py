"""Compact lists kept whole inside the meta value of their key."""

from __future__ import annotations

from typing import Iterable, Optional

from titandb.llist import LList
from titandb.object import (
    OBJECT_ENCODING_LENGTH,
    InvalidLengthError,
    KeyNotFoundError,
    Object,
    ObjectEncoding,
    ObjectType,
    OutOfRangeError,
)
from titandb.store import Transaction, meta_key
from titandb.util import now, uuid

_VALUES_TAG = 0x0A  # field 1, length delimited


def _encode_varint(number: int) -> bytes:
    out = bytearray()
    while True:
        low = number & 0x7F
        number >>= 7
        if number:
            out.append(low | 0x80)
        else:
            out.append(low)
            return bytes(out)


def _decode_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data) or shift > 63:
            raise InvalidLengthError("truncated varint in list value")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7


def _encode_values(values: Iterable[bytes]) -> bytes:
    return b"".join(
        bytes([_VALUES_TAG]) + _encode_varint(len(v)) + bytes(v) for v in values
    )


def _decode_values(data: bytes) -> list[bytes]:
    values: list[bytes] = []
    pos = 0
    while pos < len(data):
        tag, pos = _decode_varint(data, pos)
        field, wire_type = tag >> 3, tag & 0x7
        if wire_type == 0:
            _, pos = _decode_varint(data, pos)
            continue
        if wire_type == 1:
            end = pos + 8
        elif wire_type == 5:
            end = pos + 4
        elif wire_type == 2:
            size, pos = _decode_varint(data, pos)
            end = pos + size
        else:
            raise InvalidLengthError(f"unsupported wire type {wire_type}")
        if end > len(data):
            raise InvalidLengthError("truncated list value")
        if field == 1 and wire_type == 2:
            values.append(bytes(data[pos:end]))
        pos = end
    return values


class ZList:
    """A list whose elements are all stored in the meta value of the key."""

    def __init__(
        self,
        txn: Transaction,
        meta_key: bytes,
        meta: Object,
        values: Optional[Iterable[bytes]] = None,
    ) -> None:
        self.txn = txn
        self.meta = meta
        self.values: list[bytes] = [bytes(v) for v in values or ()]
        self._meta_key = bytes(meta_key)

    def _commit(self) -> None:
        self.txn.raw.set(self._meta_key, self.marshal())

    def _normalize(self, n: int) -> int:
        if n < 0:
            n += len(self.values)
        if not 0 <= n < len(self.values):
            raise OutOfRangeError()
        return n

    def marshal(self) -> bytes:
        """Encode the object meta followed by the element list."""
        return self.meta.encode() + _encode_values(self.values)

    def length(self) -> int:
        return len(self.values)

    def exists(self) -> bool:
        return bool(self.values)

    def lpush(self, *values: bytes) -> None:
        """Add each value to the left end in turn."""
        self.values = [bytes(v) for v in reversed(values)] + self.values
        self._commit()

    def rpush(self, *values: bytes) -> None:
        """Add each value to the right end in turn."""
        self.values.extend(bytes(v) for v in values)
        self._commit()

    def set(self, n: int, data: bytes) -> None:
        """Replace the element at index ``n``; negative indexes count from the right."""
        self.values[self._normalize(n)] = bytes(data)
        self._commit()

    def insert(self, pivot: bytes, value: bytes, before: bool) -> None:
        """Insert ``value`` before or after the first element equal to ``pivot``."""
        try:
            position = self.values.index(bytes(pivot))
        except ValueError:
            raise KeyNotFoundError() from None
        if not before:
            position += 1
        self.values.insert(position, bytes(value))
        self._commit()

    def index(self, n: int) -> bytes:
        """Return the element at index ``n``; negative indexes count from the right."""
        return self.values[self._normalize(n)]

    def _pop(self, position: int) -> bytes:
        if not self.values:
            raise KeyNotFoundError()
        value = self.values.pop(position)
        if not self.values:
            self.destroy()
        else:
            self._commit()
        return value

    def lpop(self) -> bytes:
        """Remove and return the leftmost element."""
        return self._pop(0)

    def rpop(self) -> bytes:
        """Remove and return the rightmost element."""
        return self._pop(-1)

    def range(self, left: int, right: int) -> list[bytes]:
        """Return the elements from ``left`` to ``right`` inclusive."""
        size = len(self.values)
        if right < 0:
            right += size
            if right < 0:
                return []
        if left < 0:
            left = max(left + size, 0)
        right = min(right, size - 1)
        if left > right:
            return []
        return self.values[left:right + 1]

    def ltrim(self, start: int, stop: int) -> None:
        """Keep only the elements from ``start`` to ``stop`` inclusive."""
        size = len(self.values)
        if start < 0:
            start = max(start + size, 0)
        if stop < 0:
            stop += size
        stop = min(stop, size - 1)
        if start > stop:
            self.destroy()
            return
        self.values = self.values[start:stop + 1]
        self._commit()

    def lrem(self, value: bytes, n: int) -> int:
        """Remove elements equal to ``value`` and return how many were removed.

        A positive ``n`` removes up to ``n`` from the left, a negative one up
        to ``-n`` from the right, and zero removes them all.
        """
        value = bytes(value)
        limit = abs(n) if n else len(self.values)
        ordered = self.values if n >= 0 else list(reversed(self.values))
        kept: list[bytes] = []
        removed = 0
        for item in ordered:
            if item == value and removed < limit:
                removed += 1
            else:
                kept.append(item)
        self.values = kept if n >= 0 else list(reversed(kept))
        self._commit()
        return removed

    def destroy(self) -> None:
        """Delete the list."""
        self.txn.raw.delete(self._meta_key)
        self.values = []

    def transfer_to_llist(self) -> LList:
        """Store the elements as a linked list that keeps this list's identity."""
        obj = Object(
            id=self.meta.id,
            type=ObjectType.LIST,
            encoding=ObjectEncoding.LINKEDLIST,
            created_at=self.meta.created_at,
            updated_at=self.meta.updated_at,
            expire_at=0,
        )
        linked = LList(self.txn, self._meta_key, obj)
        linked.rpush(*self.values)
        return linked


def get_zlist(txn: Transaction, meta_key: bytes, obj: Object, raw: bytes) -> ZList:
    """Build a list from its decoded object and raw meta value."""
    values = _decode_values(bytes(raw[OBJECT_ENCODING_LENGTH:]))
    return ZList(txn, meta_key, obj, values)


def new_zlist(txn: Transaction, key: bytes) -> ZList:
    """Create an empty list for ``key`` without looking at the storage."""
    ts = now()
    obj = Object(
        id=uuid(),
        type=ObjectType.LIST,
        encoding=ObjectEncoding.ZIPLIST,
        created_at=ts,
        updated_at=ts,
        expire_at=0,
    )
    return ZList(txn, meta_key(txn.db, key), obj)